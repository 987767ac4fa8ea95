"""Domain events for the Cart aggregate."""

from protean.fields import Identifier, Integer, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Cart")
class CartItemAdded:
    """A listing was added to the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    listing_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)


@marketplace.event(part_of="Cart")
class CartQuantityUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@marketplace.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@marketplace.event(part_of="Cart")
class CartCheckedOut:
    """Listings bought through checkout were removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    listing_ids = Text(required=True)  # JSON array
    remaining_items = Integer(required=True)

"""Domain events for the Listing aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Listing")
class ListingCreated:
    """A seller published a new listing."""

    __version__ = 1

    listing_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    title = String(required=True)
    listing_type = String(required=True)
    price = Float(required=True)
    stock = Integer(required=True)


@marketplace.event(part_of="Listing")
class ListingRestocked:
    __version__ = 1

    listing_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    new_stock = Integer(required=True)


@marketplace.event(part_of="Listing")
class StockHeld:
    """Stock was virtually reserved for a checkout session."""

    __version__ = 1

    listing_id = Identifier(required=True)
    session_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    available_after = Integer(required=True)
    expires_at = DateTime(required=True)


@marketplace.event(part_of="Listing")
class StockHoldReleased:
    __version__ = 1

    listing_id = Identifier(required=True)
    session_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    reason = String(required=True)


@marketplace.event(part_of="Listing")
class StockCommitted:
    """A hold was converted into a durable stock decrement."""

    __version__ = 1

    listing_id = Identifier(required=True)
    session_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    new_stock = Integer(required=True)


@marketplace.event(part_of="Listing")
class ListingVariantAdded:
    __version__ = 1

    listing_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    name = String(required=True)
    price = Float(required=True)
    stock = Integer(required=True)


@marketplace.event(part_of="Listing")
class ListingVariantUpdated:
    __version__ = 1

    listing_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    name = String(required=True)
    price = Float(required=True)
    is_available = Boolean(required=True)

"""Cart item management — commands and handler.

Carts are created lazily on the first item a user adds.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.domain import marketplace
from marketplace.listing.listing import Listing


@marketplace.command(part_of="Cart")
class AddToCart:
    owner_id = Identifier(required=True)
    listing_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)


@marketplace.command(part_of="Cart")
class UpdateCartQuantity:
    owner_id = Identifier(required=True)
    item_id = Identifier(required=True)
    new_quantity = Integer(required=True, min_value=1)


@marketplace.command(part_of="Cart")
class RemoveFromCart:
    owner_id = Identifier(required=True)
    item_id = Identifier(required=True)


@marketplace.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        # Unknown listings fail here with ObjectNotFoundError, unknown variants with ValidationError
        current_domain.repository_for(Listing).get(command.listing_id).resolve_variant(command.variant_id)

        repo = current_domain.repository_for(Cart)
        cart = repo.for_owner(command.owner_id) or Cart.create(owner_id=command.owner_id)
        cart.add_item(listing_id=command.listing_id, quantity=command.quantity, variant_id=command.variant_id)
        repo.add(cart)
        return str(cart.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        repo = current_domain.repository_for(Cart)
        cart = _cart_of(command.owner_id)
        cart.update_item_quantity(item_id=command.item_id, new_quantity=command.new_quantity)
        repo.add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = _cart_of(command.owner_id)
        cart.remove_item(item_id=command.item_id)
        repo.add(cart)


def _cart_of(owner_id) -> Cart:
    cart = current_domain.repository_for(Cart).for_owner(owner_id)
    if cart is None:
        raise ValidationError({"cart": ["Cart is empty"]})
    return cart

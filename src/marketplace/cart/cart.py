"""Cart aggregate (CQRS) — the listings a user intends to buy.

One cart per user. Checkout reads it to open a session and removes the
purchased listings once the session is confirmed.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer

from marketplace.cart.events import CartCheckedOut, CartItemAdded, CartItemRemoved, CartQuantityUpdated
from marketplace.domain import marketplace


def _line_key(listing_id, variant_id=None):
    return str(listing_id), str(variant_id) if variant_id else None


@marketplace.entity(part_of="Cart")
class CartItem:
    listing_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@marketplace.aggregate
class Cart:
    owner_id = Identifier(required=True)
    items = HasMany(CartItem)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, owner_id):
        now = datetime.now(UTC)
        return cls(owner_id=owner_id, created_at=now, updated_at=now)

    def add_item(self, listing_id, quantity, variant_id=None):
        """Add a listing (or one of its variants) to the cart, merging with a matching line."""
        key = _line_key(listing_id, variant_id)
        existing = next((i for i in self.items if _line_key(i.listing_id, i.variant_id) == key), None)
        now = datetime.now(UTC)

        if existing:
            existing.quantity += quantity
            item_id = str(existing.id)
        else:
            item = CartItem(listing_id=listing_id, variant_id=variant_id, quantity=quantity, added_at=now)
            self.add_items(item)
            item_id = str(item.id)

        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                listing_id=str(listing_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
            )
        )

    def _item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})
        return item

    def update_item_quantity(self, item_id, new_quantity):
        item = self._item(item_id)
        previous_quantity = item.quantity
        item.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, item_id):
        item = self._item(item_id)
        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def remove_checked_out(self, purchased):
        """Drop every item bought through checkout. ``purchased`` holds (listing_id, variant_id) pairs."""
        bought = {_line_key(listing_id, variant_id) for listing_id, variant_id in purchased}
        wanted = {listing_id for listing_id, _ in bought}
        for item in [i for i in self.items if _line_key(i.listing_id, i.variant_id) in bought]:
            self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCheckedOut(
                cart_id=str(self.id),
                listing_ids=json.dumps(sorted(wanted)),
                remaining_items=len(self.items),
            )
        )


@marketplace.repository(part_of=Cart)
class CartRepository:
    def for_owner(self, owner_id) -> Cart | None:
        carts = self._dao.query.filter(owner_id=str(owner_id)).all().items
        return carts[0] if carts else None

"""Listing aggregate (CQRS) — a product or service offered by a seller.

Products carry a durable stock count and the stock reservation ledger: a
set of holds placed by checkout sessions. Holds are virtual; stock is only
decremented when a hold is committed at checkout confirmation.

    available = stock - sum(unexpired holds)

A product may instead be sold through variants (size, colour, edition).
Each variant has its own price and stock, and every hold names the variant
it reserves, so each variant is a ledger of its own. The listing-level
stock is unused once a listing has variants.

Holds live only while they reserve stock. Releasing, committing or letting
a hold lapse removes it from the listing; the stock events record it.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from marketplace.domain import marketplace
from marketplace.errors import InsufficientStock, StockChangedSinceReservation
from marketplace.listing.events import (
    ListingCreated,
    ListingRestocked,
    ListingVariantAdded,
    ListingVariantUpdated,
    StockCommitted,
    StockHeld,
    StockHoldReleased,
)
from marketplace.utils.clock import is_past

MAX_VARIANTS_PER_LISTING = 20


class ListingType(Enum):
    PRODUCT = "product"
    SERVICE = "service"


@marketplace.value_object(part_of="Listing")
class QuoteSettings:
    """Quote configuration for service listings."""

    enabled = Boolean(default=False)
    min_price = Float(min_value=0.0)
    max_price = Float(min_value=0.0)
    response_time = String(max_length=100)
    requires_deposit = Boolean(default=False)
    deposit_percentage = Float(default=0.0, min_value=0.0, max_value=100.0)


@marketplace.entity(part_of="Listing")
class ListingVariant:
    """A purchasable option of a product, priced and stocked on its own."""

    name = String(required=True, max_length=100)
    sku = String(max_length=50)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    is_available = Boolean(default=True)
    attributes = Text()  # JSON object, e.g. {"size": "M", "colour": "navy"}

    @property
    def attribute_map(self) -> dict:
        return json.loads(self.attributes) if self.attributes else {}

    @property
    def display_name(self) -> str:
        values = " / ".join(str(v) for v in self.attribute_map.values())
        return f"{self.name} ({values})" if values else self.name


@marketplace.entity(part_of="Listing")
class StockHold:
    """A virtual hold on listing (or variant) stock owned by one checkout session."""

    session_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    held_at = DateTime(required=True)
    expires_at = DateTime(required=True)


def _same(left, right) -> bool:
    return (str(left) if left else None) == (str(right) if right else None)


@marketplace.aggregate
class Listing:
    seller_id = Identifier(required=True)
    seller_name = String(max_length=100)
    title = String(required=True, max_length=200)
    listing_type = String(choices=ListingType, default=ListingType.PRODUCT.value)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    is_available = Boolean(default=True)
    quote_settings = ValueObject(QuoteSettings)
    variants = HasMany(ListingVariant)
    holds = HasMany(StockHold)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def holds_must_not_exceed_stock(self):
        held: dict = {}
        for hold in self.holds:
            key = str(hold.variant_id) if hold.variant_id else None
            held[key] = held.get(key, 0) + hold.quantity
        for key, quantity in held.items():
            if quantity > self._stock_of(key):
                raise ValidationError({"stock": ["Reserved quantity exceeds stock"]})

    @invariant.post
    def only_services_accept_quotes(self):
        if (
            self.quote_settings
            and self.quote_settings.enabled
            and self.listing_type != ListingType.SERVICE.value
        ):
            raise ValidationError({"quote_settings": ["Quotes are only available for service listings"]})

    @invariant.post
    def variant_names_are_unique(self):
        names = [v.name.strip().lower() for v in self.variants]
        if len(names) != len(set(names)):
            raise ValidationError({"variants": ["Variant names must be unique within a listing"]})

    @classmethod
    def create(
        cls,
        seller_id,
        title,
        price,
        listing_type=ListingType.PRODUCT.value,
        stock=0,
        seller_name=None,
        quote_settings=None,
    ):
        now = datetime.now(UTC)
        if listing_type == ListingType.SERVICE.value:
            stock = 0
        listing = cls(
            seller_id=seller_id,
            seller_name=seller_name,
            title=title,
            listing_type=listing_type,
            price=price,
            stock=stock,
            is_available=True,
            quote_settings=quote_settings,
            created_at=now,
            updated_at=now,
        )
        listing.raise_(
            ListingCreated(
                listing_id=str(listing.id),
                seller_id=str(seller_id),
                title=title,
                listing_type=listing_type,
                price=price,
                stock=stock,
            )
        )
        return listing

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_product(self) -> bool:
        return self.listing_type == ListingType.PRODUCT.value

    @property
    def has_variants(self) -> bool:
        return bool(self.variants)

    @property
    def accepts_quotes(self) -> bool:
        return (
            self.listing_type == ListingType.SERVICE.value
            and self.is_available
            and bool(self.quote_settings and self.quote_settings.enabled)
        )

    def variant(self, variant_id) -> ListingVariant:
        found = next((v for v in self.variants if str(v.id) == str(variant_id)), None)
        if found is None:
            raise ValidationError({"variant_id": [f"{self.title} has no variant {variant_id}"]})
        return found

    def resolve_variant(self, variant_id=None) -> ListingVariant | None:
        """The variant a purchase of this listing refers to, or None for a plain listing."""
        if not self.has_variants:
            if variant_id:
                raise ValidationError({"variant_id": [f"{self.title} has no variants"]})
            return None
        if not variant_id:
            raise ValidationError({"variant_id": [f"Choose a variant of {self.title}"]})
        return self.variant(variant_id)

    def price_for(self, variant_id=None) -> float:
        variant = self.resolve_variant(variant_id)
        return variant.price if variant else self.price

    def title_for(self, variant_id=None) -> str:
        variant = self.resolve_variant(variant_id)
        return f"{self.title} - {variant.display_name}" if variant else self.title

    def is_purchasable(self, variant_id=None) -> bool:
        variant = self.resolve_variant(variant_id)
        return bool(self.is_available and (variant is None or variant.is_available))

    def _stock_of(self, variant_id=None) -> int:
        if variant_id:
            return self.variant(variant_id).stock or 0
        return self.stock or 0

    def _live_holds(self, variant_id=None, as_of=None):
        return [
            h
            for h in self.holds
            if _same(h.variant_id, variant_id) and not is_past(h.expires_at, as_of)
        ]

    def available_quantity(self, as_of=None, variant_id=None) -> int:
        """Stock not covered by an unexpired hold."""
        return self._stock_of(variant_id) - sum(h.quantity for h in self._live_holds(variant_id, as_of))

    def hold_for(self, session_id, as_of=None, variant_id=None):
        return next(
            (h for h in self._live_holds(variant_id, as_of) if str(h.session_id) == str(session_id)),
            None,
        )

    # -------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------
    def _drop_lapsed_holds(self, as_of=None):
        for hold in [h for h in self.holds if is_past(h.expires_at, as_of)]:
            self.remove_holds(hold)
            self.raise_(
                StockHoldReleased(
                    listing_id=str(self.id),
                    session_id=str(hold.session_id),
                    variant_id=str(hold.variant_id) if hold.variant_id else None,
                    quantity=hold.quantity,
                    reason="expired",
                )
            )

    def reserve(self, session_id, quantity, expires_at, as_of=None, variant_id=None):
        """Place a hold for ``session_id``; the first hold to land wins the stock."""
        if not self.is_product:
            raise ValidationError({"listing": ["Only product listings track stock"]})
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        variant = self.resolve_variant(variant_id)

        self._drop_lapsed_holds(as_of)

        available = self.available_quantity(as_of, variant_id)
        if quantity > available:
            title = f"{self.title} ({variant.name})" if variant else self.title
            raise InsufficientStock(self.id, title, available=available, requested=quantity)

        now = datetime.now(UTC)
        self.add_holds(
            StockHold(
                session_id=session_id,
                variant_id=variant_id if variant else None,
                quantity=quantity,
                held_at=now,
                expires_at=expires_at,
            )
        )
        self.updated_at = now

        self.raise_(
            StockHeld(
                listing_id=str(self.id),
                session_id=str(session_id),
                variant_id=str(variant.id) if variant else None,
                quantity=quantity,
                available_after=available - quantity,
                expires_at=expires_at,
            )
        )

    def release_holds(self, session_id, reason="cancelled") -> int:
        """Drop every hold of a session. Returns the quantity released."""
        released = 0
        for hold in [h for h in self.holds if str(h.session_id) == str(session_id)]:
            self.remove_holds(hold)
            released += hold.quantity

        if released:
            self.updated_at = datetime.now(UTC)
            self.raise_(
                StockHoldReleased(
                    listing_id=str(self.id),
                    session_id=str(session_id),
                    quantity=released,
                    reason=reason,
                )
            )
        return released

    def commit_problem(self, session_id, quantity, as_of=None, variant_id=None) -> str | None:
        """Why ``quantity`` cannot be committed for ``session_id``, or None."""
        if not self.is_available:
            return "Listing is no longer available"
        if not self.is_product:
            return None
        if variant_id:
            found = next((v for v in self.variants if str(v.id) == str(variant_id)), None)
            if found is None:
                return "Variant no longer exists"
            if not found.is_available:
                return f"{found.name} is no longer available"
        hold = self.hold_for(session_id, as_of, variant_id)
        if hold is None:
            return "Stock hold has been released"
        if hold.quantity < quantity:
            return f"Only {hold.quantity} units are held"
        stock = self._stock_of(variant_id)
        if stock < quantity:
            return f"Only {stock} units remain in stock"
        return None

    def commit_hold(self, session_id, quantity, as_of=None, variant_id=None):
        """Convert a session's hold into a durable decrement (decrement-if-sufficient)."""
        problem = self.commit_problem(session_id, quantity, as_of, variant_id)
        if problem:
            raise StockChangedSinceReservation([{"listing_id": str(self.id), "title": self.title, "reason": problem}])
        if not self.is_product:
            return

        self.remove_holds(self.hold_for(session_id, as_of, variant_id))
        self._drop_lapsed_holds(as_of)
        if variant_id:
            variant = self.variant(variant_id)
            variant.stock = variant.stock - quantity
            new_stock = variant.stock
        else:
            self.stock = self.stock - quantity
            new_stock = self.stock
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockCommitted(
                listing_id=str(self.id),
                session_id=str(session_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                new_stock=new_stock,
            )
        )

    def restock(self, quantity, variant_id=None):
        if not self.is_product:
            raise ValidationError({"listing": ["Only product listings track stock"]})
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        if variant_id:
            variant = self.variant(variant_id)
            variant.stock = (variant.stock or 0) + quantity
            new_stock = variant.stock
        else:
            self.stock = (self.stock or 0) + quantity
            new_stock = self.stock
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ListingRestocked(
                listing_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                new_stock=new_stock,
            )
        )

    # -------------------------------------------------------------------
    # Variants
    # -------------------------------------------------------------------
    def add_variant(self, name, price, stock=0, sku=None, attributes=None) -> ListingVariant:
        if not self.is_product:
            raise ValidationError({"variants": ["Only product listings have variants"]})
        if len(self.variants) >= MAX_VARIANTS_PER_LISTING:
            raise ValidationError(
                {"variants": [f"Maximum {MAX_VARIANTS_PER_LISTING} variants allowed per listing"]}
            )
        if self.holds and not self.has_variants:
            raise ValidationError({"variants": ["Variants cannot be added while listing stock is held"]})

        variant = ListingVariant(
            name=name.strip(),
            sku=sku,
            price=price,
            stock=stock or 0,
            is_available=True,
            attributes=json.dumps(attributes) if attributes else None,
        )
        self.add_variants(variant)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ListingVariantAdded(
                listing_id=str(self.id),
                variant_id=str(variant.id),
                name=variant.name,
                price=variant.price,
                stock=variant.stock,
            )
        )
        return variant

    def update_variant(self, variant_id, name=None, price=None, is_available=None):
        variant = self.variant(variant_id)
        if name is not None:
            variant.name = name.strip()
        if price is not None:
            variant.price = price
        if is_available is not None:
            variant.is_available = is_available
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ListingVariantUpdated(
                listing_id=str(self.id),
                variant_id=str(variant.id),
                name=variant.name,
                price=variant.price,
                is_available=variant.is_available,
            )
        )

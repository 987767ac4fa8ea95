"""CheckoutSession aggregate (CQRS) — a buyer's in-progress purchase.

State Machine:
    ACTIVE → CONFIRMED | CANCELLED | EXPIRED

A session snapshots the items being bought, groups them by seller and
carries the stock holds placed on their listings. It lives for a fixed TTL;
expiry is detected lazily whenever the session is read or transitioned, and
by the periodic sweep.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from marketplace.checkout.events import (
    CheckoutConfirmed,
    CheckoutSessionCancelled,
    CheckoutSessionCreated,
    CheckoutSessionExpired,
    CheckoutSessionUpdated,
)
from marketplace.checkout.pricing import DeliveryMethod, PaymentMethod, address_type_for, is_online, price_group
from marketplace.config import settings
from marketplace.domain import marketplace
from marketplace.errors import ExpiredError, InvalidTransition, PaymentMethodNotAllowed
from marketplace.seller.profile import AddressType
from marketplace.utils.clock import is_past, money


class SessionStatus(Enum):
    ACTIVE = "active"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SessionType(Enum):
    CART = "cart"
    DIRECT = "direct"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="CheckoutSession")
class DeliveryAddress:
    """Where the buyer wants the items, copied from their address book or typed in."""

    address_type = String(choices=AddressType, required=True)
    address_id = Identifier()
    recipient_name = String(max_length=100)
    phone = String(max_length=30)
    address_line = String(max_length=255)
    city = String(max_length=100)
    postcode = String(max_length=20)
    building = String(max_length=100)
    room = String(max_length=50)
    pickup_point = String(max_length=255)
    notes = String(max_length=500)

    def to_dict(self):
        return {
            "address_type": self.address_type,
            "address_id": str(self.address_id) if self.address_id else None,
            "recipient_name": self.recipient_name,
            "phone": self.phone,
            "address_line": self.address_line,
            "city": self.city,
            "postcode": self.postcode,
            "building": self.building,
            "room": self.room,
            "pickup_point": self.pickup_point,
            "notes": self.notes,
        }


@marketplace.value_object(part_of="CheckoutSession")
class PricingSummary:
    subtotal = Float(default=0.0)
    delivery_fee = Float(default=0.0)
    platform_fee = Float(default=0.0)
    processing_fee = Float(default=0.0)
    total = Float(default=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="CheckoutSession")
class CheckoutItem:
    """A listing being bought, with its price frozen when the session opened."""

    listing_id = Identifier(required=True)
    variant_id = Identifier()
    variant_name = String(max_length=100)
    name = String(required=True, max_length=200)
    listing_type = String(required=True, max_length=20)
    seller_id = Identifier(required=True)
    seller_name = String(max_length=100)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    line_total = Float(required=True, min_value=0.0)


@marketplace.entity(part_of="CheckoutSession")
class SellerGroup:
    """The slice of a session sold by one seller; becomes one order on confirm."""

    seller_id = Identifier(required=True)
    seller_name = String(max_length=100)
    subtotal = Float(default=0.0)
    delivery_fee = Float(default=0.0)
    platform_fee = Float(default=0.0)
    processing_fee = Float(default=0.0)
    total = Float(default=0.0)
    seller_receives = Float(default=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class CheckoutSession:
    owner_id = Identifier(required=True)
    owner_name = String(max_length=100)
    session_type = String(choices=SessionType, default=SessionType.CART.value)
    status = String(choices=SessionStatus, default=SessionStatus.ACTIVE.value)
    items = HasMany(CheckoutItem)
    seller_groups = HasMany(SellerGroup)
    pricing = ValueObject(PricingSummary)
    delivery_method = String(choices=DeliveryMethod)
    delivery_address = ValueObject(DeliveryAddress)
    payment_method = String(choices=PaymentMethod)
    payment_reference = String(max_length=255)
    order_ids = Text()  # JSON array, set on confirm
    created_at = DateTime()
    updated_at = DateTime()
    expires_at = DateTime()
    closed_at = DateTime()

    @invariant.post
    def subtotal_must_match_items(self):
        if self.pricing is None:
            return
        expected = money(sum(item.line_total for item in self.items))
        if abs(expected - (self.pricing.subtotal or 0.0)) > 0.005:
            raise ValidationError({"pricing": ["Subtotal does not match items"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, owner_id, lines, session_type=SessionType.CART.value, owner_name=None, now=None):
        """Open a session for ``lines``.

        Args:
            lines: dicts with listing_id, name, listing_type, seller_id,
                seller_name, unit_price and quantity, plus variant_id and
                variant_name for a variant purchase.
        """
        if not lines:
            raise ValidationError({"items": ["Nothing to check out"]})

        now = now or datetime.now(UTC)
        session = cls(
            owner_id=owner_id,
            owner_name=owner_name,
            session_type=session_type,
            status=SessionStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(seconds=settings.checkout_session_ttl_seconds),
        )

        for line in lines:
            session.add_items(
                CheckoutItem(
                    listing_id=line["listing_id"],
                    variant_id=line.get("variant_id"),
                    variant_name=line.get("variant_name"),
                    name=line["name"],
                    listing_type=line["listing_type"],
                    seller_id=line["seller_id"],
                    seller_name=line.get("seller_name"),
                    unit_price=money(line["unit_price"]),
                    quantity=line["quantity"],
                    line_total=money(line["unit_price"] * line["quantity"]),
                )
            )

        for seller_id, items in session.items_by_seller().items():
            charges = price_group(sum(i.line_total for i in items), 0.0, None)
            session.add_seller_groups(
                SellerGroup(
                    seller_id=seller_id,
                    seller_name=items[0].seller_name,
                    subtotal=charges.subtotal,
                    platform_fee=charges.platform_fee,
                    total=charges.total,
                    seller_receives=charges.seller_receives,
                )
            )
        session._refresh_pricing()

        session.raise_(
            CheckoutSessionCreated(
                session_id=str(session.id),
                owner_id=str(owner_id),
                session_type=session_type,
                item_count=len(session.items),
                seller_count=len(session.seller_groups),
                subtotal=session.pricing.subtotal,
                expires_at=session.expires_at,
            )
        )
        return session

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE.value

    def is_overdue(self, as_of=None) -> bool:
        return self.is_active and is_past(self.expires_at, as_of)

    def items_by_seller(self) -> dict[str, list]:
        grouped: dict[str, list] = {}
        for item in self.items:
            grouped.setdefault(str(item.seller_id), []).append(item)
        return grouped

    def group_for(self, seller_id):
        return next((g for g in self.seller_groups if str(g.seller_id) == str(seller_id)), None)

    @property
    def order_id_list(self) -> list[str]:
        return json.loads(self.order_ids) if self.order_ids else []

    def _refresh_pricing(self):
        groups = list(self.seller_groups)
        self.pricing = PricingSummary(
            subtotal=money(sum(i.line_total for i in self.items)),
            delivery_fee=money(sum(g.delivery_fee or 0.0 for g in groups)),
            platform_fee=money(sum(g.platform_fee or 0.0 for g in groups)),
            processing_fee=money(sum(g.processing_fee or 0.0 for g in groups)),
            total=money(sum(g.total or 0.0 for g in groups)),
        )

    # -------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------
    def assert_open(self, action, as_of=None):
        """Reject ``action`` unless the session is active and within its TTL."""
        if not self.is_active:
            raise InvalidTransition("checkout session", self.status, action)
        if is_past(self.expires_at, as_of):
            raise ExpiredError(
                "Checkout session has expired. Please start again.",
                code="SESSION_EXPIRED",
                details={"session_id": str(self.id), "expires_at": self.expires_at.isoformat()},
            )

    def assert_ready_to_confirm(self):
        errors = {}
        if not self.delivery_method:
            errors["delivery_method"] = ["Delivery method is required"]
        if self.delivery_address is None:
            errors["delivery_address"] = ["Delivery address is required"]
        if not self.payment_method:
            errors["payment_method"] = ["Payment method is required"]
        if errors:
            raise ValidationError(errors)

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def select_options(self, charges_by_seller, delivery_method=None, delivery_address=None, payment_method=None, as_of=None):
        """Record delivery/payment choices and the re-priced seller groups.

        ``charges_by_seller`` maps seller id to a ``GroupCharges`` computed
        with the effective delivery and payment methods.
        """
        self.assert_open("update", as_of)

        method = delivery_method or self.delivery_method
        address = delivery_address or self.delivery_address
        if method and address and address.address_type != address_type_for(method):
            raise ValidationError(
                {"delivery_address": [f"A {address.address_type} address cannot be used for {method}"]}
            )

        payment = payment_method or self.payment_method
        if is_online(payment):
            eligible = sum(c.subtotal + c.delivery_fee for c in charges_by_seller.values())
            if money(eligible) < settings.online_payment_minimum:
                raise PaymentMethodNotAllowed(
                    f"Online payment requires a minimum of {settings.online_payment_minimum:.2f}. "
                    "Please use cash on delivery.",
                    details={"payment_method": payment, "amount": money(eligible)},
                )

        for group in self.seller_groups:
            charges = charges_by_seller[str(group.seller_id)]
            group.delivery_fee = charges.delivery_fee
            group.platform_fee = charges.platform_fee
            group.processing_fee = charges.processing_fee
            group.total = charges.total
            group.seller_receives = charges.seller_receives

        self.delivery_method = method
        self.delivery_address = address
        self.payment_method = payment
        self._refresh_pricing()
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CheckoutSessionUpdated(
                session_id=str(self.id),
                delivery_method=self.delivery_method,
                payment_method=self.payment_method,
                delivery_fee=self.pricing.delivery_fee,
                total=self.pricing.total,
            )
        )

    def cancel(self, as_of=None) -> bool:
        """Cancel an open session. Returns False when there was nothing to do.

        An overdue session is expired instead of cancelled.
        """
        if not self.is_active:
            return False
        if is_past(self.expires_at, as_of):
            return self.expire(as_of)

        now = datetime.now(UTC)
        self.status = SessionStatus.CANCELLED.value
        self.closed_at = now
        self.updated_at = now

        self.raise_(
            CheckoutSessionCancelled(
                session_id=str(self.id),
                owner_id=str(self.owner_id),
                cancelled_at=now,
            )
        )
        return True

    def expire(self, as_of=None) -> bool:
        if not self.is_overdue(as_of):
            return False

        now = datetime.now(UTC)
        self.status = SessionStatus.EXPIRED.value
        self.closed_at = now
        self.updated_at = now

        self.raise_(
            CheckoutSessionExpired(
                session_id=str(self.id),
                owner_id=str(self.owner_id),
                expired_at=now,
            )
        )
        return True

    def confirm(self, order_ids, payment_reference=None, as_of=None):
        self.assert_open("confirm", as_of)

        now = datetime.now(UTC)
        self.status = SessionStatus.CONFIRMED.value
        self.order_ids = json.dumps([str(order_id) for order_id in order_ids])
        self.payment_reference = payment_reference
        self.closed_at = now
        self.updated_at = now

        self.raise_(
            CheckoutConfirmed(
                session_id=str(self.id),
                owner_id=str(self.owner_id),
                order_ids=self.order_ids,
                total=self.pricing.total,
                payment_method=self.payment_method,
                payment_reference=payment_reference,
            )
        )


@marketplace.repository(part_of=CheckoutSession)
class CheckoutSessionRepository:
    def active_for(self, owner_id) -> list[CheckoutSession]:
        return self._dao.query.filter(owner_id=str(owner_id), status=SessionStatus.ACTIVE.value).all().items

    def overdue(self, as_of=None) -> list[CheckoutSession]:
        active = self._dao.query.filter(status=SessionStatus.ACTIVE.value).all().items
        return [s for s in active if is_past(s.expires_at, as_of)]

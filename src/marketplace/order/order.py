"""Order aggregate (CQRS) — the durable record of a purchase from one seller.

Orders are created only by checkout confirmation, one per seller group, and
snapshot everything the buyer agreed to: items, prices, fees and delivery
address. Items never change afterwards; only fulfilment moves on.

State Machine:
    PENDING → PROCESSING → SHIPPED → DELIVERED → REFUNDED
    PROCESSING → DELIVERED (hand-over without shipping)
    PENDING, PROCESSING → CANCELLED → REFUNDED (paid orders only)
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderPlaced,
    OrderProcessing,
    OrderRefunded,
    OrderShipped,
)
from marketplace.utils.clock import money


class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # Terminal
}


def generate_order_number(now=None) -> str:
    now = now or datetime.now(UTC)
    return f"ORD-{now:%Y%m%d}-{uuid4().hex[:6].upper()}"


@marketplace.entity(part_of="Order")
class OrderItem:
    listing_id = Identifier(required=True)
    variant_id = Identifier()
    variant_name = String(max_length=100)
    name = String(required=True, max_length=200)
    listing_type = String(required=True, max_length=20)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    line_total = Float(required=True, min_value=0.0)


@marketplace.aggregate
class Order:
    order_number = String(required=True, max_length=30)
    checkout_session_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    buyer_name = String(max_length=100)
    seller_id = Identifier(required=True)
    seller_name = String(max_length=100)
    items = HasMany(OrderItem)

    delivery_method = String(max_length=30)
    delivery_address = Text()  # JSON snapshot
    payment_method = String(max_length=30)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_reference = String(max_length=255)
    refund_reference = String(max_length=255)

    subtotal = Float(default=0.0)
    delivery_fee = Float(default=0.0)
    platform_fee = Float(default=0.0)
    processing_fee = Float(default=0.0)
    total = Float(default=0.0)
    seller_receives = Float(default=0.0)

    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=20)

    created_at = DateTime()
    updated_at = DateTime()
    processing_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    refunded_at = DateTime()

    @invariant.post
    def subtotal_must_match_items(self):
        expected = money(sum(item.line_total for item in self.items))
        if abs(expected - (self.subtotal or 0.0)) > 0.005:
            raise ValidationError({"subtotal": ["Subtotal does not match the order items"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        checkout_session_id,
        buyer_id,
        seller_id,
        items_data,
        charges,
        payment_method,
        payment_status=PaymentStatus.PENDING.value,
        payment_reference=None,
        delivery_method=None,
        delivery_address=None,
        buyer_name=None,
        seller_name=None,
    ):
        """Create an order from one seller group of a confirmed checkout.

        Args:
            items_data: dicts with listing_id, name, listing_type, unit_price,
                quantity and line_total.
            charges: dict with subtotal, delivery_fee, platform_fee,
                processing_fee, total and seller_receives.
            delivery_address: dict snapshot of the delivery address.
        """
        now = datetime.now(UTC)
        order = cls(
            order_number=generate_order_number(now),
            checkout_session_id=checkout_session_id,
            buyer_id=buyer_id,
            buyer_name=buyer_name,
            seller_id=seller_id,
            seller_name=seller_name,
            delivery_method=delivery_method,
            delivery_address=json.dumps(delivery_address) if delivery_address else None,
            payment_method=payment_method,
            payment_status=payment_status,
            payment_reference=payment_reference,
            subtotal=money(charges["subtotal"]),
            delivery_fee=money(charges.get("delivery_fee", 0.0)),
            platform_fee=money(charges.get("platform_fee", 0.0)),
            processing_fee=money(charges.get("processing_fee", 0.0)),
            total=money(charges["total"]),
            seller_receives=money(charges.get("seller_receives", 0.0)),
            status=OrderStatus.PENDING.value,
            items=[OrderItem(**item) for item in items_data],
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                checkout_session_id=str(checkout_session_id),
                buyer_id=str(buyer_id),
                seller_id=str(seller_id),
                item_count=len(order.items),
                total=order.total,
                payment_method=payment_method,
                payment_status=payment_status,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    @property
    def address_snapshot(self) -> dict | None:
        return json.loads(self.delivery_address) if self.delivery_address else None

    def role_of(self, actor_id) -> str | None:
        if str(actor_id) == str(self.buyer_id):
            return "buyer"
        if str(actor_id) == str(self.seller_id):
            return "seller"
        return None

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def _transition(self, target, action):
        current = OrderStatus(self.status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition("order", current.value, action)
        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        return now

    def mark_processing(self):
        now = self._transition(OrderStatus.PROCESSING, "process")
        self.processing_at = now

        self.raise_(OrderProcessing(order_id=str(self.id), seller_id=str(self.seller_id), processing_at=now))

    def ship(self, carrier=None, tracking_number=None):
        now = self._transition(OrderStatus.SHIPPED, "ship")
        self.carrier = carrier
        self.tracking_number = tracking_number
        self.shipped_at = now

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                order_number=self.order_number,
                buyer_id=str(self.buyer_id),
                carrier=carrier,
                tracking_number=tracking_number,
                shipped_at=now,
            )
        )

    def mark_delivered(self):
        now = self._transition(OrderStatus.DELIVERED, "deliver")
        self.delivered_at = now

        self.raise_(OrderDelivered(order_id=str(self.id), buyer_id=str(self.buyer_id), delivered_at=now))

    def cancel(self, reason, cancelled_by):
        now = self._transition(OrderStatus.CANCELLED, "cancel")
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by
        self.cancelled_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                buyer_id=str(self.buyer_id),
                seller_id=str(self.seller_id),
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
            )
        )

    def assert_refundable(self):
        if self.status == OrderStatus.CANCELLED.value and not self.is_paid:
            raise InvalidTransition("unpaid order", self.status, "refund")
        if OrderStatus.REFUNDED not in _VALID_TRANSITIONS[OrderStatus(self.status)]:
            raise InvalidTransition("order", self.status, "refund")

    def refund(self, refund_reference=None):
        self.assert_refundable()
        now = self._transition(OrderStatus.REFUNDED, "refund")
        if self.is_paid:
            self.payment_status = PaymentStatus.REFUNDED.value
        self.refund_reference = refund_reference
        self.refunded_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                amount=self.total,
                refund_reference=refund_reference,
                refunded_at=now,
            )
        )


@marketplace.repository(part_of=Order)
class OrderRepository:
    def for_buyer(self, buyer_id) -> list[Order]:
        return self._dao.query.filter(buyer_id=str(buyer_id)).all().items

    def for_seller(self, seller_id) -> list[Order]:
        return self._dao.query.filter(seller_id=str(seller_id)).all().items

    def for_session(self, checkout_session_id) -> list[Order]:
        return self._dao.query.filter(checkout_session_id=str(checkout_session_id)).all().items

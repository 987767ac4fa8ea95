"""Tests for the Order aggregate — placement snapshot and fulfilment transitions."""

import re

import pytest
from protean.exceptions import ValidationError

from marketplace.errors import InvalidTransition
from marketplace.order.events import OrderCancelled, OrderPlaced, OrderRefunded, OrderShipped
from marketplace.order.order import Order, OrderStatus, PaymentStatus

ITEMS = [
    {
        "listing_id": "lst-1",
        "name": "Calculus textbook",
        "listing_type": "product",
        "unit_price": 20.0,
        "quantity": 2,
        "line_total": 40.0,
    }
]

CHARGES = {
    "subtotal": 40.0,
    "delivery_fee": 2.5,
    "platform_fee": 1.28,
    "processing_fee": 0.0,
    "total": 43.78,
    "seller_receives": 42.5,
}


def _place(payment_status=PaymentStatus.PENDING.value, charges=None):
    order = Order.place(
        checkout_session_id="sess-001",
        buyer_id="buyer-001",
        seller_id="seller-001",
        items_data=ITEMS,
        charges=charges or CHARGES,
        payment_method="cod" if payment_status == PaymentStatus.PENDING.value else "e_wallet",
        payment_status=payment_status,
        payment_reference=None if payment_status == PaymentStatus.PENDING.value else "fake_txn_1",
        delivery_method="campus_delivery",
        delivery_address={"address_type": "campus", "building": "KK12", "room": "B-204"},
    )
    order._events.clear()
    return order


def _order_at(status, paid=False):
    order = _place(PaymentStatus.PAID.value if paid else PaymentStatus.PENDING.value)
    path = {
        OrderStatus.PENDING: [],
        OrderStatus.PROCESSING: ["mark_processing"],
        OrderStatus.SHIPPED: ["mark_processing", "ship"],
        OrderStatus.DELIVERED: ["mark_processing", "ship", "mark_delivered"],
        OrderStatus.CANCELLED: ["cancel"],
    }[status]
    for step in path:
        if step == "cancel":
            order.cancel(reason="Changed plans", cancelled_by="buyer")
        else:
            getattr(order, step)()
    order._events.clear()
    return order


class TestPlace:
    def test_snapshot(self):
        order = Order.place(
            checkout_session_id="sess-001",
            buyer_id="buyer-001",
            seller_id="seller-001",
            items_data=ITEMS,
            charges=CHARGES,
            payment_method="cod",
            delivery_address={"address_type": "campus", "building": "KK12"},
        )

        assert order.status == OrderStatus.PENDING.value
        assert order.total == 43.78
        assert order.address_snapshot == {"address_type": "campus", "building": "KK12"}
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{6}", order.order_number)
        assert isinstance(order._events[-1], OrderPlaced)

    def test_subtotal_must_match_items(self):
        with pytest.raises(ValidationError):
            _place(charges=dict(CHARGES, subtotal=99.0))

    def test_role_of(self):
        order = _place()
        assert order.role_of("buyer-001") == "buyer"
        assert order.role_of("seller-001") == "seller"
        assert order.role_of("someone-else") is None


class TestTransitions:
    def test_happy_path(self):
        order = _place()

        order.mark_processing()
        order.ship(carrier="J&T", tracking_number="JT123")
        order.mark_delivered()

        assert order.status == OrderStatus.DELIVERED.value
        assert order.tracking_number == "JT123"
        assert [type(e).__name__ for e in order._events] == [
            "OrderProcessing",
            "OrderShipped",
            "OrderDelivered",
        ]

    def test_processing_can_be_delivered_by_hand(self):
        order = _order_at(OrderStatus.PROCESSING)
        order.mark_delivered()
        assert order.status == OrderStatus.DELIVERED.value

    def test_ship_raises_event_for_buyer(self):
        order = _order_at(OrderStatus.PROCESSING)
        order.ship(carrier="Pos Laju")

        event = order._events[-1]
        assert isinstance(event, OrderShipped)
        assert event.buyer_id == "buyer-001"

    @pytest.mark.parametrize(
        "status, action",
        [
            (OrderStatus.PENDING, "ship"),
            (OrderStatus.PENDING, "mark_delivered"),
            (OrderStatus.SHIPPED, "cancel"),
            (OrderStatus.DELIVERED, "mark_processing"),
            (OrderStatus.CANCELLED, "mark_processing"),
        ],
    )
    def test_illegal_transitions(self, status, action):
        order = _order_at(status)

        with pytest.raises(InvalidTransition) as exc:
            if action == "cancel":
                order.cancel(reason="Too late", cancelled_by="seller")
            else:
                getattr(order, action)()

        assert exc.value.current_state == status.value
        assert status.value in exc.value.message


class TestCancelAndRefund:
    def test_cancel_records_reason(self):
        order = _place()

        order.cancel(reason="Found a cheaper copy", cancelled_by="buyer")

        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Found a cheaper copy"
        assert isinstance(order._events[-1], OrderCancelled)

    def test_refund_paid_cancelled_order(self):
        order = _order_at(OrderStatus.CANCELLED, paid=True)

        order.refund(refund_reference="fake_ref_1")

        assert order.status == OrderStatus.REFUNDED.value
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert isinstance(order._events[-1], OrderRefunded)

    def test_unpaid_cancelled_order_cannot_be_refunded(self):
        order = _order_at(OrderStatus.CANCELLED)

        with pytest.raises(InvalidTransition):
            order.refund()

    def test_refund_delivered_order(self):
        order = _order_at(OrderStatus.DELIVERED, paid=True)
        order.refund(refund_reference="fake_ref_2")
        assert order.status == OrderStatus.REFUNDED.value

    def test_refunding_an_unpaid_order_leaves_payment_status_alone(self):
        order = _order_at(OrderStatus.DELIVERED)

        order.refund()

        assert order.status == OrderStatus.REFUNDED.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.refund_reference is None

    def test_refunded_is_terminal(self):
        order = _order_at(OrderStatus.DELIVERED, paid=True)
        order.refund()

        with pytest.raises(InvalidTransition):
            order.refund()

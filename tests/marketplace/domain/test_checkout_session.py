"""Tests for the CheckoutSession aggregate and its state machine."""

from datetime import timedelta

import pytest
from protean.exceptions import ValidationError

from marketplace.checkout.events import (
    CheckoutConfirmed,
    CheckoutSessionCancelled,
    CheckoutSessionCreated,
    CheckoutSessionExpired,
)
from marketplace.checkout.pricing import price_group
from marketplace.checkout.session import CheckoutSession, DeliveryAddress, SessionStatus
from marketplace.errors import ExpiredError, InvalidTransition, PaymentMethodNotAllowed
from marketplace.utils.clock import utcnow

LINES = [
    {
        "listing_id": "lst-1",
        "name": "Calculus textbook",
        "listing_type": "product",
        "seller_id": "seller-001",
        "seller_name": "Aina's Books",
        "unit_price": 20.0,
        "quantity": 2,
    },
    {
        "listing_id": "lst-2",
        "name": "Desk lamp",
        "listing_type": "product",
        "seller_id": "seller-002",
        "seller_name": "Lamp Co",
        "unit_price": 15.0,
        "quantity": 1,
    },
]


def _open_session():
    session = CheckoutSession.open(owner_id="buyer-001", lines=LINES, owner_name="Farah")
    session._events.clear()
    return session


def _charges(session, delivery_fee=0.0, payment_method="cod"):
    return {str(g.seller_id): price_group(g.subtotal, delivery_fee, payment_method) for g in session.seller_groups}


def _pickup():
    return DeliveryAddress(address_type="pickup", pickup_point="Library main entrance")


def _ready_session(payment_method="cod"):
    session = _open_session()
    session.select_options(
        _charges(session, delivery_fee=1.0, payment_method=payment_method),
        delivery_method="self_pickup",
        delivery_address=_pickup(),
        payment_method=payment_method,
    )
    session._events.clear()
    return session


def _overdue():
    return utcnow() + timedelta(minutes=11)


class TestOpen:
    def test_items_are_grouped_by_seller(self):
        session = _open_session()

        assert session.status == SessionStatus.ACTIVE.value
        assert len(session.items) == 2
        assert {str(g.seller_id): g.subtotal for g in session.seller_groups} == {
            "seller-001": 40.0,
            "seller-002": 15.0,
        }

    def test_initial_pricing_has_no_delivery_fee(self):
        session = _open_session()

        assert session.pricing.subtotal == 55.0
        assert session.pricing.delivery_fee == 0.0
        # 3 % platform fee on each group
        assert session.pricing.platform_fee == 1.65
        assert session.pricing.total == 56.65

    def test_expires_after_ttl(self):
        now = utcnow()
        session = CheckoutSession.open(owner_id="buyer-001", lines=LINES, now=now)

        assert session.expires_at == now + timedelta(seconds=600)

    def test_raises_created_event(self):
        session = CheckoutSession.open(owner_id="buyer-001", lines=LINES)

        event = session._events[-1]
        assert isinstance(event, CheckoutSessionCreated)
        assert event.seller_count == 2
        assert event.subtotal == 55.0

    def test_nothing_to_check_out(self):
        with pytest.raises(ValidationError):
            CheckoutSession.open(owner_id="buyer-001", lines=[])


class TestSelectOptions:
    def test_reprices_every_group(self):
        session = _ready_session(payment_method="e_wallet")

        assert session.delivery_method == "self_pickup"
        assert session.pricing.delivery_fee == 2.0
        assert session.pricing.total == pytest.approx(sum(g.total for g in session.seller_groups))
        assert all(g.processing_fee > 0 for g in session.seller_groups)

    def test_address_must_match_delivery_method(self):
        session = _open_session()

        with pytest.raises(ValidationError) as exc:
            session.select_options(
                _charges(session),
                delivery_method="campus_delivery",
                delivery_address=_pickup(),
            )

        assert "delivery_address" in exc.value.messages

    def test_online_payment_needs_minimum_amount(self):
        session = CheckoutSession.open(
            owner_id="buyer-001",
            lines=[dict(LINES[1], unit_price=4.0)],
        )

        with pytest.raises(PaymentMethodNotAllowed):
            session.select_options(_charges(session, delivery_fee=1.0, payment_method="e_wallet"), payment_method="e_wallet")

    def test_cannot_update_after_expiry(self):
        session = _open_session()

        with pytest.raises(ExpiredError) as exc:
            session.select_options(_charges(session), payment_method="cod", as_of=_overdue())

        assert exc.value.code == "SESSION_EXPIRED"

    def test_ready_to_confirm_requires_every_choice(self):
        session = _open_session()

        with pytest.raises(ValidationError) as exc:
            session.assert_ready_to_confirm()

        assert set(exc.value.messages) == {"delivery_method", "delivery_address", "payment_method"}


class TestCancel:
    def test_cancel_closes_session(self):
        session = _open_session()

        assert session.cancel() is True
        assert session.status == SessionStatus.CANCELLED.value
        assert session.closed_at is not None
        assert isinstance(session._events[-1], CheckoutSessionCancelled)

    def test_cancel_twice_is_a_no_op(self):
        session = _open_session()
        session.cancel()
        session._events.clear()

        assert session.cancel() is False
        assert session.status == SessionStatus.CANCELLED.value
        assert session._events == []

    def test_cancel_after_ttl_expires_instead(self):
        session = _open_session()

        session.cancel(as_of=_overdue())

        assert session.status == SessionStatus.EXPIRED.value
        assert isinstance(session._events[-1], CheckoutSessionExpired)


class TestExpire:
    def test_not_overdue_is_left_alone(self):
        session = _open_session()

        assert session.expire() is False
        assert session.status == SessionStatus.ACTIVE.value

    def test_overdue_session_expires(self):
        session = _open_session()

        assert session.expire(as_of=_overdue()) is True
        assert session.status == SessionStatus.EXPIRED.value


class TestConfirm:
    def test_confirm_records_orders(self):
        session = _ready_session()

        session.confirm(["ord-1", "ord-2"])

        assert session.status == SessionStatus.CONFIRMED.value
        assert session.order_id_list == ["ord-1", "ord-2"]
        assert isinstance(session._events[-1], CheckoutConfirmed)

    def test_confirm_after_expiry(self):
        session = _ready_session()

        with pytest.raises(ExpiredError):
            session.confirm(["ord-1"], as_of=_overdue())

        assert session.status == SessionStatus.ACTIVE.value

    @pytest.mark.parametrize("close", ["cancel", "confirm"])
    def test_terminal_session_cannot_confirm(self, close):
        session = _ready_session()
        if close == "cancel":
            session.cancel()
        else:
            session.confirm(["ord-1"])

        with pytest.raises(InvalidTransition) as exc:
            session.confirm(["ord-2"])

        assert exc.value.current_state == session.status
        assert exc.value.action == "confirm"

"""Tests for the QuoteRequest aggregate and the transition permission check."""

from datetime import timedelta

import pytest
from protean.exceptions import ValidationError

from marketplace.actor import Actor
from marketplace.errors import ExpiredError, ForbiddenError, InvalidTransition
from marketplace.listing.listing import Listing, QuoteSettings
from marketplace.quote.events import QuoteExpired, QuotePaid, QuoteRequested, QuoteResponded
from marketplace.quote.permissions import QuoteStatus, authorize
from marketplace.quote.request import QuoteRequest
from marketplace.utils.clock import utcnow

BUYER = Actor("buyer-001")
SELLER = Actor("seller-001")
STRANGER = Actor("stranger-001")
ADMIN = Actor("admin-001", roles=("admin",))


def _service():
    return Listing.create(
        seller_id="seller-001",
        seller_name="Studio Kampus",
        title="Logo design",
        price=80.0,
        listing_type="service",
        quote_settings=QuoteSettings(enabled=True, min_price=50.0, response_time="24 hours"),
    )


def _pending():
    quote = QuoteRequest.create(_service(), buyer_id="buyer-001", message="Logo for our society", budget=150.0)
    quote._events.clear()
    return quote


def _quoted(**deposit):
    quote = _pending()
    quote.respond(responded_by="seller-001", quoted_price=100.0, **deposit)
    quote._events.clear()
    return quote


def _accepted(**deposit):
    quote = _quoted(**deposit)
    quote.accept(accepted_by="buyer-001")
    quote._events.clear()
    return quote


def _paid():
    quote = _accepted()
    quote.record_payment(paid_by="buyer-001", method="credit_card", amount=100.0, reference="fake_txn_1")
    quote._events.clear()
    return quote


def _days(n):
    return utcnow() + timedelta(days=n)


class TestCreate:
    def test_denormalizes_seller_and_settings(self):
        quote = QuoteRequest.create(_service(), buyer_id="buyer-001", message="Logo please")

        assert quote.status == QuoteStatus.PENDING.value
        assert quote.seller_id == "seller-001"
        assert quote.seller_name == "Studio Kampus"
        assert quote.listing_title == "Logo design"
        assert '"min_price": 50.0' in quote.quote_settings
        assert isinstance(quote._events[-1], QuoteRequested)

    def test_pending_request_expires_in_seven_days(self):
        quote = _pending()
        assert _days(6) < quote.expires_at < _days(8)

    def test_history_starts_with_request(self):
        quote = _pending()
        assert [h.status for h in quote.history] == ["pending"]


class TestRespond:
    def test_respond_sets_quote_and_validity(self):
        quote = _pending()
        quote.respond(responded_by="seller-001", quoted_price=100.0, estimated_duration="5 days")

        assert quote.status == QuoteStatus.QUOTED.value
        assert quote.seller_quote.quoted_price == 100.0
        assert quote.expires_at == quote.seller_quote.valid_until
        assert _days(13) < quote.expires_at < _days(15)
        assert isinstance(quote._events[-1], QuoteResponded)

    @pytest.mark.parametrize("price", [0, -5.0])
    def test_price_must_be_positive(self, price):
        quote = _pending()
        with pytest.raises(ValidationError) as exc:
            quote.respond(responded_by="seller-001", quoted_price=price)
        assert "quoted_price" in exc.value.messages

    def test_deposit_cannot_exceed_price(self):
        quote = _pending()
        with pytest.raises(ValidationError):
            quote.respond(responded_by="seller-001", quoted_price=100.0, deposit_required=True, deposit_amount=150.0)

    def test_required_deposit_needs_amount_or_percentage(self):
        quote = _pending()
        with pytest.raises(ValidationError):
            quote.respond(responded_by="seller-001", quoted_price=100.0, deposit_required=True)

    @pytest.mark.parametrize(
        "deposit",
        [
            {"deposit_amount": 0.0},
            {"deposit_amount": -10.0},
            {"deposit_percentage": 0.0},
            {"deposit_percentage": 120.0},
        ],
    )
    def test_required_deposit_must_be_positive(self, deposit):
        quote = _pending()
        with pytest.raises(ValidationError):
            quote.respond(responded_by="seller-001", quoted_price=100.0, deposit_required=True, **deposit)

    def test_cannot_respond_twice(self):
        quote = _quoted()
        with pytest.raises(InvalidTransition):
            quote.respond(responded_by="seller-001", quoted_price=120.0)


class TestAmountDue:
    def test_full_price_without_deposit(self):
        assert _quoted().amount_due == 100.0

    def test_fixed_deposit(self):
        assert _quoted(deposit_required=True, deposit_amount=30.0).amount_due == 30.0

    def test_percentage_deposit(self):
        assert _quoted(deposit_required=True, deposit_percentage=25.0).amount_due == 25.0


class TestAcceptAndPay:
    def test_accept_gives_three_days_to_pay(self):
        quote = _accepted()

        assert quote.status == QuoteStatus.ACCEPTED.value
        assert _days(2) < quote.expires_at < _days(4)

    def test_payment_records_and_clears_deadline(self):
        quote = _accepted(deposit_required=True, deposit_amount=30.0)

        quote.record_payment(paid_by="buyer-001", method="e_wallet", amount=30.0, reference="fake_txn_2")

        assert quote.status == QuoteStatus.PAID.value
        assert quote.expires_at is None
        assert quote.payment.deposit_paid is True
        assert quote.payment.remaining_amount == 70.0
        assert isinstance(quote._events[-1], QuotePaid)

    def test_payment_failure_keeps_quote_accepted(self):
        quote = _accepted()

        quote.record_payment_failure(method="credit_card", amount=100.0, reason="Card declined")

        assert quote.status == QuoteStatus.ACCEPTED.value
        assert type(quote._events[-1]).__name__ == "QuotePaymentFailed"

    def test_paid_status_requires_payment(self):
        quote = _accepted()
        with pytest.raises(ValidationError):
            quote.status = QuoteStatus.PAID.value


class TestServiceDelivery:
    def test_start_and_complete(self):
        quote = _paid()

        quote.start(started_by="seller-001")
        quote.complete(completed_by="seller-001", note="Files delivered")

        assert quote.status == QuoteStatus.COMPLETED.value
        assert quote.completion_note == "Files delivered"
        assert quote.is_terminal

    def test_cannot_start_before_payment(self):
        with pytest.raises(InvalidTransition):
            _accepted().start(started_by="seller-001")

    def test_history_tracks_every_transition(self):
        quote = _paid()
        quote.start(started_by="seller-001")
        quote.complete(completed_by="seller-001")

        statuses = [h.status for h in sorted(quote.history, key=lambda h: h.changed_at)]
        assert statuses == ["pending", "quoted", "accepted", "paid", "in_progress", "completed"]


class TestRejectAndCancel:
    def test_reject(self):
        quote = _quoted()
        quote.reject(rejected_by="buyer-001", reason="Too expensive")

        assert quote.status == QuoteStatus.REJECTED.value
        assert quote.rejection_reason == "Too expensive"

    @pytest.mark.parametrize("make", [_pending, _quoted, _accepted])
    def test_cancel_from_open_states(self, make):
        quote = make()
        quote.cancel(cancelled_by="seller-001", role="seller", reason="seller_unavailable", note="Exams")

        assert quote.status == QuoteStatus.CANCELLED.value
        assert quote.cancellation.reason == "seller_unavailable"
        assert quote.cancellation.cancelled_by_role == "seller"

    def test_cancel_reason_must_be_known(self):
        quote = _pending()
        with pytest.raises(ValidationError):
            quote.cancel(cancelled_by="buyer-001", role="buyer", reason="bored")

    def test_cannot_cancel_paid_quote(self):
        with pytest.raises(InvalidTransition):
            _paid().cancel(cancelled_by="buyer-001", role="buyer", reason="other")


class TestExpiry:
    def test_transition_after_deadline_fails(self):
        quote = _pending()

        with pytest.raises(ExpiredError) as exc:
            quote.respond(responded_by="seller-001", quoted_price=100.0, as_of=_days(8))

        assert exc.value.code == "QUOTE_EXPIRED"
        assert quote.status == QuoteStatus.PENDING.value

    def test_expire_overdue_quote(self):
        quote = _quoted()

        assert quote.expire(as_of=_days(15)) is True
        assert quote.status == QuoteStatus.EXPIRED.value
        assert isinstance(quote._events[-1], QuoteExpired)
        assert quote._events[-1].previous_status == "quoted"

    def test_expire_before_deadline_is_a_no_op(self):
        quote = _quoted()
        assert quote.expire(as_of=_days(1)) is False

    def test_paid_quote_never_expires(self):
        quote = _paid()
        assert quote.expire(as_of=_days(365)) is False


class TestAuthorize:
    def test_accept_on_pending_is_invalid_transition(self):
        with pytest.raises(InvalidTransition) as exc:
            authorize(BUYER, _pending(), "accept")
        assert exc.value.current_state == "pending"

    def test_respond_by_non_seller_is_forbidden(self):
        with pytest.raises(ForbiddenError):
            authorize(BUYER, _pending(), "respond")

    def test_strangers_are_forbidden_before_state_is_checked(self):
        with pytest.raises(ForbiddenError):
            authorize(STRANGER, _paid(), "accept")

    def test_admin_may_cancel(self):
        assert authorize(ADMIN, _quoted(), "cancel") == "admin"

    def test_admin_may_not_respond(self):
        with pytest.raises(ForbiddenError):
            authorize(ADMIN, _pending(), "respond")

    def test_participants_get_their_role(self):
        assert authorize(SELLER, _pending(), "respond") == "seller"
        assert authorize(BUYER, _quoted(), "cancel") == "buyer"

    def test_terminal_states_accept_nothing(self):
        quote = _quoted()
        quote.reject(rejected_by="buyer-001")

        for action, actor in [("accept", BUYER), ("cancel", BUYER), ("respond", SELLER)]:
            with pytest.raises(InvalidTransition):
                authorize(actor, quote, action)

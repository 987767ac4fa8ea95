"""QuoteRequest aggregate (CQRS) — price negotiation for a service listing.

State Machine:
    PENDING → QUOTED → ACCEPTED → PAID → IN_PROGRESS → COMPLETED
    QUOTED → REJECTED
    PENDING, QUOTED, ACCEPTED → CANCELLED | EXPIRED

Who may trigger which transition is decided by ``quote.permissions``;
the aggregate enforces legal source states, deadlines and payload rules.
Pending requests expire after 7 days, quotes after 14, accepted but unpaid
quotes after 3.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, String, Text, ValueObject

from marketplace.config import settings
from marketplace.domain import marketplace
from marketplace.errors import ExpiredError
from marketplace.quote.events import (
    QuoteAccepted,
    QuoteCancelled,
    QuoteExpired,
    QuotePaid,
    QuotePaymentFailed,
    QuoteRejected,
    QuoteRequested,
    QuoteResponded,
    QuoteServiceCompleted,
    QuoteServiceStarted,
)
from marketplace.quote.permissions import EXPIRABLE_STATUSES, QuoteStatus, assert_source
from marketplace.utils.clock import is_past, money


class QuotePriority(Enum):
    NORMAL = "normal"
    URGENT = "urgent"
    FLEXIBLE = "flexible"


class CancelReason(Enum):
    BUYER_CHANGED_MIND = "buyer_changed_mind"
    BUYER_FOUND_ALTERNATIVE = "buyer_found_alternative"
    BUYER_BUDGET_ISSUES = "buyer_budget_issues"
    SELLER_UNAVAILABLE = "seller_unavailable"
    SELLER_CANNOT_FULFILL = "seller_cannot_fulfill"
    SELLER_PRICING_ERROR = "seller_pricing_error"
    MUTUAL_AGREEMENT = "mutual_agreement"
    DISPUTE = "dispute"
    OTHER = "other"


_PRICED_STATUSES = {
    QuoteStatus.QUOTED.value,
    QuoteStatus.ACCEPTED.value,
    QuoteStatus.PAID.value,
    QuoteStatus.IN_PROGRESS.value,
    QuoteStatus.COMPLETED.value,
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="QuoteRequest")
class SellerQuote:
    quoted_price = Float(required=True, min_value=0.0)
    estimated_duration = String(max_length=100)
    message = String(max_length=2000)
    deposit_required = Boolean(default=False)
    deposit_amount = Float(min_value=0.0)
    deposit_percentage = Float(min_value=0.0, max_value=100.0)
    terms = String(max_length=2000)
    quoted_at = DateTime(required=True)
    valid_until = DateTime(required=True)


@marketplace.value_object(part_of="QuoteRequest")
class Cancellation:
    reason = String(choices=CancelReason, required=True)
    note = String(max_length=500)
    cancelled_by = Identifier(required=True)
    cancelled_by_role = String(required=True, max_length=20)
    cancelled_at = DateTime(required=True)


@marketplace.value_object(part_of="QuoteRequest")
class QuotePayment:
    method = String(required=True, max_length=30)
    reference = String(max_length=255)
    amount = Float(required=True, min_value=0.0)
    deposit_paid = Boolean(default=False)
    remaining_amount = Float(default=0.0)
    paid_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="QuoteRequest")
class QuoteHistoryEntry:
    status = String(required=True, max_length=20)
    changed_by = Identifier()
    role = String(max_length=20)
    note = String(max_length=500)
    changed_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class QuoteRequest:
    listing_id = Identifier(required=True)
    listing_title = String(required=True, max_length=200)
    quote_settings = Text()  # JSON snapshot of the listing's quote settings
    buyer_id = Identifier(required=True)
    buyer_name = String(max_length=100)
    seller_id = Identifier(required=True)
    seller_name = String(max_length=100)

    message = String(required=True, max_length=2000)
    budget = Float(min_value=0.0)
    timeline = String(max_length=200)
    priority = String(choices=QuotePriority, default=QuotePriority.NORMAL.value)
    custom_field_values = Text()  # JSON list of {label, value}

    status = String(choices=QuoteStatus, default=QuoteStatus.PENDING.value)
    expires_at = DateTime()

    seller_quote = ValueObject(SellerQuote)
    rejection_reason = String(max_length=500)
    cancellation = ValueObject(Cancellation)
    payment = ValueObject(QuotePayment)

    started_at = DateTime()
    completed_at = DateTime()
    completion_note = String(max_length=1000)

    history = HasMany(QuoteHistoryEntry)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def priced_statuses_need_a_quote(self):
        if self.status in _PRICED_STATUSES and self.seller_quote is None:
            raise ValidationError({"seller_quote": [f"A '{self.status}' request must carry the seller's quote"]})

    @invariant.post
    def paid_statuses_need_a_payment(self):
        paid = {QuoteStatus.PAID.value, QuoteStatus.IN_PROGRESS.value, QuoteStatus.COMPLETED.value}
        if self.status in paid and self.payment is None:
            raise ValidationError({"payment": [f"A '{self.status}' request must record its payment"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        listing,
        buyer_id,
        message,
        buyer_name=None,
        budget=None,
        timeline=None,
        priority=QuotePriority.NORMAL.value,
        custom_field_values=None,
    ):
        """Open a request against a service ``listing``; seller details are copied from it."""
        now = datetime.now(UTC)
        settings_snapshot = None
        if listing.quote_settings is not None:
            qs = listing.quote_settings
            settings_snapshot = json.dumps(
                {
                    "min_price": qs.min_price,
                    "max_price": qs.max_price,
                    "response_time": qs.response_time,
                    "requires_deposit": qs.requires_deposit,
                    "deposit_percentage": qs.deposit_percentage,
                }
            )

        quote = cls(
            listing_id=listing.id,
            listing_title=listing.title,
            quote_settings=settings_snapshot,
            buyer_id=buyer_id,
            buyer_name=buyer_name,
            seller_id=listing.seller_id,
            seller_name=listing.seller_name,
            message=message,
            budget=budget,
            timeline=timeline,
            priority=priority or QuotePriority.NORMAL.value,
            custom_field_values=json.dumps(custom_field_values) if custom_field_values else None,
            status=QuoteStatus.PENDING.value,
            expires_at=now + timedelta(days=settings.quote_pending_expiry_days),
            created_at=now,
            updated_at=now,
        )
        quote._record(QuoteStatus.PENDING.value, buyer_id, "buyer", "Quote requested", now)

        quote.raise_(
            QuoteRequested(
                quote_id=str(quote.id),
                listing_id=str(listing.id),
                listing_title=listing.title,
                buyer_id=str(buyer_id),
                seller_id=str(listing.seller_id),
                priority=quote.priority,
                budget=budget,
                expires_at=quote.expires_at,
            )
        )
        return quote

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return self.status in {
            QuoteStatus.COMPLETED.value,
            QuoteStatus.REJECTED.value,
            QuoteStatus.CANCELLED.value,
            QuoteStatus.EXPIRED.value,
        }

    def is_overdue(self, as_of=None) -> bool:
        return self.status in EXPIRABLE_STATUSES and is_past(self.expires_at, as_of)

    @property
    def amount_due(self) -> float:
        """What accepting the quote charges: the deposit when one is required, else the full price."""
        quote = self.seller_quote
        if quote is None:
            return 0.0
        if quote.deposit_required:
            if quote.deposit_amount:
                return money(quote.deposit_amount)
            return money(quote.quoted_price * (quote.deposit_percentage or 0.0) / 100)
        return money(quote.quoted_price)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _record(self, status, changed_by, role, note=None, now=None):
        self.add_history(
            QuoteHistoryEntry(
                status=status,
                changed_by=str(changed_by) if changed_by else None,
                role=role,
                note=note,
                changed_at=now or datetime.now(UTC),
            )
        )

    def check_deadline(self, as_of=None):
        if self.is_overdue(as_of):
            raise ExpiredError(
                "This quote request has expired",
                code="QUOTE_EXPIRED",
                details={"quote_id": str(self.id), "expires_at": self.expires_at.isoformat()},
            )

    def _prepare(self, action, as_of=None):
        assert_source(self, action)
        self.check_deadline(as_of)
        return datetime.now(UTC)

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def respond(
        self,
        responded_by,
        quoted_price,
        estimated_duration=None,
        message=None,
        deposit_required=False,
        deposit_amount=None,
        deposit_percentage=None,
        terms=None,
        as_of=None,
    ):
        now = self._prepare("respond", as_of)

        errors = {}
        if quoted_price is None or quoted_price <= 0:
            errors["quoted_price"] = ["Quoted price must be greater than zero"]
        if deposit_required:
            if deposit_amount is None and deposit_percentage is None:
                errors["deposit"] = ["A required deposit needs an amount or a percentage"]
            if deposit_amount is not None:
                if deposit_amount <= 0:
                    errors["deposit_amount"] = ["Deposit amount must be greater than zero"]
                elif quoted_price and deposit_amount > quoted_price:
                    errors["deposit_amount"] = ["Deposit cannot exceed the quoted price"]
            if deposit_percentage is not None and not 0 < deposit_percentage <= 100:
                errors["deposit_percentage"] = ["Deposit percentage must be greater than 0 and at most 100"]
        if errors:
            raise ValidationError(errors)

        valid_until = now + timedelta(days=settings.quote_quoted_expiry_days)
        self.seller_quote = SellerQuote(
            quoted_price=money(quoted_price),
            estimated_duration=estimated_duration,
            message=message,
            deposit_required=bool(deposit_required),
            deposit_amount=deposit_amount if deposit_required else None,
            deposit_percentage=deposit_percentage if deposit_required else None,
            terms=terms,
            quoted_at=now,
            valid_until=valid_until,
        )
        self.status = QuoteStatus.QUOTED.value
        self.expires_at = valid_until
        self.updated_at = now
        self._record(self.status, responded_by, "seller", f"Quoted {money(quoted_price):.2f}", now)

        self.raise_(
            QuoteResponded(
                quote_id=str(self.id),
                listing_title=self.listing_title,
                buyer_id=str(self.buyer_id),
                seller_id=str(self.seller_id),
                quoted_price=self.seller_quote.quoted_price,
                deposit_required=self.seller_quote.deposit_required,
                valid_until=valid_until,
            )
        )

    def accept(self, accepted_by, as_of=None):
        now = self._prepare("accept", as_of)

        self.status = QuoteStatus.ACCEPTED.value
        self.expires_at = now + timedelta(days=settings.quote_accepted_expiry_days)
        self.updated_at = now
        self._record(self.status, accepted_by, "buyer", None, now)

        self.raise_(
            QuoteAccepted(
                quote_id=str(self.id),
                listing_title=self.listing_title,
                buyer_id=str(self.buyer_id),
                seller_id=str(self.seller_id),
                amount_due=self.amount_due,
                expires_at=self.expires_at,
            )
        )

    def record_payment(self, paid_by, method, amount, reference=None, as_of=None):
        now = self._prepare("pay", as_of)

        deposit_paid = bool(self.seller_quote.deposit_required)
        self.payment = QuotePayment(
            method=method,
            reference=reference,
            amount=money(amount),
            deposit_paid=deposit_paid,
            remaining_amount=money(max(0.0, self.seller_quote.quoted_price - amount)),
            paid_at=now,
        )
        self.status = QuoteStatus.PAID.value
        self.expires_at = None
        self.updated_at = now
        self._record(self.status, paid_by, "buyer", "Deposit paid" if deposit_paid else "Paid in full", now)

        self.raise_(
            QuotePaid(
                quote_id=str(self.id),
                listing_title=self.listing_title,
                buyer_id=str(self.buyer_id),
                seller_id=str(self.seller_id),
                amount=self.payment.amount,
                payment_method=method,
                payment_reference=reference,
                paid_at=now,
            )
        )

    def record_payment_failure(self, method, amount, reason=None):
        self.updated_at = datetime.now(UTC)
        self.raise_(
            QuotePaymentFailed(
                quote_id=str(self.id),
                buyer_id=str(self.buyer_id),
                seller_id=str(self.seller_id),
                amount=money(amount),
                payment_method=method,
                reason=reason,
            )
        )

    def reject(self, rejected_by, reason=None, as_of=None):
        now = self._prepare("reject", as_of)

        self.status = QuoteStatus.REJECTED.value
        self.rejection_reason = reason
        self.expires_at = None
        self.updated_at = now
        self._record(self.status, rejected_by, "buyer", reason, now)

        self.raise_(
            QuoteRejected(
                quote_id=str(self.id),
                listing_title=self.listing_title,
                buyer_id=str(self.buyer_id),
                seller_id=str(self.seller_id),
                reason=reason,
            )
        )

    def cancel(self, cancelled_by, role, reason, note=None, as_of=None):
        now = self._prepare("cancel", as_of)

        self.cancellation = Cancellation(
            reason=reason,
            note=note,
            cancelled_by=cancelled_by,
            cancelled_by_role=role,
            cancelled_at=now,
        )
        self.status = QuoteStatus.CANCELLED.value
        self.expires_at = None
        self.updated_at = now
        self._record(self.status, cancelled_by, role, note or reason, now)

        self.raise_(
            QuoteCancelled(
                quote_id=str(self.id),
                listing_title=self.listing_title,
                buyer_id=str(self.buyer_id),
                seller_id=str(self.seller_id),
                reason=reason,
                cancelled_by=str(cancelled_by),
                cancelled_by_role=role,
            )
        )

    def start(self, started_by):
        now = self._prepare("start")

        self.status = QuoteStatus.IN_PROGRESS.value
        self.started_at = now
        self.updated_at = now
        self._record(self.status, started_by, "seller", None, now)

        self.raise_(
            QuoteServiceStarted(
                quote_id=str(self.id),
                listing_title=self.listing_title,
                buyer_id=str(self.buyer_id),
                seller_id=str(self.seller_id),
                started_at=now,
            )
        )

    def complete(self, completed_by, note=None):
        now = self._prepare("complete")

        self.status = QuoteStatus.COMPLETED.value
        self.completed_at = now
        self.completion_note = note
        self.updated_at = now
        self._record(self.status, completed_by, "seller", note, now)

        self.raise_(
            QuoteServiceCompleted(
                quote_id=str(self.id),
                listing_title=self.listing_title,
                buyer_id=str(self.buyer_id),
                seller_id=str(self.seller_id),
                completion_note=note,
                completed_at=now,
            )
        )

    def expire(self, as_of=None) -> bool:
        if not self.is_overdue(as_of):
            return False

        now = datetime.now(UTC)
        previous_status = self.status
        self.status = QuoteStatus.EXPIRED.value
        self.updated_at = now
        self._record(self.status, None, "system", f"Expired while {previous_status}", now)

        self.raise_(
            QuoteExpired(
                quote_id=str(self.id),
                buyer_id=str(self.buyer_id),
                seller_id=str(self.seller_id),
                previous_status=previous_status,
                expired_at=now,
            )
        )
        return True


@marketplace.repository(part_of=QuoteRequest)
class QuoteRequestRepository:
    def for_buyer(self, buyer_id) -> list[QuoteRequest]:
        return self._dao.query.filter(buyer_id=str(buyer_id)).all().items

    def for_seller(self, seller_id) -> list[QuoteRequest]:
        return self._dao.query.filter(seller_id=str(seller_id)).all().items

    def open_for(self, buyer_id, listing_id) -> list[QuoteRequest]:
        """Pending or quoted requests of one buyer on one listing."""
        requests = self._dao.query.filter(buyer_id=str(buyer_id), listing_id=str(listing_id)).all().items
        return [q for q in requests if q.status in (QuoteStatus.PENDING.value, QuoteStatus.QUOTED.value)]

    def overdue(self, as_of=None) -> list[QuoteRequest]:
        candidates = []
        for status in sorted(EXPIRABLE_STATUSES):
            candidates.extend(self._dao.query.filter(status=status).all().items)
        return [q for q in candidates if q.is_overdue(as_of)]

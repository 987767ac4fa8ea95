"""Quote lifecycle notifications.

Requests, acceptances, payments and rejections go to the seller; quotes
and service progress go to the buyer; cancellations go to whoever did not
cancel.
"""

from protean import handle

from marketplace.domain import marketplace
from marketplace.notification.dispatch import notify
from marketplace.quote.events import (
    QuoteAccepted,
    QuoteCancelled,
    QuotePaid,
    QuoteRejected,
    QuoteRequested,
    QuoteResponded,
    QuoteServiceCompleted,
    QuoteServiceStarted,
)
from marketplace.quote.request import QuoteRequest


@marketplace.event_handler(part_of=QuoteRequest)
class QuoteNotificationHandler:
    @handle(QuoteRequested)
    def on_requested(self, event: QuoteRequested) -> None:
        notify(event.seller_id, "quote_requested", quote_id=str(event.quote_id), listing_title=event.listing_title)

    @handle(QuoteResponded)
    def on_responded(self, event: QuoteResponded) -> None:
        notify(
            event.buyer_id,
            "quote_received",
            quote_id=str(event.quote_id),
            listing_title=event.listing_title,
            quoted_price=event.quoted_price,
        )

    @handle(QuoteAccepted)
    def on_accepted(self, event: QuoteAccepted) -> None:
        notify(
            event.seller_id,
            "quote_accepted",
            quote_id=str(event.quote_id),
            listing_title=event.listing_title,
            amount_due=event.amount_due,
        )

    @handle(QuotePaid)
    def on_paid(self, event: QuotePaid) -> None:
        notify(
            event.seller_id,
            "quote_paid",
            quote_id=str(event.quote_id),
            listing_title=event.listing_title,
            amount=event.amount,
        )

    @handle(QuoteRejected)
    def on_rejected(self, event: QuoteRejected) -> None:
        notify(event.seller_id, "quote_rejected", quote_id=str(event.quote_id), listing_title=event.listing_title)

    @handle(QuoteCancelled)
    def on_cancelled(self, event: QuoteCancelled) -> None:
        context = {
            "quote_id": str(event.quote_id),
            "listing_title": event.listing_title,
            "cancelled_by_role": event.cancelled_by_role,
            "reason": event.reason,
        }
        cancelled_by = str(event.cancelled_by)
        for party in (str(event.buyer_id), str(event.seller_id)):
            if party != cancelled_by:
                notify(party, "quote_cancelled", **context)

    @handle(QuoteServiceStarted)
    def on_started(self, event: QuoteServiceStarted) -> None:
        notify(event.buyer_id, "service_started", quote_id=str(event.quote_id), listing_title=event.listing_title)

    @handle(QuoteServiceCompleted)
    def on_completed(self, event: QuoteServiceCompleted) -> None:
        notify(event.buyer_id, "service_completed", quote_id=str(event.quote_id), listing_title=event.listing_title)

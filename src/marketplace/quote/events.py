"""Domain events for the QuoteRequest aggregate.

Every event names both parties so notification handlers can address them
without loading the quote.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="QuoteRequest")
class QuoteRequested:
    __version__ = 1

    quote_id = Identifier(required=True)
    listing_id = Identifier(required=True)
    listing_title = String(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    priority = String(required=True)
    budget = Float()
    expires_at = DateTime(required=True)


@marketplace.event(part_of="QuoteRequest")
class QuoteResponded:
    """The seller priced the request."""

    __version__ = 1

    quote_id = Identifier(required=True)
    listing_title = String(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    quoted_price = Float(required=True)
    deposit_required = Boolean(default=False)
    valid_until = DateTime(required=True)


@marketplace.event(part_of="QuoteRequest")
class QuoteAccepted:
    __version__ = 1

    quote_id = Identifier(required=True)
    listing_title = String(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    amount_due = Float(required=True)
    expires_at = DateTime(required=True)


@marketplace.event(part_of="QuoteRequest")
class QuotePaid:
    __version__ = 1

    quote_id = Identifier(required=True)
    listing_title = String(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    amount = Float(required=True)
    payment_method = String(required=True)
    payment_reference = String()
    paid_at = DateTime(required=True)


@marketplace.event(part_of="QuoteRequest")
class QuotePaymentFailed:
    """Payment for an accepted quote was declined; the quote stays accepted."""

    __version__ = 1

    quote_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    amount = Float(required=True)
    payment_method = String(required=True)
    reason = String()


@marketplace.event(part_of="QuoteRequest")
class QuoteRejected:
    __version__ = 1

    quote_id = Identifier(required=True)
    listing_title = String(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    reason = String()


@marketplace.event(part_of="QuoteRequest")
class QuoteCancelled:
    __version__ = 1

    quote_id = Identifier(required=True)
    listing_title = String(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    reason = String(required=True)
    cancelled_by = Identifier(required=True)
    cancelled_by_role = String(required=True)


@marketplace.event(part_of="QuoteRequest")
class QuoteServiceStarted:
    __version__ = 1

    quote_id = Identifier(required=True)
    listing_title = String(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    started_at = DateTime(required=True)


@marketplace.event(part_of="QuoteRequest")
class QuoteServiceCompleted:
    __version__ = 1

    quote_id = Identifier(required=True)
    listing_title = String(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    completion_note = String()
    completed_at = DateTime(required=True)


@marketplace.event(part_of="QuoteRequest")
class QuoteExpired:
    __version__ = 1

    quote_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    previous_status = String(required=True)
    expired_at = DateTime(required=True)

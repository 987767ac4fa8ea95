"""Quote acceptance and payment — commands and handler.

Accepting a quote charges the buyer straight away: the deposit when the
seller asked for one, otherwise the full price. A declined charge leaves
the quote ``accepted`` (until its 3-day deadline) so the buyer can retry
with ``PayQuote``.
"""

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import Actor
from marketplace.checkout.pricing import PaymentMethod, is_online
from marketplace.config import settings
from marketplace.domain import marketplace
from marketplace.errors import PaymentMethodNotAllowed
from marketplace.payment.gateway import get_gateway
from marketplace.quote.permissions import authorize
from marketplace.quote.queries import find_quote
from marketplace.quote.request import QuoteRequest

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="QuoteRequest")
class AcceptQuote:
    quote_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.CREDIT_CARD.value)
    as_of = DateTime()


@marketplace.command(part_of="QuoteRequest")
class PayQuote:
    quote_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.CREDIT_CARD.value)
    as_of = DateTime()


def _require_online(payment_method):
    if not is_online(payment_method):
        raise PaymentMethodNotAllowed(
            "Quotes are paid online when accepted",
            details={"payment_method": payment_method},
        )


def _collect_payment(quote, actor, payment_method, as_of=None):
    """Charge the amount due and record the outcome on the quote."""
    amount = quote.amount_due
    result = get_gateway().charge(
        amount=amount,
        currency=settings.currency,
        payment_method=payment_method,
        description=f"Quote {quote.id} for {quote.listing_title}",
        idempotency_key=f"quote-{quote.id}",
    )

    if result.success:
        quote.record_payment(
            paid_by=actor.actor_id,
            method=payment_method,
            amount=amount,
            reference=result.transaction_id,
            as_of=as_of,
        )
        logger.info("Quote paid", quote_id=str(quote.id), amount=amount, reference=result.transaction_id)
        return {"status": quote.status, "payment_error": None}

    quote.record_payment_failure(method=payment_method, amount=amount, reason=result.failure_reason)
    logger.warning("Quote payment declined", quote_id=str(quote.id), amount=amount, reason=result.failure_reason)
    return {"status": quote.status, "payment_error": result.failure_reason or "Payment was declined"}


@marketplace.command_handler(part_of=QuoteRequest)
class QuoteAcceptanceHandler:
    @handle(AcceptQuote)
    def accept(self, command):
        actor = Actor.from_command(command)
        quote = find_quote(command.quote_id)
        authorize(actor, quote, "accept")
        _require_online(command.payment_method)

        quote.accept(accepted_by=actor.actor_id, as_of=command.as_of)
        outcome = _collect_payment(quote, actor, command.payment_method, command.as_of)
        current_domain.repository_for(QuoteRequest).add(quote)
        return outcome

    @handle(PayQuote)
    def pay(self, command):
        actor = Actor.from_command(command)
        quote = find_quote(command.quote_id)
        authorize(actor, quote, "pay")
        _require_online(command.payment_method)
        quote.check_deadline(command.as_of)

        outcome = _collect_payment(quote, actor, command.payment_method, command.as_of)
        current_domain.repository_for(QuoteRequest).add(quote)
        return outcome

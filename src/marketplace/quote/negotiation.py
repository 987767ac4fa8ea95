"""Seller response and buyer rejection of a quote."""

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import Actor
from marketplace.domain import marketplace
from marketplace.quote.permissions import authorize
from marketplace.quote.queries import find_quote
from marketplace.quote.request import QuoteRequest

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="QuoteRequest")
class RespondToQuote:
    quote_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)
    quoted_price = Float(required=True)
    estimated_duration = String(max_length=100)
    message = String(max_length=2000)
    deposit_required = Boolean(default=False)
    deposit_amount = Float()
    deposit_percentage = Float()
    terms = String(max_length=2000)
    as_of = DateTime()


@marketplace.command(part_of="QuoteRequest")
class RejectQuote:
    quote_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)
    reason = String(max_length=500)
    as_of = DateTime()


@marketplace.command_handler(part_of=QuoteRequest)
class QuoteNegotiationHandler:
    @handle(RespondToQuote)
    def respond(self, command):
        actor = Actor.from_command(command)
        quote = find_quote(command.quote_id)
        authorize(actor, quote, "respond")

        quote.respond(
            responded_by=actor.actor_id,
            quoted_price=command.quoted_price,
            estimated_duration=command.estimated_duration,
            message=command.message,
            deposit_required=command.deposit_required,
            deposit_amount=command.deposit_amount,
            deposit_percentage=command.deposit_percentage,
            terms=command.terms,
            as_of=command.as_of,
        )
        current_domain.repository_for(QuoteRequest).add(quote)

        logger.info("Quote responded", quote_id=str(quote.id), quoted_price=quote.seller_quote.quoted_price)
        return quote.status

    @handle(RejectQuote)
    def reject(self, command):
        actor = Actor.from_command(command)
        quote = find_quote(command.quote_id)
        authorize(actor, quote, "reject")

        quote.reject(rejected_by=actor.actor_id, reason=command.reason, as_of=command.as_of)
        current_domain.repository_for(QuoteRequest).add(quote)

        logger.info("Quote rejected", quote_id=str(quote.id))
        return quote.status

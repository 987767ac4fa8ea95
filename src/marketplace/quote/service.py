"""Service delivery on a paid quote — start and complete."""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import Actor
from marketplace.domain import marketplace
from marketplace.quote.permissions import authorize
from marketplace.quote.queries import find_quote
from marketplace.quote.request import QuoteRequest

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="QuoteRequest")
class StartQuoteService:
    quote_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)


@marketplace.command(part_of="QuoteRequest")
class CompleteQuoteService:
    quote_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)
    note = String(max_length=1000)


@marketplace.command_handler(part_of=QuoteRequest)
class QuoteServiceHandler:
    @handle(StartQuoteService)
    def start(self, command):
        actor = Actor.from_command(command)
        quote = find_quote(command.quote_id)
        authorize(actor, quote, "start")

        quote.start(started_by=actor.actor_id)
        current_domain.repository_for(QuoteRequest).add(quote)

        logger.info("Quote service started", quote_id=str(quote.id))
        return quote.status

    @handle(CompleteQuoteService)
    def complete(self, command):
        actor = Actor.from_command(command)
        quote = find_quote(command.quote_id)
        authorize(actor, quote, "complete")

        quote.complete(completed_by=actor.actor_id, note=command.note)
        current_domain.repository_for(QuoteRequest).add(quote)

        logger.info("Quote service completed", quote_id=str(quote.id))
        return quote.status

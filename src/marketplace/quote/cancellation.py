"""Quote cancellation — command and handler.

Either party may cancel a request that has not been paid yet; admins may
cancel any such request.
"""

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import Actor
from marketplace.domain import marketplace
from marketplace.quote.permissions import authorize
from marketplace.quote.queries import find_quote
from marketplace.quote.request import CancelReason, QuoteRequest

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="QuoteRequest")
class CancelQuote:
    quote_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)
    reason = String(choices=CancelReason, required=True)
    note = String(max_length=500)
    as_of = DateTime()


@marketplace.command_handler(part_of=QuoteRequest)
class QuoteCancellationHandler:
    @handle(CancelQuote)
    def cancel(self, command):
        actor = Actor.from_command(command)
        quote = find_quote(command.quote_id)
        role = authorize(actor, quote, "cancel")

        quote.cancel(
            cancelled_by=actor.actor_id,
            role=role,
            reason=command.reason,
            note=command.note,
            as_of=command.as_of,
        )
        current_domain.repository_for(QuoteRequest).add(quote)

        logger.info("Quote cancelled", quote_id=str(quote.id), role=role, reason=command.reason)
        return quote.status

"""Quote expiry — lazy per-request expiry and the periodic sweep."""

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import MarketplaceError
from marketplace.quote.request import QuoteRequest
from marketplace.utils.clock import utcnow

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="QuoteRequest")
class ExpireQuote:
    quote_id = Identifier(required=True)
    as_of = DateTime()


@marketplace.command(part_of="QuoteRequest")
class ExpireStaleQuotes:
    as_of = DateTime()  # Optional: defaults to now


@marketplace.command_handler(part_of=QuoteRequest)
class QuoteExpiryHandler:
    @handle(ExpireQuote)
    def expire_quote(self, command):
        repo = current_domain.repository_for(QuoteRequest)
        quote = repo.get(command.quote_id)
        if not quote.expire(as_of=command.as_of):
            return False

        repo.add(quote)
        logger.info("Quote request expired", quote_id=str(quote.id))
        return True

    @handle(ExpireStaleQuotes)
    def expire_stale_quotes(self, command):
        as_of = command.as_of or utcnow()
        overdue = current_domain.repository_for(QuoteRequest).overdue(as_of)
        if not overdue:
            logger.info("No overdue quote requests")
            return 0

        expired_count = 0
        for quote in overdue:
            try:
                if current_domain.process(ExpireQuote(quote_id=str(quote.id), as_of=as_of), asynchronous=False):
                    expired_count += 1
            except (ValidationError, InvalidOperationError, MarketplaceError) as exc:
                logger.warning("Failed to expire quote request", quote_id=str(quote.id), error=str(exc))

        logger.info("Quote expiry sweep complete", expired_count=expired_count)
        return expired_count

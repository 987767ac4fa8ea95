"""Synchronous command dispatch for the API, the CLI and tests.

A command that finds its session or quote past the deadline raises
``ExpiredError`` and its unit of work rolls back. The record is then closed
by its own expiry command, so a refused transition leaves it ``expired``
exactly as a read would.
"""

import structlog
from protean.utils.globals import current_domain

from marketplace.checkout.expiry import ExpireCheckoutSession
from marketplace.errors import ExpiredError
from marketplace.quote.expiry import ExpireQuote

logger = structlog.get_logger(__name__)


def _closing_command(error: ExpiredError, as_of):
    if error.code == "SESSION_EXPIRED" and "session_id" in error.details:
        return ExpireCheckoutSession(session_id=error.details["session_id"], as_of=as_of)
    if error.code == "QUOTE_EXPIRED" and "quote_id" in error.details:
        return ExpireQuote(quote_id=error.details["quote_id"], as_of=as_of)
    return None


def process(command):
    """Process ``command`` and return the handler's result.

    Must be called outside any handler: the expiry runs in a unit of work of
    its own after the failed one has rolled back.
    """
    try:
        return current_domain.process(command, asynchronous=False)
    except ExpiredError as exc:
        closer = _closing_command(exc, getattr(command, "as_of", None))
        if closer is not None:
            closed = current_domain.process(closer, asynchronous=False)
            logger.info("Closed overdue record", code=exc.code, record=exc.details, closed=closed)
        raise

"""Checkout session expiry — lazy per-session expiry and the periodic sweep.

``ExpireCheckoutSession`` is dispatched by every read of a session, so an
overdue session is never reported as active. ``ExpireStaleCheckoutSessions``
catches the sessions nobody reads again, so their stock holds do not
linger; it is run by ``manage.py sweep`` or the maintenance endpoint.
"""

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from marketplace.checkout.holds import HeldListings
from marketplace.checkout.session import CheckoutSession
from marketplace.domain import marketplace
from marketplace.errors import MarketplaceError
from marketplace.utils.clock import utcnow

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="CheckoutSession")
class ExpireCheckoutSession:
    session_id = Identifier(required=True)
    as_of = DateTime()


@marketplace.command(part_of="CheckoutSession")
class ExpireStaleCheckoutSessions:
    as_of = DateTime()  # Optional: defaults to now


@marketplace.command_handler(part_of=CheckoutSession)
class CheckoutExpiryHandler:
    @handle(ExpireCheckoutSession)
    def expire_session(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(command.session_id)
        if not session.expire(as_of=command.as_of):
            return False

        listings = HeldListings()
        released = listings.release(session, reason="expired")
        listings.save()
        repo.add(session)

        logger.info("Checkout session expired", session_id=str(session.id), released_quantity=released)
        return True

    @handle(ExpireStaleCheckoutSessions)
    def expire_stale_sessions(self, command):
        as_of = command.as_of or utcnow()
        overdue = current_domain.repository_for(CheckoutSession).overdue(as_of)
        if not overdue:
            logger.info("No overdue checkout sessions")
            return 0

        expired_count = 0
        for session in overdue:
            try:
                if current_domain.process(
                    ExpireCheckoutSession(session_id=str(session.id), as_of=as_of),
                    asynchronous=False,
                ):
                    expired_count += 1
            except (ValidationError, InvalidOperationError, MarketplaceError) as exc:
                logger.warning("Failed to expire checkout session", session_id=str(session.id), error=str(exc))

        logger.info("Checkout session sweep complete", expired_count=expired_count)
        return expired_count

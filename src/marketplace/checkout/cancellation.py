"""Checkout session cancellation — command and handler.

Cancelling is idempotent: a session that is already closed is returned
unchanged, and an overdue one is expired rather than cancelled.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from marketplace.checkout.holds import HeldListings
from marketplace.checkout.queries import owned_session
from marketplace.checkout.session import CheckoutSession, SessionStatus
from marketplace.domain import marketplace

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="CheckoutSession")
class CancelCheckoutSession:
    session_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    as_of = DateTime()


@marketplace.command_handler(part_of=CheckoutSession)
class CheckoutCancellationHandler:
    @handle(CancelCheckoutSession)
    def cancel_session(self, command):
        session = owned_session(command.session_id, command.owner_id)
        if not session.cancel(as_of=command.as_of):
            return session.status

        reason = "expired" if session.status == SessionStatus.EXPIRED.value else "cancelled"
        listings = HeldListings()
        released = listings.release(session, reason=reason)
        listings.save()
        current_domain.repository_for(CheckoutSession).add(session)

        logger.info(
            "Checkout session closed",
            session_id=str(session.id),
            status=session.status,
            released_quantity=released,
        )
        return session.status

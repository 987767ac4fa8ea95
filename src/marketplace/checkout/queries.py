"""Checkout session reads.

Reads expire an overdue session before returning it, so callers never see
an ``active`` session whose TTL has passed.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.checkout.expiry import ExpireCheckoutSession
from marketplace.checkout.session import CheckoutSession
from marketplace.errors import SessionNotFound


def owned_session(session_id, owner_id) -> CheckoutSession:
    """Load a session, hiding other buyers' sessions behind SessionNotFound."""
    try:
        session = current_domain.repository_for(CheckoutSession).get(str(session_id))
    except ObjectNotFoundError as exc:
        raise SessionNotFound(session_id) from exc
    if str(session.owner_id) != str(owner_id):
        raise SessionNotFound(session_id)
    return session


def load_session(session_id, owner_id, as_of=None) -> CheckoutSession:
    session = owned_session(session_id, owner_id)
    if session.is_overdue(as_of):
        current_domain.process(ExpireCheckoutSession(session_id=str(session.id), as_of=as_of), asynchronous=False)
        session = owned_session(session_id, owner_id)
    return session


def get_active_session(owner_id, as_of=None) -> CheckoutSession | None:
    repo = current_domain.repository_for(CheckoutSession)
    for session in repo.active_for(owner_id):
        if session.is_overdue(as_of):
            current_domain.process(ExpireCheckoutSession(session_id=str(session.id), as_of=as_of), asynchronous=False)
            continue
        return session
    return None

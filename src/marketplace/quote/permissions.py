"""Quote request transition table and the single permission check over it.

Every quote transition is authorized by ``authorize(actor, quote, action)``,
which runs three checks in order:

1. the actor must be the buyer or the seller of the quote, or an admin when
   the action allows admins;
2. the quote's current status must be a legal source for the action;
3. the actor's role must be one the action allows.

The first and last failures are ForbiddenError, the second InvalidTransition.
"""

from dataclasses import dataclass
from enum import Enum

from marketplace.errors import ForbiddenError, InvalidTransition


class QuoteStatus(Enum):
    PENDING = "pending"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    PAID = "paid"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


BUYER = "buyer"
SELLER = "seller"
ADMIN = "admin"

# Statuses that carry a deadline and can time out
EXPIRABLE_STATUSES = frozenset({QuoteStatus.PENDING.value, QuoteStatus.QUOTED.value, QuoteStatus.ACCEPTED.value})


@dataclass(frozen=True)
class Transition:
    sources: frozenset[str]
    target: str
    roles: frozenset[str]
    admin_allowed: bool = False


TRANSITIONS = {
    "respond": Transition(frozenset({QuoteStatus.PENDING.value}), QuoteStatus.QUOTED.value, frozenset({SELLER})),
    "accept": Transition(frozenset({QuoteStatus.QUOTED.value}), QuoteStatus.ACCEPTED.value, frozenset({BUYER})),
    "reject": Transition(frozenset({QuoteStatus.QUOTED.value}), QuoteStatus.REJECTED.value, frozenset({BUYER})),
    "cancel": Transition(EXPIRABLE_STATUSES, QuoteStatus.CANCELLED.value, frozenset({BUYER, SELLER}), admin_allowed=True),
    "pay": Transition(frozenset({QuoteStatus.ACCEPTED.value}), QuoteStatus.PAID.value, frozenset({BUYER})),
    "start": Transition(frozenset({QuoteStatus.PAID.value}), QuoteStatus.IN_PROGRESS.value, frozenset({SELLER})),
    "complete": Transition(
        frozenset({QuoteStatus.IN_PROGRESS.value}), QuoteStatus.COMPLETED.value, frozenset({SELLER})
    ),
}


def participant_role(actor_id, quote) -> str | None:
    if str(actor_id) == str(quote.buyer_id):
        return BUYER
    if str(actor_id) == str(quote.seller_id):
        return SELLER
    return None


def can_view(actor, quote) -> bool:
    return actor.is_admin or participant_role(actor.actor_id, quote) is not None


def assert_source(quote, action):
    if quote.status not in TRANSITIONS[action].sources:
        raise InvalidTransition("quote request", quote.status, action)


def authorize(actor, quote, action) -> str:
    """Check that ``actor`` may perform ``action`` on ``quote`` now. Returns the acting role."""
    transition = TRANSITIONS[action]
    role = participant_role(actor.actor_id, quote)
    admin_override = actor.is_admin and transition.admin_allowed

    if role is None and not admin_override:
        raise ForbiddenError("You are not a participant in this quote request")

    assert_source(quote, action)

    if role not in transition.roles and not admin_override:
        allowed = " or ".join(sorted(transition.roles))
        raise ForbiddenError(f"Only the {allowed} can {action} this quote request")

    return role if role in transition.roles else ADMIN

"""Quote request reads.

Reads persist expiry before returning, so an overdue request is reported
as ``expired`` rather than in its stale status.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.errors import ForbiddenError, NotFoundError
from marketplace.quote.expiry import ExpireQuote
from marketplace.quote.permissions import BUYER, SELLER, can_view
from marketplace.quote.request import QuoteRequest


def find_quote(quote_id) -> QuoteRequest:
    try:
        return current_domain.repository_for(QuoteRequest).get(str(quote_id))
    except ObjectNotFoundError as exc:
        raise NotFoundError("Quote request not found", details={"quote_id": str(quote_id)}) from exc


def _expire_if_overdue(quote, as_of=None) -> QuoteRequest:
    if not quote.is_overdue(as_of):
        return quote

    current_domain.process(ExpireQuote(quote_id=str(quote.id), as_of=as_of), asynchronous=False)
    return find_quote(quote.id)


def load_quote(quote_id, actor, as_of=None) -> QuoteRequest:
    quote = find_quote(quote_id)
    if not can_view(actor, quote):
        raise ForbiddenError("You are not a participant in this quote request")
    return _expire_if_overdue(quote, as_of)


def quotes_for(actor, as_role=BUYER, status=None, as_of=None) -> list[QuoteRequest]:
    repo = current_domain.repository_for(QuoteRequest)
    quotes = repo.for_seller(actor.actor_id) if as_role == SELLER else repo.for_buyer(actor.actor_id)
    quotes = [_expire_if_overdue(q, as_of) for q in quotes]
    if status:
        quotes = [q for q in quotes if q.status == status]
    return sorted(quotes, key=lambda q: q.created_at, reverse=True)

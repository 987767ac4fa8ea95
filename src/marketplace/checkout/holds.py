"""Listings touched by one checkout handler call.

A handler may release one session's holds and place another's on the same
listing; loading each listing once keeps those changes on one object, and
``save()`` persists them together inside the handler's unit of work.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace.listing.listing import Listing


class HeldListings:
    def __init__(self):
        self._repo = current_domain.repository_for(Listing)
        self._loaded: dict[str, Listing] = {}

    def get(self, listing_id) -> Listing:
        key = str(listing_id)
        if key not in self._loaded:
            try:
                self._loaded[key] = self._repo.get(key)
            except ObjectNotFoundError as exc:
                raise ValidationError({"listing_id": [f"Listing {key} does not exist"]}) from exc
        return self._loaded[key]

    def release(self, session, reason) -> int:
        released = 0
        for item in session.items:
            listing = self.get(item.listing_id)
            if listing.is_product:
                released += listing.release_holds(session.id, reason=reason)
        return released

    def save(self):
        for listing in self._loaded.values():
            self._repo.add(listing)

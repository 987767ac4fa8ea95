"""Quote request creation — command and handler."""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import DuplicateQuoteRequest, ForbiddenError
from marketplace.listing.listing import Listing
from marketplace.quote.request import QuotePriority, QuoteRequest

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="QuoteRequest")
class RequestQuote:
    listing_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    buyer_name = String(max_length=100)
    message = String(required=True, max_length=2000)
    budget = Float(min_value=0.0)
    timeline = String(max_length=200)
    priority = String(choices=QuotePriority, default=QuotePriority.NORMAL.value)
    custom_field_values = Text()  # JSON list of {label, value}


@marketplace.command_handler(part_of=QuoteRequest)
class QuoteCreationHandler:
    @handle(RequestQuote)
    def request_quote(self, command):
        try:
            listing = current_domain.repository_for(Listing).get(command.listing_id)
        except ObjectNotFoundError as exc:
            raise ValidationError({"listing_id": ["Listing does not exist"]}) from exc

        if not listing.accepts_quotes:
            raise ValidationError({"listing_id": ["This listing does not accept quote requests"]})
        if str(listing.seller_id) == str(command.buyer_id):
            raise ForbiddenError("You cannot request a quote on your own listing")
        if not (command.message or "").strip():
            raise ValidationError({"message": ["Message is required"]})

        repo = current_domain.repository_for(QuoteRequest)
        if repo.open_for(command.buyer_id, listing.id):
            raise DuplicateQuoteRequest(
                "You already have an open quote request for this listing",
                details={"listing_id": str(listing.id)},
            )

        quote = QuoteRequest.create(
            listing=listing,
            buyer_id=command.buyer_id,
            buyer_name=command.buyer_name,
            message=command.message.strip(),
            budget=command.budget,
            timeline=command.timeline,
            priority=command.priority,
            custom_field_values=json.loads(command.custom_field_values) if command.custom_field_values else None,
        )
        repo.add(quote)

        logger.info(
            "Quote requested",
            quote_id=str(quote.id),
            listing_id=str(listing.id),
            buyer_id=str(command.buyer_id),
            seller_id=str(listing.seller_id),
        )
        return str(quote.id)

"""Listing management — commands and handler."""

from protean import handle
from protean.fields import Boolean, Dict, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import ForbiddenError
from marketplace.listing.listing import Listing, ListingType, QuoteSettings


@marketplace.command(part_of="Listing")
class CreateListing:
    seller_id = Identifier(required=True)
    seller_name = String(max_length=100)
    title = String(required=True, max_length=200)
    listing_type = String(choices=ListingType, default=ListingType.PRODUCT.value)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    quotes_enabled = Boolean(default=False)
    quote_min_price = Float()
    quote_max_price = Float()
    quote_response_time = String(max_length=100)
    quote_requires_deposit = Boolean(default=False)
    quote_deposit_percentage = Float(default=0.0)


@marketplace.command(part_of="Listing")
class RestockListing:
    listing_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    variant_id = Identifier()


@marketplace.command(part_of="Listing")
class SetListingAvailability:
    listing_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    is_available = Boolean(required=True)


@marketplace.command(part_of="Listing")
class AddListingVariant:
    listing_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    name = String(required=True, max_length=100)
    sku = String(max_length=50)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    attributes = Dict()


@marketplace.command(part_of="Listing")
class UpdateListingVariant:
    listing_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    name = String(max_length=100)
    price = Float(min_value=0.0)
    is_available = Boolean()


def _owned_listing(listing_id, seller_id):
    listing = current_domain.repository_for(Listing).get(listing_id)
    if str(listing.seller_id) != str(seller_id):
        raise ForbiddenError("You can only manage your own listings")
    return listing


@marketplace.command_handler(part_of=Listing)
class ListingManagementHandler:
    @handle(CreateListing)
    def create_listing(self, command):
        quote_settings = None
        if command.quotes_enabled:
            quote_settings = QuoteSettings(
                enabled=True,
                min_price=command.quote_min_price,
                max_price=command.quote_max_price,
                response_time=command.quote_response_time,
                requires_deposit=command.quote_requires_deposit,
                deposit_percentage=command.quote_deposit_percentage or 0.0,
            )

        listing = Listing.create(
            seller_id=command.seller_id,
            seller_name=command.seller_name,
            title=command.title,
            listing_type=command.listing_type,
            price=command.price,
            stock=command.stock or 0,
            quote_settings=quote_settings,
        )
        current_domain.repository_for(Listing).add(listing)
        return str(listing.id)

    @handle(RestockListing)
    def restock_listing(self, command):
        listing = _owned_listing(command.listing_id, command.seller_id)
        listing.restock(command.quantity, variant_id=command.variant_id)
        current_domain.repository_for(Listing).add(listing)

    @handle(SetListingAvailability)
    def set_availability(self, command):
        listing = _owned_listing(command.listing_id, command.seller_id)
        listing.is_available = command.is_available
        current_domain.repository_for(Listing).add(listing)

    @handle(AddListingVariant)
    def add_variant(self, command):
        listing = _owned_listing(command.listing_id, command.seller_id)
        variant = listing.add_variant(
            name=command.name,
            price=command.price,
            stock=command.stock or 0,
            sku=command.sku,
            attributes=command.attributes,
        )
        current_domain.repository_for(Listing).add(listing)
        return str(variant.id)

    @handle(UpdateListingVariant)
    def update_variant(self, command):
        listing = _owned_listing(command.listing_id, command.seller_id)
        listing.update_variant(
            command.variant_id,
            name=command.name,
            price=command.price,
            is_available=command.is_available,
        )
        current_domain.repository_for(Listing).add(listing)

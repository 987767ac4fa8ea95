"""Application tests for listing management and the buyer's cart."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from marketplace.cart.cart import Cart
from marketplace.cart.items import RemoveFromCart, UpdateCartQuantity
from marketplace.errors import ForbiddenError
from marketplace.listing.listing import Listing
from marketplace.listing.management import RestockListing, SetListingAvailability
from marketplace.seller.delivery import ConfigureDelivery
from marketplace.seller.profile import SellerProfile


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _cart():
    return current_domain.repository_for(Cart).for_owner("buyer-001")


class TestListingManagement:
    def test_create_product(self, product_id):
        listing = current_domain.repository_for(Listing).get(product_id)

        assert listing.stock == 5
        assert listing.is_available is True
        assert listing.quote_settings is None

    def test_create_service_with_quotes(self, make_service):
        listing = current_domain.repository_for(Listing).get(make_service(requires_deposit=True, deposit_percentage=20))

        assert listing.accepts_quotes
        assert listing.quote_settings.deposit_percentage == 20.0

    def test_restock(self, product_id):
        _process(RestockListing(listing_id=product_id, seller_id="seller-001", quantity=3))
        assert current_domain.repository_for(Listing).get(product_id).stock == 8

    def test_only_owner_manages_listing(self, product_id):
        with pytest.raises(ForbiddenError):
            _process(SetListingAvailability(listing_id=product_id, seller_id="seller-002", is_available=False))


class TestCart:
    def test_adding_same_listing_merges_quantity(self, product_id, add_to_cart):
        add_to_cart(product_id)
        add_to_cart(product_id, quantity=2)

        assert [item.quantity for item in _cart().items] == [3]

    def test_update_and_remove(self, product_id, make_product, add_to_cart):
        add_to_cart(product_id)
        add_to_cart(make_product(title="Lab coat"))
        first, second = _cart().items

        _process(UpdateCartQuantity(owner_id="buyer-001", item_id=str(first.id), new_quantity=4))
        _process(RemoveFromCart(owner_id="buyer-001", item_id=str(second.id)))

        assert [(str(i.id), i.quantity) for i in _cart().items] == [(str(first.id), 4)]

    def test_unknown_item(self, product_id, add_to_cart):
        add_to_cart(product_id)

        with pytest.raises(ValidationError):
            _process(RemoveFromCart(owner_id="buyer-001", item_id="missing-item"))

    def test_unknown_listing(self, add_to_cart):
        with pytest.raises(ObjectNotFoundError):
            add_to_cart("no-such-listing")


class TestSellerDelivery:
    def test_profile_created_on_first_configuration(self):
        _process(ConfigureDelivery(seller_id="seller-001", shop_name="Aina's Books", address_type="campus", fee=3.0))

        profile = current_domain.repository_for(SellerProfile).for_seller("seller-001")
        assert profile.shop_name == "Aina's Books"
        assert [(o.address_type, o.fee) for o in profile.delivery_options] == [("campus", 3.0)]

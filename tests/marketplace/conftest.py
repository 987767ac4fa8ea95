"""Shared fixtures for marketplace tests.

Factories dispatch the real commands, so every test starts from state the
application could have produced itself.
"""

from datetime import timedelta

import pytest

from marketplace.cart.items import AddToCart
from marketplace.checkout.creation import CreateCheckoutFromCart, CreateDirectCheckout
from marketplace.checkout.selection import UpdateCheckoutSession
from marketplace.config import settings
from marketplace.dispatch import process
from marketplace.listing.management import AddListingVariant, CreateListing
from marketplace.notification.channel import get_channel
from marketplace.payment.gateway import get_gateway
from marketplace.quote.creation import RequestQuote
from marketplace.quote.negotiation import RespondToQuote
from marketplace.utils.clock import utcnow

BUYER = "buyer-001"
OTHER_BUYER = "buyer-002"
SELLER = "seller-001"
OTHER_SELLER = "seller-002"
ADMIN = "admin-001"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------
@pytest.fixture()
def gateway():
    return get_gateway()


@pytest.fixture()
def inbox():
    return get_channel()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------
@pytest.fixture()
def after_session_ttl():
    """A moment just past a checkout session opened now."""
    return utcnow() + timedelta(seconds=settings.checkout_session_ttl_seconds + 60)


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_product():
    def _make(seller_id=SELLER, title="Calculus textbook", price=20.0, stock=5, seller_name="Aina's Books"):
        return process(
            CreateListing(
                seller_id=seller_id,
                seller_name=seller_name,
                title=title,
                listing_type="product",
                price=price,
                stock=stock,
            )
        )

    return _make


@pytest.fixture()
def make_service():
    def _make(seller_id=SELLER, title="Logo design", price=80.0, requires_deposit=False, deposit_percentage=0.0):
        return process(
            CreateListing(
                seller_id=seller_id,
                seller_name="Studio Kampus",
                title=title,
                listing_type="service",
                price=price,
                quotes_enabled=True,
                quote_min_price=50.0,
                quote_max_price=500.0,
                quote_response_time="24 hours",
                quote_requires_deposit=requires_deposit,
                quote_deposit_percentage=deposit_percentage,
            )
        )

    return _make


@pytest.fixture()
def product_id(make_product):
    return make_product()


@pytest.fixture()
def hoodie(make_product):
    """A product sold in two sizes; returns the listing id and a name -> variant id map."""
    listing_id = make_product(title="Faculty hoodie", price=30.0, stock=0, seller_name="Merch Society")
    sizes = {}
    for name, price, stock in (("Medium", 35.0, 3), ("Large", 38.0, 1)):
        sizes[name] = process(
            AddListingVariant(
                listing_id=listing_id,
                seller_id=SELLER,
                name=name,
                price=price,
                stock=stock,
                attributes={"size": name[0]},
            )
        )
    return {"listing_id": listing_id, "variants": sizes}


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
@pytest.fixture()
def add_to_cart():
    def _add(listing_id, quantity=1, owner_id=BUYER, variant_id=None):
        return process(AddToCart(owner_id=owner_id, listing_id=listing_id, variant_id=variant_id, quantity=quantity))

    return _add


@pytest.fixture()
def open_cart_session():
    def _open(owner_id=BUYER, as_of=None):
        return process(CreateCheckoutFromCart(owner_id=owner_id, owner_name="Farah", as_of=as_of))

    return _open


@pytest.fixture()
def open_direct_session():
    def _open(listing_id, quantity=1, owner_id=BUYER, variant_id=None):
        return process(
            CreateDirectCheckout(
                owner_id=owner_id,
                owner_name="Farah",
                listing_id=listing_id,
                variant_id=variant_id,
                quantity=quantity,
            )
        )

    return _open


@pytest.fixture()
def choose_pickup():
    """Select self pickup with the given payment method."""

    def _choose(session_id, payment_method="cod", owner_id=BUYER):
        return process(
            UpdateCheckoutSession(
                session_id=session_id,
                owner_id=owner_id,
                delivery_method="self_pickup",
                payment_method=payment_method,
                address_type="pickup",
                pickup_point="Library main entrance",
            )
        )

    return _choose


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------
@pytest.fixture()
def request_quote():
    def _request(listing_id, buyer_id=BUYER, message="Need a logo for our society"):
        return process(
            RequestQuote(listing_id=listing_id, buyer_id=buyer_id, buyer_name="Farah", message=message, budget=150.0)
        )

    return _request


@pytest.fixture()
def respond_to_quote():
    def _respond(quote_id, quoted_price=100.0, actor_id=SELLER, **deposit):
        return process(
            RespondToQuote(
                quote_id=quote_id,
                actor_id=actor_id,
                quoted_price=quoted_price,
                estimated_duration="5 days",
                **deposit,
            )
        )

    return _respond

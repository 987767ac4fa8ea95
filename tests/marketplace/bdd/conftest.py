"""Shared BDD fixtures and step definitions for the marketplace."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when

from marketplace.cart.cart import Cart
from marketplace.checkout.creation import CreateCheckoutFromCart, CreateDirectCheckout
from marketplace.checkout.session import CheckoutSession
from marketplace.errors import MarketplaceError
from marketplace.listing.management import CreateListing


def process(command):
    return current_domain.process(command, asynchronous=False)


@pytest.fixture()
def ctx():
    """Scenario state: listings by title, outcomes by buyer."""
    return {"listings": {}, "sessions": {}, "errors": {}}


def attempt(ctx, key, command):
    """Process ``command``, keeping either its result or the error it raised under ``key``."""
    try:
        result = process(command)
    except (ValidationError, MarketplaceError) as exc:
        ctx["errors"][key] = exc
        return None
    ctx["errors"].pop(key, None)
    return result


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{title}" with {stock:d} in stock'))
def _(ctx, title, stock):
    ctx["listings"][title] = process(
        CreateListing(seller_id="seller-001", seller_name="Aina's Books", title=title, price=20.0, stock=stock)
    )


@given(parsers.cfparse('"{buyer}" has an empty cart'))
def _(buyer):
    assert current_domain.repository_for(Cart).for_owner(buyer) is None


# ---------------------------------------------------------------------------
# Checkout steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('"{buyer}" checks out {quantity:d} of "{title}"'))
@when(parsers.cfparse('"{buyer}" checks out {quantity:d} of "{title}"'))
def _(ctx, buyer, quantity, title):
    ctx["sessions"][buyer] = attempt(
        ctx,
        buyer,
        CreateDirectCheckout(owner_id=buyer, listing_id=ctx["listings"][title], quantity=quantity),
    )


@when(parsers.cfparse('"{buyer}" checks out the cart'))
def _(ctx, buyer):
    ctx["sessions"][buyer] = attempt(ctx, buyer, CreateCheckoutFromCart(owner_id=buyer))


@then(parsers.cfparse('the checkout of "{buyer}" is {status}'))
def _(ctx, buyer, status):
    session = current_domain.repository_for(CheckoutSession).get(ctx["sessions"][buyer])
    assert session.status == status

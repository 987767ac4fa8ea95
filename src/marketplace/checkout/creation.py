"""Checkout session creation — commands and handler.

Opening a session cancels any other active session of the same buyer,
then places stock holds for every product line. The first session to hold
stock wins; a later one fails with InsufficientStock.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.checkout.holds import HeldListings
from marketplace.checkout.session import CheckoutSession, SessionStatus, SessionType
from marketplace.domain import marketplace
from marketplace.utils.clock import utcnow

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="CheckoutSession")
class CreateCheckoutFromCart:
    owner_id = Identifier(required=True)
    owner_name = String(max_length=100)
    as_of = DateTime()


@marketplace.command(part_of="CheckoutSession")
class CreateDirectCheckout:
    owner_id = Identifier(required=True)
    owner_name = String(max_length=100)
    listing_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(default=1, min_value=1)
    as_of = DateTime()


@marketplace.command_handler(part_of=CheckoutSession)
class CheckoutCreationHandler:
    @handle(CreateCheckoutFromCart)
    def create_from_cart(self, command):
        cart = current_domain.repository_for(Cart).for_owner(command.owner_id)
        if cart is None or not cart.items:
            raise ValidationError({"cart": ["Cart is empty"]})

        return _open_session(
            owner_id=command.owner_id,
            owner_name=command.owner_name,
            requests=[(item.listing_id, item.variant_id, item.quantity) for item in cart.items],
            session_type=SessionType.CART.value,
            as_of=command.as_of,
        )

    @handle(CreateDirectCheckout)
    def create_direct(self, command):
        return _open_session(
            owner_id=command.owner_id,
            owner_name=command.owner_name,
            requests=[(command.listing_id, command.variant_id, command.quantity or 1)],
            session_type=SessionType.DIRECT.value,
            as_of=command.as_of,
        )


def _open_session(owner_id, owner_name, requests, session_type, as_of=None):
    now = as_of or utcnow()
    listings = HeldListings()

    lines = []
    for listing_id, variant_id, quantity in requests:
        listing = listings.get(listing_id)
        variant = listing.resolve_variant(variant_id)
        if not listing.is_purchasable(variant_id):
            raise ValidationError({"items": [f"{listing.title_for(variant_id)} is no longer available"]})
        lines.append(
            {
                "listing_id": str(listing.id),
                "variant_id": str(variant.id) if variant else None,
                "variant_name": variant.name if variant else None,
                "name": listing.title,
                "listing_type": listing.listing_type,
                "seller_id": str(listing.seller_id),
                "seller_name": listing.seller_name,
                "unit_price": listing.price_for(variant_id),
                "quantity": quantity,
            }
        )

    # One active session per buyer: close the previous ones first
    session_repo = current_domain.repository_for(CheckoutSession)
    for previous in session_repo.active_for(owner_id):
        previous.cancel(as_of=now)
        reason = "expired" if previous.status == SessionStatus.EXPIRED.value else "cancelled"
        listings.release(previous, reason=reason)
        session_repo.add(previous)
        logger.info("Closed previous checkout session", session_id=str(previous.id), status=previous.status)

    session = CheckoutSession.open(
        owner_id=owner_id,
        owner_name=owner_name,
        lines=lines,
        session_type=session_type,
        now=now,
    )

    for item in session.items:
        listing = listings.get(item.listing_id)
        if listing.is_product:
            listing.reserve(
                session.id,
                item.quantity,
                expires_at=session.expires_at,
                as_of=now,
                variant_id=item.variant_id,
            )

    listings.save()
    session_repo.add(session)

    logger.info(
        "Checkout session opened",
        session_id=str(session.id),
        owner_id=str(owner_id),
        session_type=session_type,
        seller_count=len(session.seller_groups),
        subtotal=session.pricing.subtotal,
    )
    return str(session.id)

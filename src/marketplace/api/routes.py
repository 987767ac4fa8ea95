"""FastAPI routes for the marketplace — listings, sellers, cart, checkout, orders and quotes.

Every route authenticates the caller, dispatches a command (or runs a
read) inside the request's domain context and answers with the envelope.
"""

import json

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from marketplace.actor import Actor
from marketplace.api.auth import get_current_actor, get_current_admin
from marketplace.api.errors import envelope
from marketplace.api.schemas import (
    AddCartItemRequest,
    AddVariantRequest,
    AvailabilityRequest,
    CancelOrderRequest,
    CancelQuoteRequest,
    CompleteQuoteRequest,
    CreateListingRequest,
    CreateQuoteRequest,
    DeliveryOptionRequest,
    DirectCheckoutRequest,
    PayQuoteRequest,
    RefundOrderRequest,
    RejectQuoteRequest,
    RespondQuoteRequest,
    RestockRequest,
    ShipOrderRequest,
    UpdateCartItemRequest,
    UpdateSessionRequest,
    UpdateVariantRequest,
)
from marketplace.api.serializers import (
    cart_payload,
    listing_payload,
    order_payload,
    quote_payload,
    session_payload,
)
from marketplace.cart.cart import Cart
from marketplace.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from marketplace.checkout.cancellation import CancelCheckoutSession
from marketplace.checkout.confirmation import ConfirmCheckout
from marketplace.checkout.creation import CreateCheckoutFromCart, CreateDirectCheckout
from marketplace.checkout.expiry import ExpireStaleCheckoutSessions
from marketplace.checkout.queries import get_active_session, load_session
from marketplace.checkout.selection import UpdateCheckoutSession
from marketplace.dispatch import process
from marketplace.errors import PaymentFailed
from marketplace.listing.listing import Listing
from marketplace.listing.management import (
    AddListingVariant,
    CreateListing,
    RestockListing,
    SetListingAvailability,
    UpdateListingVariant,
)
from marketplace.order.fulfillment import CancelOrder, MarkOrderDelivered, MarkOrderProcessing, RefundOrder, ShipOrder
from marketplace.order.queries import load_order, orders_for
from marketplace.quote.acceptance import AcceptQuote, PayQuote
from marketplace.quote.cancellation import CancelQuote
from marketplace.quote.creation import RequestQuote
from marketplace.quote.expiry import ExpireStaleQuotes
from marketplace.quote.negotiation import RejectQuote, RespondToQuote
from marketplace.quote.queries import load_quote, quotes_for
from marketplace.quote.service import CompleteQuoteService, StartQuoteService
from marketplace.seller.delivery import ConfigureDelivery


def _process(command):
    return process(command)


# ---------------------------------------------------------------------------
# Listing Router
# ---------------------------------------------------------------------------
listing_router = APIRouter(prefix="/listings", tags=["listings"])


@listing_router.post("", status_code=201)
async def create_listing(body: CreateListingRequest, actor: Actor = Depends(get_current_actor)):
    qs = body.quote_settings
    listing_id = _process(
        CreateListing(
            seller_id=actor.actor_id,
            seller_name=actor.name,
            title=body.title,
            listing_type=body.listing_type.value,
            price=body.price,
            stock=body.stock,
            quotes_enabled=bool(qs and qs.enabled),
            quote_min_price=qs.min_price if qs else None,
            quote_max_price=qs.max_price if qs else None,
            quote_response_time=qs.response_time if qs else None,
            quote_requires_deposit=qs.requires_deposit if qs else False,
            quote_deposit_percentage=qs.deposit_percentage if qs else 0.0,
        )
    )
    listing = current_domain.repository_for(Listing).get(listing_id)
    return envelope(True, "Listing created", data=listing_payload(listing))


@listing_router.get("/{listing_id}")
async def get_listing(listing_id: str, actor: Actor = Depends(get_current_actor)):
    listing = current_domain.repository_for(Listing).get(listing_id)
    return envelope(True, "Listing retrieved", data=listing_payload(listing))


@listing_router.post("/{listing_id}/restock")
async def restock_listing(listing_id: str, body: RestockRequest, actor: Actor = Depends(get_current_actor)):
    _process(
        RestockListing(
            listing_id=listing_id,
            seller_id=actor.actor_id,
            quantity=body.quantity,
            variant_id=body.variant_id,
        )
    )
    listing = current_domain.repository_for(Listing).get(listing_id)
    return envelope(True, "Listing restocked", data=listing_payload(listing))


@listing_router.put("/{listing_id}/availability")
async def set_availability(listing_id: str, body: AvailabilityRequest, actor: Actor = Depends(get_current_actor)):
    _process(SetListingAvailability(listing_id=listing_id, seller_id=actor.actor_id, is_available=body.is_available))
    listing = current_domain.repository_for(Listing).get(listing_id)
    return envelope(True, "Listing availability updated", data=listing_payload(listing))


@listing_router.post("/{listing_id}/variants", status_code=201)
async def add_variant(listing_id: str, body: AddVariantRequest, actor: Actor = Depends(get_current_actor)):
    _process(
        AddListingVariant(
            listing_id=listing_id,
            seller_id=actor.actor_id,
            name=body.name,
            sku=body.sku,
            price=body.price,
            stock=body.stock,
            attributes=body.attributes,
        )
    )
    listing = current_domain.repository_for(Listing).get(listing_id)
    return envelope(True, "Variant added", data=listing_payload(listing))


@listing_router.put("/{listing_id}/variants/{variant_id}")
async def update_variant(
    listing_id: str, variant_id: str, body: UpdateVariantRequest, actor: Actor = Depends(get_current_actor)
):
    _process(
        UpdateListingVariant(
            listing_id=listing_id,
            seller_id=actor.actor_id,
            variant_id=variant_id,
            name=body.name,
            price=body.price,
            is_available=body.is_available,
        )
    )
    listing = current_domain.repository_for(Listing).get(listing_id)
    return envelope(True, "Variant updated", data=listing_payload(listing))


# ---------------------------------------------------------------------------
# Seller Router
# ---------------------------------------------------------------------------
seller_router = APIRouter(prefix="/sellers", tags=["sellers"])


@seller_router.put("/me/delivery")
async def configure_delivery(body: DeliveryOptionRequest, actor: Actor = Depends(get_current_actor)):
    profile_id = _process(
        ConfigureDelivery(
            seller_id=actor.actor_id,
            shop_name=body.shop_name,
            address_type=body.address_type.value,
            enabled=body.enabled,
            fee=body.fee,
            free_threshold=body.free_threshold,
            free_delivery_for_all=body.free_delivery_for_all,
        )
    )
    return envelope(True, "Delivery settings updated", data={"profile_id": profile_id})


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


def _cart_of(actor):
    return current_domain.repository_for(Cart).for_owner(actor.actor_id)


@cart_router.get("")
async def get_cart(actor: Actor = Depends(get_current_actor)):
    return envelope(True, "Cart retrieved", data=cart_payload(_cart_of(actor)))


@cart_router.post("/items", status_code=201)
async def add_cart_item(body: AddCartItemRequest, actor: Actor = Depends(get_current_actor)):
    _process(
        AddToCart(
            owner_id=actor.actor_id,
            listing_id=body.listing_id,
            variant_id=body.variant_id,
            quantity=body.quantity,
        )
    )
    return envelope(True, "Item added to cart", data=cart_payload(_cart_of(actor)))


@cart_router.put("/items/{item_id}")
async def update_cart_item(item_id: str, body: UpdateCartItemRequest, actor: Actor = Depends(get_current_actor)):
    _process(UpdateCartQuantity(owner_id=actor.actor_id, item_id=item_id, new_quantity=body.quantity))
    return envelope(True, "Cart item updated", data=cart_payload(_cart_of(actor)))


@cart_router.delete("/items/{item_id}")
async def remove_cart_item(item_id: str, actor: Actor = Depends(get_current_actor)):
    _process(RemoveFromCart(owner_id=actor.actor_id, item_id=item_id))
    return envelope(True, "Item removed from cart", data=cart_payload(_cart_of(actor)))


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("/session/cart", status_code=201)
async def create_session_from_cart(actor: Actor = Depends(get_current_actor)):
    session_id = _process(CreateCheckoutFromCart(owner_id=actor.actor_id, owner_name=actor.name))
    session = load_session(session_id, actor.actor_id)
    return envelope(True, "Checkout session created", data=session_payload(session))


@checkout_router.post("/session/direct", status_code=201)
async def create_direct_session(body: DirectCheckoutRequest, actor: Actor = Depends(get_current_actor)):
    session_id = _process(
        CreateDirectCheckout(
            owner_id=actor.actor_id,
            owner_name=actor.name,
            listing_id=body.listing_id,
            variant_id=body.variant_id,
            quantity=body.quantity,
        )
    )
    session = load_session(session_id, actor.actor_id)
    return envelope(True, "Checkout session created", data=session_payload(session))


@checkout_router.get("/session")
async def get_current_session(actor: Actor = Depends(get_current_actor)):
    session = get_active_session(actor.actor_id)
    message = "Active checkout session retrieved" if session else "No active checkout session"
    return envelope(True, message, data=session_payload(session))


@checkout_router.get("/session/{session_id}")
async def get_session(session_id: str, actor: Actor = Depends(get_current_actor)):
    session = load_session(session_id, actor.actor_id)
    return envelope(True, "Checkout session retrieved", data=session_payload(session))


@checkout_router.put("/session/{session_id}")
async def update_session(session_id: str, body: UpdateSessionRequest, actor: Actor = Depends(get_current_actor)):
    address = body.delivery_address.model_dump() if body.delivery_address else {}
    if address:
        address["address_type"] = body.delivery_address.address_type.value

    _process(
        UpdateCheckoutSession(
            session_id=session_id,
            owner_id=actor.actor_id,
            delivery_method=body.delivery_method.value if body.delivery_method else None,
            payment_method=body.payment_method.value if body.payment_method else None,
            **address,
        )
    )
    session = load_session(session_id, actor.actor_id)
    return envelope(True, "Checkout session updated", data=session_payload(session))


@checkout_router.delete("/session/{session_id}")
async def cancel_session(session_id: str, actor: Actor = Depends(get_current_actor)):
    status = _process(CancelCheckoutSession(session_id=session_id, owner_id=actor.actor_id))
    return envelope(True, f"Checkout session {status}", data={"id": session_id, "status": status})


@checkout_router.post("/confirm/{session_id}", status_code=201)
async def confirm_checkout(session_id: str, actor: Actor = Depends(get_current_actor)):
    order_ids = _process(ConfirmCheckout(session_id=session_id, owner_id=actor.actor_id))
    return envelope(
        True,
        f"Checkout confirmed: {len(order_ids)} order(s) created",
        data={"session_id": session_id, "order_ids": order_ids},
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("")
async def list_orders(role: str = "buyer", actor: Actor = Depends(get_current_actor)):
    orders = orders_for(actor, as_role=role)
    return envelope(True, "Orders retrieved", data=[order_payload(o) for o in orders])


@order_router.get("/{order_id}")
async def get_order(order_id: str, actor: Actor = Depends(get_current_actor)):
    return envelope(True, "Order retrieved", data=order_payload(load_order(order_id, actor)))


def _order_response(order_id, actor, message):
    return envelope(True, message, data=order_payload(load_order(order_id, actor)))


@order_router.patch("/{order_id}/processing")
async def mark_processing(order_id: str, actor: Actor = Depends(get_current_actor)):
    _process(MarkOrderProcessing(order_id=order_id, actor_id=actor.actor_id, is_admin=actor.is_admin))
    return _order_response(order_id, actor, "Order is being processed")


@order_router.patch("/{order_id}/ship")
async def ship_order(order_id: str, body: ShipOrderRequest, actor: Actor = Depends(get_current_actor)):
    _process(
        ShipOrder(
            order_id=order_id,
            actor_id=actor.actor_id,
            is_admin=actor.is_admin,
            carrier=body.carrier,
            tracking_number=body.tracking_number,
        )
    )
    return _order_response(order_id, actor, "Order shipped")


@order_router.patch("/{order_id}/deliver")
async def mark_delivered(order_id: str, actor: Actor = Depends(get_current_actor)):
    _process(MarkOrderDelivered(order_id=order_id, actor_id=actor.actor_id, is_admin=actor.is_admin))
    return _order_response(order_id, actor, "Order delivered")


@order_router.patch("/{order_id}/cancel")
async def cancel_order(order_id: str, body: CancelOrderRequest, actor: Actor = Depends(get_current_actor)):
    _process(CancelOrder(order_id=order_id, actor_id=actor.actor_id, is_admin=actor.is_admin, reason=body.reason))
    return _order_response(order_id, actor, "Order cancelled")


@order_router.patch("/{order_id}/refund")
async def refund_order(order_id: str, body: RefundOrderRequest, actor: Actor = Depends(get_current_actor)):
    _process(RefundOrder(order_id=order_id, actor_id=actor.actor_id, is_admin=actor.is_admin, reason=body.reason))
    return _order_response(order_id, actor, "Order refunded")


# ---------------------------------------------------------------------------
# Quote Router
# ---------------------------------------------------------------------------
quote_router = APIRouter(prefix="/quotes", tags=["quotes"])


def _quote_response(quote_id, actor, message):
    return envelope(True, message, data=quote_payload(load_quote(quote_id, actor)))


@quote_router.post("", status_code=201)
async def create_quote(body: CreateQuoteRequest, actor: Actor = Depends(get_current_actor)):
    custom_fields = [field.model_dump() for field in body.custom_field_values]
    quote_id = _process(
        RequestQuote(
            listing_id=body.listing_id,
            buyer_id=actor.actor_id,
            buyer_name=actor.name,
            message=body.message,
            budget=body.budget,
            timeline=body.timeline,
            priority=body.priority.value,
            custom_field_values=json.dumps(custom_fields) if custom_fields else None,
        )
    )
    return _quote_response(quote_id, actor, "Quote request sent")


@quote_router.get("")
async def list_quotes(role: str = "buyer", status: str | None = None, actor: Actor = Depends(get_current_actor)):
    quotes = quotes_for(actor, as_role=role, status=status)
    return envelope(True, "Quote requests retrieved", data=[quote_payload(q) for q in quotes])


@quote_router.get("/{quote_id}")
async def get_quote(quote_id: str, actor: Actor = Depends(get_current_actor)):
    return _quote_response(quote_id, actor, "Quote request retrieved")


@quote_router.patch("/{quote_id}/respond")
async def respond_to_quote(quote_id: str, body: RespondQuoteRequest, actor: Actor = Depends(get_current_actor)):
    _process(
        RespondToQuote(
            quote_id=quote_id,
            actor_id=actor.actor_id,
            is_admin=actor.is_admin,
            quoted_price=body.quoted_price,
            estimated_duration=body.estimated_duration,
            message=body.message,
            deposit_required=body.deposit_required,
            deposit_amount=body.deposit_amount,
            deposit_percentage=body.deposit_percentage,
            terms=body.terms,
        )
    )
    return _quote_response(quote_id, actor, "Quote sent to buyer")


@quote_router.patch("/{quote_id}/accept")
async def accept_quote(quote_id: str, body: PayQuoteRequest | None = None, actor: Actor = Depends(get_current_actor)):
    body = body or PayQuoteRequest()
    outcome = _process(
        AcceptQuote(
            quote_id=quote_id,
            actor_id=actor.actor_id,
            is_admin=actor.is_admin,
            payment_method=body.payment_method.value,
        )
    )
    if outcome["payment_error"]:
        message = f"Quote accepted but payment failed: {outcome['payment_error']}"
    else:
        message = "Quote accepted and paid"
    return _quote_response(quote_id, actor, message)


@quote_router.patch("/{quote_id}/pay")
async def pay_quote(quote_id: str, body: PayQuoteRequest | None = None, actor: Actor = Depends(get_current_actor)):
    body = body or PayQuoteRequest()
    outcome = _process(
        PayQuote(
            quote_id=quote_id,
            actor_id=actor.actor_id,
            is_admin=actor.is_admin,
            payment_method=body.payment_method.value,
        )
    )
    if outcome["payment_error"]:
        raise PaymentFailed(outcome["payment_error"], details={"quote_id": quote_id})
    return _quote_response(quote_id, actor, "Quote paid")


@quote_router.patch("/{quote_id}/reject")
async def reject_quote(
    quote_id: str, body: RejectQuoteRequest | None = None, actor: Actor = Depends(get_current_actor)
):
    reason = body.reason if body else None
    _process(RejectQuote(quote_id=quote_id, actor_id=actor.actor_id, is_admin=actor.is_admin, reason=reason))
    return _quote_response(quote_id, actor, "Quote rejected")


@quote_router.patch("/{quote_id}/cancel")
async def cancel_quote(quote_id: str, body: CancelQuoteRequest, actor: Actor = Depends(get_current_actor)):
    _process(
        CancelQuote(
            quote_id=quote_id,
            actor_id=actor.actor_id,
            is_admin=actor.is_admin,
            reason=body.reason.value,
            note=body.note,
        )
    )
    return _quote_response(quote_id, actor, "Quote request cancelled")


@quote_router.patch("/{quote_id}/start")
async def start_service(quote_id: str, actor: Actor = Depends(get_current_actor)):
    _process(StartQuoteService(quote_id=quote_id, actor_id=actor.actor_id, is_admin=actor.is_admin))
    return _quote_response(quote_id, actor, "Service started")


@quote_router.patch("/{quote_id}/complete")
async def complete_service(
    quote_id: str, body: CompleteQuoteRequest | None = None, actor: Actor = Depends(get_current_actor)
):
    note = body.note if body else None
    _process(CompleteQuoteService(quote_id=quote_id, actor_id=actor.actor_id, is_admin=actor.is_admin, note=note))
    return _quote_response(quote_id, actor, "Service completed")


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/expire")
async def expire_stale(actor: Actor = Depends(get_current_admin)):
    sessions = _process(ExpireStaleCheckoutSessions())
    quotes = _process(ExpireStaleQuotes())
    return envelope(
        True,
        "Expiry sweep complete",
        data={"expired_sessions": sessions, "expired_quotes": quotes},
    )


routers = [
    listing_router,
    seller_router,
    cart_router,
    checkout_router,
    order_router,
    quote_router,
    maintenance_router,
]

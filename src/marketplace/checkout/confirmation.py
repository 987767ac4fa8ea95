"""Checkout confirmation — command and handler.

Confirmation turns an active session into one order per seller:

1. Re-check every line against the listing: still available, hold still
   active, stock still sufficient. Any failure aborts before anything is
   written.
2. Charge the gateway for online payment methods, keyed on the session id.
3. Commit the holds (durable stock decrement), place the orders, close the
   session and drop the bought listings from the buyer's cart.

Everything after the charge happens in the handler's unit of work; if it
fails, the charge is refunded and the error propagates.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.checkout.holds import HeldListings
from marketplace.checkout.pricing import is_online
from marketplace.checkout.queries import owned_session
from marketplace.checkout.session import CheckoutSession, SessionType
from marketplace.config import settings
from marketplace.domain import marketplace
from marketplace.errors import PaymentFailed, StockChangedSinceReservation
from marketplace.order.order import Order, PaymentStatus
from marketplace.payment.gateway import get_gateway

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="CheckoutSession")
class ConfirmCheckout:
    session_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    as_of = DateTime()


def _stock_failures(session, listings, as_of):
    failures = []
    for item in session.items:
        listing = listings.get(item.listing_id)
        problem = listing.commit_problem(session.id, item.quantity, as_of, variant_id=item.variant_id)
        if problem:
            failures.append(
                {
                    "listing_id": str(item.listing_id),
                    "variant_id": str(item.variant_id) if item.variant_id else None,
                    "title": item.name,
                    "requested": item.quantity,
                    "reason": problem,
                }
            )
    return failures


def _charge(session):
    result = get_gateway().charge(
        amount=session.pricing.total,
        currency=settings.currency,
        payment_method=session.payment_method,
        description=f"Checkout {session.id}",
        idempotency_key=str(session.id),
    )
    if not result.success:
        logger.warning("Checkout payment declined", session_id=str(session.id), reason=result.failure_reason)
        raise PaymentFailed(
            result.failure_reason or "Payment was declined",
            details={"session_id": str(session.id)},
        )
    return result.transaction_id


def _refund_attempt(session, payment_reference):
    result = get_gateway().refund(
        transaction_id=payment_reference,
        amount=session.pricing.total,
        reason="Checkout could not be completed",
    )
    if result.success:
        logger.warning(
            "Refunded charge of failed checkout",
            session_id=str(session.id),
            transaction_id=payment_reference,
        )
    else:
        logger.error(
            "Refund of failed checkout was declined",
            session_id=str(session.id),
            transaction_id=payment_reference,
            reason=result.failure_reason,
        )


def _place_orders(session, payment_reference):
    paid = payment_reference is not None
    address = session.delivery_address.to_dict() if session.delivery_address else None
    by_seller = session.items_by_seller()

    orders = []
    for group in session.seller_groups:
        items = by_seller[str(group.seller_id)]
        orders.append(
            Order.place(
                checkout_session_id=session.id,
                buyer_id=session.owner_id,
                buyer_name=session.owner_name,
                seller_id=group.seller_id,
                seller_name=group.seller_name,
                items_data=[
                    {
                        "listing_id": str(item.listing_id),
                        "variant_id": str(item.variant_id) if item.variant_id else None,
                        "variant_name": item.variant_name,
                        "name": item.name,
                        "listing_type": item.listing_type,
                        "unit_price": item.unit_price,
                        "quantity": item.quantity,
                        "line_total": item.line_total,
                    }
                    for item in items
                ],
                charges={
                    "subtotal": group.subtotal,
                    "delivery_fee": group.delivery_fee,
                    "platform_fee": group.platform_fee,
                    "processing_fee": group.processing_fee,
                    "total": group.total,
                    "seller_receives": group.seller_receives,
                },
                payment_method=session.payment_method,
                payment_status=PaymentStatus.PAID.value if paid else PaymentStatus.PENDING.value,
                payment_reference=payment_reference,
                delivery_method=session.delivery_method,
                delivery_address=address,
            )
        )
    return orders


@marketplace.command_handler(part_of=CheckoutSession)
class CheckoutConfirmationHandler:
    @handle(ConfirmCheckout)
    def confirm_checkout(self, command):
        session = owned_session(command.session_id, command.owner_id)
        session.assert_open("confirm", command.as_of)
        session.assert_ready_to_confirm()

        listings = HeldListings()
        failures = _stock_failures(session, listings, command.as_of)
        if failures:
            logger.warning("Stock changed since reservation", session_id=str(session.id), failures=failures)
            raise StockChangedSinceReservation(failures)

        payment_reference = _charge(session) if is_online(session.payment_method) else None

        try:
            for item in session.items:
                listings.get(item.listing_id).commit_hold(
                    session.id, item.quantity, command.as_of, variant_id=item.variant_id
                )

            order_repo = current_domain.repository_for(Order)
            orders = _place_orders(session, payment_reference)
            for order in orders:
                order_repo.add(order)

            order_ids = [str(order.id) for order in orders]
            session.confirm(order_ids, payment_reference=payment_reference, as_of=command.as_of)
            listings.save()
            current_domain.repository_for(CheckoutSession).add(session)
        except Exception:
            if payment_reference:
                _refund_attempt(session, payment_reference)
            raise

        if session.session_type == SessionType.CART.value:
            _clear_checked_out(session)

        logger.info(
            "Checkout confirmed",
            session_id=str(session.id),
            owner_id=str(session.owner_id),
            order_ids=order_ids,
            total=session.pricing.total,
            payment_method=session.payment_method,
        )
        return order_ids


def _clear_checked_out(session):
    cart_repo = current_domain.repository_for(Cart)
    cart = cart_repo.for_owner(session.owner_id)
    if cart is None:
        return
    cart.remove_checked_out([(item.listing_id, item.variant_id) for item in session.items])
    cart_repo.add(cart)

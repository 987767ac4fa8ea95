"""Order fulfilment — commands and handler.

Sellers (or admins) move an order through processing, shipping and
delivery. Buyers may cancel while the order is still pending; sellers and
admins may also cancel once processing has started. Cancelling puts
product stock back; refunding a paid order goes through the gateway.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from marketplace.actor import Actor
from marketplace.domain import marketplace
from marketplace.errors import ForbiddenError, PaymentFailed
from marketplace.listing.listing import Listing, ListingType
from marketplace.order.order import Order, OrderStatus
from marketplace.order.queries import load_order
from marketplace.payment.gateway import get_gateway

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class MarkOrderProcessing:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)


@marketplace.command(part_of="Order")
class ShipOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)
    carrier = String(max_length=100)
    tracking_number = String(max_length=255)


@marketplace.command(part_of="Order")
class MarkOrderDelivered:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)


@marketplace.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)
    reason = String(required=True, max_length=500)


@marketplace.command(part_of="Order")
class RefundOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    is_admin = Boolean(default=False)
    reason = String(max_length=500)


def _seller_order(command, action) -> Order:
    actor = Actor.from_command(command)
    order = load_order(command.order_id, actor)
    if not actor.is_admin and order.role_of(actor.actor_id) != "seller":
        raise ForbiddenError(f"Only the seller can {action} this order")
    return order


@marketplace.command_handler(part_of=Order)
class OrderFulfillmentHandler:
    @handle(MarkOrderProcessing)
    def mark_processing(self, command):
        order = _seller_order(command, "process")
        order.mark_processing()
        current_domain.repository_for(Order).add(order)
        return order.status

    @handle(ShipOrder)
    def ship_order(self, command):
        order = _seller_order(command, "ship")
        order.ship(carrier=command.carrier, tracking_number=command.tracking_number)
        current_domain.repository_for(Order).add(order)
        return order.status

    @handle(MarkOrderDelivered)
    def mark_delivered(self, command):
        order = _seller_order(command, "deliver")
        order.mark_delivered()
        current_domain.repository_for(Order).add(order)
        return order.status

    @handle(CancelOrder)
    def cancel_order(self, command):
        actor = Actor.from_command(command)
        order = load_order(command.order_id, actor)
        role = "admin" if actor.is_admin else order.role_of(actor.actor_id)
        if role == "buyer" and order.status != OrderStatus.PENDING.value:
            raise ForbiddenError(
                f"Buyers can only cancel pending orders; this order is '{order.status}'",
                details={"current_state": order.status, "action": "cancel"},
            )

        order.cancel(reason=command.reason, cancelled_by=role)

        listing_repo = current_domain.repository_for(Listing)
        for item in order.items:
            if item.listing_type != ListingType.PRODUCT.value:
                continue
            listing = listing_repo.get(item.listing_id)
            listing.restock(item.quantity, variant_id=item.variant_id)
            listing_repo.add(listing)

        current_domain.repository_for(Order).add(order)
        logger.info("Order cancelled", order_id=str(order.id), cancelled_by=role, reason=command.reason)
        return order.status

    @handle(RefundOrder)
    def refund_order(self, command):
        order = _seller_order(command, "refund")
        order.assert_refundable()

        refund_reference = None
        if order.is_paid and order.payment_reference:
            result = get_gateway().refund(
                transaction_id=order.payment_reference,
                amount=order.total,
                reason=command.reason or "Order refunded",
            )
            if not result.success:
                raise PaymentFailed(result.failure_reason or "Refund was declined", details={"order_id": str(order.id)})
            refund_reference = result.refund_id

        order.refund(refund_reference=refund_reference)
        current_domain.repository_for(Order).add(order)
        logger.info("Order refunded", order_id=str(order.id), amount=order.total, refund_reference=refund_reference)
        return order.status

"""Order notifications: placement to both parties, shipping and cancellation to the buyer."""

from protean import handle

from marketplace.domain import marketplace
from marketplace.notification.dispatch import notify
from marketplace.order.events import OrderCancelled, OrderPlaced, OrderShipped
from marketplace.order.order import Order


@marketplace.event_handler(part_of=Order)
class OrderNotificationHandler:
    @handle(OrderPlaced)
    def on_placed(self, event: OrderPlaced) -> None:
        context = {"order_id": str(event.order_id), "order_number": event.order_number, "total": event.total}
        notify(event.seller_id, "order_received", **context)
        notify(event.buyer_id, "order_placed", **context)

    @handle(OrderShipped)
    def on_shipped(self, event: OrderShipped) -> None:
        notify(event.buyer_id, "order_shipped", order_id=str(event.order_id), order_number=event.order_number)

    @handle(OrderCancelled)
    def on_cancelled(self, event: OrderCancelled) -> None:
        notify(
            event.buyer_id,
            "order_cancelled",
            order_id=str(event.order_id),
            order_number=event.order_number,
            reason=event.reason,
        )

"""Order reads for buyers, sellers and admins."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.errors import ForbiddenError, NotFoundError
from marketplace.order.order import Order


def load_order(order_id, actor) -> Order:
    try:
        order = current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError as exc:
        raise NotFoundError("Order not found", details={"order_id": str(order_id)}) from exc

    if not actor.is_admin and order.role_of(actor.actor_id) is None:
        raise ForbiddenError("You are not a party to this order")
    return order


def orders_for(actor, as_role="buyer") -> list[Order]:
    repo = current_domain.repository_for(Order)
    if as_role == "seller":
        orders = repo.for_seller(actor.actor_id)
    else:
        orders = repo.for_buyer(actor.actor_id)
    return sorted(orders, key=lambda o: o.created_at, reverse=True)

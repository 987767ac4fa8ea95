"""Subject and body templates per notification kind."""

TEMPLATES = {
    "quote_requested": (
        "New quote request for {listing_title}",
        "A buyer has asked for a quote on {listing_title}.",
    ),
    "quote_received": (
        "You received a quote for {listing_title}",
        "The seller quoted {quoted_price:.2f}. Review and accept it before it expires.",
    ),
    "quote_accepted": (
        "Your quote for {listing_title} was accepted",
        "The buyer accepted your quote. {amount_due:.2f} is being collected.",
    ),
    "quote_paid": (
        "Payment received for {listing_title}",
        "The buyer paid {amount:.2f}. You can start the service.",
    ),
    "quote_rejected": (
        "Your quote for {listing_title} was declined",
        "The buyer declined your quote.",
    ),
    "quote_cancelled": (
        "Quote request for {listing_title} cancelled",
        "The quote request was cancelled by the {cancelled_by_role} ({reason}).",
    ),
    "service_started": (
        "Work on {listing_title} has started",
        "The seller has started working on your request.",
    ),
    "service_completed": (
        "{listing_title} is complete",
        "The seller marked your request as completed.",
    ),
    "order_received": (
        "New order {order_number}",
        "You have a new order worth {total:.2f}.",
    ),
    "order_placed": (
        "Order {order_number} confirmed",
        "Your order of {total:.2f} has been placed.",
    ),
    "order_shipped": (
        "Order {order_number} shipped",
        "Your order is on its way.",
    ),
    "order_cancelled": (
        "Order {order_number} cancelled",
        "Your order was cancelled: {reason}.",
    ),
}


def render(kind: str, context: dict) -> tuple[str, str]:
    subject, body = TEMPLATES[kind]
    return subject.format(**context), body.format(**context)

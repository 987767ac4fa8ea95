"""Domain events for the CheckoutSession aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="CheckoutSession")
class CheckoutSessionCreated:
    """A buyer opened a checkout session and its stock holds were placed."""

    __version__ = 1

    session_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    session_type = String(required=True)
    item_count = Integer(required=True)
    seller_count = Integer(required=True)
    subtotal = Float(required=True)
    expires_at = DateTime(required=True)


@marketplace.event(part_of="CheckoutSession")
class CheckoutSessionUpdated:
    __version__ = 1

    session_id = Identifier(required=True)
    delivery_method = String()
    payment_method = String()
    delivery_fee = Float()
    total = Float()


@marketplace.event(part_of="CheckoutSession")
class CheckoutSessionCancelled:
    __version__ = 1

    session_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="CheckoutSession")
class CheckoutSessionExpired:
    """The session outlived its TTL before being confirmed."""

    __version__ = 1

    session_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    expired_at = DateTime(required=True)


@marketplace.event(part_of="CheckoutSession")
class CheckoutConfirmed:
    """The session became durable orders, one per seller."""

    __version__ = 1

    session_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    order_ids = Text(required=True)  # JSON array
    total = Float(required=True)
    payment_method = String(required=True)
    payment_reference = String()

"""Fire-and-forget notification dispatch.

A notification that cannot be delivered is logged and dropped; it never
fails the transition that triggered it.
"""

import structlog

from marketplace.notification.channel import get_channel
from marketplace.notification.templates import render

logger = structlog.get_logger(__name__)


def notify(recipient_id, kind: str, **context) -> str | None:
    """Send one notification. Returns the message id, or None when it was not delivered."""
    subject, body = render(kind, context)
    try:
        result = get_channel().send(str(recipient_id), kind, subject, body, context)
    except Exception as exc:
        logger.error("Notification channel error", recipient_id=str(recipient_id), kind=kind, error=str(exc))
        return None

    if result.get("status") != "sent":
        logger.warning(
            "Notification not delivered",
            recipient_id=str(recipient_id),
            kind=kind,
            error=result.get("error"),
        )
        return None

    logger.info("Notification sent", recipient_id=str(recipient_id), kind=kind, message_id=result["message_id"])
    return result["message_id"]

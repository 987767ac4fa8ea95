"""Fake in-app inbox — records notifications for test assertions."""

from uuid import uuid4

from marketplace.notification.channel.port import NotificationChannel


class FakeInboxChannel(NotificationChannel):
    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send(self, recipient_id: str, kind: str, subject: str, body: str, context: dict | None = None) -> dict:
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"notif-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "recipient_id": recipient_id,
                "kind": kind,
                "subject": subject,
                "body": body,
                "context": context or {},
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def sent_to(self, recipient_id: str) -> list[dict]:
        return [n for n in self.sent if n["recipient_id"] == str(recipient_id)]

    def kinds_for(self, recipient_id: str) -> list[str]:
        return [n["kind"] for n in self.sent_to(recipient_id)]

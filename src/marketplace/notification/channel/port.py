"""Notification channel port — abstract interface for user notifications."""

from abc import ABC, abstractmethod


class NotificationChannel(ABC):
    @abstractmethod
    def send(self, recipient_id: str, kind: str, subject: str, body: str, context: dict | None = None) -> dict:
        """Deliver one notification.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...

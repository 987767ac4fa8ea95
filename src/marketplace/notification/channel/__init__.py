"""Notification channel registry.

Holds the process-wide channel adapter, a FakeInboxChannel unless another
adapter was installed with ``set_channel()``.
"""

from marketplace.notification.channel.fake_inbox import FakeInboxChannel
from marketplace.notification.channel.port import NotificationChannel

_channel: NotificationChannel | None = None


def get_channel() -> NotificationChannel:
    global _channel
    if _channel is None:
        _channel = FakeInboxChannel()
    return _channel


def set_channel(channel: NotificationChannel) -> None:
    global _channel
    _channel = channel


def reset_channel() -> None:
    global _channel
    _channel = None

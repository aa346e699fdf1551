from __future__ import annotations

from typing import Callable

from ..config import get_notify_channels
from .email_channel import send_status_email
from .sms_channel import send_status_sms
from .templates import StatusNotice


SENDERS: dict[str, Callable[[StatusNotice], object]] = {
    "email": send_status_email,
    "sms": send_status_sms,
}


def enabled_channels() -> tuple[str, ...]:
    """Configured channels that have a sender, in configured order."""
    return tuple(channel for channel in get_notify_channels() if channel in SENDERS)


def notify(channel: str, notice: StatusNotice) -> None:
    try:
        sender = SENDERS[channel]
    except KeyError as e:
        raise ValueError(f"Unknown channel='{channel}'. Options: {sorted(SENDERS)}") from e
    sender(notice)


__all__ = ["SENDERS", "StatusNotice", "enabled_channels", "notify"]

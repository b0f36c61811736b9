"""Error taxonomy shared by the notification pipeline."""

from __future__ import annotations


class NotificationError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(NotificationError):
    """Required input is missing or malformed."""

    status_code = 400


class NotFoundError(NotificationError):
    """The recipient or notification does not exist."""

    status_code = 404


class BrokerUnavailable(NotificationError):
    """The message broker cannot be reached after exhausting reconnects."""

    status_code = 503


class TransientError(Exception):
    """Consumer failure that should be retried by requeueing the message."""

    transient = True


class DeliveryFailure(NotificationError):
    """The push gateway rejected or failed to accept a message."""

    status_code = 502

    def __init__(self, message: str, *, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


def is_transient(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` is explicitly marked as retryable."""

    return getattr(exc, "transient", False) is True


__all__ = [
    "NotificationError",
    "ValidationError",
    "NotFoundError",
    "BrokerUnavailable",
    "TransientError",
    "DeliveryFailure",
    "is_transient",
]

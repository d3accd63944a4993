"""Error taxonomy for Pub/Sub client operations."""

from __future__ import annotations


class PubSubError(Exception):
    """Base class for every error raised by this package."""


class InvalidNameError(PubSubError):
    """Raised when a topic or subscription name is malformed.

    Always raised synchronously, before any remote call is made.
    """


class TransportError(PubSubError):
    """Raised when a call to the Pub/Sub service fails.

    Covers network failures as well as non-2xx responses.  The original
    ``httpx`` exception, if any, is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        method: str | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.method = method
        self.path = path


class NotFoundError(TransportError):
    """Raised when the targeted topic or subscription does not exist."""


class DecodeError(PubSubError, ValueError):
    """Raised when a payload or message body cannot be decoded."""

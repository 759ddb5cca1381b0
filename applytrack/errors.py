"""Errors surfaced by the capture and sync pipeline.

Extraction and classification misses are not errors (they are ``None``
results). Only the conditions below cross component boundaries.
"""

from __future__ import annotations

AUTH_REQUIRED = "Not authenticated"


class TrackerError(Exception):
    """Base class for all applytrack errors."""


class NotAuthenticatedError(TrackerError):
    """No auth token is stored, or the backend rejected it."""

    def __init__(self, message: str = AUTH_REQUIRED):
        super().__init__(message)


class DeliveryError(TrackerError):
    """A job record could not be delivered to the backend."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ChannelUnavailableError(TrackerError):
    """The background service is not running or went away mid-request."""


class MessageTimeoutError(ChannelUnavailableError):
    """A request got no response within the message timeout."""

"""Errors raised by the client when an item cannot be delivered."""

from typing import Optional


class RollbarError(Exception):
    """Base class for every error raised by rollbar_client."""


class ConfigurationError(RollbarError):
    """A required setting (the access token) is missing at send time."""


class EncodingError(RollbarError):
    """The payload could not be serialized to JSON. Nothing was sent."""


class TransportError(RollbarError):
    """
    The POST failed or the service answered with a non-success status.

    ``status_code`` is None when no response was received at all.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ApiError(TransportError):
    """The service answered 2xx but reported ``err != 0`` in the response document."""

    def __init__(self, message: str, err: int, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message, status_code=status_code, body=body)
        self.err = err


class DecodingError(RollbarError):
    """The service answered but the response body is not a valid response document."""

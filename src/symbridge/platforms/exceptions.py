"""
Platform exceptions for symbridge.

Defines the error taxonomy for talking to the Symphony REST API.
"""

import httpx


class SymphonyError(Exception):
    """Base exception for platform errors."""

    pass


class HttpStatusError(SymphonyError):
    """The platform answered with a non-2xx status."""

    def __init__(self, status: int, method: str, url: str, body: str = ""):
        super().__init__(f"{method} {url} failed with HTTP {status}")
        self.status = status
        self.method = method
        self.url = url
        self.body = body


class TransientFeedError(HttpStatusError):
    """HTTP 400 on datafeed create or read: the feed is invalid or expired."""

    pass


class ConnectAttemptsExhausted(SymphonyError):
    """The datafeed could not be (re)established within the attempt ceiling."""

    def __init__(self, attempts: int, last_error: Exception | None = None):
        super().__init__(f"Unable to connect after {attempts} attempt(s)")
        self.attempts = attempts
        self.last_error = last_error


class NotFoundError(SymphonyError):
    """No platform user matches the lookup."""

    def __init__(self, key: str, value: str):
        super().__init__(f"No user found with {key}={value}")
        self.key = key
        self.value = value


def is_transient(error: Exception) -> bool:
    """
    Decide whether a datafeed failure should be retried locally.

    Args:
        error: The exception raised by a datafeed call.

    Returns:
        True for feed invalidation (HTTP 400) and transport failures.
    """
    if isinstance(error, TransientFeedError):
        return True
    if isinstance(error, HttpStatusError):
        return error.status == 400
    return isinstance(error, httpx.TransportError)

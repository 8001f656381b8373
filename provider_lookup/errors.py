"""Upstream failure taxonomy.

These never escape the provider clients or the geocoder: every client catches
them and degrades to an "unknown" result carrying the message in meta.error.
"""

from typing import Optional


class UpstreamError(Exception):
    """Base class for a failed call to a third-party service."""


class ProviderUnavailable(UpstreamError):
    """Transient failures (429 / 5xx / timeout) exhausted the retry budget."""

    def __init__(self, label: str, reason: str, attempts: int):
        self.label = label
        self.reason = reason
        self.attempts = attempts
        super().__init__(reason)


class UnexpectedResponse(UpstreamError):
    """Non-2xx status that is not worth retrying (400, 403, 404, ...)."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or f"Unexpected response: {status_code}")


class UnexpectedUpstreamShape(UpstreamError):
    """2xx response whose body is not the JSON structure we expect."""

"""Custom exception hierarchy for pylivemap."""

from __future__ import annotations


class LiveMapError(Exception):
    """Base exception for all pylivemap errors."""


class LiveMapConfigError(LiveMapError):
    """Invalid or missing configuration."""


class LiveMapTransportError(LiveMapError):
    """Network-level failure (connection, non-2xx status, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class LiveMapApiError(LiveMapError):
    """The region service answered, but with an unusable payload."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)


class LiveMapAuthenticationError(LiveMapApiError):
    """A privileged request was made without a bearer credential, or it was refused."""


class LiveMapValidationError(LiveMapError):
    """Untrusted input (e.g. a deep-link region identifier) failed validation.

    These are rejected locally and never forwarded to a lookup.
    """

    def __init__(self, message: str, *, value: str = "") -> None:
        self.value = value
        super().__init__(message)


class SearchSourceError(LiveMapError):
    """One branch of the hybrid search (local or external) failed.

    The other branch's results are still published.
    """

    def __init__(self, message: str, *, source: str = "") -> None:
        self.source = source
        super().__init__(message)

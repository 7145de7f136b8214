"""Exception types raised across the sync pipeline."""

from __future__ import annotations

from typing import Any


class SyncError(Exception):
    """Base class for every error the pipeline raises on purpose.

    Attributes:
        code: short machine-readable identifier (e.g. ``REMOTE_VALIDATION``)
        message: human-readable reason, also used as ``str(exc)``
        details: extra context for logs and the run report
    """

    code = "SYNC_ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: dict[str, Any] | None = None) -> None:
        self.message = message
        if code:
            self.code = code
        self.details = details or {}
        super().__init__(message)


class ConfigError(SyncError):
    """Required configuration is missing or malformed. Fatal."""

    code = "CONFIG_ERROR"


class ParseError(SyncError):
    """The feed stream could not be read."""

    code = "PARSE_ERROR"


class RemoteAPIError(SyncError):
    """Transport or protocol failure talking to the storefront catalog."""

    code = "REMOTE_API_ERROR"


class RemoteValidationError(SyncError):
    """The catalog rejected a mutation (``userErrors``)."""

    code = "REMOTE_VALIDATION"

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None, **kwargs: Any) -> None:
        self.errors = errors or []
        super().__init__(message, **kwargs)


class RateLimitExceeded(RemoteAPIError):
    """The catalog kept throttling after the budget wait was exhausted."""

    code = "RATE_LIMITED"


class VendorAuthError(SyncError):
    code = "VENDOR_AUTH"


class VendorAPIError(SyncError):
    code = "VENDOR_API_ERROR"

"""
Error types for crmdeck resource views and adapters.
"""

from __future__ import annotations

from typing import Any


class CrmdeckError(Exception):
    """Base exception for all crmdeck errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(CrmdeckError):
    """
    Raised when crmdeck.toml cannot be read or validated.

    Examples:
    - Malformed TOML
    - Unknown default view mode
    - Non-positive page size
    """

    pass


class DialogStateError(CrmdeckError):
    """
    Raised when a CRUD dialog action is not valid in the current state.

    Examples:
    - Opening the edit dialog when no form is registered
    - Confirming a deletion when nothing is staged
    """

    pass


# =============================================================================
# Adapter Errors
# =============================================================================


class AdapterError(CrmdeckError):
    """Base exception for resource adapter failures.

    Every adapter implementation should raise a subclass of this so the
    controller can surface failures without knowing the transport.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.message} (status: {self.status_code})"
        return self.message


class NetworkError(AdapterError):
    """The backend could not be reached or did not respond."""

    pass


class AuthenticationError(AdapterError):
    """401 - session expired or token invalid."""

    pass


class PermissionDeniedError(AdapterError):
    """403 - the user may not perform this action."""

    pass


class NotFoundError(AdapterError):
    """404 - the requested resource does not exist."""

    pass


class ValidationError(AdapterError):
    """422 - the backend rejected the payload."""

    pass


class RateLimitError(AdapterError):
    """429 - too many requests."""

    pass


class ServerError(AdapterError):
    """5xx - the backend failed."""

    pass

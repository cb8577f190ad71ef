"""Kong plugin reconciliation exceptions."""

from __future__ import annotations

from typing import Any


class KongAPIError(Exception):
    """Base exception for Kong Admin API errors.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code from Kong API (if applicable).
        response_body: Decoded response body from Kong API (if available).
        endpoint: The API endpoint that was called.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: dict[str, Any] | None = None,
        endpoint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.endpoint = endpoint

    def __str__(self) -> str:
        """Return string representation of the error."""
        parts = [self.message]
        if self.status_code:
            parts.append(f"(status: {self.status_code})")
        if self.endpoint:
            parts.append(f"[endpoint: {self.endpoint}]")
        return " ".join(parts)


class KongConnectionError(KongAPIError):
    """Exception raised when a request never produced an HTTP response.

    This includes network errors, timeouts, DNS failures and request
    encoding problems.
    """

    def __init__(
        self,
        message: str = "Failed to connect to Kong Admin API",
        endpoint: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize KongConnectionError.

        Args:
            message: Human-readable error message.
            endpoint: The API endpoint that was attempted.
            original_error: The original exception that caused this error.
        """
        super().__init__(message=message, endpoint=endpoint)
        self.original_error = original_error


class KongUnexpectedStatusError(KongAPIError):
    """Exception raised when Kong answers with a status outside the success set.

    The raw status line (e.g. ``"500 Internal Server Error"``) is kept in
    ``status`` and is part of the message.
    """

    def __init__(
        self,
        status: str,
        status_code: int | None = None,
        response_body: dict[str, Any] | None = None,
        endpoint: str | None = None,
    ) -> None:
        """Initialize KongUnexpectedStatusError.

        Args:
            status: Raw HTTP status text, code and reason phrase.
            status_code: Numeric HTTP status code.
            response_body: Decoded response body from Kong API.
            endpoint: The API endpoint that was called.
        """
        super().__init__(
            message=f"unexpected status code received: {status}",
            status_code=status_code,
            response_body=response_body,
            endpoint=endpoint,
        )
        self.status = status


class KongPluginConflictError(KongAPIError):
    """Exception raised when creating a plugin that already exists in Kong.

    Kong answers 409 when an identical plugin (same name and scope) is
    already configured. Such a plugin must be imported, not created.
    """

    def __init__(
        self,
        message: str = "409 Conflict - use import to manage this plugin",
        response_body: dict[str, Any] | None = None,
        endpoint: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=409,
            response_body=response_body,
            endpoint=endpoint,
        )


class KongPluginValidationError(KongAPIError):
    """Exception raised when a plugin declaration is invalid.

    Raised before any request is sent, for example when ``config_json``
    cannot be parsed or two scopes are declared at once.
    """

    def __init__(
        self,
        message: str = "Invalid plugin declaration",
        errors: list[str] | None = None,
    ) -> None:
        """Initialize KongPluginValidationError.

        Args:
            message: Human-readable error message.
            errors: Individual validation messages.
        """
        super().__init__(message=message)
        self.errors = errors or []

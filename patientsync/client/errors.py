"""
Error taxonomy for the record-service client.

The gateway classifies every failure into one of these; the repository lets
them through untouched; controllers turn them into a ``Notice`` for the user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class GatewayError(Exception):
    """Base class for every classified record-service failure."""

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        url: str = "",
        detail: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.detail = detail


class ValidationError(GatewayError):
    """The server rejected the request body (HTTP 400)."""

    retryable = False


class AuthError(GatewayError):
    """The server refused the caller (HTTP 401)."""

    retryable = False


class NotFoundError(GatewayError):
    """The addressed record does not exist (HTTP 404)."""

    retryable = False


class ServerError(GatewayError):
    """The server failed while handling the request (HTTP 5xx)."""


class NetworkError(GatewayError):
    """Transport failure, or a status the client does not recognise."""


class DecodeError(GatewayError):
    """A successful response whose body does not match the expected schema."""

    retryable = False


# status → error class; anything not listed is a NetworkError
STATUS_ERRORS: dict[int, type[GatewayError]] = {
    400: ValidationError,
    422: ValidationError,
    401: AuthError,
    403: AuthError,
    404: NotFoundError,
}


def error_for_status(status_code: int) -> type[GatewayError]:
    if status_code in STATUS_ERRORS:
        return STATUS_ERRORS[status_code]
    if 500 <= status_code <= 599:
        return ServerError
    return NetworkError


_MESSAGES: dict[type[GatewayError], str] = {
    ValidationError: "The server rejected the submitted data.",
    AuthError: "You are not authorised to perform this action.",
    NotFoundError: "The record no longer exists.",
    ServerError: "The server ran into a problem. Please try again.",
    NetworkError: "Could not reach the server. Check your connection and try again.",
    DecodeError: "The server sent data that could not be read.",
}


@dataclass(frozen=True)
class Notice:
    """A transient user-visible message, optionally offering a retry."""

    message: str
    retryable: bool = False
    error: Optional[GatewayError] = None


def user_message(error: GatewayError, action: str = "") -> str:
    """Short message for an error, prefixed with what was being attempted."""
    text = _MESSAGES.get(type(error), "Something went wrong. Please try again.")
    if error.detail and isinstance(error, ValidationError):
        text = f"{text} ({error.detail})"
    if action:
        return f"Failed to {action}. {text}"
    return text


def to_notice(error: GatewayError, action: str = "") -> Notice:
    return Notice(
        message=user_message(error, action),
        retryable=error.retryable,
        error=error,
    )

from collections.abc import Iterable, Mapping, Sequence
from typing import Any


def _as_messages(messages: Any) -> list[str]:
    """Coerce one field's error payload into a list of strings."""
    if messages is None:
        return []
    if isinstance(messages, str) or not isinstance(messages, Iterable):
        return [str(messages)]
    return [str(message) for message in messages]


class IsItSpamError(Exception):
    """Base class for every error raised by the is-it-spam client."""


class ConfigurationError(IsItSpamError):
    """Raised when API credentials are missing or empty."""


class ApiError(IsItSpamError):
    """
    Raised when the API answers with an error status, the response body
    cannot be understood, or the request never completes.

    Attributes
    ----------
    status_code : int | None
        HTTP status code, or None for transport failures.
    response_body : str | None
        Raw response body as returned by the API.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(IsItSpamError):
    """Raised when the API rejects a request with 429 Too Many Requests."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body


class ValidationError(IsItSpamError):
    """
    Raised for invalid spam check input, either detected locally before any
    request is sent or reported by the API with a 422 response.

    Attributes
    ----------
    errors : dict[str, list[str]]
        Messages keyed by field name, e.g. `{"email": ["can't be blank"]}`.
    status_code : int | None
        422 for API-reported errors, None for local validation.
    response_body : str | None
        Raw response body for API-reported errors.
    """

    def __init__(
        self,
        message: str,
        errors: Mapping[str, Sequence[str]] | None = None,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.errors: dict[str, list[str]] = {
            str(field): _as_messages(messages)
            for field, messages in (errors or {}).items()
        }
        self.status_code = status_code
        self.response_body = response_body

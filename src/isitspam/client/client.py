from collections.abc import Mapping
import json
import re
from typing import Any, Final

import httpx
import pydantic

from isitspam import static_config
from isitspam.client.errors import (
    ApiError,
    ConfigurationError,
    RateLimitError,
    ValidationError,
)
from isitspam.client.result import SpamCheckResult

API_VERSION: Final[str] = "v1"

SPAM_CHECKS_PATH: Final[str] = f"/api/{API_VERSION}/spam_checks"

HEALTH_PATH: Final[str] = "/up"

# Deliberately minimal: one "@", no whitespace, non-empty on both sides.
EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(r"[^@\s]+@[^@\s]+")

BLANK_MESSAGE: Final[str] = "can't be blank"
INVALID_EMAIL_MESSAGE: Final[str] = "is not a valid email address"
DEFAULT_ERROR_MESSAGE: Final[str] = "API request failed"


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _parse_json_object(response: httpx.Response) -> dict[str, Any]:
    """Decode a response body, treating anything but a JSON object as empty."""
    try:
        data = response.json()
    except ValueError:
        return {}

    return data if isinstance(data, dict) else {}


class IsItSpamClient:
    """
    Client for the is-it-spam.com spam checking API.

    Every request carries the `X-API-Key` and `X-API-Secret` headers. Error
    responses are translated into the exceptions defined in
    `isitspam.client.errors`; nothing is retried.

    Examples
    --------
    >>> client = IsItSpamClient("key", "secret")
    >>> result = client.check_spam("Jane", "jane@example.com", "Hello there")
    >>> result.spam
    False
    """

    def __init__(
        self,
        api_key: str | None,
        api_secret: str | None,
        base_url: str = static_config.DEFAULT_BASE_URL,
        timeout: float = static_config.DEFAULT_TIMEOUT_SEC,
        _client: httpx.Client | None = None,
    ) -> None:
        """
        Initialize a new is-it-spam client.

        Parameters
        ----------
        api_key : str | None
            API key from the is-it-spam dashboard.
        api_secret : str | None
            API secret paired with the key.
        base_url : str
            Service root URL. A trailing slash is stripped.
        timeout : float
            Wall-clock bound, in seconds, for each request.
        _client : httpx.Client | None
            Optional underlying httpx client used to make requests.

        Raises
        ------
        ConfigurationError
            If the key or the secret is missing or empty.
        """
        if not api_key:
            raise ConfigurationError("API key is required")

        if not api_secret:
            raise ConfigurationError("API secret is required")

        self._api_key: str = api_key
        self._api_secret: str = api_secret
        self._base_url: str = base_url.rstrip("/")
        self._timeout: float = timeout
        self._client: httpx.Client = _client or httpx.Client()

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> float:
        return self._timeout

    def __enter__(self) -> "IsItSpamClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def check_spam(
        self,
        name: str,
        email: str,
        message: str,
        custom_fields: Mapping[str, str] | None = None,
        end_user_ip: str | None = None,
    ) -> SpamCheckResult:
        """
        Classify a contact form submission.

        Parameters
        ----------
        name : str
            Sender name from the form.
        email : str
            Sender email address from the form.
        message : str
            Message body from the form.
        custom_fields : Mapping[str, str] | None
            Additional form fields sent as `additional_fields`.
        end_user_ip : str | None
            IP address of the person who submitted the form.

        Returns
        -------
        SpamCheckResult
            The parsed classification.

        Raises
        ------
        ValidationError
            If a required field is blank or the email is malformed (no request
            is sent), or if the API answers 422.
        RateLimitError
            If the API answers 429.
        ApiError
            For any other error status, an unreadable success body, or a
            transport failure.
        """
        self._validate_fields(name, email, message)

        spam_check: dict[str, Any] = {
            "name": name,
            "email": email,
            "message": message,
            "additional_fields": dict(custom_fields or {}),
        }

        if end_user_ip:
            spam_check["end_user_ip"] = end_user_ip

        response = self._request("POST", SPAM_CHECKS_PATH, {"spam_check": spam_check})

        try:
            return SpamCheckResult.from_data(response.json())
        except (ValueError, TypeError, pydantic.ValidationError):
            raise ApiError(
                DEFAULT_ERROR_MESSAGE,
                status_code=response.status_code,
                response_body=response.text,
            )

    def health_check(self) -> bool:
        """
        Probe the service health endpoint.

        Returns
        -------
        bool
            True when the service answers with a success status, False when it
            answers 503 Service Unavailable.

        Raises
        ------
        ApiError
            For any other error status or a transport failure.
        """
        try:
            self._request("GET", HEALTH_PATH)
        except ApiError as e:
            if e.status_code != 503:
                raise
            return False

        return True

    def _validate_fields(self, name: str, email: str, message: str) -> None:
        errors: dict[str, list[str]] = {}

        if _is_blank(name):
            errors["name"] = [BLANK_MESSAGE]

        if _is_blank(email):
            errors["email"] = [BLANK_MESSAGE]
        elif not EMAIL_PATTERN.fullmatch(email):
            errors["email"] = [INVALID_EMAIL_MESSAGE]

        if _is_blank(message):
            errors["message"] = [BLANK_MESSAGE]

        if errors:
            raise ValidationError("Validation failed", errors)

    def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> httpx.Response:
        """
        Send an authenticated request and map error statuses to exceptions.

        Parameters
        ----------
        method : str
            HTTP method ("POST", "GET").
        path : str
            API route path (e.g. "/up").
        payload : dict[str, Any] | None
            JSON-serializable request body (optional).

        Returns
        -------
        httpx.Response
            The response, only when its status is 2xx.
        """
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self._api_key,
            "X-API-Secret": self._api_secret,
            "User-Agent": static_config.USER_AGENT,
        }

        content = json.dumps(payload).encode() if payload is not None else None

        try:
            response = self._client.request(
                method,
                f"{self._base_url}{path}",
                headers=headers,
                content=content,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise ApiError(f"Request failed: {e}")

        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        status: int = response.status_code

        if 200 <= status < 300:
            return response

        if status == 404:
            raise ApiError(
                "Endpoint not found", status_code=404, response_body=response.text
            )

        if status == 422:
            data = _parse_json_object(response)
            errors = data.get("errors")
            raise ValidationError(
                data.get("error") or "Validation failed",
                errors if isinstance(errors, dict) else {},
                status_code=422,
                response_body=response.text,
            )

        if status == 429:
            raise RateLimitError(
                self._error_message(response),
                status_code=429,
                response_body=response.text,
            )

        if status in (400, 401) or 500 <= status < 600:
            raise ApiError(
                self._error_message(response),
                status_code=status,
                response_body=response.text,
            )

        raise ApiError(
            f"Unexpected response code: {status}",
            status_code=status,
            response_body=response.text,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        message = _parse_json_object(response).get("error")
        return message if isinstance(message, str) and message else DEFAULT_ERROR_MESSAGE

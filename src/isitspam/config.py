from collections.abc import Callable, Mapping
import functools
import threading
from typing import Any

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from isitspam import static_config
from isitspam.client.client import IsItSpamClient
from isitspam.client.errors import ConfigurationError
from isitspam.client.result import SpamCheckResult


class Settings(BaseSettings):
    """
    Runtime configuration for the is-it-spam client and spam gate.

    Values are read from, in order of precedence:

    1. keyword arguments passed by application code,
    2. files in the secrets directory (when one is given via `_secrets_dir`),
    3. environment variables with the `IS_IT_SPAM_` prefix,
    4. the `.env` file in the working directory.

    Examples
    --------
    - `IS_IT_SPAM_API_KEY=key_123`
    - `IS_IT_SPAM_API_SECRET=secret_456`
    - `IS_IT_SPAM_BASE_URL=https://staging.is-it-spam.com`

    Notes
    -----
    - Import and reuse the instance from `get_settings()` rather than
      instantiating this class on every request.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="IS_IT_SPAM_", extra="ignore"
    )

    # Credentials issued by the is-it-spam dashboard
    API_KEY: str | None = None
    API_SECRET: str | None = None

    # Service root, without the /api/v1 suffix
    BASE_URL: str = static_config.DEFAULT_BASE_URL

    # Per-request timeout in seconds
    TIMEOUT: int = static_config.DEFAULT_TIMEOUT_SEC

    # Send the submitter's IP address along with each check
    TRACK_END_USER_IP: bool = True

    # Minimum log level (DEBUG, INFO, WARNING...)
    LOG_LEVEL: str = "INFO"

    # Emit logs in structured JSON format
    LOG_JSON: bool = True

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Stored secrets win over the environment.
        return init_settings, file_secret_settings, env_settings, dotenv_settings


# Expose a callable signature representing "build a client from settings".
type ClientFactory = Callable[[Settings], IsItSpamClient]


def build_client(settings: Settings) -> IsItSpamClient:
    return IsItSpamClient(
        api_key=settings.API_KEY,
        api_secret=settings.API_SECRET,
        base_url=settings.BASE_URL,
        timeout=settings.TIMEOUT,
    )


class Configuration:
    """
    Holds the active settings and the client built from them.

    The client is created lazily on first access and reused until
    `reset_client()` is called, so credential changes made through
    `settings` only take effect after a reset.

    Parameters
    ----------
    settings : Settings
        Values used to build the client.
    client_factory : ClientFactory
        Builds a client from settings. Tests replace this to avoid network
        access.
    """

    def __init__(
        self, settings: Settings, client_factory: ClientFactory = build_client
    ) -> None:
        self.settings: Settings = settings
        self._client_factory: ClientFactory = client_factory
        self._client: IsItSpamClient | None = None
        self._lock = threading.Lock()

    @property
    def client(self) -> IsItSpamClient:
        """
        Return the cached client, building it on first use.

        Raises
        ------
        ConfigurationError
            If the credentials are missing.
        """
        with self._lock:
            if self._client is None:
                self._client = self._client_factory(self.settings)
            return self._client

    def reset_client(self) -> None:
        """
        Close and drop the cached client so the next access rebuilds it.

        Requests already running on the old client may fail once it is closed.
        """
        with self._lock:
            client, self._client = self._client, None

        if client is not None:
            client.close()

    @property
    def track_end_user_ip(self) -> bool:
        return self.settings.TRACK_END_USER_IP

    @property
    def valid(self) -> bool:
        return bool(self.settings.API_KEY) and bool(self.settings.API_SECRET)

    def validate(self) -> None:
        """
        Raise if the credentials are incomplete.

        Raises
        ------
        ConfigurationError
            Naming the first missing credential.
        """
        if not self.settings.API_KEY:
            raise ConfigurationError("API key is required")

        if not self.settings.API_SECRET:
            raise ConfigurationError("API secret is required")


@functools.cache
def get_settings() -> Settings:
    """
    Retrieve a cached global instance of the Settings.

    Returns
    -------
    Settings
        The cached settings instance.
    """
    return Settings()


@functools.cache
def get_configuration() -> Configuration:
    """
    Retrieve the cached global Configuration.

    FastAPI routes depend on this, so tests can replace it through
    `app.dependency_overrides`.
    """
    return Configuration(get_settings())


def configure(**values: Any) -> Configuration:
    """
    Update the global settings in place.

    Keyword names are Settings fields, e.g.
    `configure(API_KEY="...", API_SECRET="...")`. The cached client is left
    untouched; call `reset_client()` to pick up new credentials.

    Raises
    ------
    ValueError
        If a keyword does not name a settings field.
    """
    configuration = get_configuration()

    for field, value in values.items():
        if field not in Settings.model_fields:
            raise ValueError(f"Unknown setting: {field}")
        setattr(configuration.settings, field, value)

    return configuration


def check_spam(
    name: str,
    email: str,
    message: str,
    custom_fields: Mapping[str, str] | None = None,
    end_user_ip: str | None = None,
) -> SpamCheckResult:
    """Check a submission with the globally configured client."""
    return get_configuration().client.check_spam(
        name, email, message, custom_fields, end_user_ip
    )


def health_check() -> bool:
    """Probe the service with the globally configured client."""
    return get_configuration().client.health_check()

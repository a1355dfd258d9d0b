"""Application configuration settings."""

import logging
import re
from typing import FrozenSet, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_PREFIX = "WYGC_"

DEFAULT_OPSGENIE_BASEURL = "https://api.opsgenie.com/v2/"
DEFAULT_TWILIO_BASEURL = "https://studio.twilio.com/v2/Flows/"

# Visible ASCII, inner spaces/tabs allowed, no surrounding whitespace
_HEADER_VALUE_PATTERN = re.compile(r"^[\x21-\x7e](?:[\x20-\x7e\t]*[\x21-\x7e])?$")


class Settings(BaseSettings):
    """Raw settings loaded from environment variables.

    Nothing here is validated beyond its type; ``load_service_config`` turns
    these values into a ``ServiceConfig`` or fails.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API configuration
    bind_address: str = Field(default="0.0.0.0")
    bind_port: int = Field(default=2368)
    api_debug: bool = Field(default=False)

    # Logging configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text

    # Shared outbound HTTP client
    http_timeout: float = Field(default=10.0)

    # Roster provider
    opsgenie_baseurl: str = Field(default=DEFAULT_OPSGENIE_BASEURL)
    opsgenie_token: Optional[SecretStr] = Field(default=None)
    opsgenie_contact_methods: str = Field(default="voice,sms")

    # Dialer provider
    twilio_baseurl: str = Field(default=DEFAULT_TWILIO_BASEURL)
    twilio_token: Optional[SecretStr] = Field(default=None)
    twilio_outgoing_number: Optional[str] = Field(default=None)
    twilio_workflow: Optional[str] = Field(default=None)

    # Optional notification channel
    slack_baseurl: Optional[str] = Field(default=None)
    slack_token: Optional[SecretStr] = Field(default=None)


def envname(field_name: str) -> str:
    """Return the environment variable backing a settings field."""
    return f"{ENV_PREFIX}{field_name.upper()}"


class ConfigError(Exception):
    """Base class for configuration errors. Always fatal at startup."""


class MissingRequiredValueError(ConfigError):
    def __init__(self, envname: str):
        self.envname = envname
        super().__init__(f"missing mandatory configuration [{envname}]")


class InvalidBaseUrlError(ConfigError):
    def __init__(self, service: str, reason: str):
        self.service = service
        super().__init__(f"baseurl parse error for service [{service}]: {reason}")


class InvalidCredentialError(ConfigError):
    def __init__(self, envname: str):
        self.envname = envname
        super().__init__(
            f"credential in [{envname}] is not usable as an HTTP header value"
        )


class InvalidSettingsError(ConfigError):
    """An environment value could not be parsed into its settings type."""

    def __init__(self, reasons: str):
        super().__init__(f"invalid configuration: {reasons}")


class ProviderConfig(BaseModel):
    """Base URL and credential of one external provider."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    credential: SecretStr

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        try:
            url = httpx.URL(v.strip())
        except httpx.InvalidURL as e:
            raise ValueError(str(e)) from e

        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError("base url must be an absolute http(s) url")

        return str(url)


class JoinableProviderConfig(ProviderConfig):
    """Provider whose endpoints are resolved relative to the base url."""

    @field_validator("base_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        # Relative joins must append to the path, not replace its last segment
        return v if v.endswith("/") else f"{v}/"


class RosterProviderConfig(JoinableProviderConfig):
    contact_methods: FrozenSet[str] = frozenset({"voice", "sms"})


class DialerProviderConfig(JoinableProviderConfig):
    outgoing_number: str
    default_workflow_id: Optional[str] = None


class NotificationProviderConfig(ProviderConfig):
    pass


class ServiceConfig(BaseModel):
    """Validated configuration, built once at startup and shared read-only."""

    model_config = ConfigDict(frozen=True)

    bind_address: str
    bind_port: int
    roster: RosterProviderConfig
    dialer: DialerProviderConfig
    notification: Optional[NotificationProviderConfig] = None

    @property
    def notifications_enabled(self) -> bool:
        return self.notification is not None


def _require_credential(value: Optional[SecretStr], field_name: str) -> SecretStr:
    if value is None:
        raise MissingRequiredValueError(envname(field_name))
    if not _HEADER_VALUE_PATTERN.match(value.get_secret_value()):
        raise InvalidCredentialError(envname(field_name))
    return value


def _require_value(value: Optional[str], field_name: str) -> str:
    if value is None or not value.strip():
        raise MissingRequiredValueError(envname(field_name))
    return value.strip()


def _build_provider(model: type, service: str, **values):
    # Credentials are checked before this point, so validation errors here
    # can only be about the base url.
    try:
        return model(**values)
    except ValidationError as e:
        reason = "; ".join(error["msg"] for error in e.errors())
        raise InvalidBaseUrlError(service, reason) from None


def _parse_contact_methods(raw: str) -> FrozenSet[str]:
    return frozenset(
        method.strip().lower() for method in raw.split(",") if method.strip()
    )


def load_roster_config(settings: Settings) -> RosterProviderConfig:
    credential = _require_credential(settings.opsgenie_token, "opsgenie_token")
    config = _build_provider(
        RosterProviderConfig,
        "opsgenie",
        base_url=settings.opsgenie_baseurl.strip(),
        credential=credential,
        contact_methods=_parse_contact_methods(settings.opsgenie_contact_methods),
    )
    logger.debug("OpsGenie base url parsed as: [%s]", config.base_url)
    return config


def load_dialer_config(settings: Settings) -> DialerProviderConfig:
    credential = _require_credential(settings.twilio_token, "twilio_token")
    outgoing_number = _require_value(
        settings.twilio_outgoing_number, "twilio_outgoing_number"
    )
    workflow = settings.twilio_workflow.strip() if settings.twilio_workflow else None
    config = _build_provider(
        DialerProviderConfig,
        "twilio",
        base_url=settings.twilio_baseurl.strip(),
        credential=credential,
        outgoing_number=outgoing_number,
        default_workflow_id=workflow or None,
    )
    logger.debug("Twilio base url parsed as: [%s]", config.base_url)
    return config


def load_notification_config(settings: Settings) -> Optional[NotificationProviderConfig]:
    """Load the optional notification channel.

    An unset base url disables the channel with a warning. A base url without
    a token is an error: a half-configured channel is worse than none.
    """
    if settings.slack_baseurl is None or not settings.slack_baseurl.strip():
        logger.warning(
            "[%s] not set, Slack notifications will be disabled!",
            envname("slack_baseurl"),
        )
        return None

    credential = _require_credential(settings.slack_token, "slack_token")
    return _build_provider(
        NotificationProviderConfig,
        "slack",
        base_url=settings.slack_baseurl.strip(),
        credential=credential,
    )


def load_service_config(settings: Settings) -> ServiceConfig:
    """Validate raw settings into a ``ServiceConfig``.

    Raises:
        ConfigError: If any mandatory provider is misconfigured
    """
    config = ServiceConfig(
        bind_address=settings.bind_address,
        bind_port=settings.bind_port,
        roster=load_roster_config(settings),
        dialer=load_dialer_config(settings),
        notification=load_notification_config(settings),
    )
    logger.debug("Bind address set to: [%s:%s]", config.bind_address, config.bind_port)
    return config


def load_settings(**overrides) -> Settings:
    """Read raw settings from the environment.

    Parse failures are reported per variable without the offending value,
    which may be a credential.

    Raises:
        InvalidSettingsError: If a value has the wrong type
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        reasons = "; ".join(
            f"[{envname(str(error['loc'][0]))}] {error['msg']}" if error["loc"] else error["msg"]
            for error in e.errors()
        )
        raise InvalidSettingsError(reasons) from None

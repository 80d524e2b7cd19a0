from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Self

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docmost_gateway.constants import DEFAULT_PORT
from docmost_gateway.infra.errors import ConfigError

# Load .env once at module import — all BaseSettings subclasses will see the env vars
load_dotenv()

_TRUTHY = frozenset({"true", "1", "yes", "on"})


def parse_boolean(value: Any) -> bool:
    """Boolean-ish env parsing: only true/1/yes/on (any case) are true."""
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return False
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class TokenCredential:
    """Static API token sent as a Bearer header."""

    token: str = field(repr=False)


@dataclass(frozen=True)
class PasswordCredential:
    """Email/password pair exchanged for a session token at startup."""

    email: str
    password: str = field(repr=False)


Credential = TokenCredential | PasswordCredential


class DocmostSettings(BaseSettings):
    """Backend connection settings. Env vars prefixed with DOCMOST_."""

    model_config = SettingsConfigDict(env_prefix="DOCMOST_")

    base_url: str = ""
    api_token: str = ""
    email: str = ""
    password: str = ""
    request_timeout_s: float = Field(30.0, gt=0)
    max_sidebar_pages: int = Field(100, gt=0, le=10_000)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @model_validator(mode="after")
    def _validate(self) -> Self:
        if not self.base_url:
            raise ValueError(
                "DOCMOST_BASE_URL is required: set it to the Docmost instance to proxy."
            )
        if not self.api_token and not (self.email and self.password):
            raise ValueError(
                "Set DOCMOST_API_TOKEN, or both DOCMOST_EMAIL and DOCMOST_PASSWORD, "
                "to authenticate calls to Docmost."
            )
        return self

    @property
    def credential(self) -> Credential:
        """The authoritative credential source. A static token wins over email/password."""
        if self.api_token:
            return TokenCredential(self.api_token)
        return PasswordCredential(self.email, self.password)


class GatewaySettings(BaseSettings):
    """Inbound HTTP listener settings. Env vars HOST, PORT, READ_ONLY."""

    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    read_only: bool = False

    @field_validator("port", mode="before")
    @classmethod
    def _default_invalid_port(cls, v: Any) -> int:
        try:
            port = int(v)
        except (TypeError, ValueError):
            return DEFAULT_PORT
        if not 0 < port < 65536:
            return DEFAULT_PORT
        return port

    @field_validator("read_only", mode="before")
    @classmethod
    def _parse_read_only(cls, v: Any) -> bool:
        return parse_boolean(v)


class LoggingSettings(BaseSettings):
    """Log output settings. Env vars prefixed with LOG_."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    json_output: bool = Field(False, validation_alias="LOG_JSON")
    level: str = "INFO"

    @field_validator("json_output", mode="before")
    @classmethod
    def _parse_json_output(cls, v: Any) -> bool:
        return parse_boolean(v)


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    docmost: DocmostSettings = Field(default_factory=DocmostSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def get_settings() -> Settings:
    """Load and validate settings. Raises pydantic ValidationError on invalid values."""
    return Settings()


def load_settings() -> Settings:
    """Load settings, mapping validation failures to ConfigError."""
    try:
        return get_settings()
    except ValidationError as e:
        messages = "; ".join(err["msg"].removeprefix("Value error, ") for err in e.errors())
        raise ConfigError(f"Invalid configuration: {messages}") from e

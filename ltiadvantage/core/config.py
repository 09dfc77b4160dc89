"""
Client configuration models and helpers.

Centralizes settings management so the service layer, the dependency
factories and the command line scripts share one configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AliasChoices, AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ltiadvantage.models.user import LtiVersion


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


def _env(name: str, field_name: str) -> AliasChoices:
    return AliasChoices(name, field_name)


class PlatformSettings(BaseSettings):
    """Registration details of the platform the tool talks to."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    platform_id: str = Field(..., validation_alias=_env("LTI_PLATFORM_ID", "platform_id"))
    client_id: str = Field(..., validation_alias=_env("LTI_CLIENT_ID", "client_id"))
    deployment_id: Optional[str] = Field(
        None, validation_alias=_env("LTI_DEPLOYMENT_ID", "deployment_id")
    )
    access_token_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias=_env("LTI_ACCESS_TOKEN_URL", "access_token_url"),
        description="OAuth 2 token endpoint used for client-credentials grants.",
    )
    signature_method: str = Field(
        "RS256",
        validation_alias=_env("LTI_SIGNATURE_METHOD", "signature_method"),
        description="RS* selects OAuth 2 bearer tokens, anything else OAuth 1 HMAC.",
    )
    consumer_key: Optional[str] = Field(
        None, validation_alias=_env("LTI_CONSUMER_KEY", "consumer_key")
    )
    shared_secret: Optional[str] = Field(
        None, validation_alias=_env("LTI_SHARED_SECRET", "shared_secret")
    )
    lti_version: LtiVersion = Field(
        LtiVersion.V1P3, validation_alias=_env("LTI_VERSION", "lti_version")
    )
    default_email: Optional[str] = Field(
        None,
        validation_alias=_env("LTI_DEFAULT_EMAIL", "default_email"),
        description="Fallback e-mail for roster members; a leading '@' is treated as a domain.",
    )

    @property
    def uses_oauth1(self) -> bool:
        return not self.signature_method.upper().startswith("RS")


class ToolKeySettings(BaseSettings):
    """Credentials the tool uses to sign client assertions."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    private_key: Optional[str] = Field(
        None, validation_alias=_env("LTI_TOOL_PRIVATE_KEY", "private_key")
    )
    private_key_path: Optional[Path] = Field(
        None, validation_alias=_env("LTI_TOOL_PRIVATE_KEY_PATH", "private_key_path")
    )
    key_id: Optional[str] = Field(None, validation_alias=_env("LTI_TOOL_KEY_ID", "key_id"))
    required_scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        validation_alias=_env("LTI_REQUIRED_SCOPES", "required_scopes"),
        description="Scopes requested with every token so one token serves most services.",
    )

    @field_validator("required_scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str] | None
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if value is None:
            return ()
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())

    def load_private_key(self) -> Optional[str]:
        """Return the PEM private key from inline settings or the configured file."""
        if self.private_key:
            return self.private_key.replace("\\n", "\n")
        if self.private_key_path and self.private_key_path.exists():
            return self.private_key_path.read_text(encoding="utf-8")
        return None


class HttpSettings(BaseSettings):
    """Transport tuning."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    timeout_seconds: float = Field(10.0, validation_alias=_env("LTI_HTTP_TIMEOUT", "timeout_seconds"))
    user_agent: str = Field(
        "ltiadvantage/0.1", validation_alias=_env("LTI_HTTP_USER_AGENT", "user_agent")
    )


class AppSettings(BaseSettings):
    """Root settings object for the service client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field("development", validation_alias=_env("APP_ENV", "environment"))
    log_level: str = Field("INFO", validation_alias=_env("APP_LOG_LEVEL", "log_level"))
    strict_mode: bool = Field(
        False,
        validation_alias=_env("LTI_STRICT_MODE", "strict_mode"),
        description="Drop records with malformed optional fields instead of coercing them.",
    )
    membership_limit: int = Field(
        100, validation_alias=_env("LTI_MEMBERSHIP_LIMIT", "membership_limit")
    )
    diagnostics_limit: int = Field(
        500,
        validation_alias=_env("LTI_DIAGNOSTICS_LIMIT", "diagnostics_limit"),
        description="Number of recent diagnostics kept in memory per connection.",
    )
    store_path: str = Field(
        "data/ltiadvantage.sqlite3", validation_alias=_env("LTI_STORE_PATH", "store_path")
    )
    platform: PlatformSettings = Field(default_factory=PlatformSettings)
    tool: ToolKeySettings = Field(default_factory=ToolKeySettings)
    http: HttpSettings = Field(default_factory=HttpSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "HttpSettings",
    "PlatformSettings",
    "ToolKeySettings",
    "get_settings",
]

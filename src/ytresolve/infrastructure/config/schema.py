"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ytresolve.domain.entities.definitions import (
    DEFAULT_DEFINITION_NAME,
    DEFAULT_DEFINITIONS,
)

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _normalize_path(value: Any) -> Path | None:
    """Normalize a path-like value. Never touches the filesystem."""
    if value is None:
        return None
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/logging/resolver).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="ytresolve", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Timeout in seconds for every outgoing request.",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Whether HTTP client follows redirects.",
    )
    http_user_agent: str = Field(
        default="Mozilla/5.0",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )
    http_max_retries: int = Field(
        default=2,
        validation_alias=AliasChoices(
            "http_max_retries",
            AliasPath("http", "max_retries"),
        ),
        description="Transport-level retries for throttled or dropped requests.",
    )
    http_rate_limit_rps: float = Field(
        default=2.0,
        validation_alias=AliasChoices(
            "http_rate_limit_rps",
            AliasPath("http", "rate_limit_rps"),
        ),
        description="Requests per second per host. 0 disables limiting.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # Resolver (YAML section: resolver.*)
    preferred_definition: str = Field(
        default=DEFAULT_DEFINITION_NAME,
        validation_alias=AliasChoices(
            "preferred_definition",
            AliasPath("resolver", "preferred_definition"),
        ),
        description="Definition label requested when none is given.",
    )
    dash_enabled: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "dash_enabled",
            AliasPath("resolver", "dash_enabled"),
        ),
        description="Prefer the DASH manifest for the highest definition.",
    )
    patterns_file: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices(
            "patterns_file",
            AliasPath("resolver", "patterns_file"),
        ),
        description="YAML file overriding the built-in extraction patterns.",
    )

    @field_validator("patterns_file", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Path | None:
        return _normalize_path(v)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @field_validator("http_max_retries")
    @classmethod
    def _validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("http_max_retries must be >= 0")
        return v

    @field_validator("http_rate_limit_rps")
    @classmethod
    def _validate_rate_limit(cls, v: float) -> float:
        if v < 0:
            raise ValueError("http_rate_limit_rps must be >= 0")
        return v

    @field_validator("preferred_definition")
    @classmethod
    def _validate_definition(cls, v: str) -> str:
        labels = DEFAULT_DEFINITIONS.labels
        if v not in labels:
            raise ValueError(
                f"preferred_definition must be one of {', '.join(labels)}"
            )
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """Dump configuration in the sectioned shape used by config YAML."""
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "follow_redirects": self.http_follow_redirects,
                "user_agent": self.http_user_agent,
                "max_retries": self.http_max_retries,
                "rate_limit_rps": self.http_rate_limit_rps,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "resolver": {
                "preferred_definition": self.preferred_definition,
                "dash_enabled": self.dash_enabled,
                "patterns_file": (
                    str(self.patterns_file) if self.patterns_file else None
                ),
            },
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Supported env var examples (flat, explicit):
    - YTRESOLVE_HTTP_TIMEOUT_SECONDS
    - YTRESOLVE_LOG_LEVEL
    - YTRESOLVE_PREFERRED_DEFINITION
    - YTRESOLVE_DASH_ENABLED
    """

    model_config = SettingsConfigDict(
        env_prefix="YTRESOLVE_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_follow_redirects: Optional[bool] = None
    http_user_agent: Optional[str] = None
    http_max_retries: Optional[int] = None
    http_rate_limit_rps: Optional[float] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    preferred_definition: Optional[str] = None
    dash_enabled: Optional[bool] = None
    patterns_file: Optional[Path] = None

    @field_validator("patterns_file", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """Return only values that were actually provided (non-None), for merging."""
        return self.model_dump(exclude_none=True)

"""Configuration and environment settings for the export tool."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from gmail_export.models.types import (
    ExportFormat,
    FilenameOption,
    MessageFilter,
    OutputStructure,
)

DEFAULT_SCOPES: list[str] = ["https://www.googleapis.com/auth/gmail.readonly"]

ALLOWED_SCOPES: frozenset[str] = frozenset(
    {
        "https://www.googleapis.com/auth/gmail.addons.current.action.compose",
        "https://www.googleapis.com/auth/gmail.addons.current.message.action",
        "https://www.googleapis.com/auth/gmail.addons.current.message.metadata",
        "https://www.googleapis.com/auth/gmail.addons.current.message.readonly",
        "https://www.googleapis.com/auth/gmail.labels",
        "https://www.googleapis.com/auth/gmail.send",
        "https://www.googleapis.com/auth/gmail.readonly",
        "https://www.googleapis.com/auth/gmail.compose",
        "https://www.googleapis.com/auth/gmail.insert",
        "https://www.googleapis.com/auth/gmail.modify",
        "https://www.googleapis.com/auth/gmail.metadata",
        "https://www.googleapis.com/auth/gmail.settings.basic",
        "https://www.googleapis.com/auth/gmail.settings.sharing",
        "https://mail.google.com/",
    },
)


class ExportConfigError(ValueError):
    """Raised when export options are inconsistent."""


def check_filename_options(
    *,
    output_structure: OutputStructure,
    filename_options: list[FilenameOption],
) -> None:
    """Reject a date filename component when the directory already holds the day.

    Args:
        output_structure: Directory nesting mode.
        filename_options: Requested filename components.

    Raises:
        ExportConfigError: If `date` is requested with the `day` structure.
    """
    if output_structure == OutputStructure.day and FilenameOption.date in filename_options:
        raise ExportConfigError(
            'Cannot use date in filename when output structure is "day"',
        )


class GmailSettings(BaseSettings):
    """Gmail OAuth settings."""

    model_config = SettingsConfigDict(extra="forbid")

    credentials_file: Path
    token_file: Path = Path(".secrets/gmail-token.json")
    user_id: Annotated[str, Field(min_length=1)] = "me"
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))

    @field_validator("credentials_file")
    @classmethod
    def _credentials_file_must_exist(cls, value: Path) -> Path:
        """Ensure the credentials file exists and is a file.

        Args:
            value: Path to the credentials file.

        Returns:
            The validated path.

        Raises:
            ValueError: If the path does not exist or is not a file.
        """
        if not value.exists():
            msg = f"credentials_file does not exist: {value}"
            raise ValueError(msg)
        if not value.is_file():
            msg = f"credentials_file is not a file: {value}"
            raise ValueError(msg)
        return value

    @field_validator("scopes")
    @classmethod
    def _scopes_must_be_known(cls, value: list[str]) -> list[str]:
        """Validate the requested Gmail API scopes.

        Args:
            value: Scope URLs.

        Returns:
            The validated scopes.

        Raises:
            ValueError: If the list is empty or contains an unknown scope.
        """
        if not value:
            raise ValueError("API scopes cannot be empty. Provide at least one scope.")
        for scope in value:
            if scope not in ALLOWED_SCOPES:
                raise ValueError(f"Invalid API scope: {scope}")
        return value


class ExportSettings(BaseSettings):
    """Where and how exported messages are written."""

    model_config = SettingsConfigDict(extra="forbid")

    output_dir: Path = Path("./exports/gmail")
    output_structure: OutputStructure = OutputStructure.month
    filename_options: list[FilenameOption] = Field(
        default_factory=lambda: [FilenameOption.date, FilenameOption.subject],
    )
    timezone: Annotated[str, Field(min_length=1)] = "Etc/UTC"
    page_size: Annotated[int, Field(ge=1, le=500)] = 500
    format: ExportFormat = ExportFormat.eml
    dry_run: bool = False

    @field_validator("output_dir")
    @classmethod
    def _output_dir_to_absolute(cls, value: Path) -> Path:
        """Resolve the output directory to an absolute path."""
        return value.expanduser().resolve()

    @field_validator("timezone")
    @classmethod
    def _timezone_must_exist(cls, value: str) -> str:
        """Ensure the timezone names a known IANA zone.

        Args:
            value: Timezone name.

        Returns:
            The validated name.

        Raises:
            ValueError: If the zone cannot be loaded.
        """
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @model_validator(mode="after")
    def _filename_options_fit_structure(self) -> ExportSettings:
        """Fail fast on a date filename component under the `day` structure."""
        check_filename_options(
            output_structure=self.output_structure,
            filename_options=self.filename_options,
        )
        return self

    @property
    def tz(self) -> ZoneInfo:
        """Return the configured timezone."""
        return ZoneInfo(self.timezone)


class FilterSettings(BaseSettings):
    """Include/exclude rules applied to each listed message."""

    model_config = SettingsConfigDict(extra="forbid")

    include: MessageFilter = Field(default_factory=MessageFilter)
    exclude: MessageFilter = Field(default_factory=MessageFilter)


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(extra="forbid")

    level: Annotated[str, Field(min_length=1)] = "INFO"
    json_logs: bool = True


class AppSettings(BaseSettings):
    """Top-level application settings."""

    model_config = SettingsConfigDict(
        env_prefix="GMX_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="forbid",
    )

    gmail: GmailSettings | None = None
    export: ExportSettings = Field(default_factory=ExportSettings)
    filters: FilterSettings = Field(default_factory=FilterSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge `override` into a copy of `base`.

    Args:
        base: Lower-precedence values.
        override: Higher-precedence values.

    Returns:
        Merged mapping.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_settings(
    *,
    env_file: Path | None,
    config_file: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> AppSettings:
    """Load validated settings from environment, optional files, and CLI overrides.

    Args:
        env_file: Optional .env file path.
        config_file: Optional YAML configuration file.
        overrides: Nested values that take precedence over every other source.

    Returns:
        Validated AppSettings instance.
    """
    init: dict[str, Any] = {}
    if config_file is not None:
        init = dict(YamlConfigSettingsSource(AppSettings, yaml_file=config_file)())
    if overrides:
        init = _deep_merge(init, overrides)
    if env_file is None:
        return AppSettings(**init)
    return AppSettings(_env_file=env_file, **init)  # type: ignore[call-arg]

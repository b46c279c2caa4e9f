from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".yt-search-server"
DEFAULT_YOUTUBE_BASE_URL = "https://www.googleapis.com/youtube/v3"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (("log_dir", Path("logs")),)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = ("telemetry_enabled",)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Canonical runtime configuration.

    Every option is read from `YT_SEARCH_*` environment variables (or `.env`).
    The API key, host and port also accept the legacy unprefixed names.
    """

    model_config = SettingsConfigDict(
        env_prefix="YT_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # YouTube Data API access.
    youtube_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("YT_SEARCH_YOUTUBE_API_KEY", "YOUTUBE_DATA_SERVICE_API_KEY"),
        description="API key for the YouTube Data API v3.",
    )
    youtube_base_url: str = Field(
        default=DEFAULT_YOUTUBE_BASE_URL,
        description="YouTube Data API base URL.",
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout applied to every individual YouTube Data API request.",
    )

    # HTTP server.
    server_host: str = Field(
        default="0.0.0.0",
        validation_alias=AliasChoices("YT_SEARCH_SERVER_HOST", "SERVER_HOST"),
        description="Interface the HTTP server binds to.",
    )
    server_port: int = Field(
        default=8080,
        ge=1,
        le=65_535,
        validation_alias=AliasChoices("YT_SEARCH_SERVER_PORT", "SERVER_PORT"),
        description="Port the HTTP server listens on.",
    )

    # Channel neighborhood resolution.
    listing_page_size: int = Field(
        default=50,
        ge=1,
        le=50,
        description="Page size requested from the uploads playlist listing (capped by YouTube API).",
    )
    neighborhood_radius: int = Field(
        default=10,
        ge=0,
        description="Number of uploads fetched on each side of the target video.",
    )
    playlist_walk_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Deadline for walking every page of a channel's uploads playlist.",
    )
    neighborhood_fetch_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Deadline for the parallel neighbor detail fetches of one request.",
    )
    enumerator_queue_capacity: int = Field(
        default=100,
        ge=1,
        description="Capacity of the queue between the playlist page walker and its consumer.",
    )

    # Paths and logging.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for logs.",
    )
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description="Directory for backend log files. Defaults to `${YT_SEARCH_DATA_DIR}/logs`.",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @field_validator("youtube_base_url", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("YT_SEARCH_YOUTUBE_BASE_URL must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("YT_SEARCH_YOUTUBE_BASE_URL must not be empty.")
        return normalized

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("YT_SEARCH_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("YT_SEARCH_TELEMETRY_SINK must be set to: none, log.")

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("youtube_api_key", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def _validate_required_configuration(*, youtube_api_key: str | None) -> None:
    errors: list[str] = []

    if youtube_api_key is None:
        errors.append(
            "YT_SEARCH_YOUTUBE_API_KEY (or YOUTUBE_DATA_SERVICE_API_KEY) is required."
        )

    if errors:
        bullets = "\n".join(f"- {message}" for message in errors)
        raise ValueError(f"Invalid configuration:\n{bullets}")


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings(*, validate_required: bool = True) -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    settings = _resolve_path_fields(settings)

    if validate_required:
        _validate_required_configuration(youtube_api_key=settings.youtube_api_key)

    return settings

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".keyword-monitor"
DEFAULT_YOUTUBE_API_BASE_URL = "https://www.googleapis.com/youtube/v3"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("state.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "results_store_enabled",
    "telemetry_enabled",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{KEYWORD_MONITOR_DATA_DIR}}/{relative_path}` when not explicitly set."


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

    Every option is read from `KEYWORD_MONITOR_*` environment variables (or
    `.env`). The YouTube API key also honours the bare `YOUTUBE_API_KEY`
    variable used by older deployments.
    """

    model_config = SettingsConfigDict(
        env_prefix="KEYWORD_MONITOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Core paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the results database and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("state.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('state.db'))}",
    )

    # YouTube Data API.
    youtube_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("KEYWORD_MONITOR_YOUTUBE_API_KEY", "YOUTUBE_API_KEY"),
        description="YouTube Data API v3 key. Requests fail with a configuration error when unset.",
    )
    youtube_api_base_url: str = Field(
        default=DEFAULT_YOUTUBE_API_BASE_URL,
        description="YouTube Data API base URL.",
    )
    youtube_http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-call HTTP timeout for YouTube Data API requests.",
    )

    # Analysis limits.
    max_channels_per_request: int = Field(
        default=10,
        ge=1,
        description="Channel references beyond this count are ignored per request.",
    )
    recent_videos_per_channel: int = Field(
        default=20,
        ge=1,
        le=50,
        description="Recent uploads listed per channel for multi-channel analysis.",
    )
    max_matches_per_channel: int = Field(
        default=3,
        ge=1,
        description="Channel scanning stops once this many matching videos were found.",
    )
    legacy_recent_videos_per_channel: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Recent uploads listed by the single-channel endpoint.",
    )

    # Timestamp heuristics.
    timestamp_lead_in_seconds: int = Field(
        default=3,
        ge=0,
        description="Seconds subtracted from description timestamps so playback starts early.",
    )
    timestamp_short_video_seconds: int = Field(
        default=300,
        ge=0,
        description="Videos up to this length get a single start-of-video hint.",
    )
    timestamp_context_radius: int = Field(
        default=100,
        ge=1,
        description="Characters inspected on each side of a description timestamp.",
    )
    timestamp_max_hints: int = Field(
        default=3,
        ge=1,
        description="Maximum timestamp hints returned per video.",
    )
    timestamp_quartile_fractions: tuple[float, ...] = Field(
        default=(0.25, 0.5, 0.75),
        min_length=1,
        description=(
            "Fractions of a long video's duration used when no description timestamp "
            "mentions the keyword. Set as a JSON list, e.g. `[0.25, 0.5, 0.75]`."
        ),
    )

    # Result store.
    results_store_enabled: bool = Field(
        default=True,
        description="Persist analyzed channels and matched videos to the SQLite store.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for backend log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )
    log_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=0,
        description="Rotate the backend log file after this many bytes (0 disables rotation).",
    )
    log_backup_count: int = Field(
        default=5,
        ge=0,
        description="Rotated backend log files to keep.",
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

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("KEYWORD_MONITOR_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("KEYWORD_MONITOR_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("youtube_api_base_url", mode="before")
    @classmethod
    def _normalize_youtube_api_base_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("KEYWORD_MONITOR_YOUTUBE_API_BASE_URL must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("KEYWORD_MONITOR_YOUTUBE_API_BASE_URL must not be empty.")
        return normalized

    @field_validator("timestamp_quartile_fractions")
    @classmethod
    def _validate_quartile_fractions(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if any(not 0 < fraction < 1 for fraction in value):
            raise ValueError(
                "KEYWORD_MONITOR_TIMESTAMP_QUARTILE_FRACTIONS entries must be between 0 and 1."
            )
        return tuple(sorted(set(value)))

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


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)

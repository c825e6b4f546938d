from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
import structlog
from pydantic import ValidationError

from backend.app.config import AppSettings, load_settings
from backend.app.dependencies import build_analysis_options
from backend.app.logging_config import (
    TELEMETRY_LOG_FILE_NAME,
    _stream_supports_color,  # pyright: ignore[reportPrivateUsage]
    configure_application_logging,
)


def test_load_settings_derives_paths_from_data_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    data_dir = tmp_path / "data"
    monkeypatch.setenv("KEYWORD_MONITOR_DATA_DIR", str(data_dir))

    settings = load_settings()

    assert settings.data_dir == data_dir.resolve()
    assert settings.db_path == (data_dir / "state.db").resolve()
    assert settings.log_dir == (data_dir / "logs").resolve()
    assert settings.youtube_api_key is None


def test_load_settings_parses_limits_and_flags(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("KEYWORD_MONITOR_DB_PATH", str(tmp_path / "custom.db"))
    monkeypatch.setenv("KEYWORD_MONITOR_YOUTUBE_API_KEY", "  key-from-env  ")
    monkeypatch.setenv("KEYWORD_MONITOR_YOUTUBE_API_BASE_URL", " http://127.0.0.1:9/yt/ ")
    monkeypatch.setenv("KEYWORD_MONITOR_MAX_CHANNELS_PER_REQUEST", "4")
    monkeypatch.setenv("KEYWORD_MONITOR_RECENT_VIDEOS_PER_CHANNEL", "15")
    monkeypatch.setenv("KEYWORD_MONITOR_TIMESTAMP_LEAD_IN_SECONDS", "5")
    monkeypatch.setenv("KEYWORD_MONITOR_RESULTS_STORE_ENABLED", "off")
    monkeypatch.setenv("KEYWORD_MONITOR_TELEMETRY_ENABLED", "not-a-bool")
    monkeypatch.setenv("KEYWORD_MONITOR_TELEMETRY_SINK", " LOG ")

    settings = load_settings()

    assert settings.db_path == (tmp_path / "custom.db").resolve()
    assert settings.youtube_api_key == "key-from-env"
    assert settings.youtube_api_base_url == "http://127.0.0.1:9/yt"
    assert settings.max_channels_per_request == 4
    assert settings.recent_videos_per_channel == 15
    assert settings.results_store_enabled is False
    assert settings.telemetry_enabled is True
    assert settings.telemetry_sink == "log"

    options = build_analysis_options(settings)
    assert options.recent_videos_per_channel == 15
    assert options.heuristics.lead_in_seconds == 5


def test_bare_youtube_api_key_variable_is_honoured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("YOUTUBE_API_KEY", "legacy-key")

    assert load_settings().youtube_api_key == "legacy-key"


def test_blank_youtube_api_key_counts_as_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KEYWORD_MONITOR_YOUTUBE_API_KEY", "   ")

    assert load_settings().youtube_api_key is None


def test_load_settings_rejects_unknown_telemetry_sink(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KEYWORD_MONITOR_TELEMETRY_SINK", "otlp")

    with pytest.raises(ValidationError):
        load_settings()


def test_load_settings_rejects_out_of_range_limits(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KEYWORD_MONITOR_RECENT_VIDEOS_PER_CHANNEL", "51")

    with pytest.raises(ValidationError):
        load_settings()


def test_load_settings_reads_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    data_dir = tmp_path / "runtime"
    env_file = tmp_path / ".env"
    env_file.write_text(
        "\n".join(
            [
                "KEYWORD_MONITOR_YOUTUBE_API_KEY=dotenv-key",
                "KEYWORD_MONITOR_MAX_MATCHES_PER_CHANNEL=5",
                f"KEYWORD_MONITOR_DATA_DIR={data_dir}",
            ]
        ),
        encoding="utf-8",
    )

    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("KEYWORD_MONITOR_DATA_DIR", raising=False)

    settings = load_settings()
    assert settings.youtube_api_key == "dotenv-key"
    assert settings.max_matches_per_channel == 5
    assert settings.data_dir == data_dir.resolve()


def test_configure_application_logging_creates_files(tmp_path: Path) -> None:
    settings = AppSettings(
        data_dir=tmp_path,
        db_path=tmp_path / "state.db",
        log_dir=tmp_path / "logs",
        log_level="INFO",
        log_max_bytes=1024 * 1024,
        log_backup_count=2,
    )
    log_file = configure_application_logging(settings)
    logging.getLogger("keyword_monitor.test").info("runtime-log-test")
    structlog.get_logger("keyword_monitor.telemetry").info(
        "telemetry",
        telemetry_event="test.event",
    )

    app_logger = logging.getLogger("keyword_monitor")
    assert len(app_logger.handlers) == 2
    rotating_handlers = [
        handler for handler in app_logger.handlers if isinstance(handler, RotatingFileHandler)
    ]
    assert len(rotating_handlers) == 1
    assert rotating_handlers[0].maxBytes == 1024 * 1024
    assert rotating_handlers[0].backupCount == 2
    assert logging.getLogger("httpx").level == logging.WARNING

    for handler in app_logger.handlers:
        handler.flush()
    telemetry_logger = logging.getLogger("keyword_monitor.telemetry")
    assert telemetry_logger.propagate is False
    for handler in telemetry_logger.handlers:
        handler.flush()

    parsed_events = [
        json.loads(line)
        for line in log_file.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    runtime_event = next(
        event for event in parsed_events if event.get("event") == "runtime-log-test"
    )
    assert runtime_event["logger"] == "keyword_monitor.test"
    assert runtime_event["level"] == "info"
    assert runtime_event["lineno"]
    assert all(event.get("telemetry_event") != "test.event" for event in parsed_events)

    telemetry_lines = (
        (settings.log_dir / TELEMETRY_LOG_FILE_NAME).read_text(encoding="utf-8").splitlines()
    )
    telemetry_events = [json.loads(line) for line in telemetry_lines if line.strip()]
    assert any(event.get("telemetry_event") == "test.event" for event in telemetry_events)


def test_stream_supports_color_detects_tty() -> None:
    class _TTY:
        def isatty(self) -> bool:
            return True

    class _Broken:
        def isatty(self) -> bool:
            raise RuntimeError("boom")

    assert _stream_supports_color(_TTY()) is True
    assert _stream_supports_color(_Broken()) is False
    assert _stream_supports_color(object()) is False


def test_quartile_fractions_are_configurable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KEYWORD_MONITOR_TIMESTAMP_QUARTILE_FRACTIONS", "[0.5, 0.1, 0.9, 0.5]")

    settings = load_settings()

    assert settings.timestamp_quartile_fractions == (0.1, 0.5, 0.9)
    assert build_analysis_options(settings).heuristics.quartile_fractions == (0.1, 0.5, 0.9)


def test_quartile_fractions_default_to_quarters() -> None:
    options = build_analysis_options(load_settings())

    assert options.heuristics.quartile_fractions == (0.25, 0.5, 0.75)


@pytest.mark.parametrize("raw", ["[]", "[0.0, 0.5]", "[0.5, 1.5]"])
def test_quartile_fractions_must_lie_inside_the_video(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv("KEYWORD_MONITOR_TIMESTAMP_QUARTILE_FRACTIONS", raw)

    with pytest.raises(ValidationError):
        load_settings()

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from time import perf_counter
from typing import Any, Literal, Protocol

import structlog

TELEMETRY_LOGGER_NAME = "keyword_monitor.telemetry"

TelemetryValue = bool | int | float | str | None

# Channel and video text can be long and user-authored; keys containing any
# of these fragments are never written to the telemetry log.
_REDACTED_KEY_FRAGMENTS: tuple[str, ...] = (
    "api_key",
    "authorization",
    "credential",
    "description",
    "secret",
    "snippet",
    "token",
)
_REDACTED = "[redacted]"
_MAX_TEXT_LENGTH = 160


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        _ = (event_name, attributes)


class StructuredLogTelemetrySink:
    """Writes each event as one structlog record on the telemetry logger."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(TELEMETRY_LOGGER_NAME)

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **dict(attributes))


@dataclass
class TelemetrySpan:
    """Attributes collected while an operation runs.

    `annotate` values are only reported on the `.finish` event.
    """

    name: str
    context: dict[str, Any]
    outcome: dict[str, Any] = field(default_factory=dict)
    started_at: float = field(default_factory=perf_counter)

    def annotate(self, **attributes: Any) -> None:
        self.outcome.update(attributes)

    def elapsed_ms(self) -> int:
        return int((perf_counter() - self.started_at) * 1000)


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if not self.enabled:
            return
        self.sink.emit(event_name=event_name, attributes=scrub_attributes(attributes))

    @contextmanager
    def span(self, name: str, **context: Any) -> Iterator[TelemetrySpan]:
        """Emit `<name>.start`, then `<name>.finish` or `<name>.error`.

        Exceptions are reported and re-raised unchanged.
        """
        current = TelemetrySpan(name=name, context=dict(context))
        self.emit(f"{name}.start", **current.context)
        try:
            yield current
        except Exception as exc:
            failed = {
                **current.context,
                "duration_ms": current.elapsed_ms(),
                "error_type": type(exc).__name__,
            }
            self.emit(f"{name}.error", **failed)
            raise
        finished = {**current.context, **current.outcome, "duration_ms": current.elapsed_ms()}
        self.emit(f"{name}.finish", **finished)


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if not enabled or sink == "none":
        return TelemetryClient.disabled()
    if sink == "log":
        return TelemetryClient(enabled=True, sink=StructuredLogTelemetrySink())

    logging.getLogger(TELEMETRY_LOGGER_NAME).warning(
        "unsupported telemetry sink requested; disabling telemetry sink=%s",
        sink,
    )
    return TelemetryClient.disabled()


def scrub_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    scrubbed: dict[str, TelemetryValue] = {}
    for raw_key, raw_value in attributes.items():
        key = str(raw_key).strip().lower()
        if not key:
            continue
        if any(fragment in key for fragment in _REDACTED_KEY_FRAGMENTS):
            scrubbed[key] = _REDACTED
        else:
            scrubbed[key] = _flatten(raw_value)
    return scrubbed


def _flatten(value: Any) -> TelemetryValue:
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, Path):
        return value.name
    if isinstance(value, str):
        return _clip(" ".join(value.split()))
    # Collections are reported by size so channel lists never leak into logs.
    if isinstance(value, Mapping | list | tuple | set | frozenset):
        return len(value)
    return type(value).__name__


def _clip(text: str) -> str:
    if len(text) <= _MAX_TEXT_LENGTH:
        return text
    return f"{text[:_MAX_TEXT_LENGTH]}..."

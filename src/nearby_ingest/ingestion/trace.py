"""Per-request ingest trace and provider sample sinks.

``IngestTrace`` wraps a bound structlog logger and keeps the most recent
human-readable lines in memory so the caller can surface a short
summary.  Provider response samples go to a ``SampleSink``; the default
sink discards them.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Protocol

import structlog


class IngestTrace:
    def __init__(self, max_lines: int = 200, **context: Any) -> None:
        self.log = structlog.get_logger().bind(**context)
        self._lines: deque[str] = deque(maxlen=max_lines)

    def event(self, name: str, **fields: Any) -> None:
        """Log a structured event and keep a one-line rendering of it."""
        self.log.info(name, **fields)
        rendered = " ".join(f"{k}={v}" for k, v in fields.items())
        self._lines.append(f"{name} {rendered}".rstrip())

    def warning(self, name: str, **fields: Any) -> None:
        self.log.warning(name, **fields)
        rendered = " ".join(f"{k}={v}" for k, v in fields.items())
        self._lines.append(f"{name} {rendered}".rstrip())

    @property
    def lines(self) -> list[str]:
        return list(self._lines)


class SampleSink(Protocol):
    def record(self, provider: str, sample: Any) -> None: ...


class NullSampleSink:
    def record(self, provider: str, sample: Any) -> None:
        return None


class LoggingSampleSink:
    """Emit the first item of each provider response as a debug log event."""

    def __init__(self) -> None:
        self.log = structlog.get_logger()

    def record(self, provider: str, sample: Any) -> None:
        if sample is None:
            return
        self.log.debug("provider_sample", provider=provider, sample=sample)


def build_sample_sink(enabled: bool) -> SampleSink:
    return LoggingSampleSink() if enabled else NullSampleSink()

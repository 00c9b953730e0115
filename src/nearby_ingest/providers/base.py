"""Provider adapter contract and the shared HTTP plumbing.

An adapter turns a ``BaseQuery`` into a ``ProviderResult`` of validated
``NormalizedPlace`` / ``NormalizedEvent`` items.  Missing credentials and
HTTP failures are reported as a warning on an empty result, never raised.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog
from pydantic import ValidationError

from nearby_ingest.errors import ProviderError
from nearby_ingest.ingestion.schemas import BaseQuery, ProviderResult, SourceType
from nearby_ingest.ingestion.trace import NullSampleSink, SampleSink

logger = structlog.get_logger()


class EventProvider(Protocol):
    name: str
    source: SourceType

    async def search_events(self, query: BaseQuery) -> ProviderResult: ...


class PlaceProvider(Protocol):
    name: str
    source: SourceType

    async def search_places(self, query: BaseQuery) -> ProviderResult: ...


class HttpProvider:
    """Base for adapters backed by a JSON-over-HTTP API."""

    name: str = ""
    label: str = ""
    source: SourceType
    missing_key_warning: str = ""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        sample_sink: SampleSink | None = None,
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.sample_sink = sample_sink or NullSampleSink()

    async def _get_json(
        self, url: str, params: dict[str, Any], headers: dict[str, str] | None = None
    ) -> tuple[dict | None, str | None]:
        """GET ``url`` and return ``(payload, warning)``; exactly one is set."""
        try:
            response = await self.client.get(
                url, params=params, headers={"Accept": "application/json", **(headers or {})}
            )
        except httpx.HTTPError as exc:
            return None, f"{self.label} error: {str(exc) or type(exc).__name__}"
        if not response.is_success:
            return None, f"{self.label} HTTP {response.status_code}"
        try:
            data = response.json()
        except ValueError:
            return None, f"{self.label} error: invalid JSON body"
        if not isinstance(data, dict):
            raise ProviderError(self.name, f"unexpected response type {type(data).__name__}")
        return data, None

    def _parse_all(self, raw_items: list, parse) -> tuple[list, int]:
        """Apply ``parse`` to each raw item, dropping ones that fail validation."""
        items = []
        skipped = 0
        for raw in raw_items:
            try:
                items.append(parse(raw))
            except (ValidationError, KeyError, TypeError, ValueError) as exc:
                skipped += 1
                logger.debug("provider_item_skipped", provider=self.name, error=str(exc))
        if raw_items:
            self.sample_sink.record(self.source.value, raw_items[0])
        return items, skipped

    def _result(self, items: list, skipped: int, total: int | None = None) -> ProviderResult:
        warning = f"{self.label}: skipped {skipped} invalid items" if skipped else None
        return ProviderResult(items=items, total=total if total is not None else len(items), warning=warning)


def as_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def clamp_radius_km(radius_km: float | None, upper: int, default: float = 10) -> int:
    return max(1, min(upper, round(radius_km if radius_km is not None else default)))

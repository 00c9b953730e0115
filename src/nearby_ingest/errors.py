"""Domain exceptions raised by the ingestion pipeline."""

from __future__ import annotations


class IngestError(Exception):
    """Base class for ingestion failures scoped to a single item or provider."""


class PreconditionError(IngestError):
    """A candidate is missing data required to create a canonical record."""

    def __init__(self, message: str, *, source: str, external_id: str) -> None:
        super().__init__(message)
        self.source = source
        self.external_id = external_id


class MissingCoordinatesError(PreconditionError):
    def __init__(self, *, source: str, external_id: str) -> None:
        super().__init__(
            f"Cannot create Place without coordinates for source={source} externalId={external_id}",
            source=source,
            external_id=external_id,
        )


class MissingCityError(PreconditionError):
    def __init__(self, kind: str, *, source: str, external_id: str) -> None:
        super().__init__(
            f"Cannot create {kind} without cityId for source={source} externalId={external_id}",
            source=source,
            external_id=external_id,
        )


class ProviderError(IngestError):
    """A provider adapter failed in a way it could not report as a warning."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider

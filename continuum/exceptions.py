"""Error taxonomy shared by services and webhook commands."""

from __future__ import annotations

from typing import Optional


class ContinuumError(Exception):
    """Base class for engine errors."""


class StoreUnavailable(ContinuumError):
    """A datastore read or write failed."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f"{operation} failed"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)


class AlreadyProcessed(ContinuumError):
    """The provider event id has been ingested before. Not a failure."""

    def __init__(self, provider: Optional[str], provider_event_id: str) -> None:
        self.provider = provider
        self.provider_event_id = provider_event_id
        super().__init__(f"event {provider}:{provider_event_id} already processed")


class GenerationUnavailable(ContinuumError):
    """The text-generation call failed or returned nothing usable."""


class MalformedUpstreamPayload(ContinuumError):
    """An inbound event is missing the fields required to process it."""

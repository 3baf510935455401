"""ThreatClassifier Protocol + the value types it exchanges with the gateway.

The classifier is the collaborator that owns the upstream credentials, the
cache and any local database. The gateway only needs two things from it:

  lookup_urls(urls)  — one batched lookup, result aligned with the input
  status()           — health counters plus the last internal error, if any

One classifier instance is shared by every in-flight request, so
implementations must be safe for concurrent use from the event loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Optional, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel

from sbgateway.protocol import schema


class ThreatDescriptor(NamedTuple):
    """A (threat type, platform type, threat entry type) triple.

    Values are the v4 enum numbers from ``sbgateway.protocol.schema``.
    Hashable, so it can be used directly as a dedup key.
    """

    threat_type: int
    platform_type: int
    threat_entry_type: int

    @classmethod
    def from_names(cls, threat_type: str, platform_type: str, threat_entry_type: str) -> "ThreatDescriptor":
        """Build a descriptor from enum names, e.g. ``("MALWARE", "ANY_PLATFORM", "URL")``.

        Raises:
            ValueError: One of the names is not a known enum value.
        """
        return cls(
            schema.ThreatType.Value(threat_type),
            schema.PlatformType.Value(platform_type),
            schema.ThreatEntryType.Value(threat_entry_type),
        )

    def names(self) -> tuple[str, str, str]:
        return (
            schema.ThreatType.Name(self.threat_type),
            schema.PlatformType.Name(self.platform_type),
            schema.ThreatEntryType.Name(self.threat_entry_type),
        )


@dataclass(frozen=True)
class URLThreat:
    """One classifier hit for a queried URL.

    ``pattern`` is the URL expression that matched, which may differ from the
    queried URL (e.g. a host-suffix match).
    """

    pattern: str
    descriptor: ThreatDescriptor


class Stats(BaseModel):
    """Query counters reported by ``/status``.

    Field names are part of the /status wire format.
    """

    QueriesByDatabase: int = 0
    QueriesByCache: int = 0
    QueriesByAPI: int = 0
    QueriesFail: int = 0


class ClassifierError(Exception):
    """A lookup could not be completed."""


class ClassifierInitError(ClassifierError):
    """The classifier could not be constructed (fatal at startup)."""


# Subscribed lists when the configuration names none.
DEFAULT_THREAT_LISTS: tuple[ThreatDescriptor, ...] = (
    ThreatDescriptor.from_names("MALWARE", "ANY_PLATFORM", "URL"),
    ThreatDescriptor.from_names("SOCIAL_ENGINEERING", "ANY_PLATFORM", "URL"),
    ThreatDescriptor.from_names("UNWANTED_SOFTWARE", "ANY_PLATFORM", "URL"),
)


@runtime_checkable
class ThreatClassifier(Protocol):
    """Pluggable URL classifier interface.

    Implementation: LookupAPIClassifier (classifier/lookup_api.py).
    Selection via create_classifier() (classifier/factory.py).
    """

    async def lookup_urls(self, urls: Sequence[str]) -> list[list[URLThreat]]:
        """Look up ``urls`` in one batch.

        Returns one list per input URL, at the same position. Threats for one
        URL may repeat the same descriptor.

        Raises:
            ClassifierError: The lookup failed as a whole.
        """
        ...

    async def status(self) -> tuple[Stats, Optional[Exception]]:
        """Return a counters snapshot and the last internal error (None if healthy).

        A reported error is data, not a failure of this call.
        """
        ...

    async def close(self) -> None:
        """Release connections and resources. Called during shutdown."""
        ...

"""Cache data models.

``CacheEntry`` is the serialized envelope stored in every backend.
``CacheLookup`` is the result of a read: it replaces "return None on any
failure" with an explicit found/absent value that also carries the
backend error, if one occurred.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import orjson
from pydantic import BaseModel, Field

from dashvault.shared.errors import CacheError


class BackendKind(str, Enum):
    """Which backend served or stored a value."""

    DURABLE = "durable"
    LOCAL = "local"


class CacheEntry(BaseModel):
    """Envelope for a cached value.

    Attributes:
        key: Full persisted key
        value: JSON-serializable document
        stored_at: ISO timestamp of the write
        ttl_seconds: TTL applied at write time
    """

    key: str = Field(..., description="Persisted cache key")
    value: Any = Field(..., description="JSON-serializable cached document")
    stored_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="ISO timestamp when the entry was written",
    )
    ttl_seconds: int = Field(..., gt=0, description="TTL applied at write time")

    def to_bytes(self) -> bytes:
        """Serialize with orjson.

        Raises:
            TypeError: If the value is not JSON-serializable
        """
        return orjson.dumps(self.model_dump())

    @classmethod
    def from_bytes(cls, payload: bytes) -> CacheEntry:
        """Deserialize an entry.

        Raises:
            ValueError: If the payload is not a valid entry
        """
        return cls.model_validate(orjson.loads(payload))


@dataclass(frozen=True)
class CacheLookup:
    """Result of ``CacheStore.get``.

    ``found`` is False both when the key does not exist and when every
    backend failed; ``error`` tells the two apart for diagnostics.
    """

    found: bool
    value: Any = None
    backend: BackendKind | None = None
    error: CacheError | None = None

    @classmethod
    def hit(cls, value: Any, backend: BackendKind) -> CacheLookup:
        return cls(found=True, value=value, backend=backend)

    @classmethod
    def miss(cls, error: CacheError | None = None) -> CacheLookup:
        if error is None:
            return ABSENT
        return cls(found=False, error=error)


ABSENT = CacheLookup(found=False)


@dataclass
class CacheStats:
    """Counters maintained by the cache store."""

    hits: int = 0
    misses: int = 0
    durable_hits: int = 0
    local_hits: int = 0
    sets: int = 0
    fallback_writes: int = 0
    deletes: int = 0
    errors: int = 0
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def hit_rate(self) -> float:
        """Hit rate as a percentage rounded to one decimal."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return round(self.hits / total * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "durable_hits": self.durable_hits,
            "local_hits": self.local_hits,
            "sets": self.sets,
            "fallback_writes": self.fallback_writes,
            "deletes": self.deletes,
            "errors": self.errors,
            "hit_rate": self.hit_rate,
            "started_at": self.started_at,
        }

"""
Base classes and protocols for key store backends.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from ..config.base import StoreBackendType

# Sort-key value stored beside every record; there is one version per key
VERSION_MARKER = "v0"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Record:
    """One key's stored document plus its update metadata."""

    key: str
    value: Any
    updated_at: datetime = field(default_factory=utcnow)
    version: str = VERSION_MARKER

    def to_dict(self) -> dict[str, Any]:
        """Persisted layout: ``(pk, sk, value, updatedAt)``."""
        return {
            "pk": self.key,
            "sk": self.version,
            "value": self.value,
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Record:
        updated_at = data.get("updatedAt")
        if isinstance(updated_at, str):
            parsed = datetime.fromisoformat(updated_at)
        elif isinstance(updated_at, datetime):
            parsed = updated_at
        else:
            parsed = utcnow()
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return cls(
            key=data["pk"],
            value=data.get("value"),
            updated_at=parsed,
            version=data.get("sk", VERSION_MARKER),
        )

    def copy(self) -> Record:
        return Record(
            key=self.key,
            value=copy.deepcopy(self.value),
            updated_at=self.updated_at,
            version=self.version,
        )


@runtime_checkable
class StoreBackend(Protocol):
    """
    Protocol defining the interface for key store backends.

    Backends raise their own exceptions; the KeyStore service maps them to
    StoreUnavailableError.
    """

    name: StoreBackendType
    supports_conditional_insert: bool

    async def ensure_ready(self) -> None:
        """Initialize backend and ensure it's ready for use."""
        ...

    async def close(self) -> None:
        """Clean up and close backend connections."""
        ...

    async def read(self, key: str) -> Record | None:
        """Read a record, or None if absent."""
        ...

    async def write(self, record: Record) -> None:
        """Create or replace a record."""
        ...

    async def insert_if_absent(self, record: Record) -> bool:
        """Write only if the key is absent. Returns False if it already existed."""
        ...

    async def delete(self, key: str) -> None:
        """Remove a record. Absent keys are not an error."""
        ...


class BaseStoreBackend(ABC):
    """
    Abstract base class for store backends.

    Provides no-op lifecycle methods. Backends without an atomic
    insert-if-absent primitive leave ``supports_conditional_insert`` False
    and the service falls back to check-then-write.
    """

    name: StoreBackendType = "memory"
    supports_conditional_insert: bool = False

    async def ensure_ready(self) -> None:
        return None

    async def close(self) -> None:
        return None

    @abstractmethod
    async def read(self, key: str) -> Record | None:
        pass

    @abstractmethod
    async def write(self, record: Record) -> None:
        pass

    async def insert_if_absent(self, record: Record) -> bool:
        raise NotImplementedError(f"{self.__class__.__name__} has no native conditional insert")

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    async def __aenter__(self) -> BaseStoreBackend:
        await self.ensure_ready()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = ["VERSION_MARKER", "Record", "StoreBackend", "BaseStoreBackend", "utcnow"]

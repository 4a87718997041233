"""Durable key/value storage interface."""

from dataclasses import dataclass
from typing import Protocol


class DurableStore(Protocol):
    """String-keyed, string-valued synchronous persistent storage.

    Implementations raise ``StorageUnavailableError`` when the underlying
    storage cannot be read or written.
    """

    def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""

    def set(self, key: str, value: str) -> None:
        """Persist a value under a key."""


@dataclass(frozen=True)
class StoreKeys:
    """Names of the keys the logbook writes."""

    primary: str
    mirror: str
    snapshots: str

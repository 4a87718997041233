"""Outcome types for hydration and saving."""

from dataclasses import dataclass
from enum import Enum

from protein_floor_tracker.domain.state import StateEnvelope


class HydrationPhase(str, Enum):
    """Lifecycle of the persistence guard."""

    UNINITIALIZED = "uninitialized"
    HYDRATING = "hydrating"
    READY = "ready"


class HydrationSource(str, Enum):
    """Where the startup state came from."""

    PRIMARY = "primary"
    MIRROR = "mirror"
    FRESH = "fresh"


class SaveStatus(str, Enum):
    """Result of a save attempt."""

    SAVED = "saved"
    DEFERRED = "deferred"
    REFUSED = "refused"
    STORAGE_ERROR = "storage_error"


@dataclass(frozen=True)
class HydrationResult:
    """State loaded at startup and its provenance."""

    state: StateEnvelope
    source: HydrationSource
    message: str

    @property
    def loaded_from_backup(self) -> bool:
        return self.source is HydrationSource.MIRROR

    @property
    def fresh_start(self) -> bool:
        return self.source is HydrationSource.FRESH


@dataclass(frozen=True)
class SaveOutcome:
    """What happened when a new state was committed."""

    status: SaveStatus
    message: str
    entry_count: int
    snapshot_taken: bool = False

    @property
    def saved(self) -> bool:
        return self.status is SaveStatus.SAVED

"""Hydration and guarded saving of the logbook state."""

import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from protein_floor_tracker.domain.errors import StorageUnavailableError
from protein_floor_tracker.domain.persistence import (
    HydrationPhase,
    HydrationResult,
    HydrationSource,
    SaveOutcome,
    SaveStatus,
)
from protein_floor_tracker.domain.state import StateEnvelope, default_envelope
from protein_floor_tracker.services.codec import decode_state, encode_state
from protein_floor_tracker.services.snapshots import SnapshotLedger
from protein_floor_tracker.services.store import DurableStore, StoreKeys

FRESH_START_MESSAGE = "No saved data found yet (fresh start)."
BACKUP_LOAD_MESSAGE = "Loaded from backup storage (primary missing)."
REFUSED_MESSAGE = (
    "Safety stop: refused to overwrite your saved log with an empty log. "
    "If you intended to wipe, use 'Wipe all data'."
)
SAVE_ERROR_MESSAGE = "Save error: local storage may be full or blocked."
NOT_HYDRATED_MESSAGE = "Saved data is still loading; nothing was written."

_logger = logging.getLogger(__name__)


@dataclass
class SnapshotPolicy:
    """Decides which saves also append a snapshot.

    Every save that changes the entry count is captured; other saves are
    captured on every second call.
    """

    every: int = 2
    _ticks: int = field(default=0, init=False)

    def should_snapshot(self, previous_count: int, next_count: int) -> bool:
        self._ticks += 1
        return next_count != previous_count or self._ticks % self.every == 0


@dataclass
class StatePersistence:
    """Single writer for the logbook state.

    Nothing is written until :meth:`hydrate` has loaded what is already on
    disk, and a save that would drop a non-empty log to zero entries is
    refused unless :meth:`authorize_destructive_save` was called first.
    """

    store: DurableStore
    keys: StoreKeys
    ledger: SnapshotLedger
    snapshot_policy: SnapshotPolicy = field(default_factory=SnapshotPolicy)
    phase: HydrationPhase = field(
        default=HydrationPhase.UNINITIALIZED, init=False
    )
    status_message: str = field(default="", init=False)
    _state: StateEnvelope = field(default_factory=default_envelope, init=False)
    _persisted_entry_count: int = field(default=0, init=False)
    _wipe_authorized: bool = field(default=False, init=False)

    @property
    def state(self) -> StateEnvelope:
        """Current in-memory state."""
        return self._state

    @property
    def is_ready(self) -> bool:
        return self.phase is HydrationPhase.READY

    @property
    def wipe_authorized(self) -> bool:
        return self._wipe_authorized

    @property
    def persisted_entry_count(self) -> int:
        return self._persisted_entry_count

    def hydrate(self) -> HydrationResult:
        """Load state from primary storage, falling back to the mirror."""
        if self.phase is not HydrationPhase.UNINITIALIZED:
            raise RuntimeError("State has already been hydrated")
        self.phase = HydrationPhase.HYDRATING

        loaded = self._read(self.keys.primary)
        source = HydrationSource.PRIMARY
        message = ""
        if loaded is None:
            loaded = self._read(self.keys.mirror)
            source = HydrationSource.MIRROR
            message = BACKUP_LOAD_MESSAGE
        if loaded is None:
            loaded = default_envelope()
            source = HydrationSource.FRESH
            message = FRESH_START_MESSAGE

        self._state = loaded
        self._persisted_entry_count = loaded.entry_count
        self.status_message = message
        self.phase = HydrationPhase.READY
        _logger.info(
            "Hydrated %s entries from %s", loaded.entry_count, source.value
        )
        return HydrationResult(state=loaded, source=source, message=message)

    def authorize_destructive_save(self) -> None:
        """Allow exactly one save that empties a non-empty log."""
        self._wipe_authorized = True

    def commit(
        self, envelope: StateEnvelope, success_message: str = ""
    ) -> SaveOutcome:
        """Install a new in-memory state and try to persist it."""
        self._state = envelope
        if not self.is_ready:
            _logger.warning("Save requested before hydration; skipping write")
            return SaveOutcome(
                status=SaveStatus.DEFERRED,
                message=NOT_HYDRATED_MESSAGE,
                entry_count=envelope.entry_count,
            )

        previous_count = self._persisted_entry_count
        next_count = envelope.entry_count
        if previous_count > 0 and next_count == 0 and not self._wipe_authorized:
            _logger.warning(
                "Refused to replace %s saved entries with an empty log",
                previous_count,
            )
            return self._outcome(SaveStatus.REFUSED, REFUSED_MESSAGE, next_count)
        self._wipe_authorized = False

        stamped = replace(envelope, saved_at=datetime.now(tz=UTC))
        payload = encode_state(stamped)
        try:
            self.store.set(self.keys.primary, payload)
            self.store.set(self.keys.mirror, payload)
        except StorageUnavailableError as exc:
            _logger.warning("Failed to save state: %s", exc)
            return self._outcome(
                SaveStatus.STORAGE_ERROR, SAVE_ERROR_MESSAGE, next_count
            )

        self._state = stamped
        self._persisted_entry_count = next_count
        snapshot_taken = False
        message = success_message
        if self.snapshot_policy.should_snapshot(previous_count, next_count):
            try:
                self.ledger.append(stamped, taken_at=stamped.saved_at)
                snapshot_taken = True
            except Exception as exc:
                # primary and mirror are already written
                _logger.warning("Failed to append snapshot: %s", exc)
                message = "Saved, but the snapshot history could not be updated."
        _logger.debug("Saved %s entries", next_count)
        return self._outcome(SaveStatus.SAVED, message, next_count, snapshot_taken)

    def _outcome(
        self,
        status: SaveStatus,
        message: str,
        entry_count: int,
        snapshot_taken: bool = False,
    ) -> SaveOutcome:
        if message:
            self.status_message = message
        return SaveOutcome(
            status=status,
            message=message,
            entry_count=entry_count,
            snapshot_taken=snapshot_taken,
        )

    def _read(self, key: str) -> StateEnvelope | None:
        try:
            raw = self.store.get(key)
        except StorageUnavailableError as exc:
            _logger.warning("Could not read %s: %s", key, exc)
            return None
        return decode_state(raw)

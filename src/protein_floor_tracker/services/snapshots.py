"""Bounded history of full-state snapshots."""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from protein_floor_tracker.domain.errors import (
    MalformedStateError,
    SnapshotNotFoundError,
)
from protein_floor_tracker.domain.state import SNAPSHOT_KEEP, Snapshot, StateEnvelope
from protein_floor_tracker.services.codec import parse_snapshot, snapshot_to_dict
from protein_floor_tracker.services.store import DurableStore

_logger = logging.getLogger(__name__)


@dataclass
class SnapshotLedger:
    """Newest-first ring of snapshots stored under a single key."""

    store: DurableStore
    key: str
    keep: int = SNAPSHOT_KEEP

    def append(
        self, envelope: StateEnvelope, taken_at: datetime | None = None
    ) -> Snapshot:
        """Prepend a snapshot and evict the oldest beyond the cap."""
        snapshot = Snapshot(taken_at=taken_at or datetime.now(tz=UTC), state=envelope)
        snapshots = [snapshot, *self.list()][: self.keep]
        payload = json.dumps(
            [snapshot_to_dict(item) for item in snapshots], separators=(",", ":")
        )
        self.store.set(self.key, payload)
        _logger.debug("Snapshot appended; ledger holds %s", len(snapshots))
        return snapshot

    def list(self) -> list[Snapshot]:
        """Return stored snapshots, newest first."""
        raw = self.store.get(self.key)
        if raw is None:
            return []
        try:
            items = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            _logger.warning("Snapshot ledger is not valid JSON: %s", exc)
            return []
        if not isinstance(items, list):
            _logger.warning("Snapshot ledger is not a list; ignoring it")
            return []
        snapshots: list[Snapshot] = []
        for position, item in enumerate(items):
            try:
                snapshots.append(parse_snapshot(item))
            except MalformedStateError as exc:
                _logger.warning("Skipping malformed snapshot %s: %s", position, exc)
        return snapshots[: self.keep]

    def restore(self, index: int) -> StateEnvelope:
        """Return the envelope held by the snapshot at ``index``."""
        snapshots = self.list()
        if index < 0 or index >= len(snapshots):
            raise SnapshotNotFoundError(index)
        return snapshots[index].state

"""Error types raised by the persistence layer."""


class PersistenceError(Exception):
    """Base class for recoverable persistence failures."""


class StorageUnavailableError(PersistenceError):
    """The durable store rejected a read or write."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"storage unavailable for {key!r}: {reason}")
        self.key = key
        self.reason = reason


class MalformedStateError(PersistenceError):
    """A stored or imported payload is not a valid state envelope."""


class ImportRejectedError(PersistenceError):
    """A backup file failed validation and was not applied."""

    def __init__(self, cause: str) -> None:
        super().__init__(cause)
        self.cause = cause


class SnapshotNotFoundError(PersistenceError):
    """No snapshot exists at the requested position."""

    def __init__(self, index: int) -> None:
        super().__init__(f"no snapshot at index {index}")
        self.index = index

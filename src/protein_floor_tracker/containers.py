"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from protein_floor_tracker.adapters.fdc_client import HttpxFdcClient
from protein_floor_tracker.adapters.file_store import FileStore
from protein_floor_tracker.adapters.off_client import HttpxOpenFoodFactsClient
from protein_floor_tracker.config import Settings
from protein_floor_tracker.services.cache import InMemoryCache
from protein_floor_tracker.services.logbook import LogbookService
from protein_floor_tracker.services.nutrition import NutritionLookupService
from protein_floor_tracker.services.persistence import StatePersistence
from protein_floor_tracker.services.snapshots import SnapshotLedger
from protein_floor_tracker.services.store import DurableStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: DurableStore
    persistence: StatePersistence
    ledger: SnapshotLedger
    logbook: LogbookService
    nutrition_service: NutritionLookupService
    close_resources: Callable[[], Awaitable[None]]


def build_persistence(
    settings: Settings, store: DurableStore
) -> tuple[StatePersistence, SnapshotLedger]:
    """Create the guard and snapshot ledger over a store."""
    keys = settings.store_keys()
    ledger = SnapshotLedger(
        store=store, key=keys.snapshots, keep=settings.snapshot_keep
    )
    persistence = StatePersistence(store=store, keys=keys, ledger=ledger)
    return persistence, ledger


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    store = FileStore(resolved_settings.data_dir)
    persistence, ledger = build_persistence(resolved_settings, store)
    off_client = HttpxOpenFoodFactsClient.create(
        base_url=resolved_settings.off_base_url,
        timeout=resolved_settings.lookup_timeout_seconds,
    )
    fdc_client = HttpxFdcClient.create(
        base_url=resolved_settings.fdc_base_url,
        timeout=resolved_settings.lookup_timeout_seconds,
    )
    nutrition_service = NutritionLookupService(
        off_client=off_client,
        fdc_client=fdc_client,
        cache=InMemoryCache(),
    )

    async def close_resources() -> None:
        await off_client.close()
        await fdc_client.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        persistence=persistence,
        ledger=ledger,
        logbook=LogbookService(persistence=persistence, ledger=ledger),
        nutrition_service=nutrition_service,
        close_resources=close_resources,
    )

"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

import pytest

from protein_floor_tracker.adapters.fdc_client import FdcClient
from protein_floor_tracker.adapters.off_client import OpenFoodFactsClient
from protein_floor_tracker.config import Settings
from protein_floor_tracker.containers import AppContainer, build_persistence
from protein_floor_tracker.domain.errors import StorageUnavailableError
from protein_floor_tracker.domain.state import LogEntry, Macro, MealTag
from protein_floor_tracker.services.cache import InMemoryCache
from protein_floor_tracker.services.logbook import LogbookService
from protein_floor_tracker.services.nutrition import NutritionLookupService
from protein_floor_tracker.services.persistence import StatePersistence
from protein_floor_tracker.services.snapshots import SnapshotLedger
from protein_floor_tracker.services.store import DurableStore, StoreKeys

KEYS = StoreKeys(primary="primary", mirror="mirror", snapshots="snapshots")


@dataclass
class InMemoryStore(DurableStore):
    """In-memory durable store that records writes and can simulate failures."""

    values: dict[str, str] = field(default_factory=dict)
    writes: list[str] = field(default_factory=list)
    failing_keys: set[str] = field(default_factory=set)
    unreadable_keys: set[str] = field(default_factory=set)

    def get(self, key: str) -> str | None:
        if key in self.unreadable_keys:
            raise StorageUnavailableError(key, "read blocked")
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        if key in self.failing_keys:
            raise StorageUnavailableError(key, "quota exceeded")
        self.writes.append(key)
        self.values[key] = value


@dataclass
class FakeOffClient(OpenFoodFactsClient):
    """Fake Open Food Facts client with canned payloads."""

    product_payload: dict[str, object] = field(
        default_factory=lambda: {
            "product": {
                "code": "0123456789012",
                "product_name": "Protein Shake",
                "serving_size": "1 bottle (340 ml)",
                "nutriments": {
                    "energy-kcal_serving": 150,
                    "proteins_serving": 30,
                    "carbohydrates_serving": 5,
                    "fat_serving": 2.5,
                },
            }
        }
    )
    search_payload: dict[str, object] = field(
        default_factory=lambda: {
            "products": [
                {
                    "code": "111",
                    "product_name": "Skyr",
                    "nutriments": {
                        "proteins_value": 11,
                        "energy-kcal_value": 63,
                    },
                }
            ]
        }
    )
    product_calls: int = 0
    search_calls: int = 0

    async def get_product(self, barcode: str) -> dict[str, object]:
        self.product_calls += 1
        return self.product_payload

    async def search(self, query: str, page_size: int = 12) -> dict[str, object]:
        self.search_calls += 1
        return self.search_payload


@dataclass
class FakeFdcClient(FdcClient):
    """Fake FDC client returning one food."""

    payload: dict[str, object] = field(
        default_factory=lambda: {
            "foods": [
                {
                    "fdcId": 171077,
                    "description": "Chicken, broilers or fryers, breast",
                    "foodNutrients": [
                        {"nutrientName": "Protein", "value": 31.0},
                        {"nutrientName": "Total lipid (fat)", "value": 3.6},
                        {
                            "nutrientName": "Carbohydrate, by difference",
                            "value": 0,
                        },
                        {"nutrientName": "Energy", "value": 165},
                    ],
                }
            ]
        }
    )
    keys_used: list[str] = field(default_factory=list)

    async def search_foods(
        self, query: str, api_key: str, page_size: int = 10
    ) -> dict[str, object]:
        self.keys_used.append(api_key)
        return self.payload


def make_entry(  # noqa: PLR0913
    entry_id: str,
    protein: float = 10,
    quantity: float = 1,
    created_at: datetime | None = None,
    calories: float = 100,
    name: str = "Food",
) -> LogEntry:
    return LogEntry(
        id=entry_id,
        created_at=created_at or datetime(2026, 10, 14, 12, 0, tzinfo=UTC),
        name=name,
        source="Custom",
        serving_size_label="1 serving",
        quantity=quantity,
        macros=Macro(calories=calories, protein=protein, carbs=5, fat=2),
        meal_tag=MealTag.LUNCH,
    )


def make_persistence(store: InMemoryStore) -> StatePersistence:
    ledger = SnapshotLedger(store=store, key=KEYS.snapshots)
    return StatePersistence(store=store, keys=KEYS, ledger=ledger)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def persistence(store: InMemoryStore) -> StatePersistence:
    return make_persistence(store)


@pytest.fixture
def logbook(persistence: StatePersistence) -> LogbookService:
    persistence.hydrate()
    return LogbookService(persistence=persistence, ledger=persistence.ledger)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(data_dir=tmp_path / "data")


@pytest.fixture
def container(settings: Settings, store: InMemoryStore) -> AppContainer:
    persistence, ledger = build_persistence(settings, store)
    nutrition_service = NutritionLookupService(
        off_client=FakeOffClient(),
        fdc_client=FakeFdcClient(),
        cache=InMemoryCache(),
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        store=store,
        persistence=persistence,
        ledger=ledger,
        logbook=LogbookService(persistence=persistence, ledger=ledger),
        nutrition_service=nutrition_service,
        close_resources=close_resources,
    )

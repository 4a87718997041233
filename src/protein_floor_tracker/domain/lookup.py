"""Nutrition lookup domain models."""

from dataclasses import dataclass

from protein_floor_tracker.domain.state import Macro

OPEN_FOOD_FACTS = "Open Food Facts"
USDA_FDC = "USDA FDC"


@dataclass(frozen=True)
class FoodLookupResult:
    """A catalog food that can be logged as an entry."""

    id: str
    name: str
    serving_size_label: str
    macros_per_serving: Macro
    source: str
    barcode: str | None = None

"""Domain models for the persisted logbook state."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

SCHEMA_VERSION = 4
DEFAULT_PROTEIN_FLOOR_G = 90.0
SNAPSHOT_KEEP = 12


def safe_number(value: object) -> float:
    """Coerce arbitrary input to a finite float, falling back to 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


class MealTag(str, Enum):
    """Meal a logged entry belongs to."""

    BREAKFAST = "Breakfast"
    LUNCH = "Lunch"
    DINNER = "Dinner"
    SNACK = "Snack"


@dataclass(frozen=True)
class Macro:
    """Calories and macronutrients for one unit of food."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    @classmethod
    def coerce(
        cls,
        calories: object = 0,
        protein: object = 0,
        carbs: object = 0,
        fat: object = 0,
    ) -> "Macro":
        """Build a macro record from loose input; bad values become 0."""
        return cls(
            calories=max(safe_number(calories), 0.0),
            protein=max(safe_number(protein), 0.0),
            carbs=max(safe_number(carbs), 0.0),
            fat=max(safe_number(fat), 0.0),
        )

    def scaled(self, factor: float) -> "Macro":
        """Return the macros multiplied by a quantity."""
        return Macro(
            calories=self.calories * factor,
            protein=self.protein * factor,
            carbs=self.carbs * factor,
            fat=self.fat * factor,
        )

    def __add__(self, other: "Macro") -> "Macro":
        return Macro(
            calories=self.calories + other.calories,
            protein=self.protein + other.protein,
            carbs=self.carbs + other.carbs,
            fat=self.fat + other.fat,
        )


@dataclass(frozen=True)
class LogEntry:
    """One logged consumption event."""

    id: str
    created_at: datetime
    name: str
    source: str
    serving_size_label: str
    quantity: float
    macros: Macro
    meal_tag: MealTag = MealTag.SNACK

    def totals(self) -> Macro:
        """Macros for the logged quantity."""
        return self.macros.scaled(self.quantity)


@dataclass(frozen=True)
class QuickAddTemplate:
    """Reusable food the user can log with one tap."""

    name: str
    serving_size_label: str
    macros_per_serving: Macro


DEFAULT_QUICK_ADDS: tuple[QuickAddTemplate, ...] = (
    QuickAddTemplate(
        name="Core Power Strawberry (42g protein)",
        serving_size_label="1 bottle",
        macros_per_serving=Macro(calories=0, protein=42, carbs=8, fat=0),
    ),
    QuickAddTemplate(
        name="Egg",
        serving_size_label="1 large",
        macros_per_serving=Macro(calories=70, protein=6, carbs=0.4, fat=5),
    ),
    QuickAddTemplate(
        name="Greek yogurt (plain)",
        serving_size_label="170g",
        macros_per_serving=Macro(calories=100, protein=17, carbs=6, fat=0),
    ),
    QuickAddTemplate(
        name="Chicken breast",
        serving_size_label="100g",
        macros_per_serving=Macro(calories=165, protein=31, carbs=0, fat=3.6),
    ),
)


@dataclass(frozen=True)
class StateEnvelope:
    """Everything that is written to or read from durable storage."""

    schema_version: int = SCHEMA_VERSION
    saved_at: datetime | None = None
    protein_floor_g: float = DEFAULT_PROTEIN_FLOOR_G
    external_api_key: str | None = None
    entries: list[LogEntry] = field(default_factory=list)
    road_trip_mode: bool = False
    quick_add_templates: list[QuickAddTemplate] = field(
        default_factory=lambda: list(DEFAULT_QUICK_ADDS)
    )

    @property
    def entry_count(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class Snapshot:
    """Historical full-state copy kept for manual rollback."""

    taken_at: datetime
    state: StateEnvelope


def default_envelope() -> StateEnvelope:
    """Return the envelope used for a fresh start or a wipe."""
    return StateEnvelope()

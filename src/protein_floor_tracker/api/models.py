"""Pydantic request models for the HTTP API."""

from pydantic import BaseModel, Field

from protein_floor_tracker.domain.state import Macro, MealTag


class MacroPayload(BaseModel):
    """Calories and macros for one serving."""

    calories: float = Field(default=0, ge=0)
    protein: float = Field(default=0, ge=0)
    carbs: float = Field(default=0, ge=0)
    fat: float = Field(default=0, ge=0)

    def to_macro(self) -> Macro:
        return Macro.coerce(
            calories=self.calories,
            protein=self.protein,
            carbs=self.carbs,
            fat=self.fat,
        )


class EntryCreate(BaseModel):
    """Entry to log, usually taken from a lookup result."""

    name: str = Field(min_length=1)
    source: str = "Custom"
    serving_size_label: str = "1 serving"
    macros: MacroPayload = Field(default_factory=MacroPayload)
    quantity: float = Field(default=1, gt=0)
    meal_tag: MealTag = MealTag.SNACK


class CustomFoodCreate(BaseModel):
    """Hand-entered food to log."""

    name: str
    serving_size_label: str = "1 serving"
    macros: MacroPayload = Field(default_factory=MacroPayload)
    quantity: float = Field(default=1, gt=0)
    meal_tag: MealTag = MealTag.SNACK
    save_as_template: bool = True


class QuantityUpdate(BaseModel):
    """New quantity for an entry."""

    quantity: float = Field(gt=0)


class TemplatePayload(BaseModel):
    """Quick-add template fields."""

    name: str
    serving_size_label: str = "1 serving"
    macros: MacroPayload = Field(default_factory=MacroPayload)


class QuickAddLog(BaseModel):
    """Meal tag for a quick-add log action."""

    meal_tag: MealTag = MealTag.SNACK


class LookupLog(BaseModel):
    """How much of a looked-up food to log."""

    quantity: float = Field(default=1, gt=0)
    meal_tag: MealTag = MealTag.SNACK


class SettingsUpdate(BaseModel):
    """Settings to change; omitted fields are left alone."""

    protein_floor_g: float | None = Field(default=None, ge=0)
    external_api_key: str | None = None
    road_trip_mode: bool | None = None

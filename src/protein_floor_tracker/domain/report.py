"""Domain models for the weekly report."""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class DayTotals:
    """Rounded macro totals for one calendar day."""

    day: date
    calories: float
    protein: float
    carbs: float
    fat: float


@dataclass(frozen=True)
class WeeklyReport:
    """Monday-start week summary."""

    start: date
    end: date
    days: list[DayTotals]
    totals: DayTotals
    averages: DayTotals
    entry_count: int

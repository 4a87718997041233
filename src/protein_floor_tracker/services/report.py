"""Weekly macro report and CSV export."""

import csv
import io
from collections.abc import Iterable
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from protein_floor_tracker.domain.report import DayTotals, WeeklyReport
from protein_floor_tracker.domain.state import LogEntry, Macro

DAYS_PER_WEEK = 7
CSV_HEADER = ("date", "calories", "protein", "carbs", "fat")


def round1(value: float) -> float:
    """Round half-up to one decimal place."""
    return float(Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def start_of_week(day: date) -> date:
    """Return the Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def entry_day(entry: LogEntry, timezone_name: str = "UTC") -> date:
    """Calendar day an entry was logged on, in the given timezone."""
    return entry.created_at.astimezone(ZoneInfo(timezone_name)).date()


def build_weekly_report(
    entries: Iterable[LogEntry], today: date, timezone_name: str = "UTC"
) -> WeeklyReport:
    """Aggregate entries into seven daily rows for the week containing ``today``."""
    start = start_of_week(today)
    end = start + timedelta(days=DAYS_PER_WEEK)
    by_day: dict[date, Macro] = {
        start + timedelta(days=offset): Macro() for offset in range(DAYS_PER_WEEK)
    }
    entry_count = 0
    for entry in entries:
        day = entry_day(entry, timezone_name)
        if day not in by_day:
            continue
        by_day[day] = by_day[day] + entry.totals()
        entry_count += 1

    days = [_rounded(day, macro) for day, macro in sorted(by_day.items())]
    summed = Macro()
    for row in days:
        summed = summed + Macro(
            calories=row.calories, protein=row.protein, carbs=row.carbs, fat=row.fat
        )
    return WeeklyReport(
        start=start,
        end=end,
        days=days,
        totals=_rounded(start, summed),
        averages=_rounded(start, summed.scaled(1 / DAYS_PER_WEEK)),
        entry_count=entry_count,
    )


def report_to_csv(report: WeeklyReport) -> str:
    """Render the daily rows as CSV with a header line."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in report.days:
        writer.writerow(
            [
                row.day.isoformat(),
                f"{row.calories:.1f}",
                f"{row.protein:.1f}",
                f"{row.carbs:.1f}",
                f"{row.fat:.1f}",
            ]
        )
    return buffer.getvalue()


def report_filename(report: WeeklyReport) -> str:
    """Return the download filename for a weekly CSV."""
    return f"weekly_report_{report.start.isoformat()}.csv"


def _rounded(day: date, macro: Macro) -> DayTotals:
    return DayTotals(
        day=day,
        calories=round1(macro.calories),
        protein=round1(macro.protein),
        carbs=round1(macro.carbs),
        fat=round1(macro.fat),
    )

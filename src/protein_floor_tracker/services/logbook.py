"""User-facing logbook operations.

Every operation builds the next state envelope and hands it to
:class:`StatePersistence`, which is the only component that writes.
"""

import secrets
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime

from protein_floor_tracker.domain.lookup import FoodLookupResult
from protein_floor_tracker.domain.persistence import SaveOutcome
from protein_floor_tracker.domain.state import (
    LogEntry,
    Macro,
    MealTag,
    QuickAddTemplate,
    Snapshot,
    StateEnvelope,
    default_envelope,
    safe_number,
)
from protein_floor_tracker.services.backup import import_backup
from protein_floor_tracker.services.persistence import StatePersistence
from protein_floor_tracker.services.report import round1
from protein_floor_tracker.services.snapshots import SnapshotLedger

QUICK_ADD_SOURCE = "Quick Add"
CUSTOM_SOURCE = "Custom"
DEFAULT_SERVING_LABEL = "1 serving"


@dataclass(frozen=True)
class TodaySummary:
    """Entries logged today and progress toward the protein floor."""

    day: date
    entries: list[LogEntry]
    protein_g: float
    protein_floor_g: float
    floor_progress: float


@dataclass
class LogbookService:
    """Application service for logging food and managing saved data."""

    persistence: StatePersistence
    ledger: SnapshotLedger

    @property
    def state(self) -> StateEnvelope:
        return self.persistence.state

    def add_entry(  # noqa: PLR0913
        self,
        name: str,
        source: str,
        serving_size_label: str,
        macros: Macro,
        quantity: object = 1,
        meal_tag: MealTag = MealTag.SNACK,
    ) -> SaveOutcome:
        """Log a new entry at the top of the list."""
        entry = LogEntry(
            id=f"{source}:{secrets.token_hex(5)}",
            created_at=datetime.now(tz=UTC),
            name=name,
            source=source,
            serving_size_label=serving_size_label,
            quantity=_initial_quantity(quantity),
            macros=macros,
            meal_tag=meal_tag,
        )
        return self._commit(
            replace(self.state, entries=[entry, *self.state.entries]), "Added."
        )

    def log_lookup_result(
        self,
        food: FoodLookupResult,
        quantity: object = 1,
        meal_tag: MealTag = MealTag.SNACK,
    ) -> SaveOutcome:
        """Log a food returned by a nutrition lookup."""
        return self.add_entry(
            name=food.name,
            source=food.source,
            serving_size_label=food.serving_size_label,
            macros=food.macros_per_serving,
            quantity=quantity,
            meal_tag=meal_tag,
        )

    def quick_add(self, index: int, meal_tag: MealTag = MealTag.SNACK) -> SaveOutcome:
        """Log one serving of the quick-add template at ``index``."""
        template = self._template_at(index)
        return self.add_entry(
            name=template.name,
            source=QUICK_ADD_SOURCE,
            serving_size_label=template.serving_size_label,
            macros=template.macros_per_serving,
            quantity=1,
            meal_tag=meal_tag,
        )

    def add_custom_food(  # noqa: PLR0913
        self,
        name: str,
        serving_size_label: str,
        macros: Macro,
        quantity: object = 1,
        meal_tag: MealTag = MealTag.SNACK,
        save_as_template: bool = True,
    ) -> SaveOutcome:
        """Log a hand-entered food and optionally remember it as a quick add."""
        clean_name = name.strip()
        if not clean_name:
            raise ValueError("Custom food needs a name.")
        serving = serving_size_label.strip() or DEFAULT_SERVING_LABEL
        entry = LogEntry(
            id=f"{CUSTOM_SOURCE}:{secrets.token_hex(5)}",
            created_at=datetime.now(tz=UTC),
            name=clean_name,
            source=CUSTOM_SOURCE,
            serving_size_label=serving,
            quantity=_initial_quantity(quantity),
            macros=macros,
            meal_tag=meal_tag,
        )
        templates = self.state.quick_add_templates
        if save_as_template and not _has_template(templates, clean_name):
            templates = [
                QuickAddTemplate(
                    name=clean_name,
                    serving_size_label=serving,
                    macros_per_serving=macros,
                ),
                *templates,
            ]
        return self._commit(
            replace(
                self.state,
                entries=[entry, *self.state.entries],
                quick_add_templates=templates,
            ),
            "Added.",
        )

    def delete_entry(self, entry_id: str) -> SaveOutcome:
        """Remove an entry by id."""
        self._entry_index(entry_id)
        entries = [entry for entry in self.state.entries if entry.id != entry_id]
        return self._commit(replace(self.state, entries=entries), "Entry deleted.")

    def update_quantity(self, entry_id: str, quantity: float) -> SaveOutcome:
        """Change the quantity of a logged entry."""
        value = safe_number(quantity)
        if value <= 0:
            raise ValueError("Quantity must be greater than zero.")
        position = self._entry_index(entry_id)
        entries = list(self.state.entries)
        entries[position] = replace(entries[position], quantity=value)
        return self._commit(replace(self.state, entries=entries), "Quantity updated.")

    def save_template(
        self,
        name: str,
        serving_size_label: str,
        macros: Macro,
        edit_index: int | None = None,
    ) -> SaveOutcome:
        """Create a quick-add template, or replace the one at ``edit_index``."""
        clean_name = name.strip()
        if not clean_name:
            raise ValueError("Quick Add needs a name.")
        template = QuickAddTemplate(
            name=clean_name,
            serving_size_label=serving_size_label.strip() or DEFAULT_SERVING_LABEL,
            macros_per_serving=macros,
        )
        templates = list(self.state.quick_add_templates)
        if edit_index is None:
            if _has_template(templates, clean_name):
                raise ValueError(
                    "That Quick Add already exists (same name). Edit it instead."
                )
            templates.insert(0, template)
            message = "Quick Add added."
        else:
            self._template_at(edit_index)
            templates[edit_index] = template
            message = "Quick Add updated."
        return self._commit(
            replace(self.state, quick_add_templates=templates), message
        )

    def delete_template(self, index: int) -> SaveOutcome:
        """Remove the quick-add template at ``index``."""
        self._template_at(index)
        templates = [
            template
            for position, template in enumerate(self.state.quick_add_templates)
            if position != index
        ]
        return self._commit(
            replace(self.state, quick_add_templates=templates), "Quick Add deleted."
        )

    def set_protein_floor(self, grams: float) -> SaveOutcome:
        """Update the daily protein floor."""
        value = safe_number(grams)
        if value < 0:
            raise ValueError("Protein floor cannot be negative.")
        return self._commit(replace(self.state, protein_floor_g=value))

    def set_external_api_key(self, api_key: str | None) -> SaveOutcome:
        """Store the USDA API key, clearing it when blank."""
        cleaned = (api_key or "").strip() or None
        return self._commit(replace(self.state, external_api_key=cleaned))

    def set_road_trip_mode(self, enabled: bool) -> SaveOutcome:
        """Toggle road trip mode."""
        return self._commit(replace(self.state, road_trip_mode=enabled))

    def wipe_all(self) -> SaveOutcome:
        """Reset everything to defaults; this is an authorized destructive save."""
        self.persistence.authorize_destructive_save()
        return self._commit(default_envelope(), "All data wiped (fresh start).")

    def list_snapshots(self) -> list[Snapshot]:
        """Return snapshot history, newest first."""
        return self.ledger.list()

    def restore_snapshot(self, index: int) -> SaveOutcome:
        """Replace the current state with a snapshot chosen by the user."""
        restored = self.ledger.restore(index)
        baseline = max(self.state.entry_count, self.persistence.persisted_entry_count)
        if restored.entry_count < baseline:
            self.persistence.authorize_destructive_save()
        return self._commit(restored, "Snapshot restored.")

    def import_backup(self, data: bytes | str, authorize: bool = False) -> SaveOutcome:
        """Install a backup file as the new state.

        Raises ``ImportRejectedError`` before touching any state when the file
        is invalid. Importing an empty log over a non-empty one is refused
        unless ``authorize`` is set.
        """
        imported = import_backup(data)
        if authorize:
            self.persistence.authorize_destructive_save()
        return self._commit(imported, "Import complete.")

    def today_summary(self, today: date | None = None) -> TodaySummary:
        """Summarize today's entries against the protein floor."""
        day = today or datetime.now(tz=UTC).date()
        entries = [
            entry
            for entry in self.state.entries
            if entry.created_at.astimezone(UTC).date() == day
        ]
        protein = round1(sum(entry.totals().protein for entry in entries))
        floor = self.state.protein_floor_g
        progress = 0.0 if floor <= 0 else min(1.0, protein / floor)
        return TodaySummary(
            day=day,
            entries=entries,
            protein_g=protein,
            protein_floor_g=floor,
            floor_progress=progress,
        )

    def _commit(self, envelope: StateEnvelope, message: str = "") -> SaveOutcome:
        return self.persistence.commit(envelope, success_message=message)

    def _entry_index(self, entry_id: str) -> int:
        for position, entry in enumerate(self.state.entries):
            if entry.id == entry_id:
                return position
        raise KeyError(entry_id)

    def _template_at(self, index: int) -> QuickAddTemplate:
        templates = self.state.quick_add_templates
        if index < 0 or index >= len(templates):
            raise IndexError(f"No quick add at index {index}")
        return templates[index]


def _has_template(templates: list[QuickAddTemplate], name: str) -> bool:
    lowered = name.lower()
    return any(template.name.lower() == lowered for template in templates)


def _initial_quantity(value: object) -> float:
    quantity = safe_number(value)
    return quantity if quantity > 0 else 1.0

"""Tests for logbook operations."""

from datetime import UTC, datetime, timedelta

import pytest

from protein_floor_tracker.domain.errors import ImportRejectedError
from protein_floor_tracker.domain.lookup import FoodLookupResult
from protein_floor_tracker.domain.persistence import HydrationSource, SaveStatus
from protein_floor_tracker.domain.state import (
    DEFAULT_QUICK_ADDS,
    Macro,
    MealTag,
    StateEnvelope,
)
from protein_floor_tracker.services.backup import export_backup
from protein_floor_tracker.services.codec import decode_state
from protein_floor_tracker.services.logbook import LogbookService
from tests.conftest import KEYS, InMemoryStore, make_entry, make_persistence


def _stored(store: InMemoryStore) -> StateEnvelope:
    state = decode_state(store.values[KEYS.primary])
    assert state is not None
    return state


def test_log_three_entries_then_authorized_wipe_survives_reload(
    store: InMemoryStore, logbook: LogbookService
) -> None:
    for protein in (42, 6, 17):
        outcome = logbook.add_entry(
            name=f"{protein}g food",
            source="Custom",
            serving_size_label="1 serving",
            macros=Macro.coerce(protein=protein),
        )
        assert outcome.status is SaveStatus.SAVED

    stored = _stored(store)
    assert stored.entry_count == 3
    assert sum(entry.totals().protein for entry in stored.entries) == 65.0

    wiped = logbook.wipe_all()

    assert wiped.status is SaveStatus.SAVED
    assert wiped.message == "All data wiped (fresh start)."

    reloaded = make_persistence(store)
    result = reloaded.hydrate()

    assert result.source is HydrationSource.PRIMARY
    assert result.state.entries == []
    assert result.state.quick_add_templates == list(DEFAULT_QUICK_ADDS)


def test_entries_are_newest_first(logbook: LogbookService) -> None:
    logbook.add_entry("First", "Custom", "1 serving", Macro())
    logbook.add_entry("Second", "Custom", "1 serving", Macro())

    assert [entry.name for entry in logbook.state.entries] == ["Second", "First"]
    assert logbook.state.entries[0].id.startswith("Custom:")


def test_invalid_quantity_on_create_defaults_to_one(logbook: LogbookService) -> None:
    logbook.add_entry("Egg", "Custom", "1 large", Macro(), quantity="abc")

    assert logbook.state.entries[0].quantity == 1


def test_deleting_last_entry_is_refused(
    store: InMemoryStore, logbook: LogbookService
) -> None:
    logbook.add_entry("Egg", "Custom", "1 large", Macro(protein=6))
    entry_id = logbook.state.entries[0].id

    outcome = logbook.delete_entry(entry_id)

    assert outcome.status is SaveStatus.REFUSED
    assert logbook.state.entries == []
    assert _stored(store).entry_count == 1


def test_update_quantity(store: InMemoryStore, logbook: LogbookService) -> None:
    logbook.add_entry("Egg", "Custom", "1 large", Macro(protein=6))
    entry_id = logbook.state.entries[0].id

    logbook.update_quantity(entry_id, 3)

    assert _stored(store).entries[0].totals().protein == 18
    with pytest.raises(ValueError):
        logbook.update_quantity(entry_id, 0)
    with pytest.raises(KeyError):
        logbook.update_quantity("missing", 2)


def test_quick_add_logs_template(logbook: LogbookService) -> None:
    logbook.quick_add(0, MealTag.BREAKFAST)

    entry = logbook.state.entries[0]
    assert entry.name == DEFAULT_QUICK_ADDS[0].name
    assert entry.source == "Quick Add"
    assert entry.meal_tag is MealTag.BREAKFAST
    with pytest.raises(IndexError):
        logbook.quick_add(99)


def test_custom_food_adds_template_once(logbook: LogbookService) -> None:
    macros = Macro(calories=200, protein=20)
    logbook.add_custom_food("Protein Bar", "1 bar", macros)
    logbook.add_custom_food("protein bar", "1 bar", macros)

    names = [template.name.lower() for template in logbook.state.quick_add_templates]
    assert names.count("protein bar") == 1
    assert logbook.state.entry_count == 2
    with pytest.raises(ValueError):
        logbook.add_custom_food("  ", "1 bar", macros)


def test_templates_are_soft_unique(logbook: LogbookService) -> None:
    outcome = logbook.save_template("Cottage cheese", "", Macro(protein=25))

    assert outcome.message == "Quick Add added."
    assert logbook.state.quick_add_templates[0].serving_size_label == "1 serving"
    with pytest.raises(ValueError):
        logbook.save_template("EGG", "1 large", Macro())

    logbook.save_template("Cottage cheese", "200g", Macro(protein=25), edit_index=0)
    assert logbook.state.quick_add_templates[0].serving_size_label == "200g"

    logbook.delete_template(0)
    assert len(logbook.state.quick_add_templates) == len(DEFAULT_QUICK_ADDS)


def test_settings_are_saved(store: InMemoryStore, logbook: LogbookService) -> None:
    logbook.set_protein_floor(120)
    logbook.set_external_api_key("  key  ")
    logbook.set_road_trip_mode(True)

    stored = _stored(store)
    assert stored.protein_floor_g == 120
    assert stored.external_api_key == "key"
    assert stored.road_trip_mode is True

    logbook.set_external_api_key("")
    assert _stored(store).external_api_key is None
    with pytest.raises(ValueError):
        logbook.set_protein_floor(-1)


def test_restore_smaller_snapshot_is_authorized(
    store: InMemoryStore, logbook: LogbookService
) -> None:
    logbook.add_entry("Egg", "Custom", "1 large", Macro())
    logbook.add_entry("Toast", "Custom", "1 slice", Macro())
    snapshots = logbook.list_snapshots()
    assert snapshots[0].state.entry_count == 2
    assert snapshots[1].state.entry_count == 1

    outcome = logbook.restore_snapshot(1)

    assert outcome.status is SaveStatus.SAVED
    assert _stored(store).entry_count == 1
    assert logbook.persistence.wipe_authorized is False


def test_restore_empty_snapshot_over_entries(logbook: LogbookService) -> None:
    logbook.set_protein_floor(100)
    logbook.set_protein_floor(110)
    logbook.add_entry("Egg", "Custom", "1 large", Macro())
    empty_index = next(
        index
        for index, snapshot in enumerate(logbook.list_snapshots())
        if snapshot.state.entry_count == 0
    )

    outcome = logbook.restore_snapshot(empty_index)

    assert outcome.status is SaveStatus.SAVED
    assert logbook.state.entries == []


def test_import_goes_through_anti_wipe(
    store: InMemoryStore, logbook: LogbookService
) -> None:
    logbook.add_entry("Egg", "Custom", "1 large", Macro())
    empty_backup = export_backup(StateEnvelope())

    refused = logbook.import_backup(empty_backup)
    assert refused.status is SaveStatus.REFUSED
    assert _stored(store).entry_count == 1

    allowed = logbook.import_backup(empty_backup, authorize=True)
    assert allowed.status is SaveStatus.SAVED
    assert _stored(store).entry_count == 0


def test_rejected_import_leaves_state_untouched(logbook: LogbookService) -> None:
    logbook.add_entry("Egg", "Custom", "1 large", Macro())
    before = logbook.state

    with pytest.raises(ImportRejectedError):
        logbook.import_backup(b'{"entries": null}')

    assert logbook.state is before


def test_log_lookup_result(logbook: LogbookService) -> None:
    food = FoodLookupResult(
        id="off:1",
        name="Skyr",
        serving_size_label="150g",
        macros_per_serving=Macro(protein=16),
        source="Open Food Facts",
        barcode="1",
    )

    logbook.log_lookup_result(food, quantity=2, meal_tag=MealTag.DINNER)

    entry = logbook.state.entries[0]
    assert entry.source == "Open Food Facts"
    assert entry.totals().protein == 32


def test_today_summary(logbook: LogbookService) -> None:
    now = datetime.now(tz=UTC)
    logbook.persistence.commit(
        StateEnvelope(
            protein_floor_g=50,
            entries=[
                make_entry("today", protein=30, created_at=now),
                make_entry("old", protein=40, created_at=now - timedelta(days=2)),
            ],
        )
    )

    summary = logbook.today_summary(now.date())

    assert [entry.id for entry in summary.entries] == ["today"]
    assert summary.protein_g == 30
    assert summary.floor_progress == pytest.approx(0.6)


def test_restore_empty_snapshot_after_refused_wipe(
    store: InMemoryStore, logbook: LogbookService
) -> None:
    logbook.set_protein_floor(100)
    logbook.set_protein_floor(110)
    logbook.add_entry("Egg", "Custom", "1 large", Macro())
    refused = logbook.delete_entry(logbook.state.entries[0].id)
    assert refused.status is SaveStatus.REFUSED
    assert logbook.state.entries == []
    empty_index = next(
        index
        for index, snapshot in enumerate(logbook.list_snapshots())
        if snapshot.state.entry_count == 0
    )

    outcome = logbook.restore_snapshot(empty_index)

    assert outcome.status is SaveStatus.SAVED
    assert _stored(store).entries == []

"""Serialization of the state envelope to and from stored strings."""

import json
import logging
import math
from datetime import UTC, datetime

from protein_floor_tracker.domain.errors import MalformedStateError
from protein_floor_tracker.domain.state import (
    DEFAULT_PROTEIN_FLOOR_G,
    DEFAULT_QUICK_ADDS,
    SCHEMA_VERSION,
    LogEntry,
    Macro,
    MealTag,
    QuickAddTemplate,
    Snapshot,
    StateEnvelope,
)

DEFAULT_SERVING_LABEL = "1 serving"
DEFAULT_SOURCE = "Custom"

# Field names used by schema version 3 payloads.
_LEGACY_FIELDS = {
    "proteinFloor": "proteinFloorGramsPerDay",
    "usdaApiKey": "externalApiKey",
    "roadTripMode": "roadTripModeEnabled",
    "quickAdds": "quickAddTemplates",
}

_logger = logging.getLogger(__name__)


def encode_state(envelope: StateEnvelope) -> str:
    """Serialize an envelope to its compact stored form."""
    return json.dumps(state_to_dict(envelope), separators=(",", ":"))


def decode_state(raw: str | None) -> StateEnvelope | None:
    """Decode a stored string, returning None when it is absent or malformed."""
    if raw is None:
        return None
    try:
        return parse_state(json.loads(raw))
    except (ValueError, TypeError, OverflowError, RecursionError) as exc:
        _logger.warning("Stored state is not valid JSON: %s", exc)
    except MalformedStateError as exc:
        _logger.warning("Stored state is malformed: %s", exc)
    return None


def state_to_dict(envelope: StateEnvelope) -> dict[str, object]:
    """Return the JSON-ready mapping for an envelope."""
    return {
        "schemaVersion": envelope.schema_version,
        "savedAt": _format_timestamp(envelope.saved_at),
        "proteinFloorGramsPerDay": envelope.protein_floor_g,
        "externalApiKey": envelope.external_api_key,
        "entries": [_entry_to_dict(entry) for entry in envelope.entries],
        "roadTripModeEnabled": envelope.road_trip_mode,
        "quickAddTemplates": [
            _template_to_dict(template) for template in envelope.quick_add_templates
        ],
    }


def parse_state(data: object) -> StateEnvelope:
    """Validate a decoded JSON value and build an envelope from it.

    Absent optional fields are filled with defaults and older schema versions
    are migrated. Any structural anomaly raises ``MalformedStateError``.
    """
    if not isinstance(data, dict):
        raise MalformedStateError("state must be a JSON object")
    version = _schema_version(data)
    if version < SCHEMA_VERSION:
        data = _migrate(data)
    elif version > SCHEMA_VERSION:
        _logger.warning(
            "State schema %s is newer than %s; reading best-effort",
            version,
            SCHEMA_VERSION,
        )

    entries_raw = data.get("entries", [])
    if not isinstance(entries_raw, list):
        raise MalformedStateError("entries must be a list")
    if "quickAddTemplates" in data and data["quickAddTemplates"] is not None:
        templates_raw = data["quickAddTemplates"]
        if not isinstance(templates_raw, list):
            raise MalformedStateError("quickAddTemplates must be a list")
        templates = [_parse_template(item) for item in templates_raw]
    else:
        templates = list(DEFAULT_QUICK_ADDS)

    road_trip = data.get("roadTripModeEnabled", False)
    if road_trip is None:
        road_trip = False
    if not isinstance(road_trip, bool):
        raise MalformedStateError("roadTripModeEnabled must be a boolean")

    api_key = data.get("externalApiKey")
    if api_key is not None and not isinstance(api_key, str):
        raise MalformedStateError("externalApiKey must be a string")

    floor = data.get("proteinFloorGramsPerDay")
    return StateEnvelope(
        schema_version=max(version, SCHEMA_VERSION),
        saved_at=_parse_optional_timestamp(data.get("savedAt"), "savedAt"),
        protein_floor_g=(
            DEFAULT_PROTEIN_FLOOR_G
            if floor is None
            else _require_number(floor, "proteinFloorGramsPerDay")
        ),
        external_api_key=api_key,
        entries=[_parse_entry(item) for item in entries_raw],
        road_trip_mode=road_trip,
        quick_add_templates=templates,
    )


def snapshot_to_dict(snapshot: Snapshot) -> dict[str, object]:
    """Return the JSON-ready mapping for a snapshot."""
    return {
        "takenAt": _format_timestamp(snapshot.taken_at),
        "state": state_to_dict(snapshot.state),
    }


def parse_snapshot(data: object) -> Snapshot:
    """Build a snapshot from a decoded JSON value.

    Accepts the legacy ``{"ts": <epoch ms>, "payload": {...}}`` shape.
    """
    if not isinstance(data, dict):
        raise MalformedStateError("snapshot must be a JSON object")
    if "state" in data:
        taken_at = _parse_timestamp(data.get("takenAt"), "takenAt")
        return Snapshot(taken_at=taken_at, state=parse_state(data["state"]))
    if "payload" in data:
        millis = _require_number(data.get("ts"), "ts")
        try:
            taken_at = datetime.fromtimestamp(millis / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError) as exc:
            raise MalformedStateError("ts is out of range") from exc
        return Snapshot(taken_at=taken_at, state=parse_state(data["payload"]))
    raise MalformedStateError("snapshot has no state")


def _schema_version(data: dict[str, object]) -> int:
    version = data.get("schemaVersion", data.get("version", 0))
    if version is None:
        return 0
    if isinstance(version, bool) or not isinstance(version, int):
        raise MalformedStateError("schemaVersion must be an integer")
    return version


def _migrate(data: dict[str, object]) -> dict[str, object]:
    migrated = dict(data)
    for legacy_name, current_name in _LEGACY_FIELDS.items():
        if current_name not in migrated and legacy_name in migrated:
            migrated[current_name] = migrated[legacy_name]
    if migrated.get("externalApiKey") == "":
        migrated["externalApiKey"] = None
    return migrated


def _entry_to_dict(entry: LogEntry) -> dict[str, object]:
    return {
        "id": entry.id,
        "createdAt": _format_timestamp(entry.created_at),
        "name": entry.name,
        "source": entry.source,
        "servingSizeLabel": entry.serving_size_label,
        "quantity": entry.quantity,
        "macros": _macro_to_dict(entry.macros),
        "mealTag": entry.meal_tag.value,
    }


def _template_to_dict(template: QuickAddTemplate) -> dict[str, object]:
    return {
        "name": template.name,
        "servingSizeLabel": template.serving_size_label,
        "macrosPerServing": _macro_to_dict(template.macros_per_serving),
    }


def _macro_to_dict(macro: Macro) -> dict[str, float]:
    return {
        "calories": macro.calories,
        "protein": macro.protein,
        "carbs": macro.carbs,
        "fat": macro.fat,
    }


def _parse_entry(data: object) -> LogEntry:
    if not isinstance(data, dict):
        raise MalformedStateError("entry must be a JSON object")
    quantity = data.get("quantity", data.get("qty"))
    meal_tag = data.get("mealTag") or MealTag.SNACK.value
    try:
        tag = MealTag(meal_tag)
    except ValueError as exc:
        raise MalformedStateError(f"unknown mealTag {meal_tag!r}") from exc
    return LogEntry(
        id=_require_string(data.get("id"), "entry id"),
        created_at=_parse_timestamp(data.get("createdAt"), "createdAt"),
        name=_require_string(data.get("name"), "entry name"),
        source=_optional_string(data.get("source"), "source", DEFAULT_SOURCE),
        serving_size_label=_optional_string(
            data.get("servingSizeLabel"), "servingSizeLabel", DEFAULT_SERVING_LABEL
        ),
        quantity=1.0 if quantity is None else _require_number(quantity, "quantity"),
        macros=_parse_macro(data.get("macros"), "macros"),
        meal_tag=tag,
    )


def _parse_template(data: object) -> QuickAddTemplate:
    if not isinstance(data, dict):
        raise MalformedStateError("quick add template must be a JSON object")
    return QuickAddTemplate(
        name=_require_string(data.get("name"), "template name"),
        serving_size_label=_optional_string(
            data.get("servingSizeLabel"), "servingSizeLabel", DEFAULT_SERVING_LABEL
        ),
        macros_per_serving=_parse_macro(
            data.get("macrosPerServing"), "macrosPerServing"
        ),
    )


def _parse_macro(data: object, field_name: str) -> Macro:
    if data is None:
        return Macro()
    if not isinstance(data, dict):
        raise MalformedStateError(f"{field_name} must be a JSON object")
    return Macro.coerce(
        calories=data.get("calories"),
        protein=data.get("protein"),
        carbs=data.get("carbs"),
        fat=data.get("fat"),
    )


def _require_string(value: object, field_name: str) -> str:
    if not isinstance(value, str):
        raise MalformedStateError(f"{field_name} must be a string")
    return value


def _optional_string(value: object, field_name: str, default: str) -> str:
    if value is None:
        return default
    return _require_string(value, field_name)


def _require_number(value: object, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise MalformedStateError(f"{field_name} must be a number")
    try:
        number = float(value)
    except OverflowError as exc:
        raise MalformedStateError(f"{field_name} is out of range") from exc
    if not math.isfinite(number) or number < 0:
        raise MalformedStateError(f"{field_name} must be a non-negative number")
    return number


def _format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_timestamp(value: object, field_name: str) -> datetime:
    if not isinstance(value, str):
        raise MalformedStateError(f"{field_name} must be an ISO timestamp")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise MalformedStateError(f"{field_name} is not a valid timestamp") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_optional_timestamp(value: object, field_name: str) -> datetime | None:
    if value is None:
        return None
    return _parse_timestamp(value, field_name)

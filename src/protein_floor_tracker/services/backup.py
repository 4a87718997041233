"""Portable JSON backup export and import."""

import json
from datetime import date

from protein_floor_tracker.domain.errors import ImportRejectedError, MalformedStateError
from protein_floor_tracker.domain.state import StateEnvelope
from protein_floor_tracker.services.codec import parse_state, state_to_dict

BACKUP_MEDIA_TYPE = "application/json"


def export_backup(envelope: StateEnvelope) -> bytes:
    """Render an envelope as an indented, human-readable JSON document."""
    return json.dumps(state_to_dict(envelope), indent=2, ensure_ascii=False).encode(
        "utf-8"
    )


def backup_filename(day: date) -> str:
    """Return the download filename for a backup taken on ``day``."""
    return f"protein_floor_backup_{day.isoformat()}.json"


def import_backup(data: bytes | str) -> StateEnvelope:
    """Parse a backup document, rejecting anything that is not a valid envelope."""
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ImportRejectedError("The file is not UTF-8 text.") from exc
    else:
        text = data
    if not text.strip():
        raise ImportRejectedError("The file is empty.")
    try:
        document = json.loads(text)
    except (ValueError, RecursionError) as exc:
        raise ImportRejectedError(f"The file is not valid JSON: {exc}") from exc
    if not isinstance(document, dict) or not isinstance(
        document.get("entries"), list
    ):
        raise ImportRejectedError("That file doesn't look like a valid backup.")
    try:
        return parse_state(document)
    except MalformedStateError as exc:
        raise ImportRejectedError(f"The backup is damaged: {exc}") from exc

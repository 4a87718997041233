"""Shared response builders for API routes."""

from fastapi import status
from fastapi.responses import JSONResponse

from protein_floor_tracker.domain.persistence import SaveOutcome, SaveStatus
from protein_floor_tracker.services.codec import state_to_dict
from protein_floor_tracker.services.persistence import StatePersistence

_STATUS_CODES = {
    SaveStatus.REFUSED: status.HTTP_409_CONFLICT,
    SaveStatus.STORAGE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    SaveStatus.DEFERRED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def outcome_response(
    outcome: SaveOutcome, success_code: int = status.HTTP_200_OK
) -> JSONResponse:
    """Render a save outcome; refusals and storage failures are not 2xx."""
    return JSONResponse(
        status_code=_STATUS_CODES.get(outcome.status, success_code),
        content={
            "status": outcome.status.value,
            "message": outcome.message,
            "entry_count": outcome.entry_count,
            "snapshot_taken": outcome.snapshot_taken,
        },
    )


def state_payload(persistence: StatePersistence) -> dict[str, object]:
    """Return the in-memory state with the API key masked."""
    state = state_to_dict(persistence.state)
    state["externalApiKey"] = "***" if persistence.state.external_api_key else None
    return {
        "phase": persistence.phase.value,
        "status_message": persistence.status_message,
        "state": state,
    }

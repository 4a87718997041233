"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from protein_floor_tracker.api.data import router as data_router
from protein_floor_tracker.api.lookup import router as lookup_router
from protein_floor_tracker.api.models import (
    CustomFoodCreate,
    EntryCreate,
    QuantityUpdate,
    QuickAddLog,
    SettingsUpdate,
    TemplatePayload,
)
from protein_floor_tracker.api.responses import outcome_response, state_payload
from protein_floor_tracker.app_logging import configure_logging
from protein_floor_tracker.containers import AppContainer
from protein_floor_tracker.domain.persistence import SaveOutcome
from protein_floor_tracker.services.codec import state_to_dict


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        persistence = app.state.container.persistence
        if not persistence.is_ready:
            result = persistence.hydrate()
            logger.info(
                "Startup state: %s entries (%s)",
                result.state.entry_count,
                result.source.value,
            )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(data_router)
    app.include_router(lookup_router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, str]:
        """Health check that also reports the hydration phase."""
        state_container: AppContainer = request.app.state.container
        return {"status": "ok", "phase": state_container.persistence.phase.value}

    @app.get("/state")
    async def get_state(request: Request) -> dict[str, object]:
        """Return the current in-memory state and the latest status line."""
        state_container: AppContainer = request.app.state.container
        return state_payload(state_container.persistence)

    @app.get("/today")
    async def get_today(request: Request) -> dict[str, object]:
        """Return today's entries and protein floor progress."""
        state_container: AppContainer = request.app.state.container
        summary = state_container.logbook.today_summary()
        entries = state_to_dict(state_container.logbook.state)["entries"]
        ids = {entry.id for entry in summary.entries}
        return {
            "day": summary.day.isoformat(),
            "entries": [entry for entry in entries if entry["id"] in ids],
            "protein_g": summary.protein_g,
            "protein_floor_g": summary.protein_floor_g,
            "floor_progress": summary.floor_progress,
        }

    @app.post("/entries")
    async def create_entry(payload: EntryCreate, request: Request) -> JSONResponse:
        """Log a new entry."""
        state_container: AppContainer = request.app.state.container
        outcome = state_container.logbook.add_entry(
            name=payload.name,
            source=payload.source,
            serving_size_label=payload.serving_size_label,
            macros=payload.macros.to_macro(),
            quantity=payload.quantity,
            meal_tag=payload.meal_tag,
        )
        return outcome_response(outcome, status.HTTP_201_CREATED)

    @app.post("/entries/custom")
    async def create_custom_entry(
        payload: CustomFoodCreate, request: Request
    ) -> JSONResponse:
        """Log a hand-entered food."""
        state_container: AppContainer = request.app.state.container
        try:
            outcome = state_container.logbook.add_custom_food(
                name=payload.name,
                serving_size_label=payload.serving_size_label,
                macros=payload.macros.to_macro(),
                quantity=payload.quantity,
                meal_tag=payload.meal_tag,
                save_as_template=payload.save_as_template,
            )
        except ValueError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from exc
        return outcome_response(outcome, status.HTTP_201_CREATED)

    @app.patch("/entries/{entry_id}")
    async def update_entry(
        entry_id: str, payload: QuantityUpdate, request: Request
    ) -> JSONResponse:
        """Change an entry's quantity."""
        state_container: AppContainer = request.app.state.container
        try:
            outcome = state_container.logbook.update_quantity(
                entry_id, payload.quantity
            )
        except KeyError as exc:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "Entry not found") from exc
        return outcome_response(outcome)

    @app.delete("/entries/{entry_id}")
    async def delete_entry(entry_id: str, request: Request) -> JSONResponse:
        """Delete an entry."""
        state_container: AppContainer = request.app.state.container
        try:
            outcome = state_container.logbook.delete_entry(entry_id)
        except KeyError as exc:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "Entry not found") from exc
        return outcome_response(outcome)

    @app.post("/quick-adds")
    async def create_quick_add(
        payload: TemplatePayload, request: Request
    ) -> JSONResponse:
        """Create a quick-add template."""
        state_container: AppContainer = request.app.state.container
        try:
            outcome = state_container.logbook.save_template(
                name=payload.name,
                serving_size_label=payload.serving_size_label,
                macros=payload.macros.to_macro(),
            )
        except ValueError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from exc
        return outcome_response(outcome, status.HTTP_201_CREATED)

    @app.put("/quick-adds/{index}")
    async def update_quick_add(
        index: int, payload: TemplatePayload, request: Request
    ) -> JSONResponse:
        """Replace a quick-add template."""
        state_container: AppContainer = request.app.state.container
        try:
            outcome = state_container.logbook.save_template(
                name=payload.name,
                serving_size_label=payload.serving_size_label,
                macros=payload.macros.to_macro(),
                edit_index=index,
            )
        except IndexError as exc:
            raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from exc
        return outcome_response(outcome)

    @app.delete("/quick-adds/{index}")
    async def delete_quick_add(index: int, request: Request) -> JSONResponse:
        """Delete a quick-add template."""
        state_container: AppContainer = request.app.state.container
        try:
            outcome = state_container.logbook.delete_template(index)
        except IndexError as exc:
            raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc)) from exc
        return outcome_response(outcome)

    @app.post("/quick-adds/{index}/log")
    async def log_quick_add(
        index: int, payload: QuickAddLog, request: Request
    ) -> JSONResponse:
        """Log one serving of a quick-add template."""
        state_container: AppContainer = request.app.state.container
        try:
            outcome = state_container.logbook.quick_add(index, payload.meal_tag)
        except IndexError as exc:
            raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc)) from exc
        return outcome_response(outcome, status.HTTP_201_CREATED)

    @app.put("/settings")
    async def update_settings(
        payload: SettingsUpdate, request: Request
    ) -> JSONResponse:
        """Apply the provided settings, stopping at the first failed save."""
        state_container: AppContainer = request.app.state.container
        logbook = state_container.logbook
        outcome: SaveOutcome | None = None
        if payload.protein_floor_g is not None:
            outcome = logbook.set_protein_floor(payload.protein_floor_g)
        if "external_api_key" in payload.model_fields_set and _saved(outcome):
            outcome = logbook.set_external_api_key(payload.external_api_key)
        if payload.road_trip_mode is not None and _saved(outcome):
            outcome = logbook.set_road_trip_mode(payload.road_trip_mode)
        if outcome is None:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "No settings provided")
        return outcome_response(outcome)

    return app


def _saved(outcome: SaveOutcome | None) -> bool:
    return outcome is None or outcome.saved

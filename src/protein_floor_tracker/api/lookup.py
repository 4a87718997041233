"""Nutrition lookup endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from protein_floor_tracker.api.models import LookupLog
from protein_floor_tracker.api.responses import outcome_response

if TYPE_CHECKING:
    from protein_floor_tracker.containers import AppContainer
    from protein_floor_tracker.domain.lookup import FoodLookupResult

router = APIRouter(prefix="/lookup", tags=["lookup"])

_logger = logging.getLogger(__name__)


@router.get("/barcode/{code}")
async def lookup_barcode(code: str, request: Request) -> dict[str, object]:
    """Look up a product by barcode."""
    container: AppContainer = request.app.state.container
    food = await _lookup_or_502(container, code)
    return {"result": _food_payload(food)}


@router.post("/barcode/{code}/log")
async def log_barcode(code: str, payload: LookupLog, request: Request) -> JSONResponse:
    """Look up a barcode and log the product."""
    container: AppContainer = request.app.state.container
    food = await _lookup_or_502(container, code)
    outcome = container.logbook.log_lookup_result(
        food, quantity=payload.quantity, meal_tag=payload.meal_tag
    )
    return outcome_response(outcome, status.HTTP_201_CREATED)


@router.get("/search")
async def search_foods(q: str, request: Request) -> dict[str, object]:
    """Search catalogs by free text."""
    container: AppContainer = request.app.state.container
    try:
        results = await container.nutrition_service.search(
            q, usda_api_key=container.logbook.state.external_api_key
        )
    except httpx.HTTPError as exc:
        _logger.warning("Search failed: %s", exc)
        raise HTTPException(
            status.HTTP_502_BAD_GATEWAY, f"Search error: {exc}"
        ) from exc
    return {"results": [_food_payload(food) for food in results]}


async def _lookup_or_502(container: AppContainer, code: str) -> FoodLookupResult:
    try:
        food = await container.nutrition_service.lookup_barcode(code)
    except httpx.HTTPError as exc:
        _logger.warning("Barcode lookup failed: %s", exc)
        raise HTTPException(
            status.HTTP_502_BAD_GATEWAY, f"Barcode lookup error: {exc}"
        ) from exc
    if food is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No barcode match found.")
    return food


def _food_payload(food: FoodLookupResult) -> dict[str, object]:
    macros = food.macros_per_serving
    return {
        "id": food.id,
        "name": food.name,
        "serving_size_label": food.serving_size_label,
        "source": food.source,
        "barcode": food.barcode,
        "macros_per_serving": {
            "calories": macros.calories,
            "protein": macros.protein,
            "carbs": macros.carbs,
            "fat": macros.fat,
        },
    }

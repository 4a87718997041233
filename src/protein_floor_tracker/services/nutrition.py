"""Nutrition lookups against Open Food Facts and USDA FDC."""

import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING

from protein_floor_tracker.adapters.fdc_client import FdcClient
from protein_floor_tracker.adapters.off_client import OpenFoodFactsClient
from protein_floor_tracker.domain.lookup import (
    OPEN_FOOD_FACTS,
    USDA_FDC,
    FoodLookupResult,
)
from protein_floor_tracker.domain.state import Macro
from protein_floor_tracker.services.cache import Cache

_OFF_NUTRIMENTS = {
    "calories": "energy-kcal",
    "protein": "proteins",
    "carbs": "carbohydrates",
    "fat": "fat",
}

_logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


@dataclass
class NutritionLookupService:
    """Barcode lookup and free-text search with caching."""

    off_client: OpenFoodFactsClient
    fdc_client: FdcClient
    cache: Cache
    search_ttl_seconds: int = 3600
    barcode_ttl_seconds: int = 86400
    off_page_size: int = 12
    fdc_page_size: int = 10
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3

    async def lookup_barcode(self, barcode: str) -> FoodLookupResult | None:
        """Return the product for a barcode, or None when it is unknown."""
        code = barcode.strip()
        if not code:
            return None
        cache_key = f"off:barcode:{code}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, FoodLookupResult):
            return cached

        payload = await self._call_with_retry(
            lambda: self.off_client.get_product(code), action=f"barcode:{code}"
        )
        product = payload.get("product")
        if not isinstance(product, dict):
            _logger.info("No Open Food Facts product for barcode %s", code)
            return None
        result = _off_product_to_result(product, barcode=code)
        self.cache.set(cache_key, result, ttl_seconds=self.barcode_ttl_seconds)
        return result

    async def search(
        self, query: str, usda_api_key: str | None = None
    ) -> list[FoodLookupResult]:
        """Search Open Food Facts and, when a key is set, USDA FDC."""
        text = query.strip()
        if not text:
            return []
        key = (usda_api_key or "").strip()
        cache_key = f"search:{text.lower()}:{'usda' if key else 'off'}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            return cached

        off_task = self._call_with_retry(
            lambda: self.off_client.search(text, page_size=self.off_page_size),
            action="off_search",
        )
        if key:
            off_payload, fdc_payload = await asyncio.gather(
                off_task,
                self._call_with_retry(
                    lambda: self.fdc_client.search_foods(
                        text, api_key=key, page_size=self.fdc_page_size
                    ),
                    action="fdc_search",
                ),
            )
        else:
            off_payload, fdc_payload = await off_task, {}

        results = [
            _off_product_to_result(product)
            for product in _as_list(off_payload.get("products"))[: self.off_page_size]
        ]
        results.extend(
            _fdc_food_to_result(food)
            for food in _as_list(fdc_payload.get("foods"))[: self.fdc_page_size]
        )
        self.cache.set(cache_key, results, ttl_seconds=self.search_ttl_seconds)
        _logger.info("Nutrition search: query=%s results=%s", text, len(results))
        return results

    async def _call_with_retry(
        self, func: "Callable[[], Awaitable[dict[str, object]]]", *, action: str
    ) -> dict[str, object]:
        """Call an async function with a short retry."""
        attempt = 0
        while True:
            try:
                return await func()
            except Exception as exc:
                attempt += 1
                _logger.warning(
                    "Nutrition %s failed (attempt %s/%s, status=%s): %s",
                    action,
                    attempt,
                    self.retry_attempts + 1,
                    _status_code_from_exception(exc),
                    exc,
                )
                if attempt > self.retry_attempts:
                    raise
                await asyncio.sleep(self.retry_delay_seconds)


def _status_code_from_exception(exc: Exception) -> str:
    """Extract HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"


def _as_list(value: object) -> list[dict[str, object]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _off_product_to_result(
    product: dict[str, object], barcode: str | None = None
) -> FoodLookupResult:
    """Map an Open Food Facts product to a lookup result using per-serving values."""
    nutriments = product.get("nutriments")
    if not isinstance(nutriments, dict):
        nutriments = {}
    values = {
        field_name: _first_present(
            nutriments, f"{prefix}_serving", f"{prefix}_value"
        )
        for field_name, prefix in _OFF_NUTRIMENTS.items()
    }
    code = barcode or product.get("code") or product.get("_id")
    if barcode:
        serving = product.get("serving_size") or (
            f"{product['product_quantity']}g"
            if product.get("product_quantity")
            else "1 serving"
        )
    else:
        serving = product.get("serving_size") or "1 serving"
    return FoodLookupResult(
        id=f"off:{code or secrets.token_hex(5)}",
        name=str(
            product.get("product_name") or product.get("generic_name") or "Unknown item"
        ),
        serving_size_label=str(serving),
        macros_per_serving=Macro.coerce(**values),
        source=OPEN_FOOD_FACTS,
        barcode=str(code) if code else None,
    )


def _fdc_food_to_result(food: dict[str, object]) -> FoodLookupResult:
    """Map a USDA search hit to a lookup result; values are per 100 g."""
    nutrients = _as_list(food.get("foodNutrients"))

    def find(needle: str) -> object:
        for nutrient in nutrients:
            if needle in str(nutrient.get("nutrientName") or "").lower():
                return nutrient.get("value")
        return 0

    return FoodLookupResult(
        id=f"usda:{food.get('fdcId')}",
        name=str(food.get("description") or "USDA item"),
        serving_size_label="100g (USDA default)",
        macros_per_serving=Macro.coerce(
            calories=find("energy") or find("calories"),
            protein=find("protein"),
            carbs=find("carbohydrate"),
            fat=find("total lipid") or find("fat"),
        ),
        source=USDA_FDC,
    )


def _first_present(values: dict[str, object], *keys: str) -> object:
    for key in keys:
        if values.get(key) is not None:
            return values[key]
    return 0

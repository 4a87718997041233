"""Open Food Facts API client."""

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import httpx


class OpenFoodFactsClient(Protocol):
    """Interface for Open Food Facts lookups."""

    async def get_product(self, barcode: str) -> dict[str, object]:
        """Fetch a product by barcode and return raw API data."""

    async def search(self, query: str, page_size: int = 12) -> dict[str, object]:
        """Search products by free text and return raw API data."""


@dataclass
class HttpxOpenFoodFactsClient(OpenFoodFactsClient):
    """HTTPX-backed Open Food Facts client."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 15

    @classmethod
    def create(cls, base_url: str, timeout: float = 15) -> "HttpxOpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(base_url=base_url, http_client=httpx.AsyncClient(), timeout=timeout)

    async def get_product(self, barcode: str) -> dict[str, object]:
        """Fetch a product by barcode."""
        url = f"{self.base_url}/api/v2/product/{quote(barcode, safe='')}.json"
        response = await self.http_client.get(url, timeout=self.timeout)
        if response.status_code == httpx.codes.NOT_FOUND:
            return {}
        response.raise_for_status()
        return response.json()

    async def search(self, query: str, page_size: int = 12) -> dict[str, object]:
        """Search products by free text."""
        url = f"{self.base_url}/cgi/search.pl"
        response = await self.http_client.get(
            url,
            params={
                "search_terms": query,
                "search_simple": 1,
                "action": "process",
                "json": 1,
                "page_size": page_size,
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

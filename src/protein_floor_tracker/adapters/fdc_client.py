"""USDA FoodData Central API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class FdcClient(Protocol):
    """Interface for FoodData Central search."""

    async def search_foods(
        self, query: str, api_key: str, page_size: int = 10
    ) -> dict[str, object]:
        """Search foods by query and return raw API data."""


@dataclass
class HttpxFdcClient(FdcClient):
    """HTTPX-backed FDC client.

    The API key belongs to the user's saved settings, so it is passed per
    call instead of being fixed at construction.
    """

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 15

    @classmethod
    def create(cls, base_url: str, timeout: float = 15) -> "HttpxFdcClient":
        """Create an FDC client with a managed httpx session."""
        return cls(base_url=base_url, http_client=httpx.AsyncClient(), timeout=timeout)

    async def search_foods(
        self, query: str, api_key: str, page_size: int = 10
    ) -> dict[str, object]:
        """Search foods by query."""
        url = f"{self.base_url}/foods/search"
        response = await self.http_client.post(
            url,
            params={"api_key": api_key},
            json={"query": query, "pageSize": page_size},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

"""Steam Workshop catalog source implementation."""
import httpx
from typing import List, Optional
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)
import logging
from workshop_tracker.providers import CatalogSource, CatalogError
from workshop_tracker.providers.gate import FetchGate, fetch_gate
from workshop_tracker.providers.models import ItemSnapshot
from workshop_tracker.core.config import settings


logger = logging.getLogger(__name__)


class SteamCatalog(CatalogSource):
    """ISteamRemoteStorage implementation of the catalog source."""

    def __init__(self, base_url: Optional[str] = None, gate: Optional[FetchGate] = None):
        self.base_url = (base_url or settings.steam_api_url).rstrip("/")
        self.gate = gate or fetch_gate
        self.client = httpx.AsyncClient(timeout=settings.catalog_timeout_seconds)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        before_sleep=before_sleep_log(logger, logging.WARNING)
    )
    async def _make_request(self, method: str, form: dict) -> dict:
        """POST a form to the Steam API with retry logic for transient failures.

        The fetch permit covers the request only; the body is decoded after
        the permit is released. Each retry attempt takes a fresh permit.
        """
        url = f"{self.base_url}/{method}/v1/"

        async with self.gate.permit():
            response = await self.client.post(url, data=form)

        response.raise_for_status()
        return response.json()

    async def _call(self, method: str, form: dict) -> dict:
        """Issue a request and translate transport failures into CatalogError."""
        try:
            data = await self._make_request(method, form)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                raise CatalogError(
                    "Steam API rate limit exceeded (429). Please wait before making more requests."
                )
            raise CatalogError(f"Steam API error: {str(e)}")
        except httpx.TimeoutException as e:
            raise CatalogError(f"Steam API timeout after retries: {str(e)}")
        except httpx.HTTPError as e:
            raise CatalogError(f"Steam API connection error: {str(e)}")
        except ValueError as e:
            raise CatalogError(f"Steam API returned invalid JSON: {str(e)}")

        if not isinstance(data, dict) or "response" not in data:
            raise CatalogError("Steam API response is missing the 'response' object")
        return data["response"]

    async def fetch_item(self, item_id: int) -> ItemSnapshot:
        """
        Fetch published file details for a single item.

        Includes retry logic for transient network failures.
        """
        response = await self._call(
            "GetPublishedFileDetails",
            {"itemcount": "1", "publishedfileids[0]": str(item_id)}
        )
        return self._parse_item(item_id, response)

    async def fetch_collection(self, collection_id: int) -> List[int]:
        """Fetch the child item ids of a Workshop collection."""
        response = await self._call(
            "GetCollectionDetails",
            {"collectioncount": "1", "publishedfileids[0]": str(collection_id)}
        )
        return self._parse_collection(collection_id, response)

    def _parse_item(self, item_id: int, response: dict) -> ItemSnapshot:
        """Parse a GetPublishedFileDetails response into an ItemSnapshot."""
        try:
            details = response["publishedfiledetails"][0]
        except (KeyError, IndexError, TypeError):
            raise CatalogError(f"No details returned for item {item_id}")

        if details.get("result", 1) != 1 or "title" not in details:
            raise CatalogError(f"Item {item_id} is not available (result {details.get('result')})")

        # Items that were never updated only report their creation time
        raw_updated = details.get("time_updated")
        if not isinstance(raw_updated, int):
            raw_updated = details.get("time_created")

        try:
            updated_at = int(raw_updated)
        except (TypeError, ValueError):
            raise CatalogError(f"Item {item_id} has no usable update timestamp")

        preview_url = details.get("preview_url")

        return ItemSnapshot(
            id=item_id,
            name=str(details["title"]),
            updated_at=updated_at,
            preview_url=preview_url if isinstance(preview_url, str) and preview_url else None
        )

    def _parse_collection(self, collection_id: int, response: dict) -> List[int]:
        """Parse a GetCollectionDetails response into child item ids."""
        try:
            children = response["collectiondetails"][0].get("children", [])
            return [int(child["publishedfileid"]) for child in children]
        except (KeyError, IndexError, TypeError, ValueError):
            raise CatalogError(f"Could not read members of collection {collection_id}")

    async def close(self):
        """Close the underlying HTTP client."""
        await self.client.aclose()

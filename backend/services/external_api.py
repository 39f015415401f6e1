from typing import Any, Dict, List, Optional, Tuple

import httpx

from core.config import settings
from core.exceptions import TransportError
from core.logging import get_structured_logger
from schemas.external import ContentResource, ExternalApiResponse

structured_logger = get_structured_logger("external_api")

SERVICE_NAME = "content-api"

# Search filters per collection
RESOURCE_FILTERS: Dict[ContentResource, Dict[str, List[str]]] = {
    ContentResource.COURSE: {"primaryCategory": ["Course"], "status": ["Live"]},
    ContentResource.QUESTION_SET: {"objectType": ["QuestionSet"], "status": ["Live"]},
}

# Keys under ``result`` that may hold the page of documents
RESULT_KEYS = ("content", "QuestionSet", "questionSet", "items")


class ExternalApiService:
    """Client for the content provider's search API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        search_path: Optional[str] = None,
        api_key: Optional[str] = None,
        channel: Optional[str] = None,
        page_size: Optional[int] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.CONTENT_API_BASE_URL).rstrip("/")
        self.search_path = search_path or settings.CONTENT_API_SEARCH_PATH
        self.api_key = api_key if api_key is not None else settings.CONTENT_API_KEY
        self.channel = channel if channel is not None else settings.CONTENT_API_CHANNEL
        self.page_size = page_size or settings.CONTENT_API_PAGE_SIZE
        self.timeout = timeout or settings.CONTENT_API_TIMEOUT_SECONDS
        self._client = client

    @property
    def search_url(self) -> str:
        return f"{self.base_url}{self.search_path}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _search_body(self, resource: ContentResource, offset: int, limit: int) -> Dict[str, Any]:
        filters = dict(RESOURCE_FILTERS[resource])
        if self.channel:
            filters["channel"] = [self.channel]
        return {"request": {"filters": filters, "offset": offset, "limit": limit}}

    async def _post(self, body: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.search_url, json=body, headers=self._headers())
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.search_url, json=body, headers=self._headers())

    async def _search_page(self, resource: ContentResource, offset: int, limit: int) -> Dict[str, Any]:
        body = self._search_body(resource, offset, limit)
        try:
            response = await self._post(body)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Content API returned {e.response.status_code} for {resource.value}",
                service=SERVICE_NAME,
                status_code=e.response.status_code,
                metadata={"resource": resource.value, "offset": offset},
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"Content API request failed for {resource.value}: {e}",
                service=SERVICE_NAME,
                metadata={"resource": resource.value, "offset": offset},
            ) from e
        except ValueError as e:
            raise TransportError(
                f"Content API returned invalid JSON for {resource.value}",
                service=SERVICE_NAME,
                metadata={"resource": resource.value, "offset": offset},
            ) from e

    @staticmethod
    def _extract(payload: Any) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        if not isinstance(payload, dict):
            raise TransportError("Content API response is not an object", service=SERVICE_NAME)
        result = payload.get("result") or {}
        if not isinstance(result, dict):
            raise TransportError("Content API result is not an object", service=SERVICE_NAME)
        items: List[Dict[str, Any]] = []
        for key in RESULT_KEYS:
            if isinstance(result.get(key), list):
                items = result[key]
                break
        if not all(isinstance(item, dict) for item in items):
            raise TransportError(
                "Content API returned non-object items",
                service=SERVICE_NAME,
                metadata={"result_key": key},
            )
        count = result.get("count")
        return items, count if isinstance(count, int) else None

    async def fetch(self, resource: ContentResource) -> ExternalApiResponse:
        """
        Fetch the whole current collection, page by page.

        When the API reports a count, paging continues until that many items
        arrive or a page comes back empty. Without a count, a short page ends
        the collection.
        Any transport failure aborts the fetch with TransportError.
        """
        offset = 0
        collected: List[Dict[str, Any]] = []
        reported_total: Optional[int] = None

        while True:
            payload = await self._search_page(resource, offset, self.page_size)
            items, count = self._extract(payload)
            if count is not None:
                reported_total = count

            collected.extend(items)
            offset += len(items)

            if not items:
                break
            if reported_total is not None:
                if offset >= reported_total:
                    break
            elif len(items) < self.page_size:
                break

        structured_logger.info(
            f"Fetched {len(collected)} {resource.value} items from content API",
            metadata={"resource": resource.value, "count": len(collected), "reported_total": reported_total},
        )
        return ExternalApiResponse(
            success=True,
            data=collected,
            total=reported_total if reported_total is not None else len(collected),
        )

    async def fetch_course_data(self) -> ExternalApiResponse:
        return await self.fetch(ContentResource.COURSE)

    async def fetch_question_set_data(self) -> ExternalApiResponse:
        return await self.fetch(ContentResource.QUESTION_SET)

    async def test_connection(self) -> bool:
        """Probe the search endpoint with a one-item query; never raises"""
        try:
            await self._search_page(ContentResource.COURSE, 0, 1)
            return True
        except TransportError as e:
            structured_logger.warning(
                "Content API connection test failed",
                metadata={"url": self.search_url, "status_code": e.status_code},
                exception=e,
            )
            return False

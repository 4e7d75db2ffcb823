"""HTTP client for the Ghibli Search API routes, used by the orchestrator and UI."""

import logging
from typing import Any

import httpx

from ghibli_search.config import API_BASE_URL, BACKEND_TIMEOUT
from ghibli_search.errors import GatewayError
from ghibli_search.models import GhibliImage, SearchResponse, UploadedImage

logger = logging.getLogger(__name__)


class GhibliSearchClient:
    """Async client for ``/api/*``.

    Every failure, including transport errors and non-2xx responses, is
    raised as GatewayError carrying the route's short ``error`` message.
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: float = BACKEND_TIMEOUT * 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                resp = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise GatewayError(f"Could not reach the search service: {exc!r}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if resp.is_error:
            details = data.get("details")
            if details:
                logger.error("%s %s details: %s", method, path, details)
            raise GatewayError(
                data.get("error") or f"Request failed with status {resp.status_code}",
                status_code=resp.status_code,
                details=details,
            )
        return data

    async def search(self, query: str) -> SearchResponse:
        data = await self._request("GET", "/api/search", params={"q": query})
        return SearchResponse(
            query=data.get("query", query),
            results=[GhibliImage.from_dict(item) for item in data.get("results") or []],
        )

    async def analyze_image(self, upload: UploadedImage) -> str:
        """Return the generated description of an uploaded image."""
        data = await self._request(
            "POST",
            "/api/analyze-image",
            files={"image": (upload.name, upload.data, upload.content_type)},
        )
        description = data.get("description")
        if not description:
            raise GatewayError("Failed to analyze image")
        return description

    async def rewrite_query(self, description: str) -> str:
        data = await self._request(
            "POST", "/api/rewrite-query", json={"description": description}
        )
        return data.get("searchQuery") or ""

    async def random_images(self) -> list[GhibliImage]:
        data = await self._request("GET", "/api/random")
        return [GhibliImage.from_dict(item) for item in data.get("results") or []]

    async def get_image(self, filename: str) -> GhibliImage:
        data = await self._request("GET", "/api/image", params={"filename": filename})
        return GhibliImage.from_dict(data)

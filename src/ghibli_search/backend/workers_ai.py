"""Cloudflare Workers AI REST client: AutoRAG search, captioning and text generation."""

from typing import Any

import httpx

from ghibli_search.config import (
    BACKEND_TIMEOUT,
    CLOUDFLARE_ACCOUNT_ID,
    CLOUDFLARE_API_BASE,
    CLOUDFLARE_API_TOKEN,
)
from ghibli_search.errors import BackendError


class WorkersAIClient:
    """Async client for the managed search and AI endpoints of one Cloudflare account."""

    def __init__(
        self,
        account_id: str | None = None,
        api_token: str | None = None,
        base_url: str = CLOUDFLARE_API_BASE,
        timeout: float = BACKEND_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.account_id = account_id or CLOUDFLARE_ACCOUNT_ID
        self.api_token = api_token or CLOUDFLARE_API_TOKEN
        if not self.account_id or not self.api_token:
            raise ValueError(
                "Cloudflare credentials are required. "
                "Set CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN in .env file."
            )
        self.base_url = f"{base_url.rstrip('/')}/accounts/{self.account_id}"
        self.timeout = timeout
        self.transport = transport

    async def _call(self, path: str, **kwargs: Any) -> Any:
        """POST to an account endpoint and return the envelope's ``result``."""
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.api_token}"},
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                resp = await client.post(path, **kwargs)
        except httpx.HTTPError as exc:
            raise BackendError(f"Workers AI request failed: {exc!r}") from exc

        if resp.is_error:
            raise BackendError(
                f"Workers AI error {resp.status_code}: {resp.text}", status_code=resp.status_code
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise BackendError(f"Workers AI returned invalid JSON: {resp.text[:200]}") from exc
        if not data.get("success", True):
            raise BackendError(f"Workers AI error: {data.get('errors')}")
        return data.get("result")

    async def autorag_search(
        self,
        rag_name: str,
        query: str,
        max_num_results: int,
        score_threshold: float,
    ) -> list[dict]:
        """Search an AutoRAG index. Returns records with at least ``filename`` and ``score``."""
        result = await self._call(
            f"/autorag/rags/{rag_name}/search",
            json={
                "query": query,
                "max_num_results": max_num_results,
                "ranking_options": {"score_threshold": score_threshold},
            },
        )
        return list((result or {}).get("data") or [])

    async def to_markdown(self, name: str, data: bytes, mime_type: str) -> dict:
        """Convert one file to markdown (for images: a generated caption).

        Returns the conversion record ``{name, format, data | error}``.
        """
        result = await self._call("/ai/tomarkdown", files={"files": (name, data, mime_type)})
        if isinstance(result, list):
            if not result:
                raise BackendError("Workers AI returned no conversion result")
            result = result[0]
        return result or {}

    async def run(self, model: str, payload: dict) -> dict:
        """Run a Workers AI model, e.g. text generation with ``{messages, max_tokens}``."""
        result = await self._call(f"/ai/run/{model}", json=payload)
        return result or {}

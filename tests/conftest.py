"""Shared test fixtures."""

import asyncio
from io import BytesIO

import pytest
from PIL import Image

from ghibli_search.catalog.filenames import parse_filename
from ghibli_search.catalog.storage import LocalObjectStore
from ghibli_search.errors import BackendError, GatewayError
from ghibli_search.models import GhibliImage, SearchResponse, UploadedImage


def make_png(width: int = 64, height: int = 48, color: str = "skyblue") -> bytes:
    """Encode a solid-colour PNG of the given size."""
    out = BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="PNG")
    return out.getvalue()


def make_upload(
    name: str = "totoro.png",
    content_type: str = "image/png",
    data: bytes | None = None,
) -> UploadedImage:
    """Helper to create an UploadedImage with a small PNG body."""
    return UploadedImage(name=name, content_type=content_type, data=data or make_png())


def make_image(
    filename: str = "(2001) Spirited Away/Chihiro at the Bathhouse.png",
    score: float = 0.8,
) -> GhibliImage:
    return parse_filename(filename, score)


class FakeBackend:
    """Stand-in for WorkersAIClient recording every call.

    Each ``*_results`` list is consumed in order; an exception instance in the
    list is raised instead of returned.
    """

    def __init__(self, search_results=None, markdown_results=None, run_results=None):
        self.search_results = list(search_results or [])
        self.markdown_results = list(markdown_results or [])
        self.run_results = list(run_results or [])
        self.calls: list[tuple] = []

    @staticmethod
    def _next(results: list):
        result = results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def autorag_search(self, rag_name, query, max_num_results, score_threshold):
        self.calls.append(("search", rag_name, query, max_num_results, score_threshold))
        return self._next(self.search_results)

    async def to_markdown(self, name, data, mime_type):
        self.calls.append(("to_markdown", name, mime_type))
        return self._next(self.markdown_results)

    async def run(self, model, payload):
        self.calls.append(("run", model, payload))
        return self._next(self.run_results)


class FakeSearchApi:
    """Stand-in for GhibliSearchClient driving the orchestrator.

    Set ``gate`` to an asyncio.Event to hold ``analyze_image`` until it is set.
    """

    def __init__(
        self,
        description: str | Exception = "A girl flying on a broom over a seaside town",
        rewrite: str | Exception = "witch girl flying over seaside town",
        results: list[GhibliImage] | Exception | None = None,
    ):
        self.description = description
        self.rewrite = rewrite
        self.results = [make_image()] if results is None else results
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple] = []

    async def analyze_image(self, upload: UploadedImage) -> str:
        self.calls.append(("analyze", upload.name))
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.description, Exception):
            raise self.description
        return self.description

    async def rewrite_query(self, description: str) -> str:
        self.calls.append(("rewrite", description))
        if isinstance(self.rewrite, Exception):
            raise self.rewrite
        return self.rewrite

    async def search(self, query: str) -> SearchResponse:
        self.calls.append(("search", query))
        if isinstance(self.results, Exception):
            raise self.results
        return SearchResponse(query=query, results=list(self.results))


def backend_error(message: str = "Workers AI error 500: upstream failure") -> BackendError:
    return BackendError(message, status_code=500)


def gateway_error(message: str = "Failed to perform search") -> GatewayError:
    return GatewayError(message, status_code=500)


@pytest.fixture
def image_store(tmp_path) -> LocalObjectStore:
    """Object store with three stills across two movies plus a non-image file."""
    root = tmp_path / "images"
    stills = [
        "(2001) Spirited Away/Chihiro at the Bathhouse.png",
        "(2001) Spirited Away/No-Face on the Train.png",
        "(1988) My Neighbor Totoro/Waiting at the Bus Stop.jpg",
    ]
    for key in stills:
        path = root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(make_png())
    (root / "README.txt").write_text("not an image")
    return LocalObjectStore(root)


@pytest.fixture
def thumbnail_store(tmp_path) -> LocalObjectStore:
    root = tmp_path / "thumbnails"
    root.mkdir()
    return LocalObjectStore(root)

"""FastAPI application: search, image analysis, query rewriting and still serving."""

import logging
from pathlib import Path

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from ghibli_search.backend.workers_ai import WorkersAIClient
from ghibli_search.catalog.filenames import parse_filename
from ghibli_search.catalog.storage import LocalObjectStore
from ghibli_search.config import IMAGES_DIR, PLACEHOLDERS_DIR, THUMBNAILS_DIR
from ghibli_search.errors import TerminalBackendError, ValidationError
from ghibli_search.gateways.analysis import ANALYZE_FAILED_MESSAGE, describe_image
from ghibli_search.gateways.rewrite import rewrite_query
from ghibli_search.gateways.search import search_images
from ghibli_search.gateways.showcase import pick_random_images
from ghibli_search.models import UploadedImage

logger = logging.getLogger(__name__)

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"

_NON_POST_METHODS = ["GET", "PUT", "PATCH", "DELETE"]


def _error(message: str, status_code: int, **extra) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


def create_api(
    backend: WorkersAIClient | None = None,
    images: LocalObjectStore | None = None,
    thumbnails: LocalObjectStore | None = None,
    placeholders_dir: str | Path = PLACEHOLDERS_DIR,
) -> FastAPI:
    """Create the FastAPI app.

    The Workers AI client is created on first use when not supplied, so the
    image-serving routes work without Cloudflare credentials.
    """
    images = images or LocalObjectStore(IMAGES_DIR)
    thumbnails = thumbnails or LocalObjectStore(THUMBNAILS_DIR)

    app = FastAPI(title="Ghibli Search API", version="0.1.0")

    # Lazy-loaded backend client
    _backend_cache: dict = {}
    if backend is not None:
        _backend_cache["instance"] = backend

    def _get_backend() -> WorkersAIClient:
        if "instance" not in _backend_cache:
            _backend_cache["instance"] = WorkersAIClient()
        return _backend_cache["instance"]

    # ── Error shape ──────────────────────────────────────────────────

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            {"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error("Invalid request", 400)

    # ── API routes ───────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/search")
    async def search(q: str | None = None):
        if not q:
            return _error("Query parameter 'q' is required", 400)
        try:
            response = await search_images(_get_backend(), q)
        except ValidationError as exc:
            return _error(str(exc), 400)
        except Exception:
            logger.exception("Search error")
            return _error("Failed to perform search", 500)
        return response.to_dict()

    @app.post("/api/analyze-image")
    async def analyze_image(image: UploadFile | None = File(None)):
        if image is None:
            return _error("No image file provided", 400)

        upload = UploadedImage(
            name=image.filename or "upload",
            content_type=image.content_type or "",
            data=await image.read(),
        )
        try:
            upload.validate()
        except ValidationError as exc:
            return _error(str(exc), 400)

        try:
            description = await describe_image(_get_backend(), upload)
        except TerminalBackendError as exc:
            logger.error("Image analysis failed: %s", exc.details)
            return _error(str(exc), 500, details=exc.details)
        except Exception as exc:
            logger.exception("Image analysis failed")
            return _error(ANALYZE_FAILED_MESSAGE, 500, details=str(exc))
        return {"description": description, "filename": upload.name}

    @app.post("/api/rewrite-query")
    async def rewrite(request: Request):
        try:
            body = await request.json()
        except ValueError:
            body = None
        description = body.get("description") if isinstance(body, dict) else None
        if not description or not isinstance(description, str):
            return _error("Description is required", 400)

        try:
            search_query = await rewrite_query(_get_backend(), description)
        except Exception:
            logger.exception("Query rewriting failed")
            return _error("Failed to rewrite query", 500)
        return {"searchQuery": search_query}

    @app.api_route("/api/analyze-image", methods=_NON_POST_METHODS, include_in_schema=False)
    @app.api_route("/api/rewrite-query", methods=_NON_POST_METHODS, include_in_schema=False)
    async def method_not_allowed():
        return _error("Method not allowed", 405)

    @app.get("/api/random")
    def random_images():
        results = pick_random_images(images)
        return {"results": [image.to_dict() for image in results]}

    @app.get("/api/image")
    def image_details(filename: str | None = None):
        if not filename:
            return _error("Query parameter 'filename' is required", 400)
        try:
            return parse_filename(filename, 1).to_dict()
        except Exception:
            logger.exception("Image fetch error")
            return _error("Failed to fetch image", 500)

    # ── Object storage ───────────────────────────────────────────────

    @app.get("/images/{key:path}")
    def serve_image(key: str):
        if not key:
            return PlainTextResponse("Image path is required", status_code=400)
        try:
            stored = images.get(key)
        except OSError:
            logger.exception("Image serving error")
            return PlainTextResponse("Failed to load image", status_code=500)
        if stored is None:
            return PlainTextResponse("Image not found", status_code=404)
        return Response(
            stored.body,
            media_type=stored.content_type or "image/png",
            headers={"Cache-Control": IMMUTABLE_CACHE_CONTROL},
        )

    @app.get("/thumbnails/{key:path}")
    def serve_thumbnail(key: str):
        if not key:
            return PlainTextResponse("Not found", status_code=404)
        try:
            stored = thumbnails.get(key)
        except OSError:
            logger.exception("Thumbnail fetch error")
            return PlainTextResponse("Failed to fetch image", status_code=500)
        if stored is None:
            return PlainTextResponse("Image not found", status_code=404)
        return Response(
            stored.body,
            media_type="image/webp",
            headers={"Cache-Control": IMMUTABLE_CACHE_CONTROL},
        )

    app.mount(
        "/placeholders",
        StaticFiles(directory=placeholders_dir, check_dir=False),
        name="placeholders",
    )

    return app

"""Multi-step image search: image -> description -> rewritten query -> results.

The orchestrator owns a single ImageSearchState and advances it through
``idle -> analyzing -> rewriting -> searching -> done`` (or ``error``).
Only one attempt runs at a time; commands issued while an attempt is in
flight are refused rather than interleaved.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Protocol

from ghibli_search.errors import GatewayError, ValidationError
from ghibli_search.gateways.analysis import ANALYZE_FAILED_MESSAGE
from ghibli_search.models import (
    GhibliImage,
    ImageSearchState,
    ImageSearchStep,
    SearchResponse,
    UploadedImage,
)

logger = logging.getLogger(__name__)

SEARCH_FAILED_MESSAGE = "Search failed, please try again"

StateListener = Callable[[ImageSearchState], None]


class SearchApi(Protocol):
    """The three gateway calls the orchestrator sequences."""

    async def analyze_image(self, upload: UploadedImage) -> str: ...

    async def rewrite_query(self, description: str) -> str: ...

    async def search(self, query: str) -> SearchResponse: ...


class ImageSearchOrchestrator:
    """State machine for one user's image searches."""

    def __init__(self, api: SearchApi) -> None:
        self._api = api
        self._state = ImageSearchState()
        self._upload: UploadedImage | None = None
        self._attempt = 0
        self._listeners: list[StateListener] = []
        self.results: list[GhibliImage] = []
        self.query: str | None = None

    @property
    def state(self) -> ImageSearchState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state.is_busy

    @property
    def can_retry(self) -> bool:
        return self._state.step is ImageSearchStep.ERROR and self._upload is not None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener for state changes. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: ImageSearchState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def _advance(self, attempt: int, **changes) -> bool:
        """Apply changes for ``attempt``; False if the attempt was superseded."""
        if attempt != self._attempt:
            return False
        self._set_state(replace(self._state, **changes))
        return True

    def _fail_search(self, attempt: int) -> None:
        if attempt == self._attempt:
            self.results = []
        self._advance(attempt, step=ImageSearchStep.ERROR, error=SEARCH_FAILED_MESSAGE)

    # ── Commands ─────────────────────────────────────────────────────

    async def start(self, upload: UploadedImage) -> bool:
        """Run a full image search for ``upload``.

        Raises ValidationError (without touching state) for a disallowed type
        or an oversized file. Returns False if another attempt is in flight,
        True once the accepted attempt has settled in ``done`` or ``error``.
        """
        upload.validate()
        if self.is_busy:
            logger.info("Ignoring image search for %s: another search is running", upload.name)
            return False

        self._attempt += 1
        attempt = self._attempt
        self._upload = upload
        self.results = []
        self._set_state(ImageSearchState(step=ImageSearchStep.ANALYZING, filename=upload.name))

        # Step 1: analyze
        try:
            description = await self._api.analyze_image(upload)
        except GatewayError as exc:
            logger.error("Image analysis failed: %s", exc.message)
            self._advance(attempt, step=ImageSearchStep.ERROR, error=exc.message)
            return True
        except Exception:
            logger.exception("Image analysis failed unexpectedly")
            self._advance(attempt, step=ImageSearchStep.ERROR, error=ANALYZE_FAILED_MESSAGE)
            return True
        if not self._advance(attempt, step=ImageSearchStep.REWRITING, description=description):
            return True

        # Step 2: rewrite, falling back to the description itself
        try:
            search_query = await self._api.rewrite_query(description)
        except GatewayError as exc:
            logger.warning("Query rewriting failed, using description as fallback: %s", exc)
            search_query = ""
        except Exception:
            logger.exception("Query rewriting failed unexpectedly, using description as fallback")
            search_query = ""
        if not isinstance(search_query, str) or not search_query.strip():
            search_query = description
        if not self._advance(attempt, step=ImageSearchStep.SEARCHING, search_query=search_query):
            return True

        # Step 3: search
        try:
            response = await self._api.search(search_query)
        except GatewayError as exc:
            logger.error("Image search failed: %s", exc)
            self._fail_search(attempt)
            return True
        except Exception:
            logger.exception("Image search failed unexpectedly")
            self._fail_search(attempt)
            return True

        if attempt == self._attempt:
            self.results = response.results
            self.query = search_query
            self._upload = None
            self._advance(attempt, step=ImageSearchStep.DONE)
        return True

    async def retry(self) -> bool:
        """Re-run the failed attempt with the retained upload."""
        if not self.can_retry:
            return False
        return await self.start(self._upload)

    def clear(self) -> None:
        """Return to idle, discarding the upload and results.

        An attempt still waiting on a gateway call is superseded and will not
        touch the state when it settles.
        """
        self._attempt += 1
        self._upload = None
        self.results = []
        self._set_state(ImageSearchState())

    async def new_search(
        self, query: str, reuse_image_query: bool = False
    ) -> list[GhibliImage] | None:
        """Run a text search.

        Returns None while an image search is in flight. With
        ``reuse_image_query`` and a finished image search, the stored search
        query is reused and the image-search state is kept; otherwise the
        image-search state is reset.
        """
        if self.is_busy:
            return None

        if (
            reuse_image_query
            and self._state.step is ImageSearchStep.DONE
            and self._state.search_query
        ):
            term = self._state.search_query
        else:
            term = query.strip()
            if not term:
                raise ValidationError("Please enter a search query")
            if self._state.step is not ImageSearchStep.IDLE:
                self.clear()

        self.query = term
        try:
            response = await self._api.search(term)
        except GatewayError as exc:
            logger.error("Search failed: %s", exc)
            self.results = []
        else:
            self.results = response.results
        return self.results

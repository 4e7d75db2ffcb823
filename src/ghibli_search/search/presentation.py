"""Presentation helpers: viewport profiles, staged reveals, progress text and share links."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import partial
from urllib.parse import parse_qs, urlencode, urljoin

from ghibli_search.catalog.movie_slugs import ghibli_works_url
from ghibli_search.models import GhibliImage, ImageSearchState, ImageSearchStep

MOBILE_MAX_WIDTH = 640
TABLET_MAX_WIDTH = 1024

# (delay in seconds, stage) for the landing -> results transition
SEARCH_EXIT_SEQUENCE: tuple[tuple[float, str], ...] = (
    (0.0, "background-exit"),
    (0.6, "suggestions-exit"),
    (1.2, "header-move"),
)
# Progress panel collapse once an image search is done
PROGRESS_COLLAPSE_SEQUENCE: tuple[tuple[float, str], ...] = (
    (0.0, "collapse-search"),
    (0.15, "collapse-rewrite"),
    (0.3, "collapse-analyze"),
    (0.5, "show-summary"),
)
RESULTS_REVEAL_DELAY = 1.0


class ViewportClass(str, Enum):
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"


@dataclass(frozen=True)
class ViewportProfile:
    """Layout decisions derived once from the viewport width."""

    viewport: ViewportClass
    showcase_count: int
    reveal_batch: int
    reveal_interval: float
    gallery_columns: int


_PROFILES = {
    ViewportClass.MOBILE: ViewportProfile(ViewportClass.MOBILE, 5, 1, 0.09, 1),
    ViewportClass.TABLET: ViewportProfile(ViewportClass.TABLET, 6, 3, 0.15, 2),
    ViewportClass.DESKTOP: ViewportProfile(ViewportClass.DESKTOP, 7, 3, 0.15, 3),
}


def classify_viewport(width: float | None) -> ViewportClass:
    """Mobile below 640px, tablet below 1024px, desktop otherwise (or if unknown)."""
    if not width:
        return ViewportClass.DESKTOP
    if width < MOBILE_MAX_WIDTH:
        return ViewportClass.MOBILE
    if width < TABLET_MAX_WIDTH:
        return ViewportClass.TABLET
    return ViewportClass.DESKTOP


def viewport_profile(width: float | None) -> ViewportProfile:
    return _PROFILES[classify_viewport(width)]


# ── Staged reveals ───────────────────────────────────────────────────


class StagedReveal:
    """A group of delayed commands that can be cancelled together.

    Scheduling a new sequence cancels the previous one, so a superseded view
    never receives a stale update.
    """

    def __init__(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
        self._sleep = sleep
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, steps: Sequence[tuple[float, Callable[[], None]]]) -> asyncio.Task:
        """Run each command once its delay (seconds from now) has elapsed."""
        self.cancel()
        self._task = asyncio.create_task(self._run(sorted(steps, key=lambda step: step[0])))
        return self._task

    async def _run(self, steps: list[tuple[float, Callable[[], None]]]) -> None:
        elapsed = 0.0
        for delay, command in steps:
            if delay > elapsed:
                await self._sleep(delay - elapsed)
                elapsed = delay
            command()

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()
        self._task = None


async def play_sequence(
    sequence: Sequence[tuple[float, str]],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[str]:
    """Yield each stage name of ``sequence`` as its delay elapses."""
    stages: asyncio.Queue[str | None] = asyncio.Queue()
    reveal = StagedReveal(sleep)
    steps = [(delay, partial(stages.put_nowait, stage)) for delay, stage in sequence]
    last = max((delay for delay, _ in sequence), default=0.0)
    steps.append((last, partial(stages.put_nowait, None)))
    reveal.schedule(steps)
    try:
        while (stage := await stages.get()) is not None:
            yield stage
    finally:
        reveal.cancel()


async def reveal_in_batches(
    items: Sequence,
    profile: ViewportProfile,
    initial_delay: float = RESULTS_REVEAL_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[list]:
    """Yield growing prefixes of ``items``: one row (or one item on mobile) at a time."""
    if not items:
        yield []
        return
    await sleep(initial_delay)
    visible = 0
    while visible < len(items):
        visible = min(len(items), visible + profile.reveal_batch)
        yield list(items[:visible])
        if visible < len(items):
            await sleep(profile.reveal_interval)


# ── Progress and captions ────────────────────────────────────────────


def render_progress(state: ImageSearchState) -> str:
    """Markdown for the image-search progress panel."""
    step = state.step
    if step is ImageSearchStep.IDLE:
        return ""
    if step is ImageSearchStep.ERROR:
        return f"**Something went wrong:** {state.error or 'Image search failed'}"
    if step is ImageSearchStep.DONE:
        lines = ["**How I found these**", ""]
        if state.description:
            lines.append(f"*What I saw:* {state.description}")
        if state.search_query:
            lines.append(f"*Searched for:* {state.search_query}")
        return "\n\n".join(lines)

    lines = []
    if step is ImageSearchStep.ANALYZING:
        lines.append(f"1. Reading image… `{state.filename}`")
    else:
        lines.append(f"1. ✓ What I saw: {state.description}")
    if step is ImageSearchStep.REWRITING:
        lines.append("2. Writing search query…")
    elif step is ImageSearchStep.SEARCHING:
        lines.append(f"2. ✓ Searching for: **{state.search_query}**")
        lines.append("3. Searching…")
    return "\n".join(lines)


_COLLAPSED_LINES = {"collapse-search": 2, "collapse-rewrite": 1, "collapse-analyze": 0}


def render_collapse(state: ImageSearchState, stage: str) -> str:
    """Progress markdown for one stage of the collapse that follows a finished search."""
    if stage not in _COLLAPSED_LINES:
        return render_progress(state)
    lines = [
        f"1. ✓ What I saw: {state.description}",
        f"2. ✓ Searched for: **{state.search_query}**",
    ]
    return "\n".join(lines[: _COLLAPSED_LINES[stage]])


def gallery_caption(image: GhibliImage) -> str:
    if image.year:
        return f"{image.description} · {image.movie_name} ({image.year})"
    return image.description


def preview_caption(image: GhibliImage) -> str:
    """Markdown caption for the full-size preview."""
    caption = f"**{image.description}**  \n{image.movie_name}"
    if image.year:
        caption += f" ({image.year})"
        caption += f" | [ghibli.jp で見る]({ghibli_works_url(image.movie_slug)})"
    return caption


def absolute_url(base_url: str, path: str) -> str:
    """Resolve a site-relative URL (e.g. ``/thumbnails/...``) against the public base URL."""
    return urljoin(base_url.rstrip("/") + "/", path.lstrip("/"))


# ── Shareable URL state ──────────────────────────────────────────────


def share_query_string(query: str | None, image_filename: str | None = None) -> str:
    """Build ``?query=...&image=...``; the image is stored without its ``.png`` extension."""
    params = {}
    if query:
        params["query"] = query
    if image_filename:
        params["image"] = image_filename.removesuffix(".png").removesuffix(".PNG")
    if not params:
        return ""
    return "?" + urlencode(params)


def parse_share_params(params: dict | str) -> tuple[str | None, str | None]:
    """Read ``(query, image filename)`` from query parameters, restoring ``.png``."""
    if isinstance(params, str):
        parsed = parse_qs(params.lstrip("?"))
        params = {key: values[0] for key, values in parsed.items()}
    query = (params.get("query") or "").strip() or None
    image = (params.get("image") or "").strip() or None
    if image and not image.lower().endswith(".png"):
        image = f"{image}.png"
    return query, image

"""Gradio application for the Ghibli stills search UI."""

import asyncio
import logging

import gradio as gr

from ghibli_search.config import PUBLIC_URL
from ghibli_search.errors import GatewayError, ValidationError
from ghibli_search.models import GhibliImage, ImageSearchStep, UploadedImage
from ghibli_search.search.client import GhibliSearchClient
from ghibli_search.search.orchestrator import ImageSearchOrchestrator
from ghibli_search.search.presentation import (
    PROGRESS_COLLAPSE_SEQUENCE,
    RESULTS_REVEAL_DELAY,
    SEARCH_EXIT_SEQUENCE,
    absolute_url,
    gallery_caption,
    parse_share_params,
    play_sequence,
    preview_caption,
    render_collapse,
    render_progress,
    reveal_in_batches,
    share_query_string,
    viewport_profile,
)

logger = logging.getLogger(__name__)


def _log_failed_attempt(task: asyncio.Task) -> None:
    """Retrieve the outcome of a finished search task so a failure is logged, not lost."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Image search attempt failed", exc_info=exc)

SUGGESTIONS = [
    "flying through clouds",
    "seaside town",
    "cooking delicious food",
    "夜空の星",
    "夜行列車",
    "bataille de sorciers",
]

VIEWPORT_WIDTH_JS = "() => window.innerWidth"

SCROLL_TO_PREVIEW_JS = """
(args) => {
    setTimeout(() => {
        const el = document.getElementById('still-preview');
        if (el) el.scrollIntoView({behavior: 'smooth', block: 'start'});
    }, 100);
}
"""

LANDING_HEADER = "# Ghibli Search\nSearch Studio Ghibli stills by description, in any language."
COMPACT_HEADER = "## Ghibli Search"


def create_app(client: GhibliSearchClient | None = None) -> gr.Blocks:
    """Create and return the Gradio Blocks app."""
    client = client or GhibliSearchClient()

    def _orchestrator(orchestrator: ImageSearchOrchestrator | None) -> ImageSearchOrchestrator:
        return orchestrator or ImageSearchOrchestrator(client)

    def _make_gallery_items(images: list[GhibliImage]) -> list[tuple[str, str]]:
        return [
            (absolute_url(PUBLIC_URL, image.thumbnail_url), gallery_caption(image))
            for image in images
        ]

    def _results_info(query: str | None, images: list[GhibliImage]) -> str:
        if not images:
            return f"No stills found for '{query}'." if query else ""
        return f"Found {len(images)} stills for '{query}'."

    # ── Preview helpers ──────────────────────────────────────────────

    def _open_preview(image: GhibliImage, query: str | None) -> tuple:
        share_url = absolute_url(PUBLIC_URL, share_query_string(query, image.filename))
        return (
            gr.update(value=absolute_url(PUBLIC_URL, image.image_url), visible=True),
            gr.update(value=preview_caption(image), visible=True),
            gr.update(value=f"[Share this still]({share_url})", visible=True),
            gr.update(visible=True),
        )

    def _on_close_preview() -> tuple:
        return (
            gr.update(value=None, visible=False),
            gr.update(value="", visible=False),
            gr.update(value="", visible=False),
            gr.update(visible=False),
        )

    def _on_gallery_select(
        images: list[GhibliImage],
        orchestrator: ImageSearchOrchestrator | None,
        evt: gr.SelectData,
    ) -> tuple:
        index = evt.index
        if index is None or index >= len(images):
            return _on_close_preview()
        query = orchestrator.query if orchestrator else None
        return _open_preview(images[index], query)

    def _on_showcase_select(images: list[GhibliImage], evt: gr.SelectData) -> tuple:
        index = evt.index
        if index is None or index >= len(images):
            return _on_close_preview()
        return _open_preview(images[index], None)

    # ── Page load: showcase and deep links ───────────────────────────

    async def _on_load(width: float | None, request: gr.Request):
        profile = viewport_profile(width)
        try:
            showcase = (await client.random_images())[: profile.showcase_count]
        except GatewayError as exc:
            logger.warning("Failed to load showcase images: %s", exc.message)
            showcase = []

        query, filename = parse_share_params(dict(request.query_params) if request else {})
        return (
            width,
            gr.update(value=_make_gallery_items(showcase), columns=profile.showcase_count),
            showcase,
            query or "",
            filename,
        )

    async def _restore_deep_link(
        query: str,
        filename: str | None,
        orchestrator: ImageSearchOrchestrator | None,
        width: float | None,
    ) -> tuple:
        orchestrator = _orchestrator(orchestrator)
        profile = viewport_profile(width)
        images: list[GhibliImage] = []
        landing = True
        if query:
            try:
                images = await orchestrator.new_search(query) or []
            except ValidationError:
                images = []
            landing = False

        preview = _on_close_preview()
        if filename:
            try:
                preview = _open_preview(await client.get_image(filename), query or None)
            except GatewayError as exc:
                logger.warning("Failed to restore shared still %s: %s", filename, exc.message)

        return (
            gr.update(value=_make_gallery_items(images), columns=profile.gallery_columns),
            _results_info(query, images),
            images,
            orchestrator,
            gr.update(visible=landing),
            gr.update(visible=landing),
            LANDING_HEADER if landing else COMPACT_HEADER,
            landing,
            query or gr.update(),
            *preview,
        )

    # ── Text search ──────────────────────────────────────────────────

    async def do_text_search(
        query: str,
        orchestrator: ImageSearchOrchestrator | None,
        width: float | None,
        landing: bool,
    ):
        orchestrator = _orchestrator(orchestrator)
        profile = viewport_profile(width)
        noop = gr.update()
        try:
            images = await orchestrator.new_search(query)
        except ValidationError as exc:
            gr.Warning(str(exc))
            yield noop, noop, noop, orchestrator, noop, noop, noop, landing, noop
            return
        if images is None:
            gr.Warning("An image search is still running")
            yield noop, noop, noop, orchestrator, noop, noop, noop, landing, noop
            return

        progress = gr.update(value="")
        delay = RESULTS_REVEAL_DELAY
        if landing:
            delay = 0
            showcase, suggestions, header = noop, noop, noop
            async for stage in play_sequence(SEARCH_EXIT_SEQUENCE):
                if stage == "background-exit":
                    showcase = gr.update(visible=False)
                elif stage == "suggestions-exit":
                    suggestions = gr.update(visible=False)
                elif stage == "header-move":
                    header = COMPACT_HEADER
                yield noop, noop, noop, orchestrator, showcase, suggestions, header, False, progress

        info = _results_info(orchestrator.query, images)
        async for visible in reveal_in_batches(images, profile, initial_delay=delay):
            yield (
                gr.update(value=_make_gallery_items(visible), columns=profile.gallery_columns),
                info,
                images,
                orchestrator,
                noop,
                noop,
                noop,
                False,
                progress,
            )

    # ── Image search ─────────────────────────────────────────────────

    async def _drive(orchestrator: ImageSearchOrchestrator, command, width: float | None):
        """Run ``command`` and yield UI updates for every state change it causes."""
        profile = viewport_profile(width)
        noop = gr.update()
        states: asyncio.Queue = asyncio.Queue()
        unsubscribe = orchestrator.subscribe(states.put_nowait)
        task = asyncio.create_task(command())
        task.add_done_callback(_log_failed_attempt)
        task.add_done_callback(lambda _: states.put_nowait(None))
        try:
            while (state := await states.get()) is not None:
                yield (
                    render_progress(state),
                    gr.update(visible=False),
                    gr.update(value=[]) if state.step is ImageSearchStep.ANALYZING else noop,
                    noop,
                    noop,
                    orchestrator,
                )
            accepted = await task
        finally:
            unsubscribe()

        if not accepted:
            gr.Warning("A search is already running")
            return

        state = orchestrator.state
        if state.step is ImageSearchStep.ERROR:
            yield render_progress(state), gr.update(visible=orchestrator.can_retry), [], "", [], orchestrator
            return
        if state.step is not ImageSearchStep.DONE:
            return

        images = orchestrator.results
        async for stage in play_sequence(PROGRESS_COLLAPSE_SEQUENCE):
            yield render_collapse(state, stage), noop, noop, noop, noop, orchestrator
        info = _results_info(state.search_query, images)
        async for visible in reveal_in_batches(images, profile, initial_delay=0):
            yield (
                noop,
                noop,
                gr.update(value=_make_gallery_items(visible), columns=profile.gallery_columns),
                info,
                images,
                orchestrator,
            )

    async def do_image_search(
        image_path: str | None,
        orchestrator: ImageSearchOrchestrator | None,
        width: float | None,
    ):
        orchestrator = _orchestrator(orchestrator)
        noop = gr.update()
        if image_path is None:
            gr.Warning("Please upload an image")
            yield noop, noop, noop, noop, noop, orchestrator
            return
        upload = UploadedImage.from_path(image_path)
        try:
            upload.validate()
        except ValidationError as exc:
            gr.Warning(str(exc))
            yield noop, noop, noop, noop, noop, orchestrator
            return
        async for update in _drive(orchestrator, lambda: orchestrator.start(upload), width):
            yield update

    async def do_retry(orchestrator: ImageSearchOrchestrator | None, width: float | None):
        orchestrator = _orchestrator(orchestrator)
        if not orchestrator.can_retry:
            yield gr.update(), gr.update(visible=False), gr.update(), gr.update(), gr.update(), orchestrator
            return
        async for update in _drive(orchestrator, orchestrator.retry, width):
            yield update

    def do_clear(orchestrator: ImageSearchOrchestrator | None) -> tuple:
        orchestrator = _orchestrator(orchestrator)
        orchestrator.clear()
        return "", gr.update(visible=False), [], "", [], orchestrator, None

    # ── Build UI ─────────────────────────────────────────────────────

    with gr.Blocks(title="Ghibli Search") as app:
        header = gr.Markdown(LANDING_HEADER)

        width_state = gr.State(None)
        landing_state = gr.State(True)
        orchestrator_state = gr.State(None)
        showcase_state = gr.State([])
        results_state = gr.State([])
        deep_link_query = gr.State("")
        deep_link_image = gr.State(None)
        viewport_width = gr.Number(visible=False)

        showcase_gallery = gr.Gallery(
            label="From the collection", columns=7, rows=1, height="auto",
            allow_preview=False,
        )

        with gr.Tabs():
            # ── Tab 1: Text Search ───────────────────────────────────
            with gr.TabItem("Text Search", id=0):
                with gr.Row():
                    text_input = gr.Textbox(
                        label="Search query",
                        placeholder="e.g. girl flying on a broom over the sea",
                        scale=4,
                    )
                    text_btn = gr.Button("Search", variant="primary", scale=1)
                with gr.Column() as suggestions:
                    gr.Examples(examples=[[s] for s in SUGGESTIONS], inputs=[text_input])

            # ── Tab 2: Image Search ──────────────────────────────────
            with gr.TabItem("Image Search", id=1):
                with gr.Row():
                    image_input = gr.Image(label="Upload an image", type="filepath")
                    with gr.Column():
                        image_btn = gr.Button("Find Similar Stills", variant="primary")
                        retry_btn = gr.Button("Try Again", visible=False)
                        clear_btn = gr.Button("Clear")
                progress_md = gr.Markdown("")

        preview_image = gr.Image(
            label="Preview", visible=False, height=480, elem_id="still-preview",
        )
        preview_caption_md = gr.Markdown("", visible=False)
        share_md = gr.Markdown("", visible=False)
        close_btn = gr.Button("Close Preview", visible=False)

        results_gallery = gr.Gallery(
            label="Results", columns=3, height="auto",
            allow_preview=False,
        )
        results_info = gr.Markdown("")

        preview_outputs = [preview_image, preview_caption_md, share_md, close_btn]

        # ── Wiring ───────────────────────────────────────────────────

        app.load(
            fn=_on_load,
            inputs=[viewport_width],
            outputs=[width_state, showcase_gallery, showcase_state, deep_link_query, deep_link_image],
            js=VIEWPORT_WIDTH_JS,
        ).then(
            fn=_restore_deep_link,
            inputs=[deep_link_query, deep_link_image, orchestrator_state, width_state],
            outputs=[
                results_gallery, results_info, results_state, orchestrator_state,
                showcase_gallery, suggestions, header, landing_state, text_input,
                *preview_outputs,
            ],
        )

        text_search_outputs = [
            results_gallery, results_info, results_state, orchestrator_state,
            showcase_gallery, suggestions, header, landing_state, progress_md,
        ]
        for trigger in (text_btn.click, text_input.submit):
            trigger(
                fn=_on_close_preview, outputs=preview_outputs,
            ).then(
                fn=do_text_search,
                inputs=[text_input, orchestrator_state, width_state, landing_state],
                outputs=text_search_outputs,
                concurrency_limit=None,
            )

        image_search_outputs = [
            progress_md, retry_btn, results_gallery, results_info, results_state,
            orchestrator_state,
        ]
        image_event = image_btn.click(
            fn=do_image_search,
            inputs=[image_input, orchestrator_state, width_state],
            outputs=image_search_outputs,
            concurrency_limit=None,
        )
        retry_event = retry_btn.click(
            fn=do_retry,
            inputs=[orchestrator_state, width_state],
            outputs=image_search_outputs,
            concurrency_limit=None,
        )
        clear_btn.click(
            fn=do_clear,
            inputs=[orchestrator_state],
            outputs=[*image_search_outputs, image_input],
            cancels=[image_event, retry_event],
        ).then(fn=_on_close_preview, outputs=preview_outputs)

        results_gallery.select(
            fn=_on_gallery_select,
            inputs=[results_state, orchestrator_state],
            outputs=preview_outputs,
            js=SCROLL_TO_PREVIEW_JS,
        )
        showcase_gallery.select(
            fn=_on_showcase_select,
            inputs=[showcase_state],
            outputs=preview_outputs,
            js=SCROLL_TO_PREVIEW_JS,
        )
        close_btn.click(fn=_on_close_preview, outputs=preview_outputs)

    return app

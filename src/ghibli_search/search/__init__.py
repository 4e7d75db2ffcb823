"""Ghibli stills search: HTTP API plus Gradio UI."""


def main() -> None:
    """CLI entry point: serve the API and mount the Gradio UI at ``/``."""
    import argparse
    import logging

    import gradio as gr
    import httpx
    import uvicorn

    from ghibli_search.config import HOST, LOG_LEVEL, PORT
    from ghibli_search.search.api import create_api
    from ghibli_search.search.app import create_app
    from ghibli_search.search.client import GhibliSearchClient

    parser = argparse.ArgumentParser(description="Serve the Ghibli stills search")
    parser.add_argument("--host", default=HOST, help=f"Bind address (default: {HOST})")
    parser.add_argument("--port", type=int, default=PORT, help=f"Port (default: {PORT})")
    args = parser.parse_args()

    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    api = create_api()
    # The UI talks to the API in-process
    client = GhibliSearchClient(
        base_url="http://ghibli-search", transport=httpx.ASGITransport(app=api)
    )
    app = gr.mount_gradio_app(api, create_app(client), path="/")
    uvicorn.run(app, host=args.host, port=args.port, log_level=LOG_LEVEL.lower())

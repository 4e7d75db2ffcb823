"""Tests for the HTTP client used by the orchestrator and UI."""

import asyncio

import httpx
import pytest

from conftest import FakeBackend, make_image, make_upload
from ghibli_search.errors import GatewayError
from ghibli_search.search.api import create_api
from ghibli_search.search.client import GhibliSearchClient


def _client(handler) -> GhibliSearchClient:
    return GhibliSearchClient(base_url="http://test", transport=httpx.MockTransport(handler))


def test_search_parses_results():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/search"
        assert request.url.params["q"] == "bathhouse"
        return httpx.Response(
            200, json={"results": [make_image().to_dict()], "query": "bathhouse"}
        )

    response = asyncio.run(_client(handler).search("bathhouse"))
    assert response.query == "bathhouse"
    assert response.results == [make_image()]


def test_error_response_becomes_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            500,
            json={"error": "Couldn't analyze this image, please try another", "details": "boom"},
        )

    with pytest.raises(GatewayError) as exc_info:
        asyncio.run(_client(handler).analyze_image(make_upload()))
    assert exc_info.value.message == "Couldn't analyze this image, please try another"
    assert exc_info.value.status_code == 500
    assert exc_info.value.details == "boom"


def test_error_without_json_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad gateway")

    with pytest.raises(GatewayError, match="status 502"):
        asyncio.run(_client(handler).search("rain"))


def test_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GatewayError, match="Could not reach"):
        asyncio.run(_client(handler).rewrite_query("A castle"))


def test_analyze_image_requires_description():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"description": "", "filename": "a.png"})

    with pytest.raises(GatewayError):
        asyncio.run(_client(handler).analyze_image(make_upload()))


def test_rewrite_query_missing_field_is_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    assert asyncio.run(_client(handler).rewrite_query("A castle")) == ""


def test_round_trip_through_api(image_store, thumbnail_store, tmp_path):
    backend = FakeBackend(
        search_results=[[{"filename": "(1988) My Neighbor Totoro/Bus Stop.png", "score": 0.6}]],
        markdown_results=[{"format": "markdown", "data": "Two girls wait at a bus stop"}],
        run_results=[{"response": "girls waiting at rainy bus stop"}],
    )
    api = create_api(
        backend=backend, images=image_store, thumbnails=thumbnail_store, placeholders_dir=tmp_path
    )
    client = GhibliSearchClient(base_url="http://test", transport=httpx.ASGITransport(app=api))

    async def scenario():
        description = await client.analyze_image(make_upload())
        query = await client.rewrite_query(description)
        response = await client.search(query)
        showcase = await client.random_images()
        detail = await client.get_image("(2001) Spirited Away/Chihiro at the Bathhouse.png")
        return description, query, response, showcase, detail

    description, query, response, showcase, detail = asyncio.run(scenario())
    assert description == "Two girls wait at a bus stop"
    assert query == "girls waiting at rainy bus stop"
    assert [image.movie_slug for image in response.results] == ["totoro"]
    assert len(showcase) == 3
    assert detail == make_image(score=1)

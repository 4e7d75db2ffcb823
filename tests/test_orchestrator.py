"""Tests for the image-search state machine."""

import asyncio

import pytest

from conftest import FakeSearchApi, gateway_error, make_image, make_upload
from ghibli_search.errors import GatewayError, ValidationError
from ghibli_search.gateways.analysis import ANALYZE_FAILED_MESSAGE
from ghibli_search.models import ImageSearchStep
from ghibli_search.search.orchestrator import SEARCH_FAILED_MESSAGE, ImageSearchOrchestrator


def _record_steps(orchestrator: ImageSearchOrchestrator) -> list:
    states = []
    orchestrator.subscribe(states.append)
    return states


def test_full_attempt_step_sequence():
    api = FakeSearchApi()
    orchestrator = ImageSearchOrchestrator(api)
    states = _record_steps(orchestrator)

    assert asyncio.run(orchestrator.start(make_upload("scene.jpg", "image/jpeg"))) is True

    assert [s.step for s in states] == [
        ImageSearchStep.ANALYZING,
        ImageSearchStep.REWRITING,
        ImageSearchStep.SEARCHING,
        ImageSearchStep.DONE,
    ]
    assert all(s.filename == "scene.jpg" for s in states)
    final = orchestrator.state
    assert final.description == "A girl flying on a broom over a seaside town"
    assert final.search_query == "witch girl flying over seaside town"
    assert final.error is None
    assert orchestrator.results == [make_image()]
    assert orchestrator.query == "witch girl flying over seaside town"
    assert not orchestrator.can_retry
    assert api.calls == [
        ("analyze", "scene.jpg"),
        ("rewrite", "A girl flying on a broom over a seaside town"),
        ("search", "witch girl flying over seaside town"),
    ]


def test_rewrite_failure_falls_back_to_description():
    api = FakeSearchApi(rewrite=gateway_error("Failed to rewrite query"))
    orchestrator = ImageSearchOrchestrator(api)
    states = _record_steps(orchestrator)

    asyncio.run(orchestrator.start(make_upload()))

    assert ImageSearchStep.ERROR not in [s.step for s in states]
    assert orchestrator.state.step is ImageSearchStep.DONE
    assert orchestrator.state.search_query == "A girl flying on a broom over a seaside town"
    assert api.calls[-1] == ("search", "A girl flying on a broom over a seaside town")


def test_empty_rewrite_falls_back_to_description():
    api = FakeSearchApi(rewrite="   ")
    orchestrator = ImageSearchOrchestrator(api)
    asyncio.run(orchestrator.start(make_upload()))
    assert orchestrator.state.search_query == api.description


def test_analysis_failure_goes_to_error_with_message():
    api = FakeSearchApi(description=gateway_error("Couldn't analyze this image, please try another"))
    orchestrator = ImageSearchOrchestrator(api)

    asyncio.run(orchestrator.start(make_upload()))

    assert orchestrator.state.step is ImageSearchStep.ERROR
    assert orchestrator.state.error == "Couldn't analyze this image, please try another"
    assert orchestrator.state.filename == "totoro.png"
    assert orchestrator.can_retry
    assert api.calls == [("analyze", "totoro.png")]


def test_search_failure_goes_to_error_and_clears_results():
    api = FakeSearchApi(results=gateway_error())
    orchestrator = ImageSearchOrchestrator(api)
    orchestrator.results = [make_image()]

    asyncio.run(orchestrator.start(make_upload()))

    assert orchestrator.state.step is ImageSearchStep.ERROR
    assert orchestrator.state.error == SEARCH_FAILED_MESSAGE
    assert orchestrator.results == []
    assert orchestrator.can_retry


def test_invalid_upload_is_rejected_without_state_change():
    api = FakeSearchApi()
    orchestrator = ImageSearchOrchestrator(api)
    states = _record_steps(orchestrator)

    with pytest.raises(ValidationError):
        asyncio.run(orchestrator.start(make_upload("notes.txt", "text/plain")))

    assert states == []
    assert orchestrator.state.step is ImageSearchStep.IDLE
    assert api.calls == []


def test_single_flight_rejects_second_start():
    api = FakeSearchApi()
    api.gate = asyncio.Event()
    orchestrator = ImageSearchOrchestrator(api)

    async def scenario():
        first = asyncio.create_task(orchestrator.start(make_upload("a.png")))
        await asyncio.sleep(0)
        assert orchestrator.is_busy
        second = await orchestrator.start(make_upload("b.png"))
        assert orchestrator.state.filename == "a.png"
        api.gate.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert (first, second) == (True, False)
    assert orchestrator.state.step is ImageSearchStep.DONE
    assert orchestrator.state.filename == "a.png"
    assert [call for call in api.calls if call[0] == "analyze"] == [("analyze", "a.png")]


def test_new_search_is_noop_while_busy():
    api = FakeSearchApi()
    api.gate = asyncio.Event()
    orchestrator = ImageSearchOrchestrator(api)

    async def scenario():
        attempt = asyncio.create_task(orchestrator.start(make_upload()))
        await asyncio.sleep(0)
        result = await orchestrator.new_search("seaside town")
        api.gate.set()
        await attempt
        return result

    assert asyncio.run(scenario()) is None
    assert ("search", "seaside town") not in api.calls


def test_retry_reuses_retained_upload():
    api = FakeSearchApi(description=gateway_error("Couldn't analyze this image, please try another"))
    orchestrator = ImageSearchOrchestrator(api)
    asyncio.run(orchestrator.start(make_upload("kiki.png")))

    api.description = "A witch flying over the sea"
    assert asyncio.run(orchestrator.retry()) is True

    assert orchestrator.state.step is ImageSearchStep.DONE
    assert orchestrator.state.filename == "kiki.png"
    assert [call for call in api.calls if call[0] == "analyze"] == [
        ("analyze", "kiki.png"),
        ("analyze", "kiki.png"),
    ]


def test_retry_requires_error_state():
    orchestrator = ImageSearchOrchestrator(FakeSearchApi())
    assert asyncio.run(orchestrator.retry()) is False
    asyncio.run(orchestrator.start(make_upload()))
    assert asyncio.run(orchestrator.retry()) is False


def test_clear_resets_everything():
    api = FakeSearchApi(results=gateway_error())
    orchestrator = ImageSearchOrchestrator(api)
    asyncio.run(orchestrator.start(make_upload()))

    orchestrator.clear()

    assert orchestrator.state.step is ImageSearchStep.IDLE
    assert orchestrator.state.filename is None
    assert orchestrator.state.error is None
    assert orchestrator.results == []
    assert not orchestrator.can_retry


def test_clear_supersedes_in_flight_attempt():
    api = FakeSearchApi()
    api.gate = asyncio.Event()
    orchestrator = ImageSearchOrchestrator(api)
    states = _record_steps(orchestrator)

    async def scenario():
        attempt = asyncio.create_task(orchestrator.start(make_upload()))
        await asyncio.sleep(0)
        orchestrator.clear()
        api.gate.set()
        return await attempt

    asyncio.run(scenario())

    assert [s.step for s in states] == [ImageSearchStep.ANALYZING, ImageSearchStep.IDLE]
    assert orchestrator.state.step is ImageSearchStep.IDLE
    assert orchestrator.results == []
    assert ("rewrite", api.description) not in api.calls


def test_new_search_resets_image_state():
    api = FakeSearchApi()
    orchestrator = ImageSearchOrchestrator(api)
    asyncio.run(orchestrator.start(make_upload()))

    results = asyncio.run(orchestrator.new_search("  seaside town  "))

    assert results == [make_image()]
    assert orchestrator.query == "seaside town"
    assert orchestrator.state.step is ImageSearchStep.IDLE
    assert api.calls[-1] == ("search", "seaside town")


def test_new_search_can_reuse_image_query():
    api = FakeSearchApi()
    orchestrator = ImageSearchOrchestrator(api)
    asyncio.run(orchestrator.start(make_upload()))
    analyze_calls = len([c for c in api.calls if c[0] == "analyze"])

    asyncio.run(orchestrator.new_search("", reuse_image_query=True))

    assert api.calls[-1] == ("search", "witch girl flying over seaside town")
    assert orchestrator.state.step is ImageSearchStep.DONE
    assert len([c for c in api.calls if c[0] == "analyze"]) == analyze_calls


def test_new_search_requires_query():
    orchestrator = ImageSearchOrchestrator(FakeSearchApi())
    with pytest.raises(ValidationError, match="Please enter a search query"):
        asyncio.run(orchestrator.new_search("   "))


def test_new_search_failure_yields_empty_results():
    orchestrator = ImageSearchOrchestrator(FakeSearchApi(results=GatewayError("down")))
    assert asyncio.run(orchestrator.new_search("rain")) == []
    assert orchestrator.query == "rain"


def test_unsubscribe_stops_notifications():
    orchestrator = ImageSearchOrchestrator(FakeSearchApi())
    states = []
    unsubscribe = orchestrator.subscribe(states.append)
    unsubscribe()
    asyncio.run(orchestrator.start(make_upload()))
    assert states == []


def test_unexpected_search_error_settles_in_error_state():
    api = FakeSearchApi(results=KeyError("filename"))
    orchestrator = ImageSearchOrchestrator(api)

    assert asyncio.run(orchestrator.start(make_upload())) is True

    assert orchestrator.state.step is ImageSearchStep.ERROR
    assert orchestrator.state.error == SEARCH_FAILED_MESSAGE
    assert not orchestrator.is_busy
    assert orchestrator.can_retry
    assert orchestrator.results == []

    api.results = [make_image()]
    assert asyncio.run(orchestrator.new_search("totoro")) == [make_image()]


def test_unexpected_analysis_error_settles_in_error_state():
    api = FakeSearchApi(description=RuntimeError("transport blew up"))
    orchestrator = ImageSearchOrchestrator(api)

    asyncio.run(orchestrator.start(make_upload()))

    assert orchestrator.state.step is ImageSearchStep.ERROR
    assert orchestrator.state.error == ANALYZE_FAILED_MESSAGE
    assert orchestrator.can_retry

    api.description = "A witch flying over the sea"
    assert asyncio.run(orchestrator.retry()) is True
    assert orchestrator.state.step is ImageSearchStep.DONE


def test_unexpected_rewrite_error_falls_back_to_description():
    api = FakeSearchApi(rewrite=ValueError("bad payload"))
    orchestrator = ImageSearchOrchestrator(api)

    asyncio.run(orchestrator.start(make_upload()))

    assert orchestrator.state.step is ImageSearchStep.DONE
    assert orchestrator.state.search_query == api.description

import asyncio
import sys
from pathlib import Path

import httpx
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from brandflow import Settings, create_client
from brandflow.core import state as transitions
from brandflow.core.cancellation import CancellationToken, Cancelled
from brandflow.core.errors import HTTPStatusFailure
from brandflow.core.state import EntityState, LoadPhase
from brandflow.infrastructure import HistoryNavigator, InMemoryTokenStore, reset_coordination_state

PREFIX = "/api/v1.0/brands/b1"


@pytest.fixture(autouse=True)
def reset_state():
    reset_coordination_state()
    yield
    reset_coordination_state()


def make_client(handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return create_client(
        Settings(api_url="http://api.test"),
        http_client=http_client,
        token_store=InMemoryTokenStore("access-1", "refresh-1"),
        navigator=HistoryNavigator(),
    )


def test_state_transitions_are_pure():
    initial = EntityState()
    loading = transitions.start_loading(initial, now=1.0)
    loaded = transitions.resolve(loading, {"id": "b1"}, now=2.0)
    refreshing = transitions.start_loading(loaded, now=3.0)
    failed = transitions.reject(refreshing, "Server down", now=4.0)

    assert initial.phase is LoadPhase.IDLE
    assert loading.is_loading and loading.updated_at == 1.0
    assert loaded.is_loaded and loaded.data == {"id": "b1"}
    # data stays visible while a refresh runs and after it fails
    assert refreshing.data == {"id": "b1"}
    assert failed.is_error and failed.error == "Server down" and failed.data == {"id": "b1"}
    assert transitions.reset(failed) == EntityState()


@pytest.mark.asyncio
async def test_cancellation_token_guards_late_results():
    token = CancellationToken()
    cleaned = []
    token.on_cancel(lambda: cleaned.append("poller"))
    release = asyncio.Event()

    async def slow():
        await release.wait()
        return "late"

    pending = asyncio.ensure_future(token.guard(slow()))
    await asyncio.sleep(0)
    token.cancel()
    token.cancel()
    release.set()

    with pytest.raises(Cancelled):
        await pending
    assert cleaned == ["poller"]

    with pytest.raises(Cancelled):
        await token.guard(slow())

    token.on_cancel(lambda: cleaned.append("after"))
    assert cleaned == ["poller", "after"]


@pytest.mark.asyncio
async def test_response_after_unmount_is_dropped():
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(200, json={"id": "b1", "current_status": "summary"})

    client = make_client(handler)
    controller = client.brand("b1")
    mounting = asyncio.ensure_future(controller.mount())
    await asyncio.sleep(0)

    controller.unmount()
    release.set()
    await mounting

    assert controller.brand is None
    assert not controller.mounted


@pytest.mark.asyncio
async def test_remount_uses_a_fresh_token():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "b1", "current_status": "jtbd"})

    client = make_client(handler)
    controller = client.brand("b1")
    await controller.mount()
    first_token = controller.token
    controller.unmount()

    await controller.mount()

    assert controller.token is not first_token
    assert controller.token.alive
    assert controller.brand.current_status == "jtbd"


@pytest.mark.asyncio
async def test_analysis_is_fetched_once_and_shared_between_views():
    calls = 0
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        if request.url.path == f"{PREFIX}/feedback":
            calls += 1
            await release.wait()
            return httpx.Response(200, json={"themes": ["pricing"]})
        return httpx.Response(200, json={"id": "b1", "current_status": "feedback_review_summary"})

    client = make_client(handler)
    first = client.feedback_analysis("b1")
    second = client.feedback_analysis("b1")

    mounts = asyncio.gather(first.mount(), second.mount())
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    release.set()
    await mounts

    assert calls == 1
    assert first.state.data == second.state.data == {"themes": ["pricing"]}

    third = client.feedback_analysis("b1")
    await third.mount()
    assert calls == 1
    assert third.state.is_loaded

    await third.reload()
    assert calls == 2


@pytest.mark.asyncio
async def test_failed_analysis_is_retryable_and_not_cached():
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            return httpx.Response(500, json={"detail": "model timeout"})
        return httpx.Response(200, json={"summary": "Sharper summary"})

    client = make_client(handler)
    controller = client.summary_adjustment("b1")
    await controller.mount()

    assert controller.state.is_error
    assert controller.state.error == "The server is experiencing issues. Please try again later."
    assert controller.key not in client.coordination.cache

    await controller.retry()
    assert controller.state.is_loaded
    assert controller.state.data == {"summary": "Sharper summary"}


@pytest.mark.asyncio
async def test_mutation_invalidates_cached_analyses_of_the_brand():
    calls = {"feedback": 0, "patch": 0, "get": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == f"{PREFIX}/feedback":
            calls["feedback"] += 1
            return httpx.Response(200, json={"version": calls["feedback"]})
        if request.method == "PATCH":
            calls["patch"] += 1
            return httpx.Response(200, json={"id": "b1", "name": "Renamed"})
        calls["get"] += 1
        return httpx.Response(200, json={"id": "b1", "name": "Renamed", "current_status": "summary"})

    client = make_client(handler)
    analysis = client.feedback_analysis("b1")
    await analysis.mount()
    assert analysis.state.data == {"version": 1}

    brand = client.brand("b1")
    await brand.mount()
    await brand.mutate(lambda: client.api.patch_brand("b1", {"name": "Renamed"}))

    assert calls["patch"] == 1
    assert calls["get"] == 2
    assert brand.brand.name == "Renamed"

    await analysis.load()
    assert analysis.state.data == {"version": 2}


@pytest.mark.asyncio
async def test_mutation_errors_reach_the_caller():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "PATCH":
            return httpx.Response(422, json={"detail": "Name is required."})
        return httpx.Response(200, json={"id": "b1"})

    client = make_client(handler)
    controller = client.brand("b1")
    await controller.mount()

    with pytest.raises(HTTPStatusFailure) as excinfo:
        await controller.mutate(lambda: client.api.patch_brand("b1", {"name": ""}))
    assert excinfo.value.detail == "Name is required."


@pytest.mark.asyncio
async def test_mount_failure_leaves_a_retryable_error_state():
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            return httpx.Response(404, json={"detail": "Brand not found"})
        return httpx.Response(200, json={"id": "b1", "current_status": "summary"})

    client = make_client(handler)
    controller = client.brand("b1")
    await controller.mount()

    assert controller.state.is_error
    assert controller.state.error == "Brand not found"

    await controller.retry()
    assert controller.state.is_loaded
    assert controller.state.data.current_status == "summary"

"""Tests for the outline stream HTTP client against the ASGI app."""

import httpx
import pytest

from dossier.client.state import GenerationStatus
from dossier.client.stream import OutlineStreamClient
from dossier.core.llm import get_llm_client
from dossier.core.search import SearchClient, get_search_client
from dossier.db.stores import get_stores
from dossier.main import app
from tests.fakes.fake_llm import FakeLLM

MARKDOWN = "\n---\n".join(f"## Finding Number {i}\n- detail {i}" for i in range(6))


@pytest.fixture
def wired_app(memory_stores):
    llm = FakeLLM(["Enhanced topic"], chunks=[MARKDOWN[i : i + 11] for i in range(0, len(MARKDOWN), 11)])
    app.dependency_overrides[get_llm_client] = lambda: llm
    app.dependency_overrides[get_search_client] = lambda: SearchClient(api_key=None)
    app.dependency_overrides[get_stores] = lambda: memory_stores
    yield app
    app.dependency_overrides.clear()


def _client(transport: httpx.AsyncBaseTransport) -> OutlineStreamClient:
    return OutlineStreamClient("http://testserver", transport=transport)


@pytest.mark.asyncio
async def test_stream_drives_state_to_complete(wired_app, memory_stores):
    async with _client(httpx.ASGITransport(app=wired_app)) as client:
        state = await client.stream_outline("quarterly planning for startups", mode="fast")

    assert state.status is GenerationStatus.COMPLETE
    assert state.enhanced_prompt == "Enhanced topic"
    assert [s.title for s in state.slides] == [f"Finding Number {i}" for i in range(6)]
    assert memory_stores.drafts.get(state.draft_id) is not None


@pytest.mark.asyncio
async def test_short_prompt_error_event_reaches_state(wired_app):
    async with _client(httpx.ASGITransport(app=wired_app)) as client:
        state = await client.stream_outline("short")

    assert state.status is GenerationStatus.ERROR
    assert state.error == "Prompt must be at least 10 characters"


@pytest.mark.asyncio
async def test_save_outline_persists_edits(wired_app, memory_stores):
    async with _client(httpx.ASGITransport(app=wired_app)) as client:
        state = await client.stream_outline("quarterly planning for startups", mode="fast")
        state.update_slide(0, title="Edited Title")
        await client.save_outline(state.draft_id, state.to_outline())

    draft = memory_stores.drafts.get(state.draft_id)
    assert draft.outline.slides[0].title == "Edited Title"


@pytest.mark.asyncio
async def test_http_error_without_events():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="upstream exploded"))

    async with _client(transport) as client:
        state = await client.stream_outline("a perfectly fine prompt")

    assert state.status is GenerationStatus.ERROR
    assert state.error == "HTTP error: 500"


@pytest.mark.asyncio
async def test_connection_failure_sets_error():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    async with _client(httpx.MockTransport(handler)) as client:
        state = await client.stream_outline("a perfectly fine prompt")

    assert state.status is GenerationStatus.ERROR
    assert "connection refused" in state.error


@pytest.mark.asyncio
async def test_save_outline_raises_on_missing_draft(wired_app):
    async with _client(httpx.ASGITransport(app=wired_app)) as client:
        state = await client.stream_outline("quarterly planning for startups", mode="fast")
        with pytest.raises(httpx.HTTPStatusError):
            await client.save_outline("missing-draft", state.to_outline())

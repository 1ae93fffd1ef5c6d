"""Tests for the presentation status stream."""

import asyncio

import pytest

from dossier.core.schemas import Outline, OutlineSlide, Presentation
from dossier.db.presentations import InMemoryPresentationStore
from dossier.services.notifier import PresentationNotifier
from dossier.services.presentation_stream import presentation_status_events


@pytest.fixture
def store():
    presentations = InMemoryPresentationStore()
    outline = Outline(
        title="Deck",
        slides=[OutlineSlide(index=i, title=f"S{i}", bullets=["b"], type="content") for i in range(5)],
    )
    presentations.create(Presentation(id="p1", user_id="u1", title="Deck", outline=outline))
    return presentations


async def _next(stream, timeout: float = 1.0) -> str:
    return await asyncio.wait_for(stream.__anext__(), timeout)


@pytest.mark.asyncio
async def test_snapshot_is_sent_immediately(store):
    stream = presentation_status_events("p1", "u1", store, PresentationNotifier(), poll_seconds=30)

    assert await _next(stream) == ": connected\n\n"
    snapshot = await _next(stream)
    assert snapshot.startswith("data: ")
    assert '"status": "generating"' in snapshot
    await stream.aclose()


@pytest.mark.asyncio
async def test_publish_wakes_stream_before_poll_interval(store):
    notifier = PresentationNotifier()
    stream = presentation_status_events("p1", "u1", store, notifier, poll_seconds=30)
    await _next(stream)
    await _next(stream)
    assert notifier.subscriber_count("p1") == 1

    store.update("p1", {"status": "completed"})
    notifier.publish("p1")

    assert '"status": "completed"' in await _next(stream)
    assert await _next(stream) == 'event: complete\ndata: {"status": "completed"}\n\n'
    with pytest.raises(StopAsyncIteration):
        await _next(stream)
    assert notifier.subscriber_count("p1") == 0


@pytest.mark.asyncio
async def test_poll_fallback_without_notification(store):
    stream = presentation_status_events("p1", "u1", store, PresentationNotifier(), poll_seconds=0.01)
    await _next(stream)
    await _next(stream)

    store.update("p1", {"status": "failed", "error_message": "boom"})

    assert '"status": "failed"' in await _next(stream)
    assert await _next(stream) == 'event: complete\ndata: {"status": "failed"}\n\n'


@pytest.mark.asyncio
async def test_other_users_presentation_is_not_found(store):
    frames = [f async for f in presentation_status_events("p1", "intruder", store, PresentationNotifier())]

    assert frames == [": connected\n\n", 'event: error\ndata: {"error": "Presentation not found"}\n\n']


@pytest.mark.asyncio
async def test_stops_when_client_disconnects(store):
    async def disconnected() -> bool:
        return True

    frames = [
        f
        async for f in presentation_status_events(
            "p1", "u1", store, PresentationNotifier(), is_disconnected=disconnected
        )
    ]

    assert frames == [": connected\n\n"]

"""Tests for debounced outline auto-save."""

import asyncio

import pytest

from dossier.client.autosave import OutlineAutoSaver
from dossier.client.state import GenerationState
from dossier.core.sse import CompleteEvent, DraftCreatedEvent, SlideCompleteEvent, StreamedSlide


class RecordingSaver:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved = []

    async def save_outline(self, draft_id, outline):
        if self.fail:
            raise RuntimeError("network down")
        self.saved.append((draft_id, outline))
        return {"message": "Draft updated successfully"}


class GatedSaver:
    """Blocks each save until released."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.saved = []

    async def save_outline(self, draft_id, outline):
        self.started.set()
        await self.release.wait()
        self.saved.append([slide.title for slide in outline.slides])
        return {"message": "Draft updated successfully"}


def _state(draft_id: str | None = "draft-1") -> GenerationState:
    state = GenerationState()
    state.begin()
    for i in range(5):
        state.apply(SlideCompleteEvent(index=i, parsed=StreamedSlide(index=i, title=f"S{i}", bullets=["b"])))
    if draft_id:
        state.apply(DraftCreatedEvent(draft_id=draft_id))
    state.apply(CompleteEvent(slide_count=5))
    return state


@pytest.mark.asyncio
async def test_edits_are_debounced_into_one_save():
    state = _state()
    saver = RecordingSaver()
    autosaver = OutlineAutoSaver(state, saver, debounce_seconds=0.01)

    state.update_slide(0, title="First edit")
    state.update_slide(1, title="Second edit")
    await autosaver.flush()

    assert len(saver.saved) == 1
    draft_id, outline = saver.saved[0]
    assert draft_id == "draft-1"
    assert outline.slides[0].title == "First edit"
    assert outline.slides[1].title == "Second edit"
    assert state.has_unsaved_changes is False
    autosaver.close()


@pytest.mark.asyncio
async def test_failed_save_keeps_changes_unsaved():
    state = _state()
    autosaver = OutlineAutoSaver(state, RecordingSaver(fail=True), debounce_seconds=0.01)

    state.update_slide(0, title="Edit")
    await autosaver.flush()

    assert state.has_unsaved_changes is True
    assert state.last_saved is None
    autosaver.close()


@pytest.mark.asyncio
async def test_no_save_without_draft_id():
    state = _state(draft_id=None)
    saver = RecordingSaver()
    autosaver = OutlineAutoSaver(state, saver, debounce_seconds=0.01)

    state.update_slide(0, title="Edit")
    await autosaver.flush()

    assert await autosaver.save_now() is False
    assert saver.saved == []


@pytest.mark.asyncio
async def test_close_cancels_pending_save():
    state = _state()
    saver = RecordingSaver()
    autosaver = OutlineAutoSaver(state, saver, debounce_seconds=10)

    state.update_slide(0, title="Edit")
    autosaver.close()
    await autosaver.flush()

    assert saver.saved == []
    state.update_slide(1, title="After close")
    assert saver.saved == []


@pytest.mark.asyncio
async def test_edit_during_save_is_saved_afterwards():
    state = _state()
    saver = GatedSaver()
    autosaver = OutlineAutoSaver(state, saver, debounce_seconds=0.01)

    state.update_slide(0, title="first")
    await asyncio.wait_for(saver.started.wait(), timeout=1)
    state.update_slide(1, title="edited-while-saving")
    saver.release.set()
    await asyncio.wait_for(autosaver.flush(), timeout=1)

    assert saver.saved == [
        ["first", "S1", "S2", "S3", "S4"],
        ["first", "edited-while-saving", "S2", "S3", "S4"],
    ]
    assert state.has_unsaved_changes is False
    autosaver.close()


@pytest.mark.asyncio
async def test_state_stays_unsaved_until_latest_edit_is_written():
    state = _state()
    saver = GatedSaver()
    autosaver = OutlineAutoSaver(state, saver, debounce_seconds=10)

    state.update_slide(0, title="first")
    save = asyncio.create_task(autosaver.save_now())
    await asyncio.wait_for(saver.started.wait(), timeout=1)
    state.update_slide(1, title="later")
    saver.release.set()

    assert await save is True
    assert state.has_unsaved_changes is True
    assert state.last_saved is None
    autosaver.close()

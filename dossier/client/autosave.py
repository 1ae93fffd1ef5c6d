"""Debounced outline auto-save."""

import asyncio
from typing import Protocol

from dossier.client.state import GenerationState, GenerationStatus
from dossier.core.logging import get_logger
from dossier.core.schemas import Outline

logger = get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 2.0


class OutlineSaver(Protocol):
    async def save_outline(self, draft_id: str, outline: Outline) -> dict: ...


class OutlineAutoSaver:
    """
    Persists outline edits to the draft after a quiet period.

    Every state change restarts the debounce timer. A save only happens when
    the state has a draft id, unsaved changes and a ``complete`` status. A
    failed save leaves the changes marked unsaved.
    """

    def __init__(
        self,
        state: GenerationState,
        saver: OutlineSaver,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self.state = state
        self.saver = saver
        self.debounce_seconds = debounce_seconds
        self.is_saving = False
        self._pending: asyncio.Task | None = None
        self._in_flight: asyncio.Task | None = None
        self._unsubscribe = state.subscribe(self._on_change)

    def should_save(self) -> bool:
        return bool(
            self.state.draft_id
            and self.state.has_unsaved_changes
            and self.state.status is GenerationStatus.COMPLETE
        )

    def _on_change(self, _state: GenerationState) -> None:
        if not self.should_save():
            return
        self._schedule()

    def _schedule(self) -> None:
        self._cancel_pending()
        self._pending = asyncio.get_running_loop().create_task(self._debounced_save())

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _debounced_save(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # Past the debounce a save is no longer cancellable by new edits
        task = asyncio.current_task()
        self._pending = None
        self._in_flight = task
        try:
            await self.save_now()
        finally:
            if self._in_flight is task:
                self._in_flight = None

    async def save_now(self) -> bool:
        """
        Save immediately if eligible; returns True when the draft was written.

        Edits made while the save is running keep the state unsaved and are
        picked up by the next debounced save.
        """
        if not self.should_save():
            return False
        if self.is_saving:
            self._schedule()
            return False

        draft_id = self.state.draft_id
        edit_count = self.state.edit_count
        self.is_saving = True
        try:
            await self.saver.save_outline(draft_id, self.state.to_outline())
        except Exception as e:
            logger.error(f"Failed to save draft {draft_id}: {e}")
            return False
        finally:
            self.is_saving = False

        if self.state.edit_count != edit_count:
            logger.info(f"Draft {draft_id} saved; newer edits pending")
            if self._pending is None:
                self._schedule()
            return True

        self.state.mark_saved()
        logger.info(f"Draft {draft_id} saved")
        return True

    async def flush(self) -> None:
        """Wait until scheduled and running saves have finished."""
        while True:
            task = self._pending or self._in_flight
            if task is None or task is asyncio.current_task():
                return
            try:
                await task
            except asyncio.CancelledError:
                pass
            if task is (self._pending or self._in_flight):
                return

    def close(self) -> None:
        self._cancel_pending()
        self._unsubscribe()

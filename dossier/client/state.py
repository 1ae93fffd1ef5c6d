"""Client-side outline generation state, driven by streamed events."""

import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from dossier.chains.stream_outline import outline_from_streamed_slides
from dossier.core.logging import get_logger
from dossier.core.schemas import MAX_OUTLINE_SLIDES, MIN_OUTLINE_SLIDES, Outline
from dossier.core.sse import (
    CompleteEvent,
    ContentChunkEvent,
    DraftCreatedEvent,
    ErrorEvent,
    PreprocessingEvent,
    ResearchCompleteEvent,
    ResearchQueryEvent,
    ResearchSourceEvent,
    SlideCompleteEvent,
    SourceBadge,
    StreamedSlide,
)

logger = get_logger(__name__)


class GenerationStatus(str, Enum):
    IDLE = "idle"
    PREPROCESSING = "preprocessing"
    RESEARCHING = "researching"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_STATUSES = {GenerationStatus.COMPLETE, GenerationStatus.ERROR}


class OutlineEditError(ValueError):
    """Raised when an edit would break the outline's slide count bounds."""


class GenerationState:
    """
    Finite-state record of one outline generation run.

    Events are applied strictly in receipt order. Once ``complete`` or
    ``error`` has been applied, further events are ignored. Listeners are
    called after every change (event or edit).
    """

    def __init__(self):
        self._listeners: list[Callable[["GenerationState"], Any]] = []
        self.reset()

    def reset(self) -> None:
        self.status = GenerationStatus.IDLE
        self.original_prompt = ""
        self.enhanced_prompt = ""
        self.queries: list[str] = []
        self.sources: list[SourceBadge] = []
        self.source_count: int | None = None
        self.slides: list[StreamedSlide] = []
        self.streaming_buffer = ""
        self.current_streaming_slide = 0
        self.draft_id: str | None = None
        self.error: str | None = None
        self.has_unsaved_changes = False
        self.edit_count = 0
        self.last_saved: float | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def subscribe(self, listener: Callable[["GenerationState"], Any]) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def begin(self) -> None:
        """Prepare for a new run."""
        self.reset()
        self.status = GenerationStatus.PREPROCESSING
        self._notify()

    def fail(self, message: str) -> None:
        """Record a transport-level failure (not delivered as an event)."""
        self.error = message
        self.status = GenerationStatus.ERROR
        self._notify()

    def apply(self, event: Any) -> bool:
        """Apply one stream event; returns False when it was ignored."""
        if self.is_terminal:
            logger.debug(f"Ignoring {getattr(event, 'type', event)!r} after terminal status")
            return False

        if isinstance(event, PreprocessingEvent):
            if event.status == "start":
                self.status = GenerationStatus.PREPROCESSING
            else:
                self.original_prompt = event.original_prompt or ""
                self.enhanced_prompt = event.enhanced_prompt or ""
        elif isinstance(event, ResearchQueryEvent):
            self.status = GenerationStatus.RESEARCHING
            self.queries.append(event.query)
        elif isinstance(event, ResearchSourceEvent):
            self.sources.append(event.source)
        elif isinstance(event, ResearchCompleteEvent):
            self.source_count = event.source_count
        elif isinstance(event, ContentChunkEvent):
            self.status = GenerationStatus.GENERATING
            self.streaming_buffer += event.chunk
        elif isinstance(event, SlideCompleteEvent):
            self.slides.append(event.parsed)
            self.current_streaming_slide = event.index + 1
            self.streaming_buffer = ""
        elif isinstance(event, DraftCreatedEvent):
            self.draft_id = event.draft_id
        elif isinstance(event, CompleteEvent):
            self.streaming_buffer = ""
            self.status = GenerationStatus.COMPLETE
        elif isinstance(event, ErrorEvent):
            self.error = event.message
            self.status = GenerationStatus.ERROR
        else:
            logger.warning(f"Unknown event {event!r}")
            return False

        self._notify()
        return True

    # Editing

    def _reindex(self) -> None:
        for idx, slide in enumerate(self.slides):
            slide.index = idx

    def _edited(self) -> None:
        self.has_unsaved_changes = True
        self.edit_count += 1
        self._notify()

    def update_slide(
        self, index: int, title: str | None = None, bullets: list[str] | None = None
    ) -> None:
        slide = self.slides[index]
        if title is not None:
            slide.title = title
        if bullets is not None:
            slide.bullets = list(bullets)
        self._edited()

    def insert_slide(self, after_index: int) -> StreamedSlide:
        if len(self.slides) >= MAX_OUTLINE_SLIDES:
            raise OutlineEditError(f"Maximum {MAX_OUTLINE_SLIDES} slides allowed")
        slide = StreamedSlide(index=after_index + 1, title="", bullets=[""])
        self.slides.insert(after_index + 1, slide)
        self._reindex()
        self._edited()
        return slide

    def remove_slide(self, index: int) -> None:
        if len(self.slides) <= MIN_OUTLINE_SLIDES:
            raise OutlineEditError(f"Minimum {MIN_OUTLINE_SLIDES} slides required")
        del self.slides[index]
        self._reindex()
        self._edited()

    def reorder_slides(self, old_index: int, new_index: int) -> None:
        slide = self.slides.pop(old_index)
        self.slides.insert(new_index, slide)
        self._reindex()
        self._edited()

    def mark_saved(self) -> None:
        self.has_unsaved_changes = False
        self.last_saved = time.time()
        self._notify()

    def validate(self) -> list[str]:
        """Human-readable problems that would block presentation generation."""
        errors = []
        if len(self.slides) < MIN_OUTLINE_SLIDES:
            errors.append(f"Minimum {MIN_OUTLINE_SLIDES} slides required")
        if len(self.slides) > MAX_OUTLINE_SLIDES:
            errors.append(f"Maximum {MAX_OUTLINE_SLIDES} slides allowed")
        for i, slide in enumerate(self.slides):
            if not slide.title.strip():
                errors.append(f"Slide {i + 1}: Title is required")
            if not any(b.strip() for b in slide.bullets):
                errors.append(f"Slide {i + 1}: At least one bullet required")
        return errors

    def to_outline(self) -> Outline:
        return outline_from_streamed_slides(self.slides)

"""Server-sent event types for outline streaming, plus the incremental wire parser."""

import codecs
import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from dossier.core.logging import get_logger

logger = get_logger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SourceBadge(BaseModel):
    domain: str
    favicon: str


class StreamedSlide(BaseModel):
    index: int
    title: str
    bullets: list[str] = Field(default_factory=list)


class PreprocessingEvent(_Event):
    type: Literal["preprocessing"] = "preprocessing"
    status: Literal["start", "complete"]
    enhanced_prompt: str | None = None
    original_prompt: str | None = None


class ResearchQueryEvent(_Event):
    type: Literal["research_query"] = "research_query"
    query: str


class ResearchSourceEvent(_Event):
    type: Literal["research_source"] = "research_source"
    source: SourceBadge


class ResearchCompleteEvent(_Event):
    type: Literal["research_complete"] = "research_complete"
    source_count: int = Field(alias="sourceCount")


class ContentChunkEvent(_Event):
    type: Literal["content_chunk"] = "content_chunk"
    chunk: str


class SlideCompleteEvent(_Event):
    type: Literal["slide_complete"] = "slide_complete"
    index: int
    parsed: StreamedSlide


class DraftCreatedEvent(_Event):
    type: Literal["draft_created"] = "draft_created"
    draft_id: str = Field(alias="draftId")


class CompleteEvent(_Event):
    type: Literal["complete"] = "complete"
    slide_count: int = Field(alias="slideCount")


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    message: str


SSEEvent = Annotated[
    Union[
        PreprocessingEvent,
        ResearchQueryEvent,
        ResearchSourceEvent,
        ResearchCompleteEvent,
        ContentChunkEvent,
        SlideCompleteEvent,
        DraftCreatedEvent,
        CompleteEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

SSE_EVENT_ADAPTER: TypeAdapter = TypeAdapter(SSEEvent)


def format_sse(event: BaseModel) -> str:
    """Encode an event as a single ``data:`` frame."""
    return f"data: {event.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


def format_named_sse(name: str, payload: dict[str, Any]) -> str:
    return f"event: {name}\ndata: {json.dumps(payload)}\n\n"


def favicon_url(domain: str) -> str:
    return f"https://www.google.com/s2/favicons?domain={domain}&sz=32"


def parse_sse_events(text: str, adapter: TypeAdapter = SSE_EVENT_ADAPTER) -> list[Any]:
    """Decode every ``data: `` line in ``text``; malformed payloads are logged and dropped."""
    events = []
    for line in text.split("\n"):
        if not line.startswith("data: "):
            continue
        payload = line[6:]
        if not payload.strip():
            continue
        try:
            events.append(adapter.validate_json(payload))
        except ValidationError as e:
            logger.warning(f"Dropping malformed SSE event: {payload[:200]} ({e.error_count()} errors)")
    return events


class SSEStreamParser:
    """
    Incremental parser for a ``text/event-stream`` body.

    Bytes are decoded incrementally (multi-byte characters may straddle
    chunks). Only text up to the last complete ``\\n\\n`` delimiter is
    scanned; the remainder stays buffered until more data arrives or
    :meth:`close` is called.
    """

    def __init__(self, adapter: TypeAdapter = SSE_EVENT_ADAPTER):
        self._adapter = adapter
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[Any]:
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer += text

        boundary = self._buffer.rfind("\n\n")
        if boundary == -1:
            return []

        complete = self._buffer[: boundary + 2]
        self._buffer = self._buffer[boundary + 2 :]
        return parse_sse_events(complete, self._adapter)

    def close(self) -> list[Any]:
        """Flush whatever is left once the underlying read reports completion."""
        self._buffer += self._decoder.decode(b"", final=True)
        remaining, self._buffer = self._buffer, ""
        if not remaining.strip():
            return []
        return parse_sse_events(remaining, self._adapter)

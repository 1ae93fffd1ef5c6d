"""Streamed outline generation: preprocess, research, markdown streaming, draft save.

Yields typed SSE events in the order the client state machine expects:
preprocessing → research_* (research mode only) → content_chunk / slide_complete
→ draft_created → complete, or a single error event.
"""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel

from dossier.chains.preprocess_prompt import preprocess_prompt
from dossier.chains.research import RESULTS_PER_QUERY, generate_search_queries
from dossier.core.llm import LLMClient
from dossier.core.logging import get_logger
from dossier.core.schemas import (
    MAX_OUTLINE_SLIDES,
    Draft,
    Outline,
    OutlineSlide,
    SlideType,
)
from dossier.core.search import SearchClient, extract_domain
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
    favicon_url,
)

logger = get_logger(__name__)

SLIDE_SEPARATOR = "\n---\n"

OUTLINE_SYSTEM_PROMPT = """You are a presentation outline architect for Dossier AI.

Your role is to create compelling, well-structured slide outlines from a topic or research data.

Guidelines:
- Create 8-12 slides (flexible 5-20 range based on topic complexity)
- Each slide must have a STRONG, SPECIFIC title (never generic like "Introduction" or "Overview")
- Each slide should answer "why this matters" in its bullets
- 2-4 bullet points per slide
- Make every title specific and compelling
- Ensure logical flow from slide to slide

Output format (MARKDOWN ONLY - NO JSON):
## Specific, action-oriented slide title
- Specific bullet point with data or insight
- Another concrete point
- Third point if needed
---
## Next Slide Title
- Bullet 1
- Bullet 2
---

CRITICAL RULES:
- Use ## for slide titles (H2 format)
- Use - for bullet points
- Use --- as slide separator between slides
- NEVER use generic titles like "Introduction", "Overview", "Conclusion"
- Output ONLY markdown, no JSON, no code blocks, no explanations
- Start immediately with the first slide title"""

OUTLINE_WITH_RESEARCH_PROMPT = """You are a presentation outline architect for Dossier AI.

Create a compelling outline based on the provided research data.

Guidelines:
- Create 8-12 slides incorporating the research findings
- Each slide must have a STRONG, SPECIFIC title (never generic)
- Include stats and data from the research when relevant
- 2-4 bullet points per slide with specific insights
- Make every title specific and compelling

Output format (MARKDOWN ONLY):
## Specific, action-oriented slide title
- Specific bullet point with data or insight
- Another concrete point
---
## Next Slide Title
- Bullet 1
- Bullet 2
---

CRITICAL: Output ONLY markdown. No JSON, no code blocks. Start with the first slide."""


@dataclass
class OutlineStreamConfig:
    """Explicit inputs for one streamed outline run."""

    prompt: str
    mode: Literal["fast", "research"] = "research"
    original_prompt: str | None = None
    query_delay_seconds: float = 1.0


def parse_slide_markdown(markdown: str) -> StreamedSlide | None:
    """Parse one ``## title`` / ``- bullet`` block; None when there is no title."""
    lines = [line for line in markdown.strip().split("\n") if line.strip()]
    title_line = next((line for line in lines if line.startswith("## ")), None)
    if title_line is None:
        return None

    title = title_line[3:].strip()
    if not title:
        return None

    bullets = [line[2:].strip() for line in lines if line.startswith("- ")]
    return StreamedSlide(index=0, title=title, bullets=[b for b in bullets if b])


class SlideMarkdownSplitter:
    """Accumulates streamed text and releases complete slide blocks at each separator."""

    def __init__(self):
        self._buffer = ""

    def feed(self, chunk: str) -> list[str]:
        self._buffer += chunk
        blocks = []
        idx = self._buffer.find(SLIDE_SEPARATOR)
        while idx != -1:
            blocks.append(self._buffer[:idx])
            self._buffer = self._buffer[idx + len(SLIDE_SEPARATOR) :]
            idx = self._buffer.find(SLIDE_SEPARATOR)
        return blocks

    def flush(self) -> str:
        remaining, self._buffer = self._buffer, ""
        return remaining


def outline_from_streamed_slides(slides: list[StreamedSlide]) -> Outline:
    """Build a draft outline; first slide is intro, last is conclusion, the rest content."""
    last = len(slides) - 1

    def _type_for(idx: int) -> SlideType:
        if idx == 0:
            return SlideType.INTRO
        if idx == last:
            return SlideType.CONCLUSION
        return SlideType.CONTENT

    return Outline(
        title=slides[0].title if slides else "Untitled Presentation",
        slides=[
            OutlineSlide(index=idx, title=s.title, bullets=s.bullets, type=_type_for(idx))
            for idx, s in enumerate(slides)
        ],
    )


async def stream_outline_events(
    config: OutlineStreamConfig,
    llm: LLMClient,
    search: SearchClient,
    drafts,
) -> AsyncIterator[BaseModel]:
    """
    Run the full outline pipeline, yielding progress events.

    Args:
        config: Prompt, mode and pacing
        llm: LLM client
        search: Search client
        drafts: Draft store used to persist the finished outline

    Yields:
        SSE event models (never raises; failures become an ErrorEvent)
    """
    try:
        yield PreprocessingEvent(status="start")

        preprocessed = await preprocess_prompt(config.prompt, llm)
        if not preprocessed.success or not preprocessed.data:
            yield ErrorEvent(message=preprocessed.error or "Failed to process prompt")
            return

        enhanced_prompt = preprocessed.data.enhanced_prompt
        yield PreprocessingEvent(
            status="complete",
            enhanced_prompt=enhanced_prompt,
            original_prompt=config.original_prompt or config.prompt,
        )

        research_context = ""
        if config.mode == "research":
            queries = await generate_search_queries(enhanced_prompt, llm)
            source_count = 0

            for i, query in enumerate(queries):
                yield ResearchQueryEvent(query=query)

                for result in await search.search(query, RESULTS_PER_QUERY):
                    domain = extract_domain(result.url)
                    yield ResearchSourceEvent(
                        source=SourceBadge(domain=domain, favicon=favicon_url(domain))
                    )
                    source_count += 1
                    research_context += f"\n[{domain}] {result.title}\n{result.description}\n"

                if i < len(queries) - 1 and config.query_delay_seconds > 0:
                    await asyncio.sleep(config.query_delay_seconds)

            yield ResearchCompleteEvent(source_count=source_count)

        if research_context:
            system_prompt = OUTLINE_WITH_RESEARCH_PROMPT
            user_prompt = (
                f'Topic: "{enhanced_prompt}"\n\nResearch Findings:\n{research_context}\n\n'
                "Create a compelling 8-12 slide outline incorporating these findings. "
                "Start with the first slide title (## format):"
            )
        else:
            system_prompt = OUTLINE_SYSTEM_PROMPT
            user_prompt = (
                f'Topic: "{enhanced_prompt}"\n\n'
                "Create a compelling 8-12 slide outline. Start with the first slide title (## format):"
            )

        splitter = SlideMarkdownSplitter()
        slides: list[StreamedSlide] = []

        def _accept(block: str) -> SlideCompleteEvent | None:
            if len(slides) >= MAX_OUTLINE_SLIDES:
                return None
            slide = parse_slide_markdown(block)
            if slide is None:
                return None
            slide.index = len(slides)
            slides.append(slide)
            return SlideCompleteEvent(index=slide.index, parsed=slide)

        async for chunk in llm.stream(system_prompt, user_prompt, max_tokens=4000, temperature=0.7):
            yield ContentChunkEvent(chunk=chunk)
            for block in splitter.feed(chunk):
                event = _accept(block)
                if event:
                    yield event

        tail = splitter.flush()
        if tail.strip():
            event = _accept(tail)
            if event:
                yield event

        draft_id = str(uuid4())
        outline = outline_from_streamed_slides(slides)
        now = datetime.now(timezone.utc).isoformat()
        try:
            drafts.save(
                Draft(
                    id=draft_id,
                    title=outline.title,
                    prompt=config.original_prompt or config.prompt,
                    enhanced_prompt=enhanced_prompt,
                    outline=outline,
                    created_at=now,
                    updated_at=now,
                )
            )
        except Exception as e:
            # The outline was generated; a failed save must not block it
            logger.error(f"Failed to save draft {draft_id}: {e}")

        yield DraftCreatedEvent(draft_id=draft_id)
        yield CompleteEvent(slide_count=len(slides))

    except Exception as e:
        logger.exception("Stream generation error")
        yield ErrorEvent(message=str(e) or "Generation failed")

"""Prompt preprocessing and outline generation endpoints."""

import logging
from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel

from dossier.chains.generate_outline import generate_outline
from dossier.chains.preprocess_prompt import preprocess_prompt
from dossier.chains.research import conduct_research
from dossier.chains.stream_outline import OutlineStreamConfig, stream_outline_events
from dossier.core.config import Settings, get_settings
from dossier.core.llm import LLMClient, get_llm_client
from dossier.core.logging import get_logger, log_with_context
from dossier.core.schemas import Draft
from dossier.core.search import SearchClient, get_search_client
from dossier.core.sse import SSE_HEADERS, ErrorEvent, format_sse
from dossier.db.stores import Stores, get_stores

logger = get_logger(__name__)

router = APIRouter()


class PreprocessRequest(BaseModel):
    prompt: str | None = None


class GenerateOutlineRequest(BaseModel):
    enhanced_prompt: str | None = None
    original_prompt: str | None = None


class GenerateOutlineStreamRequest(BaseModel):
    prompt: str | None = None
    enhanced_prompt: str | None = None
    original_prompt: str | None = None
    mode: Literal["fast", "research"] = "research"


def _error(status_code: int, error: str, message: str | None = None) -> HTTPException:
    detail = {"error": error}
    if message is not None:
        detail["message"] = message
    return HTTPException(status_code=status_code, detail=detail)


@router.post("/preprocess")
async def preprocess(
    request: PreprocessRequest,
    llm: LLMClient = Depends(get_llm_client),
) -> dict:
    """
    Validate and enhance a raw user prompt.

    Raises:
        HTTPException 400: Missing prompt, or prompt rejected (with suggestions)
    """
    if not request.prompt:
        raise _error(400, "Missing required field: prompt", "Provide a prompt to enhance")

    result = await preprocess_prompt(request.prompt, llm)

    if not result.success or not result.data:
        suggestions = result.data.validation.warnings if result.data else []
        raise HTTPException(
            status_code=400,
            detail={"error": result.error, "suggestions": suggestions},
        )

    return result.data.model_dump()


@router.post("/generate-outline")
async def generate_outline_endpoint(
    request: GenerateOutlineRequest,
    llm: LLMClient = Depends(get_llm_client),
    search: SearchClient = Depends(get_search_client),
    stores: Stores = Depends(get_stores),
):
    """
    Research a prompt and generate its outline, saving it as a draft.

    Returns:
        ``{draft_id, title, outline, research, token_usage}``; ``206`` with the
        research alone when only the outline stage failed

    Raises:
        HTTPException 400: Missing enhanced_prompt
        HTTPException 500: Research failed or internal error
    """
    if not request.enhanced_prompt:
        raise _error(
            400,
            "Missing required field: enhanced_prompt",
            "Run the prompt through /api/preprocess first",
        )

    enhanced_prompt = request.enhanced_prompt

    try:
        research = await conduct_research(enhanced_prompt, llm, search)
        if not research.success or not research.data:
            raise _error(500, "Research failed", research.error)

        research_tokens = research.token_usage or 0
        outline = await generate_outline(enhanced_prompt, research.data, llm)

        if not outline.success or not outline.data:
            return JSONResponse(
                status_code=206,
                content={
                    "error": "Outline generation failed, showing partial results",
                    "message": outline.error,
                    "research": research.data.model_dump(),
                    "token_usage": {
                        "preprocessor": 0,
                        "research": research_tokens,
                        "outline": 0,
                        "total": research_tokens,
                    },
                },
            )

        outline_tokens = outline.token_usage or 0
        draft_id = str(uuid4())
        now = datetime.now(timezone.utc).isoformat()

        try:
            stores.drafts.save(
                Draft(
                    id=draft_id,
                    title=outline.data.title,
                    prompt=request.original_prompt or enhanced_prompt,
                    enhanced_prompt=enhanced_prompt,
                    outline=outline.data,
                    created_at=now,
                    updated_at=now,
                )
            )
            log_with_context(logger, logging.INFO, "Draft saved", draft_id=draft_id)
        except Exception as e:
            # Generated content is still returned; the draft lives in-session only
            logger.error(f"Failed to save draft {draft_id}: {e}")

        return {
            "draft_id": draft_id,
            "title": outline.data.title,
            "outline": outline.data.model_dump(),
            "research": research.data.model_dump(),
            "token_usage": {
                "preprocessor": 0,
                "research": research_tokens,
                "outline": outline_tokens,
                "total": research_tokens + outline_tokens,
            },
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Generate outline endpoint error")
        raise _error(500, "Internal server error", str(e)) from e


@router.post("/generate-outline-stream")
async def generate_outline_stream(
    request: GenerateOutlineStreamRequest,
    llm: LLMClient = Depends(get_llm_client),
    search: SearchClient = Depends(get_search_client),
    stores: Stores = Depends(get_stores),
    settings: Settings = Depends(get_settings),
):
    """
    Stream outline generation progress as server-sent events.

    SSE format::

        data: {"type": "...", ...}

    A prompt shorter than the minimum length gets a ``400`` whose body is a
    single ``error`` event.
    """
    prompt = request.prompt or request.enhanced_prompt or ""

    if len(prompt.strip()) < settings.MIN_PROMPT_CHARS:
        message = f"Prompt must be at least {settings.MIN_PROMPT_CHARS} characters"
        return Response(
            content=format_sse(ErrorEvent(message=message)),
            status_code=400,
            media_type="text/event-stream",
        )

    config = OutlineStreamConfig(
        prompt=prompt,
        mode=request.mode,
        original_prompt=request.original_prompt,
    )

    async def _sse_generator():
        async for event in stream_outline_events(config, llm, search, stores.drafts):
            yield format_sse(event)

    return StreamingResponse(
        _sse_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )

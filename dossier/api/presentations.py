"""Presentation generation, CRUD and status stream endpoints."""

from typing import Any, Optional
from uuid import uuid4

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ValidationError

from dossier.core.auth import AuthContext, require_auth, resolve_user_id
from dossier.core.config import Settings, get_settings
from dossier.core.logging import get_logger
from dossier.core.schemas import (
    CitationStyle,
    Outline,
    Presentation,
    PresentationStatus,
    Slide,
    Theme,
)
from dossier.core.sse import SSE_HEADERS
from dossier.db.stores import Stores, get_stores
from dossier.services.notifier import PresentationNotifier, get_notifier
from dossier.services.presentation_stream import presentation_status_events
from dossier.services.slide_jobs import SlideJobQueue, get_job_queue

logger = get_logger(__name__)

router = APIRouter()


class GeneratePresentationRequest(BaseModel):
    draft_id: str | None = None
    outline: Outline | None = None
    citation_style: CitationStyle = CitationStyle.INLINE
    theme: Theme = Theme.MINIMAL
    user_id: str | None = None


class PresentationUpdate(BaseModel):
    """User-editable presentation fields."""

    title: str | None = None
    outline: Outline | None = None
    slides: list[Slide] | None = None
    citation_style: CitationStyle | None = None
    theme: Theme | None = None


class DuplicateRequest(BaseModel):
    user_id: str | None = None


def _server_error(error: str, e: Exception) -> HTTPException:
    return HTTPException(status_code=500, detail={"error": error, "message": str(e)})


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=404, detail={"error": "Presentation not found or unauthorized"}
    )


@router.post("/generate-presentation", status_code=202)
async def generate_presentation(
    request: GeneratePresentationRequest,
    auth: AuthContext = Depends(require_auth),
    stores: Stores = Depends(get_stores),
    queue: SlideJobQueue = Depends(get_job_queue),
):
    """
    Create a presentation in ``generating`` status and queue its slide job.

    Returns:
        ``202`` with ``{presentation_id, job_id, status: "generating"}``

    Raises:
        HTTPException 400: Missing draft_id/outline, or outline has no slides
        HTTPException 401/403: No session, or user_id does not match it
        HTTPException 500: Presentation or job could not be persisted
    """
    user_id = resolve_user_id(auth, request.user_id)

    if not request.draft_id or request.outline is None:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Missing required fields: draft_id, outline",
                "message": "draft_id and outline are required",
            },
        )

    if not request.outline.slides:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Outline must contain at least one slide",
                "message": "Add a slide to the outline before generating",
            },
        )

    try:
        draft = stores.drafts.get(request.draft_id)
    except Exception as e:
        logger.warning(f"Could not load draft {request.draft_id}: {e}")
        draft = None

    try:
        stores.users.ensure(user_id, email=auth.email)
    except Exception as e:
        logger.warning(f"Could not ensure user {user_id}: {e}")

    presentation = Presentation(
        id=str(uuid4()),
        user_id=user_id,
        title=request.outline.title,
        prompt=draft.prompt if draft else "",
        enhanced_prompt=draft.enhanced_prompt if draft else None,
        outline=request.outline,
        citation_style=request.citation_style,
        theme=request.theme,
        status=PresentationStatus.GENERATING,
    )

    try:
        presentation = stores.presentations.create(presentation)
        logger.info(
            f"Presentation {presentation.id} created with status 'generating'",
            extra={"presentation_id": presentation.id},
        )
    except Exception as e:
        logger.exception("Failed to save presentation")
        raise _server_error("Failed to save presentation", e) from e

    try:
        job = queue.submit(presentation, draft_id=request.draft_id)
    except Exception as e:
        logger.exception(f"Failed to queue slide job for {presentation.id}")
        stores.presentations.update(
            presentation.id,
            {"status": PresentationStatus.FAILED.value, "error_message": str(e)},
            user_id,
        )
        raise _server_error("Failed to queue slide generation", e) from e

    return JSONResponse(
        status_code=202,
        content={
            "presentation_id": presentation.id,
            "job_id": job.job_id,
            "status": PresentationStatus.GENERATING.value,
        },
    )


@router.get("/presentations")
async def list_presentations(
    user_id: Optional[str] = Query(None),
    q: Optional[str] = Query(None, description="Title search"),
    auth: AuthContext = Depends(require_auth),
    stores: Stores = Depends(get_stores),
) -> dict:
    user_id = resolve_user_id(auth, user_id)

    try:
        if q:
            presentations = stores.presentations.search(user_id, q)
        else:
            presentations = stores.presentations.list_for_user(user_id)
    except Exception as e:
        logger.exception(f"Failed to list presentations for {user_id}")
        raise _server_error("Failed to get presentations", e) from e

    return {"presentations": [p.to_row() for p in presentations]}


@router.get("/presentations/{presentation_id}")
async def get_presentation(
    presentation_id: str,
    user_id: Optional[str] = Query(None),
    auth: AuthContext = Depends(require_auth),
    stores: Stores = Depends(get_stores),
) -> dict:
    user_id = resolve_user_id(auth, user_id)

    try:
        presentation = stores.presentations.get(presentation_id, user_id)
    except Exception as e:
        logger.exception(f"Failed to get presentation {presentation_id}")
        raise _server_error("Failed to get presentation", e) from e

    if not presentation:
        raise HTTPException(status_code=404, detail={"error": "Presentation not found"})

    return {"presentation": presentation.to_row()}


@router.patch("/presentations/{presentation_id}")
async def update_presentation(
    presentation_id: str,
    body: dict[str, Any] = Body(...),
    user_id: Optional[str] = Query(None),
    auth: AuthContext = Depends(require_auth),
    stores: Stores = Depends(get_stores),
) -> dict:
    """
    Apply user edits (title, outline, slides, theme, citation style).

    Raises:
        HTTPException 400: Empty or invalid update
        HTTPException 404: Not found or not owned by the session user
    """
    user_id = resolve_user_id(auth, user_id)

    if not body:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "No updates provided",
                "message": "Provide at least one field to update",
            },
        )

    try:
        update = PresentationUpdate.model_validate(body)
    except ValidationError as e:
        raise HTTPException(
            status_code=400, detail={"error": "Invalid update", "message": str(e)}
        ) from e

    fields = update.model_dump(mode="json", by_alias=True, exclude_unset=True)
    if not fields:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "No updates provided",
                "message": "Provide at least one field to update",
            },
        )

    try:
        updated = stores.presentations.update(presentation_id, fields, user_id)
    except Exception as e:
        logger.exception(f"Failed to update presentation {presentation_id}")
        raise _server_error("Failed to update presentation", e) from e

    if not updated:
        raise _not_found()

    return {"presentation": updated.to_row(), "message": "Presentation updated successfully"}


@router.delete("/presentations/{presentation_id}")
async def delete_presentation(
    presentation_id: str,
    user_id: Optional[str] = Query(None),
    auth: AuthContext = Depends(require_auth),
    stores: Stores = Depends(get_stores),
) -> dict:
    user_id = resolve_user_id(auth, user_id)

    try:
        deleted = stores.presentations.delete(presentation_id, user_id)
    except Exception as e:
        logger.exception(f"Failed to delete presentation {presentation_id}")
        raise _server_error("Failed to delete presentation", e) from e

    if not deleted:
        raise _not_found()

    return {"message": "Presentation deleted successfully"}


@router.post("/presentations/{presentation_id}/duplicate")
async def duplicate_presentation(
    presentation_id: str,
    request: Optional[DuplicateRequest] = None,
    auth: AuthContext = Depends(require_auth),
    stores: Stores = Depends(get_stores),
) -> dict:
    user_id = resolve_user_id(auth, request.user_id if request else None)

    try:
        duplicated = stores.presentations.duplicate(presentation_id, user_id)
    except Exception as e:
        logger.exception(f"Failed to duplicate presentation {presentation_id}")
        raise _server_error("Failed to duplicate presentation", e) from e

    if not duplicated:
        raise _not_found()

    return {"presentation_id": duplicated.id, "message": "Presentation duplicated successfully"}


@router.get("/presentations/{presentation_id}/stream")
async def stream_presentation(
    presentation_id: str,
    request: Request,
    user_id: Optional[str] = Query(None),
    auth: AuthContext = Depends(require_auth),
    stores: Stores = Depends(get_stores),
    notifier: PresentationNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
):
    """Stream presentation snapshots until generation completes or fails."""
    user_id = resolve_user_id(auth, user_id)

    return StreamingResponse(
        presentation_status_events(
            presentation_id,
            user_id,
            stores.presentations,
            notifier,
            poll_seconds=settings.PRESENTATION_POLL_SECONDS,
            is_disconnected=request.is_disconnected,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )

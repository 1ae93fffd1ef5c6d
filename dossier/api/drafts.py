"""Draft CRUD endpoints (outline auto-save target)."""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from dossier.core.logging import get_logger
from dossier.core.schemas import Draft, Outline
from dossier.db.stores import Stores, get_stores

logger = get_logger(__name__)

router = APIRouter()


class CreateDraftRequest(BaseModel):
    title: str | None = None
    prompt: str | None = None
    enhanced_prompt: str | None = None
    outline: dict[str, Any] | None = None


class UpdateDraftRequest(BaseModel):
    title: str | None = None
    outline: dict[str, Any] | None = None


def _parse_outline(raw: dict[str, Any]) -> Outline:
    if not raw.get("title") or not isinstance(raw.get("slides"), list):
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Invalid outline structure",
                "message": "outline must have title and slides array",
            },
        )
    try:
        return Outline.model_validate(raw)
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid outline structure", "message": str(e)},
        ) from e


def _not_found(draft_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"error": "Draft not found", "message": f"No draft found with ID: {draft_id}"},
    )


@router.get("/drafts")
async def list_drafts(stores: Stores = Depends(get_stores)) -> dict:
    """List drafts, most recently updated first."""
    try:
        drafts = stores.drafts.list()
        return {"drafts": [d.model_dump() for d in drafts], "count": len(drafts)}
    except Exception as e:
        logger.exception("Failed to fetch drafts")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to fetch drafts", "message": str(e)}
        ) from e


@router.post("/drafts", status_code=201)
async def create_draft(request: CreateDraftRequest, stores: Stores = Depends(get_stores)) -> dict:
    """
    Create a draft from an outline.

    Raises:
        HTTPException 400: Missing fields or malformed outline
        HTTPException 500: Storage failure
    """
    if not request.title or not request.prompt or not request.outline:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Missing required fields",
                "message": "title, prompt, and outline are required",
            },
        )

    outline = _parse_outline(request.outline)
    now = datetime.now(timezone.utc).isoformat()

    try:
        draft = stores.drafts.save(
            Draft(
                id=str(uuid4()),
                title=request.title,
                prompt=request.prompt,
                enhanced_prompt=request.enhanced_prompt,
                outline=outline,
                created_at=now,
                updated_at=now,
            )
        )
    except Exception as e:
        logger.exception("Failed to create draft")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to create draft", "message": str(e)}
        ) from e

    return {"draft": draft.model_dump(), "message": "Draft created successfully"}


@router.get("/drafts/{draft_id}")
async def get_draft(draft_id: str, stores: Stores = Depends(get_stores)) -> dict:
    try:
        draft = stores.drafts.get(draft_id)
    except Exception as e:
        logger.exception(f"Failed to fetch draft {draft_id}")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to fetch draft", "message": str(e)}
        ) from e

    if not draft:
        raise _not_found(draft_id)

    return {"draft": draft.model_dump()}


@router.patch("/drafts/{draft_id}")
async def update_draft(
    draft_id: str,
    request: UpdateDraftRequest,
    stores: Stores = Depends(get_stores),
) -> dict:
    """
    Update a draft's outline (auto-save) or title.

    The outline takes precedence when both are provided.

    Raises:
        HTTPException 400: Neither outline nor title given, or malformed outline
        HTTPException 404: Draft not found
        HTTPException 500: Storage failure
    """
    try:
        if not stores.drafts.get(draft_id):
            raise _not_found(draft_id)

        if request.outline:
            updated = stores.drafts.update_outline(draft_id, _parse_outline(request.outline))
        elif request.title:
            updated = stores.drafts.update_title(draft_id, request.title)
        else:
            raise HTTPException(
                status_code=400,
                detail={
                    "error": "No updates provided",
                    "message": "Provide outline or title to update",
                },
            )

        if not updated:
            raise _not_found(draft_id)

        return {"draft": updated.model_dump(), "message": "Draft updated successfully"}

    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to update draft {draft_id}")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to update draft", "message": str(e)}
        ) from e


@router.delete("/drafts/{draft_id}")
async def delete_draft(draft_id: str, stores: Stores = Depends(get_stores)) -> dict:
    try:
        deleted = stores.drafts.delete(draft_id)
    except Exception as e:
        logger.exception(f"Failed to delete draft {draft_id}")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to delete draft", "message": str(e)}
        ) from e

    if not deleted:
        raise _not_found(draft_id)

    return {"message": "Draft deleted successfully", "id": draft_id}

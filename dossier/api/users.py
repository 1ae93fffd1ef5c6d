"""User provisioning endpoint."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from dossier.core.logging import get_logger
from dossier.db.stores import Stores, get_stores
from dossier.db.users import AuthUserNotFoundError

logger = get_logger(__name__)

router = APIRouter()


class EnsureUserRequest(BaseModel):
    user_id: str | None = None
    email: str | None = None
    name: str | None = None
    avatar_url: str | None = None


@router.post("/users/ensure")
async def ensure_user(request: EnsureUserRequest, stores: Stores = Depends(get_stores)) -> dict:
    """
    Idempotently create the ``users`` row for an authenticated identity.

    Returns:
        ``{success, user_id, created, user}``; ``created`` is True only for
        the call that inserted the row

    Raises:
        HTTPException 400: Missing user_id
        HTTPException 404: No auth identity for user_id
        HTTPException 500: Database failure
    """
    if not request.user_id:
        raise HTTPException(
            status_code=400,
            detail={"error": "user_id is required", "message": "Provide the authenticated user_id"},
        )

    try:
        user, created = stores.users.ensure(
            request.user_id,
            email=request.email,
            name=request.name,
            avatar_url=request.avatar_url,
        )
    except AuthUserNotFoundError as e:
        raise HTTPException(status_code=404, detail={"error": "Auth user not found"}) from e
    except Exception as e:
        logger.exception(f"Failed to ensure user {request.user_id}")
        raise HTTPException(
            status_code=500, detail={"error": "Internal server error", "message": str(e)}
        ) from e

    return {"success": True, "user_id": request.user_id, "created": created, "user": user}

"""API router for Dossier endpoints."""

from fastapi import APIRouter

from dossier.api import drafts, outline, presentations, users

router = APIRouter()

# Prompt preprocessing and outline generation (blocking and streamed)
router.include_router(outline.router, tags=["outline"])

# Draft CRUD and outline auto-save
router.include_router(drafts.router, tags=["drafts"])

# Presentation generation, CRUD and status stream
router.include_router(presentations.router, tags=["presentations"])

router.include_router(users.router, tags=["users"])

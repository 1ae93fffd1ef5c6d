"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dossier.api import router as api_router
from dossier.core.config import get_settings
from dossier.core.logging import get_logger
from dossier.db.stores import Stores, get_stores
from dossier.services.slide_jobs import get_job_queue

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    queue = get_job_queue()
    recovered = await queue.start()
    logger.info(f"Slide job queue running ({recovered} recovered jobs)")
    try:
        yield
    finally:
        await queue.stop()


app = FastAPI(
    title="Dossier AI",
    description="Research-backed presentation generation service",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().APP_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check(stores: Stores = Depends(get_stores)) -> JSONResponse:
    """Health check endpoint (reports the active storage backend)."""
    return JSONResponse(
        content={"status": "ok", "storage_backend": stores.backend.value},
        status_code=200,
    )


app.include_router(api_router, prefix="/api")

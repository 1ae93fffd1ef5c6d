"""Storage backend selection, resolved once from configuration."""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any

from dossier.core.config import Settings, get_settings
from dossier.core.logging import get_logger
from dossier.db.drafts import InMemoryDraftStore, SupabaseDraftStore
from dossier.db.jobs import InMemoryJobStore, SupabaseJobStore
from dossier.db.presentations import InMemoryPresentationStore, SupabasePresentationStore
from dossier.db.supabase_client import get_supabase
from dossier.db.users import InMemoryUserStore, SupabaseUserStore

logger = get_logger(__name__)


class StorageBackend(str, Enum):
    SUPABASE = "supabase"
    MEMORY = "memory"


def resolve_storage_backend(settings: Settings) -> StorageBackend:
    """Pick the persistence backend from configuration alone."""
    if settings.supabase_configured:
        return StorageBackend.SUPABASE
    return StorageBackend.MEMORY


@dataclass
class Stores:
    backend: StorageBackend
    drafts: Any
    presentations: Any
    jobs: Any
    users: Any


def build_stores(backend: StorageBackend, client: Any = None) -> Stores:
    """Construct every store for ``backend``; ``client`` overrides the Supabase client."""
    if backend is StorageBackend.SUPABASE:
        client = client or get_supabase()
        return Stores(
            backend=backend,
            drafts=SupabaseDraftStore(client),
            presentations=SupabasePresentationStore(client),
            jobs=SupabaseJobStore(client),
            users=SupabaseUserStore(client),
        )

    return Stores(
        backend=backend,
        drafts=InMemoryDraftStore(),
        presentations=InMemoryPresentationStore(),
        jobs=InMemoryJobStore(),
        users=InMemoryUserStore(),
    )


@lru_cache(maxsize=1)
def get_stores() -> Stores:
    """Process-wide stores for the configured backend."""
    backend = resolve_storage_backend(get_settings())
    logger.info(f"Using {backend.value} storage backend")
    if backend is StorageBackend.MEMORY:
        logger.warning("Supabase is not configured; data is kept in memory only")
    return build_stores(backend)

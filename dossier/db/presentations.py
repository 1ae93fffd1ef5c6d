"""Presentation persistence: Supabase table or process-local map."""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from dossier.core.logging import get_logger
from dossier.core.schemas import Presentation
from dossier.db.supabase_client import StoreError

logger = get_logger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _duplicate_of(original: Presentation, user_id: str) -> Presentation:
    now = _utc_now_iso()
    return original.model_copy(
        update={
            "id": str(uuid4()),
            "user_id": user_id,
            "title": f"{original.title} (Copy)",
            "job_id": None,
            "created_at": now,
            "updated_at": now,
        },
        deep=True,
    )


class InMemoryPresentationStore:
    """Development store; not shared across processes."""

    def __init__(self):
        self._presentations: dict[str, Presentation] = {}

    def create(self, presentation: Presentation) -> Presentation:
        now = _utc_now_iso()
        created = presentation.model_copy(update={"created_at": now, "updated_at": now})
        self._presentations[created.id] = created
        return created

    def get(self, presentation_id: str, user_id: str | None = None) -> Presentation | None:
        presentation = self._presentations.get(presentation_id)
        if presentation is None or (user_id and presentation.user_id != user_id):
            return None
        return presentation

    def list_for_user(self, user_id: str) -> list[Presentation]:
        owned = [p for p in self._presentations.values() if p.user_id == user_id]
        return sorted(owned, key=lambda p: p.updated_at or "", reverse=True)

    def search(self, user_id: str, query: str) -> list[Presentation]:
        needle = query.lower()
        return [p for p in self.list_for_user(user_id) if needle in p.title.lower()]

    def update(
        self, presentation_id: str, fields: dict[str, Any], user_id: str | None = None
    ) -> Presentation | None:
        existing = self.get(presentation_id, user_id)
        if existing is None:
            return None
        merged = {**existing.to_row(), **fields, "updated_at": _utc_now_iso()}
        updated = Presentation.model_validate(merged)
        self._presentations[presentation_id] = updated
        return updated

    def delete(self, presentation_id: str, user_id: str | None = None) -> bool:
        if self.get(presentation_id, user_id) is None:
            return False
        del self._presentations[presentation_id]
        return True

    def duplicate(self, presentation_id: str, user_id: str) -> Presentation | None:
        original = self.get(presentation_id, user_id)
        if original is None:
            return None
        copy = _duplicate_of(original, user_id)
        self._presentations[copy.id] = copy
        return copy


class SupabasePresentationStore:
    """Presentations in the ``presentations`` table."""

    table = "presentations"

    def __init__(self, client: Any):
        self.client = client

    def _query(self, presentation_id: str, user_id: str | None):
        query = self.client.table(self.table).select("*").eq("id", presentation_id)
        if user_id:
            query = query.eq("user_id", user_id)
        return query

    def create(self, presentation: Presentation) -> Presentation:
        now = _utc_now_iso()
        row = presentation.model_copy(update={"created_at": now, "updated_at": now}).to_row()

        try:
            response = self.client.table(self.table).insert(row).execute()
        except Exception as e:
            logger.error(f"Failed to create presentation {presentation.id}: {e}")
            raise StoreError(f"Failed to create presentation: {e}") from e

        if not response.data:
            raise StoreError("No data returned from create presentation")
        return Presentation.model_validate(response.data[0])

    def get(self, presentation_id: str, user_id: str | None = None) -> Presentation | None:
        try:
            response = self._query(presentation_id, user_id).execute()
        except Exception as e:
            logger.error(f"Failed to get presentation {presentation_id}: {e}")
            raise StoreError(f"Failed to get presentation: {e}") from e

        if response.data:
            return Presentation.model_validate(response.data[0])
        return None

    def list_for_user(self, user_id: str) -> list[Presentation]:
        try:
            response = (
                self.client.table(self.table)
                .select("*")
                .eq("user_id", user_id)
                .order("updated_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list presentations for {user_id}: {e}")
            raise StoreError(f"Failed to get presentations: {e}") from e

        return [Presentation.model_validate(row) for row in response.data or []]

    def search(self, user_id: str, query: str) -> list[Presentation]:
        try:
            response = (
                self.client.table(self.table)
                .select("*")
                .eq("user_id", user_id)
                .ilike("title", f"%{query}%")
                .order("updated_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to search presentations for {user_id}: {e}")
            raise StoreError(f"Failed to search presentations: {e}") from e

        return [Presentation.model_validate(row) for row in response.data or []]

    def update(
        self, presentation_id: str, fields: dict[str, Any], user_id: str | None = None
    ) -> Presentation | None:
        query = (
            self.client.table(self.table)
            .update({**fields, "updated_at": _utc_now_iso()})
            .eq("id", presentation_id)
        )
        if user_id:
            query = query.eq("user_id", user_id)

        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"Failed to update presentation {presentation_id}: {e}")
            raise StoreError(f"Failed to update presentation: {e}") from e

        if response.data:
            return Presentation.model_validate(response.data[0])
        return None

    def delete(self, presentation_id: str, user_id: str | None = None) -> bool:
        query = self.client.table(self.table).delete().eq("id", presentation_id)
        if user_id:
            query = query.eq("user_id", user_id)

        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"Failed to delete presentation {presentation_id}: {e}")
            raise StoreError(f"Failed to delete presentation: {e}") from e

        return bool(response.data)

    def duplicate(self, presentation_id: str, user_id: str) -> Presentation | None:
        original = self.get(presentation_id, user_id)
        if original is None:
            return None

        row = _duplicate_of(original, user_id).to_row()
        try:
            response = self.client.table(self.table).insert(row).execute()
        except Exception as e:
            logger.error(f"Failed to duplicate presentation {presentation_id}: {e}")
            raise StoreError(f"Failed to duplicate presentation: {e}") from e

        if not response.data:
            raise StoreError("No data returned from duplicate presentation")
        return Presentation.model_validate(response.data[0])

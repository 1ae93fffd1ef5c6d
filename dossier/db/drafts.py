"""Draft persistence: Supabase table or process-local map."""

from datetime import datetime, timezone
from typing import Any

from dossier.core.logging import get_logger
from dossier.core.schemas import Draft, Outline
from dossier.db.supabase_client import StoreError

logger = get_logger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryDraftStore:
    """Development store; not shared across processes."""

    def __init__(self):
        self._drafts: dict[str, Draft] = {}

    def save(self, draft: Draft) -> Draft:
        now = _utc_now_iso()
        saved = draft.model_copy(update={"updated_at": now, "created_at": draft.created_at or now})
        self._drafts[saved.id] = saved
        return saved

    def get(self, draft_id: str) -> Draft | None:
        return self._drafts.get(draft_id)

    def list(self) -> list[Draft]:
        return sorted(self._drafts.values(), key=lambda d: d.updated_at or "", reverse=True)

    def update_outline(self, draft_id: str, outline: Outline) -> Draft | None:
        draft = self._drafts.get(draft_id)
        if draft is None:
            return None
        updated = draft.model_copy(update={"outline": outline, "updated_at": _utc_now_iso()})
        self._drafts[draft_id] = updated
        return updated

    def update_title(self, draft_id: str, title: str) -> Draft | None:
        draft = self._drafts.get(draft_id)
        if draft is None:
            return None
        return self.save(draft.model_copy(update={"title": title}))

    def delete(self, draft_id: str) -> bool:
        return self._drafts.pop(draft_id, None) is not None


class SupabaseDraftStore:
    """Drafts in the ``drafts`` table (service role, bypasses RLS)."""

    table = "drafts"

    def __init__(self, client: Any):
        self.client = client

    def save(self, draft: Draft) -> Draft:
        now = _utc_now_iso()
        row = draft.model_dump(mode="json")
        row["updated_at"] = now
        row["created_at"] = draft.created_at or now

        try:
            response = self.client.table(self.table).upsert(row).execute()
        except Exception as e:
            logger.error(f"Failed to save draft {draft.id}: {e}")
            raise StoreError(f"Failed to save draft: {e}") from e

        if not response.data:
            raise StoreError("No data returned from draft save")
        return Draft.model_validate(response.data[0])

    def get(self, draft_id: str) -> Draft | None:
        try:
            response = self.client.table(self.table).select("*").eq("id", draft_id).execute()
        except Exception as e:
            logger.error(f"Failed to get draft {draft_id}: {e}")
            raise StoreError(f"Failed to get draft: {e}") from e

        if response.data:
            return Draft.model_validate(response.data[0])
        return None

    def list(self) -> list[Draft]:
        try:
            response = (
                self.client.table(self.table).select("*").order("updated_at", desc=True).execute()
            )
        except Exception as e:
            logger.error(f"Failed to list drafts: {e}")
            raise StoreError(f"Failed to get drafts: {e}") from e

        return [Draft.model_validate(row) for row in response.data or []]

    def _update(self, draft_id: str, fields: dict[str, Any]) -> Draft | None:
        fields["updated_at"] = _utc_now_iso()
        try:
            response = self.client.table(self.table).update(fields).eq("id", draft_id).execute()
        except Exception as e:
            logger.error(f"Failed to update draft {draft_id}: {e}")
            raise StoreError(f"Failed to update draft: {e}") from e

        if response.data:
            return Draft.model_validate(response.data[0])
        return None

    def update_outline(self, draft_id: str, outline: Outline) -> Draft | None:
        return self._update(draft_id, {"outline": outline.model_dump(mode="json")})

    def update_title(self, draft_id: str, title: str) -> Draft | None:
        return self._update(draft_id, {"title": title})

    def delete(self, draft_id: str) -> bool:
        try:
            response = self.client.table(self.table).delete().eq("id", draft_id).execute()
        except Exception as e:
            logger.error(f"Failed to delete draft {draft_id}: {e}")
            raise StoreError(f"Failed to delete draft: {e}") from e

        return bool(response.data)

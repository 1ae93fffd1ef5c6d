"""User records: idempotent ensure with unique-violation race handling."""

from datetime import datetime, timezone
from typing import Any

from dossier.core.logging import get_logger
from dossier.db.supabase_client import StoreError, is_unique_violation

logger = get_logger(__name__)


class AuthUserNotFoundError(LookupError):
    """Raised when no auth identity exists for the requested user id."""


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def placeholder_email(user_id: str) -> str:
    return f"user-{user_id[:8]}@placeholder.com"


class InMemoryUserStore:
    """Development store; not shared across processes."""

    def __init__(self):
        self._users: dict[str, dict[str, Any]] = {}

    def ensure(
        self,
        user_id: str,
        email: str | None = None,
        name: str | None = None,
        avatar_url: str | None = None,
    ) -> tuple[dict[str, Any], bool]:
        """Return ``(row, created)``; ``created`` is True only for the first call."""
        existing = self._users.get(user_id)
        if existing is not None:
            return existing, False

        now = _utc_now_iso()
        row = {
            "id": user_id,
            "email": email or placeholder_email(user_id),
            "name": name,
            "avatar_url": avatar_url,
            "created_at": now,
            "updated_at": now,
        }
        self._users[user_id] = row
        return row, True


class SupabaseUserStore:
    """Rows in ``users``, hydrated from the Supabase auth admin API."""

    table = "users"

    def __init__(self, client: Any):
        self.client = client

    def get(self, user_id: str) -> dict[str, Any] | None:
        try:
            response = self.client.table(self.table).select("*").eq("id", user_id).execute()
        except Exception as e:
            logger.error(f"Failed to check user {user_id}: {e}")
            raise StoreError(f"Failed to check user existence: {e}") from e

        return response.data[0] if response.data else None

    def _auth_user(self, user_id: str) -> Any:
        try:
            response = self.client.auth.admin.get_user_by_id(user_id)
        except Exception as e:
            logger.error(f"Failed to fetch auth user {user_id}: {e}")
            raise StoreError(f"Failed to fetch auth user: {e}") from e

        user = getattr(response, "user", None)
        if user is None:
            raise AuthUserNotFoundError(user_id)
        return user

    def ensure(
        self,
        user_id: str,
        email: str | None = None,
        name: str | None = None,
        avatar_url: str | None = None,
    ) -> tuple[dict[str, Any], bool]:
        """
        Ensure a ``users`` row exists for an authenticated identity.

        Args:
            user_id: Auth user id
            email: Preferred email (falls back to the auth record, then a placeholder)
            name: Display name override
            avatar_url: Avatar override

        Returns:
            ``(row, created)``

        Raises:
            AuthUserNotFoundError: If the auth identity does not exist
            StoreError: On any other database failure
        """
        existing = self.get(user_id)
        if existing:
            logger.info(f"User {user_id} already exists")
            return existing, False

        auth_user = self._auth_user(user_id)
        metadata = getattr(auth_user, "user_metadata", None) or {}
        now = _utc_now_iso()
        row = {
            "id": user_id,
            "email": email or getattr(auth_user, "email", None) or placeholder_email(user_id),
            "name": name or metadata.get("name") or metadata.get("full_name"),
            "avatar_url": avatar_url or metadata.get("avatar_url") or metadata.get("picture"),
            "created_at": now,
            "updated_at": now,
        }

        try:
            response = self.client.table(self.table).insert(row).execute()
        except Exception as e:
            if is_unique_violation(e):
                logger.info(f"User {user_id} was created by a concurrent request")
                return self.get(user_id) or row, False
            logger.error(f"Failed to insert user {user_id}: {e}")
            raise StoreError(f"Failed to create user: {e}") from e

        logger.info(f"User {user_id} created")
        return (response.data[0] if response.data else row), True

"""Job lifecycle records for background slide generation."""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from dossier.core.logging import get_logger
from dossier.db.supabase_client import StoreError

logger = get_logger(__name__)

PENDING_STATUSES = ("queued", "processing")


def _utc_now_iso() -> str:
    """Get current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat()


def _new_job_row(job_type: str, input_json: dict[str, Any], presentation_id: str) -> dict[str, Any]:
    return {
        "id": str(uuid4()),
        "job_type": job_type,
        "status": "queued",
        "presentation_id": presentation_id,
        "input": input_json,
        "output": {},
        "error": None,
        "attempts": 0,
        "created_at": _utc_now_iso(),
        "started_at": None,
        "completed_at": None,
    }


class InMemoryJobStore:
    """Development store; jobs do not survive a restart."""

    def __init__(self):
        self._jobs: dict[str, dict[str, Any]] = {}

    def create_job(self, job_type: str, input_json: dict[str, Any], presentation_id: str) -> str:
        row = _new_job_row(job_type, input_json, presentation_id)
        self._jobs[row["id"]] = row
        logger.info(
            f"Created job {row['id']} of type {job_type}",
            extra={"job_id": row["id"], "presentation_id": presentation_id},
        )
        return row["id"]

    def start_job(self, job_id: str) -> None:
        job = self._jobs[job_id]
        job.update(
            status="processing", started_at=_utc_now_iso(), attempts=job.get("attempts", 0) + 1
        )

    def complete_job(self, job_id: str, output_json: dict[str, Any]) -> None:
        self._jobs[job_id].update(
            status="completed", output=output_json, completed_at=_utc_now_iso()
        )

    def fail_job(self, job_id: str, error_message: str) -> None:
        self._jobs[job_id].update(
            status="failed", error=error_message, completed_at=_utc_now_iso()
        )

    def get_job(self, job_id: str) -> dict[str, Any] | None:
        return self._jobs.get(job_id)

    def list_pending(self) -> list[dict[str, Any]]:
        pending = [j for j in self._jobs.values() if j["status"] in PENDING_STATUSES]
        return sorted(pending, key=lambda j: j["created_at"])


class SupabaseJobStore:
    """Jobs in the ``jobs`` table, correlated to presentations by ``presentation_id``."""

    table = "jobs"

    def __init__(self, client: Any):
        self.client = client

    def create_job(self, job_type: str, input_json: dict[str, Any], presentation_id: str) -> str:
        """
        Create a new job record in ``queued`` status.

        Args:
            job_type: Type of job (e.g. "generate_slides")
            input_json: Input parameters for the job
            presentation_id: Presentation the job will complete

        Returns:
            Job id

        Raises:
            StoreError: If database operation fails
        """
        row = _new_job_row(job_type, input_json, presentation_id)

        try:
            response = self.client.table(self.table).insert(row).execute()
        except Exception as e:
            logger.error(f"Failed to create job: {e}", extra={"presentation_id": presentation_id})
            raise StoreError(f"Failed to create job: {e}") from e

        if not response.data:
            raise StoreError("No data returned from create_job")

        job_id = response.data[0]["id"]
        logger.info(
            f"Created job {job_id} of type {job_type}",
            extra={"job_id": job_id, "presentation_id": presentation_id},
        )
        return job_id

    def _set(self, job_id: str, fields: dict[str, Any], action: str) -> None:
        try:
            self.client.table(self.table).update(fields).eq("id", job_id).execute()
        except Exception as e:
            logger.error(f"Failed to {action} job: {e}", extra={"job_id": job_id})
            raise StoreError(f"Failed to {action} job: {e}") from e

    def start_job(self, job_id: str) -> None:
        job = self.get_job(job_id) or {}
        self._set(
            job_id,
            {
                "status": "processing",
                "started_at": _utc_now_iso(),
                "attempts": (job.get("attempts") or 0) + 1,
            },
            "start",
        )
        logger.info(f"Started job {job_id}", extra={"job_id": job_id})

    def complete_job(self, job_id: str, output_json: dict[str, Any]) -> None:
        self._set(
            job_id,
            {"status": "completed", "output": output_json, "completed_at": _utc_now_iso()},
            "complete",
        )
        logger.info(f"Completed job {job_id}", extra={"job_id": job_id})

    def fail_job(self, job_id: str, error_message: str) -> None:
        self._set(
            job_id,
            {"status": "failed", "error": error_message, "completed_at": _utc_now_iso()},
            "fail",
        )
        logger.info(f"Failed job {job_id}: {error_message}", extra={"job_id": job_id})

    def get_job(self, job_id: str) -> dict[str, Any] | None:
        try:
            response = self.client.table(self.table).select("*").eq("id", job_id).execute()
        except Exception as e:
            logger.error(f"Failed to get job {job_id}: {e}")
            raise StoreError(f"Failed to get job: {e}") from e

        if response.data:
            return response.data[0]

        logger.warning(f"Job {job_id} not found")
        return None

    def list_pending(self) -> list[dict[str, Any]]:
        """Jobs left ``queued`` or ``processing``, oldest first."""
        try:
            response = (
                self.client.table(self.table)
                .select("*")
                .in_("status", list(PENDING_STATUSES))
                .order("created_at")
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list pending jobs: {e}")
            raise StoreError(f"Failed to list pending jobs: {e}") from e

        return response.data or []

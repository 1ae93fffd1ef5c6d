"""Background slide generation queue.

Each accepted outline becomes a persisted ``generate_slides`` job correlated
to its presentation. A single asyncio worker drains the queue, writes the
presentation's terminal state and notifies open status streams. Jobs left
``queued`` or ``processing`` by a previous process are re-enqueued on start.
"""

import asyncio
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from dossier.chains.generate_slides import generate_slides
from dossier.core.llm import LLMClient, get_llm_client
from dossier.core.logging import get_logger
from dossier.core.schemas import (
    TERMINAL_PRESENTATION_STATUSES,
    CitationStyle,
    Outline,
    Presentation,
    PresentationStatus,
    TokenUsage,
)
from dossier.db.stores import Stores, get_stores
from dossier.services.notifier import PresentationNotifier, get_notifier

logger = get_logger(__name__)

JOB_TYPE = "generate_slides"
DEFAULT_MAX_ATTEMPTS = 3


@dataclass
class SlideJob:
    job_id: str
    presentation_id: str
    user_id: str
    outline: Outline
    citation_style: CitationStyle = CitationStyle.INLINE
    draft_id: str | None = None

    def to_input(self) -> dict[str, Any]:
        return {
            "presentation_id": self.presentation_id,
            "user_id": self.user_id,
            "draft_id": self.draft_id,
            "outline": self.outline.model_dump(mode="json"),
            "citation_style": self.citation_style.value,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "SlideJob":
        data = record.get("input") or {}
        return cls(
            job_id=record["id"],
            presentation_id=record.get("presentation_id") or data["presentation_id"],
            user_id=data["user_id"],
            outline=Outline.model_validate(data["outline"]),
            citation_style=CitationStyle(data.get("citation_style") or "inline"),
            draft_id=data.get("draft_id"),
        )


class SlideJobQueue:
    """In-process worker over persisted job records."""

    def __init__(
        self,
        stores: Stores,
        llm: LLMClient,
        notifier: PresentationNotifier,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self.stores = stores
        self.llm = llm
        self.notifier = notifier
        self.max_attempts = max_attempts
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None
        self._processed_count = 0
        self._error_count = 0
        self._start_time: float | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def stats(self) -> dict[str, Any]:
        uptime = time.time() - self._start_time if self._start_time else 0
        return {
            "running": self.running,
            "pending": self._queue.qsize() if self._queue else 0,
            "processed_count": self._processed_count,
            "error_count": self._error_count,
            "uptime_seconds": round(uptime, 1),
        }

    def _ensure_worker(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if not self.running:
            self._start_time = time.time()
            self._worker = asyncio.create_task(self._run())
        return self._queue

    async def start(self, recover: bool = True) -> int:
        """Start the worker; returns how many interrupted jobs were re-enqueued."""
        self._ensure_worker()
        logger.info("Slide job queue started")
        return self.recover() if recover else 0

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Slide job queue stopped")

    async def join(self) -> None:
        """Wait until every enqueued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    def recover(self) -> int:
        """Re-enqueue jobs left pending; jobs out of attempts fail their presentation."""
        queue = self._ensure_worker()
        recovered = 0

        for record in self.stores.jobs.list_pending():
            if record.get("job_type", JOB_TYPE) != JOB_TYPE:
                continue

            try:
                job = SlideJob.from_record(record)
            except (KeyError, ValueError) as e:
                logger.error(f"Unrecoverable job record {record.get('id')}: {e}")
                self.stores.jobs.fail_job(record["id"], f"Invalid job input: {e}")
                continue

            if (record.get("attempts") or 0) >= self.max_attempts:
                error = f"Slide generation abandoned after {self.max_attempts} attempts"
                self._fail(job, error)
                continue

            queue.put_nowait(job)
            recovered += 1

        if recovered:
            logger.info(f"Re-enqueued {recovered} interrupted slide jobs")
        return recovered

    def submit(self, presentation: Presentation, draft_id: str | None = None) -> SlideJob:
        """
        Persist a job for ``presentation`` and enqueue it.

        Args:
            presentation: Presentation already stored in ``generating`` status
            draft_id: Draft the outline came from

        Returns:
            The enqueued SlideJob (its ``job_id`` is also stored on the presentation)
        """
        job = SlideJob(
            job_id="",
            presentation_id=presentation.id,
            user_id=presentation.user_id,
            outline=presentation.outline,
            citation_style=presentation.citation_style,
            draft_id=draft_id,
        )
        job.job_id = self.stores.jobs.create_job(JOB_TYPE, job.to_input(), presentation.id)
        self.stores.presentations.update(presentation.id, {"job_id": job.job_id})

        self._ensure_worker().put_nowait(job)
        logger.info(
            f"Enqueued slide job {job.job_id}",
            extra={"job_id": job.job_id, "presentation_id": presentation.id},
        )
        return job

    def _fail(self, job: SlideJob, error: str) -> None:
        try:
            self.stores.presentations.update(
                job.presentation_id,
                {"status": PresentationStatus.FAILED.value, "error_message": error},
                job.user_id,
            )
            self.stores.jobs.fail_job(job.job_id, error)
        except Exception as update_error:
            logger.error(
                f"Failed to record failure for {job.presentation_id}: {update_error}",
                extra={"job_id": job.job_id},
            )
        finally:
            self.notifier.publish(job.presentation_id)

    async def process(self, job: SlideJob) -> bool:
        """Run one job to a terminal state; returns True when slides were stored."""
        extra = {"job_id": job.job_id, "presentation_id": job.presentation_id}

        presentation = self.stores.presentations.get(job.presentation_id)
        if presentation is None:
            logger.warning(f"Presentation {job.presentation_id} no longer exists", extra=extra)
            self.stores.jobs.fail_job(job.job_id, "Presentation not found")
            return False

        # Redelivered job whose presentation already finished
        if presentation.status in TERMINAL_PRESENTATION_STATUSES:
            self.stores.jobs.complete_job(job.job_id, {"skipped": True})
            return presentation.status is PresentationStatus.COMPLETED

        self.stores.jobs.start_job(job.job_id)
        logger.info(f"Starting slide generation for {job.presentation_id}", extra=extra)

        try:
            result = await generate_slides(job.outline.slides, job.citation_style, self.llm)
        except Exception as e:
            self._error_count += 1
            logger.exception(f"Unexpected error generating slides: {e}", extra=extra)
            self._fail(job, str(e) or "Unknown error")
            return False

        if not result.success or not result.data:
            self._error_count += 1
            error = result.error or "Slide generation failed"
            logger.error(f"Slide generation failed: {error}", extra=extra)
            self._fail(job, error)
            return False

        tokens = result.token_usage or 0
        try:
            self.stores.presentations.update(
                job.presentation_id,
                {
                    "slides": [s.model_dump(mode="json", by_alias=True) for s in result.data],
                    "status": PresentationStatus.COMPLETED.value,
                    "error_message": None,
                    "token_usage": TokenUsage(slides=tokens, total=tokens).model_dump(),
                },
                job.user_id,
            )
            self.stores.jobs.complete_job(
                job.job_id, {"slide_count": len(result.data), "token_usage": tokens}
            )
        except Exception as e:
            self._error_count += 1
            logger.exception(f"Failed to store generated slides: {e}", extra=extra)
            self._fail(job, f"Failed to save slides: {e}")
            return False

        self._processed_count += 1
        self.notifier.publish(job.presentation_id)
        logger.info(f"Presentation {job.presentation_id} completed", extra=extra)
        return True

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            job = await self._queue.get()
            try:
                await self.process(job)
            except Exception as e:
                logger.exception(f"Error in slide job loop: {e}", extra={"job_id": job.job_id})
            finally:
                self._queue.task_done()


@lru_cache(maxsize=1)
def get_job_queue() -> SlideJobQueue:
    return SlideJobQueue(get_stores(), get_llm_client(), get_notifier())

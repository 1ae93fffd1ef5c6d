"""Presentation status stream: push-notified snapshots with a poll fallback."""

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable

from dossier.core.logging import get_logger
from dossier.core.schemas import TERMINAL_PRESENTATION_STATUSES
from dossier.core.sse import format_named_sse
from dossier.services.notifier import PresentationNotifier

logger = get_logger(__name__)


async def presentation_status_events(
    presentation_id: str,
    user_id: str | None,
    presentations,
    notifier: PresentationNotifier,
    poll_seconds: float = 5.0,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    """
    Yield SSE frames for one presentation until it reaches a terminal status.

    A snapshot is sent immediately, then again whenever the notifier wakes
    the stream or ``poll_seconds`` elapse, whichever comes first.

    Args:
        presentation_id: Presentation to follow
        user_id: Owner filter for reads
        presentations: Presentation store
        notifier: Change notifier shared with the job queue
        poll_seconds: Fallback re-read interval
        is_disconnected: Returns True once the client has gone away

    Yields:
        ``: connected`` comment, ``data:`` snapshots, then ``event: complete``
        or ``event: error``
    """
    yield ": connected\n\n"
    logger.info(f"Client connected for presentation {presentation_id}")

    with notifier.subscription(presentation_id) as wake:
        while True:
            if is_disconnected is not None and await is_disconnected():
                logger.info(f"Client disconnected for presentation {presentation_id}")
                return

            try:
                presentation = presentations.get(presentation_id, user_id)
            except Exception as e:
                logger.error(f"Error fetching presentation {presentation_id}: {e}")
                yield format_named_sse("error", {"error": "Failed to fetch presentation"})
                return

            if presentation is None:
                yield format_named_sse("error", {"error": "Presentation not found"})
                return

            yield f"data: {json.dumps(presentation.to_row())}\n\n"

            if presentation.status in TERMINAL_PRESENTATION_STATUSES:
                logger.info(
                    f"Presentation {presentation_id} {presentation.status.value}, closing stream"
                )
                yield format_named_sse("complete", {"status": presentation.status.value})
                return

            try:
                await asyncio.wait_for(wake.wait(), timeout=poll_seconds)
            except asyncio.TimeoutError:
                pass
            wake.clear()

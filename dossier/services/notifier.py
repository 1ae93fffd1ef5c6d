"""In-process fan-out of presentation change notifications."""

import asyncio
from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache


class PresentationNotifier:
    """
    Wakes every open status stream for a presentation when it changes.

    Each subscriber owns an ``asyncio.Event``; ``publish`` sets all events
    registered for the presentation id. Subscribers clear their event after
    waking. Notifications are not durable: streams keep a poll fallback.
    """

    def __init__(self):
        self._subscribers: dict[str, set[asyncio.Event]] = defaultdict(set)

    def subscribe(self, presentation_id: str) -> asyncio.Event:
        event = asyncio.Event()
        self._subscribers[presentation_id].add(event)
        return event

    def unsubscribe(self, presentation_id: str, event: asyncio.Event) -> None:
        subscribers = self._subscribers.get(presentation_id)
        if not subscribers:
            return
        subscribers.discard(event)
        if not subscribers:
            del self._subscribers[presentation_id]

    @contextmanager
    def subscription(self, presentation_id: str) -> Iterator[asyncio.Event]:
        event = self.subscribe(presentation_id)
        try:
            yield event
        finally:
            self.unsubscribe(presentation_id, event)

    def publish(self, presentation_id: str) -> int:
        """Wake all subscribers; returns how many were notified."""
        subscribers = self._subscribers.get(presentation_id, set())
        for event in subscribers:
            event.set()
        return len(subscribers)

    def subscriber_count(self, presentation_id: str) -> int:
        return len(self._subscribers.get(presentation_id, ()))


@lru_cache(maxsize=1)
def get_notifier() -> PresentationNotifier:
    return PresentationNotifier()

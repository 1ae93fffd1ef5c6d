"""HTTP client for the outline stream and draft auto-save endpoints."""

from typing import Any, Literal

import httpx

from dossier.client.state import GenerationState
from dossier.core.logging import get_logger
from dossier.core.schemas import Outline
from dossier.core.sse import SSEStreamParser

logger = get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"


class OutlineStreamClient:
    """
    Consumes ``POST /api/generate-outline-stream`` and feeds a GenerationState.

    Bytes are handed to an incremental SSE parser as they arrive, so events
    are applied while the model is still generating.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        token: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "OutlineStreamClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def stream_outline(
        self,
        prompt: str,
        mode: Literal["fast", "research"] = "research",
        state: GenerationState | None = None,
    ) -> GenerationState:
        """
        Run one streamed generation.

        Args:
            prompt: Raw user prompt
            mode: ``fast`` skips research
            state: State to drive (a fresh one is created when omitted)

        Returns:
            The state after the stream closed
        """
        state = state or GenerationState()
        state.begin()
        parser = SSEStreamParser()

        try:
            async with self._client.stream(
                "POST", "/api/generate-outline-stream", json={"prompt": prompt, "mode": mode}
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    events = parser.feed(body) + parser.close()
                    if events:
                        for event in events:
                            state.apply(event)
                    else:
                        state.fail(f"HTTP error: {response.status_code}")
                    return state

                async for chunk in response.aiter_bytes():
                    for event in parser.feed(chunk):
                        state.apply(event)

                for event in parser.close():
                    state.apply(event)

        except httpx.HTTPError as e:
            logger.error(f"Stream error: {e}")
            state.fail(str(e) or "Failed to generate outline")

        return state

    async def save_outline(self, draft_id: str, outline: Outline) -> dict[str, Any]:
        """PATCH the draft's outline; raises ``httpx.HTTPStatusError`` on failure."""
        response = await self._client.patch(
            f"/api/drafts/{draft_id}", json={"outline": outline.model_dump(mode="json")}
        )
        response.raise_for_status()
        return response.json()

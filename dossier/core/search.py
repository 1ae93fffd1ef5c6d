"""Brave Search client with mock fallback and rate-limit aware retry."""

import asyncio
from datetime import date
from functools import lru_cache
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel

from dossier.core.config import get_settings
from dossier.core.logging import get_logger
from dossier.core.schemas import Source

logger = get_logger(__name__)

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"

REPUTABLE_DOMAINS = (
    ".edu",
    ".gov",
    ".org",
    "nature.com",
    "science.org",
    "nih.gov",
    "harvard.edu",
    "mit.edu",
    "stanford.edu",
    "forbes.com",
    "wsj.com",
    "bloomberg.com",
    "mckinsey.com",
    "bcg.com",
    "deloitte.com",
)


class SearchResult(BaseModel):
    title: str
    url: str
    description: str = ""

    def to_source(self, with_date: bool = False) -> Source:
        return Source(
            title=self.title or "Web Research",
            url=self.url,
            domain=extract_domain(self.url),
            date=date.today().isoformat() if with_date else None,
        )


def mock_results(query: str) -> list[SearchResult]:
    """Static development results used when no API key is configured."""
    return [
        SearchResult(
            title=f"{query} - Research Article",
            url="https://example.com/research",
            description=f"Comprehensive research on {query} with data-driven insights and analysis.",
        ),
        SearchResult(
            title=f"Latest Trends in {query}",
            url="https://example.com/trends",
            description=f"Current trends and statistics about {query} from industry experts.",
        ),
    ]


def _retry_delay(response: httpx.Response, attempt: int) -> float:
    header = response.headers.get("retry-after")
    if header:
        try:
            return float(int(header))
        except ValueError:
            pass
    return float(2**attempt * 2)


class SearchClient:
    """Web search against the Brave Search API."""

    def __init__(
        self,
        api_key: str | None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str, count: int = 10, retries: int = 2) -> list[SearchResult]:
        """
        Search the web.

        Never raises: a missing key yields mock results, HTTP failures yield an
        empty list. Only HTTP 429 is retried, up to ``retries`` extra attempts,
        honouring ``Retry-After`` when present.

        Args:
            query: Search query
            count: Number of results to request
            retries: Extra attempts on rate limiting

        Returns:
            Ranked search results as returned by the provider
        """
        if not self.api_key:
            logger.warning("BRAVE_SEARCH_API_KEY not set, using mock data")
            return mock_results(query)

        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip",
            "X-Subscription-Token": self.api_key,
        }
        params = {
            "q": query,
            "count": count,
            "search_lang": "en",
            "country": "us",
            "safesearch": "moderate",
            "freshness": "py",
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(retries + 1):
                try:
                    response = await client.get(BRAVE_SEARCH_URL, headers=headers, params=params)
                    response.raise_for_status()
                    data = response.json()
                except httpx.HTTPStatusError as e:
                    if e.response.status_code == 429 and attempt < retries:
                        delay = _retry_delay(e.response, attempt)
                        logger.warning(
                            f"Search rate limited (429), retrying in {delay}s "
                            f"(attempt {attempt + 1}/{retries + 1})"
                        )
                        await asyncio.sleep(delay)
                        continue
                    logger.warning(f"Search HTTP error for '{query[:50]}': {e.response.status_code}")
                    return []
                except httpx.TimeoutException:
                    logger.warning(f"Search timeout for '{query[:50]}'")
                    return []
                except (httpx.HTTPError, ValueError) as e:
                    logger.warning(f"Search error for '{query[:50]}': {e}")
                    return []

                items = (data.get("web") or {}).get("results") or []
                results = [
                    SearchResult(
                        title=item.get("title", ""),
                        url=item.get("url", ""),
                        description=item.get("description", ""),
                    )
                    for item in items
                ]
                logger.info(f"Search '{query[:50]}': {len(results)} results")
                return results

        return []


@lru_cache(maxsize=1)
def get_search_client() -> SearchClient:
    """Get the process-wide search client built from settings."""
    settings = get_settings()
    return SearchClient(
        api_key=settings.BRAVE_SEARCH_API_KEY,
        timeout=settings.SEARCH_TIMEOUT_SECONDS,
    )


def extract_domain(url: str) -> str:
    """Return the hostname of ``url`` without a leading ``www.``, or ``"unknown"``."""
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return "unknown"
    if not parsed.scheme or not hostname:
        return "unknown"
    return hostname.removeprefix("www.")


def is_reputable(url: str) -> bool:
    return any(domain in url for domain in REPUTABLE_DOMAINS)


def prioritize_reputable_domains(results: list) -> list:
    """Stable partition: reputable results first, relative order kept in both groups."""
    reputable = [r for r in results if is_reputable(r.url)]
    others = [r for r in results if not is_reputable(r.url)]
    return reputable + others

"""
================================================================================
AniSync v1.0 - Base Provider Adapter
================================================================================
Abstract base class for every content site the mapper searches.

Each adapter implements one required and one optional operation:
  1. search(query) -> List[ProviderResult]
  2. get_by_id(canonical_id) -> CanonicalRecord (only when the site itself
     knows AniList ids; flag with supports_get_by_id)

RATE LIMITING:
  - Minimum interval between requests per adapter
  - Exponential backoff on 429, plain retry on 5xx and transport errors
  - Anything still failing is raised as ProviderFetchError
================================================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import time
import asyncio
import logging

import httpx

from anisync_app.config import ProviderConfig
from anisync_app.errors import ProviderFetchError
from anisync_app.mapping.models import CanonicalRecord, MediaType, ProviderResult

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Minimum-interval limiter shared by all requests of one adapter.

    Sites tolerate very different loads:
      - MangaDex: ~5 req/sec
      - Comick: ~2 req/sec
      - Mangakakalot: be gentle, HTML pages
    """

    def __init__(self, requests_per_minute: int):
        self.requests_per_minute = requests_per_minute
        self.min_interval = 60.0 / requests_per_minute
        self.last_request = 0.0
        self._lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _get_lock(self) -> asyncio.Lock:
        # asyncio.Lock binds to one loop; Flask requests each run their own
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
        return self._lock

    async def acquire(self):
        """Wait until a request slot is available."""
        async with self._get_lock():
            now = time.monotonic()
            time_since_last = now - self.last_request

            if time_since_last < self.min_interval:
                wait_time = self.min_interval - time_since_last
                logger.debug(f"Rate limit: waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)

            self.last_request = time.monotonic()


class ProviderAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Class attributes identify the site; instance state is only the rate
    limiter, the resolved per-provider config and an optional httpx
    transport (tests pass httpx.MockTransport).
    """

    # Provider identification
    id: str = "base"                 # provider_name used in connectors
    name: str = "Base Provider"
    media_type: MediaType = MediaType.ANIME
    base_url: str = ""

    # Requests per minute
    rate_limit: int = 60

    # Request timeout (seconds)
    timeout: float = 15.0

    max_retries: int = 3
    retry_delay: float = 1.0

    supports_get_by_id: bool = False

    user_agent: str = "AniSync/1.0 (+https://github.com/anisync/anisync)"

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config or ProviderConfig()
        self.rate_limiter = RateLimiter(self.rate_limit)
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return self.id

    def _client(self) -> httpx.AsyncClient:
        """New client per call; fan-out tasks may run on different event loops."""
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers={
                'User-Agent': self.user_agent,
                'Accept': 'application/json, text/html;q=0.9',
            },
            follow_redirects=True,
            transport=self._transport,
        )

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Make a rate-limited HTTP request with retries.

        Args:
            method: HTTP method (GET, POST)
            url: Full URL
            **kwargs: Additional arguments for httpx

        Returns:
            Successful httpx.Response

        Raises:
            ProviderFetchError: On request failure after retries
        """
        last_error: Optional[Exception] = None

        async with self._client() as client:
            for attempt in range(self.max_retries):
                try:
                    await self.rate_limiter.acquire()
                    response = await client.request(method, url, **kwargs)
                    response.raise_for_status()
                    return response

                except httpx.HTTPStatusError as e:
                    last_error = e
                    status = e.response.status_code
                    if status == 429:
                        wait_time = self.retry_delay * (2 ** attempt)
                        logger.warning(f"{self.id}: Rate limited (429), waiting {wait_time}s")
                        await asyncio.sleep(wait_time)
                        continue
                    if status >= 500 and attempt < self.max_retries - 1:
                        logger.warning(
                            f"{self.id}: Server error ({status}), "
                            f"retry {attempt + 1}/{self.max_retries}"
                        )
                        await asyncio.sleep(self.retry_delay)
                        continue
                    raise ProviderFetchError(self.id, f"HTTP {status} for {url}") from e

                except httpx.RequestError as e:
                    last_error = e
                    if attempt < self.max_retries - 1:
                        logger.warning(
                            f"{self.id}: Request error ({e}), "
                            f"retry {attempt + 1}/{self.max_retries}"
                        )
                        await asyncio.sleep(self.retry_delay)
                        continue
                    raise ProviderFetchError(self.id, f"request failed: {e}") from e

        raise ProviderFetchError(self.id, f"max retries exceeded ({last_error})")

    async def _get_json(self, url: str, **kwargs) -> Any:
        response = await self._request('GET', url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderFetchError(self.id, f"invalid JSON from {url}") from e

    async def _get_text(self, url: str, **kwargs) -> str:
        response = await self._request('GET', url, **kwargs)
        return response.text

    # =========================================================================
    # PROVIDER OPERATIONS
    # =========================================================================

    @abstractmethod
    async def search(self, query: str) -> List[ProviderResult]:
        """
        Search the site by title.

        Raises:
            ProviderFetchError: network or parse failure
        """
        pass

    async def get_by_id(self, canonical_id: str) -> Optional[CanonicalRecord]:
        """Look up a canonical id directly. Only meaningful with supports_get_by_id."""
        return None

    def _result(self, source_id: str, title: str, **extra) -> ProviderResult:
        return ProviderResult(provider_name=self.id, source_id=source_id, title=title, **extra)

    def get_status(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "media_type": self.media_type.value,
            "base_url": self.base_url,
            "supports_get_by_id": self.supports_get_by_id,
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id}>"

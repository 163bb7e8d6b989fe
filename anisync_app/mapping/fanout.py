"""
================================================================================
AniSync v1.0 - Provider Fan-out
================================================================================
Queries every provider of a media type concurrently and collects what each
one returned.

HOW IT WORKS:
  1. One task per provider: wait the provider's wait_ms, then search
  2. Each task writes only its own outcome slot
  3. asyncio.gather joins all tasks (settle-all, siblings never cancelled)
  4. The name -> outcome mapping is built after the join

A failing provider (network, parse, timeout, open circuit) reports a
ProviderFetchError in its slot with no results. The others are unaffected.
================================================================================
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from sources.base import ProviderAdapter
from sources.circuit_breaker import CircuitBreakerRegistry, CircuitOpenError

from ..config import MappingSettings, ProviderConfig
from ..errors import ProviderFetchError
from .models import CanonicalRecord, ProviderResult

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class FanoutOutcome:
    """Search outcome of one provider."""
    provider_name: str
    results: List[ProviderResult] = field(default_factory=list)
    error: Optional[ProviderFetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class LookupOutcome:
    """Direct-lookup outcome of one provider."""
    provider_name: str
    record: Optional[CanonicalRecord] = None
    error: Optional[ProviderFetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ProviderFanout:
    """
    Concurrent, failure-isolated provider calls.

    Usage:
        fanout = ProviderFanout(settings.mapping)
        outcomes = await fanout.fetch(providers, "one piece")
        for name, outcome in outcomes.items():
            print(name, len(outcome.results), outcome.error)
    """

    def __init__(
        self,
        settings: Optional[MappingSettings] = None,
        breakers: Optional[CircuitBreakerRegistry] = None
    ):
        self.settings = settings or MappingSettings()
        self.breakers = breakers or CircuitBreakerRegistry()

    def config_for(self, provider: ProviderAdapter) -> ProviderConfig:
        """Effective config: adapter config, then configured override, then globals."""
        return self.settings.for_provider(provider.provider_name, provider.config)

    async def _guarded(
        self,
        provider: ProviderAdapter,
        call: Callable[[], Awaitable[T]]
    ) -> T:
        """Pace, time-box and circuit-break one provider call."""
        name = provider.provider_name
        config = self.config_for(provider)
        breaker = self.breakers.get_or_create(name)

        if not breaker.can_execute():
            raise CircuitOpenError(name, breaker.retry_after)

        if config.wait_ms:
            await asyncio.sleep(config.wait_ms / 1000.0)

        try:
            if config.timeout:
                value = await asyncio.wait_for(call(), timeout=config.timeout)
            else:
                value = await call()
        except asyncio.TimeoutError as e:
            breaker.record_failure()
            raise ProviderFetchError(name, f"timed out after {config.timeout}s") from e
        except ProviderFetchError:
            breaker.record_failure()
            raise
        except Exception as e:
            breaker.record_failure()
            raise ProviderFetchError(name, f"{type(e).__name__}: {e}") from e

        breaker.record_success()
        return value

    async def fetch(
        self,
        providers: Sequence[ProviderAdapter],
        query: str
    ) -> Dict[str, FanoutOutcome]:
        """
        Search all providers concurrently.

        Args:
            providers: Adapters to query (usually one media type)
            query: Search text

        Returns:
            provider_name -> FanoutOutcome, one entry per provider, in input order
        """
        slots: List[Optional[FanoutOutcome]] = [None] * len(providers)

        async def run(index: int, provider: ProviderAdapter) -> None:
            name = provider.provider_name
            try:
                results = await self._guarded(provider, lambda: provider.search(query))
                slots[index] = FanoutOutcome(name, list(results or []))
            except ProviderFetchError as e:
                logger.warning(f"Provider {name} failed for '{query}': {e.message}")
                slots[index] = FanoutOutcome(name, [], e)

        await asyncio.gather(
            *(run(i, p) for i, p in enumerate(providers)),
            return_exceptions=True
        )

        outcomes = self._collect(providers, slots, lambda name: FanoutOutcome(
            name, [], ProviderFetchError(name, "task did not complete")
        ))
        total = sum(len(o.results) for o in outcomes.values())
        failed = sum(1 for o in outcomes.values() if not o.ok)
        logger.info(
            f"Fan-out '{query}': {total} results from {len(outcomes)} providers ({failed} failed)"
        )
        return outcomes

    async def fetch_by_id(
        self,
        providers: Sequence[ProviderAdapter],
        canonical_id: str
    ) -> Dict[str, LookupOutcome]:
        """
        Look up a canonical id on every provider that supports it.

        Providers without supports_get_by_id are not called and do not
        appear in the result.
        """
        capable = [p for p in providers if p.supports_get_by_id]
        slots: List[Optional[LookupOutcome]] = [None] * len(capable)

        async def run(index: int, provider: ProviderAdapter) -> None:
            name = provider.provider_name
            try:
                record = await self._guarded(provider, lambda: provider.get_by_id(canonical_id))
                slots[index] = LookupOutcome(name, record)
            except ProviderFetchError as e:
                logger.warning(f"Provider {name} lookup failed for {canonical_id}: {e.message}")
                slots[index] = LookupOutcome(name, None, e)

        await asyncio.gather(
            *(run(i, p) for i, p in enumerate(capable)),
            return_exceptions=True
        )

        return self._collect(capable, slots, lambda name: LookupOutcome(
            name, None, ProviderFetchError(name, "task did not complete")
        ))

    @staticmethod
    def _collect(providers, slots, missing):
        outcomes = {}
        for provider, slot in zip(providers, slots):
            name = provider.provider_name
            outcomes[name] = slot if slot is not None else missing(name)
        return outcomes

"""
================================================================================
AniSync v1.0 - Sync Orchestrator
================================================================================
Composes the mapping engine into the public operations.

SEARCH FLOW:
  1. Store lookup (a stored record whose title equals the query answers)
  2. AniList search for the query (failure is fatal)
  3. Provider fan-out with the same query
  4. Title pass: provider results vs the query's AniList candidates
  5. Provider pass: each provider result vs an AniList search on its own
     sanitized title (failure is fatal), three-field first-match with
     per-provider thresholds
  6. Reconcile (title pass as base, provider pass as incoming)
  7. Persist and return

GET FLOW:
  AniList media -> store -> fast path (providers that know AniList ids)
  -> full resolution on the preferred title.

CRAWLING:
  Strictly sequential with a fixed delay between items. An id failing on
  AniList or a provider is logged and skipped; StorageError aborts the crawl.
================================================================================
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from sources import build_providers, providers_for
from sources.base import ProviderAdapter

from .anilist import AniListClient
from .config import ProviderConfig, Settings, get_settings
from .errors import CanonicalLookupError, ProviderFetchError
from .mapping.conflicts import ConflictResolver
from .mapping.fanout import FanoutOutcome, LookupOutcome, ProviderFanout
from .mapping.matcher import CandidateMatcher
from .mapping.merger import RecordMerger
from .mapping.models import CanonicalMedia, CanonicalRecord, Connector, MediaType
from .mapping.resolver import EntityResolver, MatchedPair
from .mapping.sanitizer import sanitize_title
from .store import MappingStore

logger = logging.getLogger(__name__)

# Incoming provider-pass connectors below this value never replace title-pass ones
RECONCILE_MIN_SIMILARITY = 0.5

SEASONAL_KINDS = ("trending", "season", "popular", "top", "next_season")


class Sync:
    """
    Public entry point of the mapper.

    Usage:
        sync = Sync()
        records = await sync.search("one piece", MediaType.MANGA)
        record = await sync.get("21")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        anilist: Optional[AniListClient] = None,
        store: Optional[MappingStore] = None,
        providers: Optional[Sequence[ProviderAdapter]] = None,
        fanout: Optional[ProviderFanout] = None
    ):
        self.settings = settings or get_settings()
        self.anilist = anilist or AniListClient()
        self.store = store or MappingStore()
        self.providers = tuple(providers) if providers is not None else build_providers(self.settings)
        self.fanout = fanout or ProviderFanout(self.settings.mapping)

        mapping = self.settings.mapping
        self.resolver = EntityResolver(CandidateMatcher(mapping.threshold, mapping.comparison_threshold))
        self.merger = RecordMerger()
        self.conflicts = ConflictResolver()

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _blocking(self, func: Callable[..., Any], *args) -> Any:
        """Run a blocking store call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def _persist(self, records: List[CanonicalRecord], media_type: MediaType) -> List[CanonicalRecord]:
        records = [r for r in records if r.connectors]
        if records:
            await self._blocking(self.store.insert, records, media_type)
        return records

    def _providers(self, media_type: MediaType):
        return providers_for(self.providers, media_type)

    def _configs(self, providers: Iterable[ProviderAdapter]) -> Dict[str, ProviderConfig]:
        return {p.provider_name: self.fanout.config_for(p) for p in providers}

    @staticmethod
    def _lookup_connectors(outcomes: Dict[str, LookupOutcome]) -> List[Connector]:
        connectors: List[Connector] = []
        for outcome in outcomes.values():
            if outcome.record:
                connectors.extend(outcome.record.connectors)
        return connectors

    # =========================================================================
    # SEARCH
    # =========================================================================

    async def search(self, query: str, media_type: MediaType) -> List[CanonicalRecord]:
        """
        Find canonical records (with connectors) for a free-text query.

        Raises:
            ValueError: invalid media type
            CanonicalLookupError: AniList unreachable
            StorageError: store failure
        """
        media_type = MediaType.parse(media_type)
        query = (query or "").strip()
        if not query:
            return []

        stored = await self._blocking(self.store.search, query, media_type)
        if stored:
            logger.info(f"Search '{query}': {len(stored)} stored record(s)")
            return stored

        return await self._resolve_query(query, media_type)

    async def _resolve_query(self, query: str, media_type: MediaType) -> List[CanonicalRecord]:
        candidates = await self.anilist.search(query, media_type)
        if not candidates:
            logger.info(f"Search '{query}': no AniList candidates")
            return []

        providers = self._providers(media_type)
        outcomes = await self.fanout.fetch(providers, query)

        title_pairs = self.resolver.resolve_titles(outcomes, candidates, media_type)
        title_records = self.merger.merge(title_pairs, {m.id: m for m in candidates})

        provider_records = await self._provider_pass(outcomes, media_type, self._configs(providers))

        records = self.conflicts.reconcile(
            title_records, provider_records, min_similarity=RECONCILE_MIN_SIMILARITY
        )
        records = await self._persist(records, media_type)
        logger.info(
            f"Search '{query}': {len(records)} record(s) "
            f"(title pass {len(title_records)}, provider pass {len(provider_records)})"
        )
        return records

    async def _provider_pass(
        self,
        outcomes: Dict[str, FanoutOutcome],
        media_type: MediaType,
        configs: Dict[str, ProviderConfig]
    ) -> List[CanonicalRecord]:
        """
        Provider-first direction: each result brings its own AniList candidates.

        CanonicalLookupError propagates; no partial candidate set is used.
        """
        memo: Dict[str, List[CanonicalMedia]] = {}
        media_by_id: Dict[str, CanonicalMedia] = {}
        pairs: List[MatchedPair] = []

        for provider_name, outcome in outcomes.items():
            for result in outcome.results:
                title = sanitize_title(result.title)
                if not title:
                    continue

                key = title.lower()
                if key not in memo:
                    memo[key] = await self.anilist.search(title, media_type)

                candidates = memo[key]
                pair = self.resolver.resolve_result(
                    provider_name, result, candidates, configs.get(provider_name)
                )
                if pair:
                    pairs.append(pair)
                    media_by_id.update((m.id, m) for m in candidates if m.id not in media_by_id)

        return self.merger.merge(pairs, media_by_id)

    # =========================================================================
    # GET BY ID
    # =========================================================================

    async def get(self, canonical_id: str) -> Optional[CanonicalRecord]:
        """
        Resolve one canonical id.

        Returns:
            The record, or None when AniList does not know the id or no
            provider matched it
        """
        canonical_id = str(canonical_id)
        media = await self.anilist.get_media(canonical_id)
        if media is None:
            return None

        stored = await self._blocking(self.store.get, media.id, media.type)
        if stored:
            return stored

        outcomes = await self.fanout.fetch_by_id(self._providers(media.type), media.id)
        connectors = self._lookup_connectors(outcomes)
        if connectors:
            record = CanonicalRecord(id=media.id, media=media, connectors=connectors)
            await self._persist([record], media.type)
            return record

        title = media.titles.primary()
        if not title:
            return None

        results = await self._resolve_query(title, media.type)
        return next((r for r in results if r.id == media.id), None)

    # =========================================================================
    # SEASONAL
    # =========================================================================

    async def resolve_media(
        self,
        media_list: Sequence[CanonicalMedia],
        media_type: MediaType
    ) -> List[CanonicalRecord]:
        """
        Attach connectors to already known canonical entries.

        The fast path runs for every entry at once; only when it finds
        nothing does each entry get a sequential fan-out on its title.
        """
        media_type = MediaType.parse(media_type)
        if not media_list:
            return []

        providers = self._providers(media_type)

        lookups = await asyncio.gather(*(
            self.fanout.fetch_by_id(providers, media.id) for media in media_list
        ))
        fast_records = []
        for media, outcomes in zip(media_list, lookups):
            connectors = self._lookup_connectors(outcomes)
            if connectors:
                fast_records.append(CanonicalRecord(id=media.id, media=media, connectors=connectors))
        if fast_records:
            return await self._persist(fast_records, media_type)

        configs = self._configs(providers)
        pairs: List[MatchedPair] = []
        for media in media_list:
            title = media.titles.english or media.titles.primary()
            if not title:
                continue
            outcomes = await self.fanout.fetch(providers, title)
            pairs.extend(self.resolver.resolve(outcomes, [media], configs))

        records = self.merger.merge(pairs, {m.id: m for m in media_list})
        return await self._persist(records, media_type)

    async def get_seasonal(self, kind: str, media_type: MediaType) -> List[CanonicalRecord]:
        if kind not in SEASONAL_KINDS:
            raise ValueError(f"Invalid seasonal list '{kind}'. Valid lists: {', '.join(SEASONAL_KINDS)}")
        seasonal = await self.anilist.get_seasonal(MediaType.parse(media_type))
        return await self.resolve_media(seasonal.get(kind), media_type)

    async def get_trending(self, media_type: MediaType) -> List[CanonicalRecord]:
        return await self.get_seasonal("trending", media_type)

    async def get_season(self, media_type: MediaType) -> List[CanonicalRecord]:
        return await self.get_seasonal("season", media_type)

    async def get_popular(self, media_type: MediaType) -> List[CanonicalRecord]:
        return await self.get_seasonal("popular", media_type)

    async def get_top(self, media_type: MediaType) -> List[CanonicalRecord]:
        return await self.get_seasonal("top", media_type)

    async def get_next_season(self, media_type: MediaType) -> List[CanonicalRecord]:
        return await self.get_seasonal("next_season", media_type)

    # =========================================================================
    # CRAWLING
    # =========================================================================

    async def crawl(
        self,
        media_type: MediaType,
        max_ids: Optional[int] = None,
        wait_ms: Optional[int] = None
    ) -> List[CanonicalRecord]:
        """
        Resolve every AniList id of a type, one at a time.

        Ids already stored are skipped without a delay.
        """
        media_type = MediaType.parse(media_type)
        crawl = self.settings.crawl
        max_ids = crawl.max_ids if max_ids is None else max_ids
        wait_ms = crawl.wait_ms if wait_ms is None else wait_ms

        ids = await self.anilist.get_all_ids(media_type, max_ids)
        logger.info(f"Crawling {len(ids)} {media_type.value.lower()} id(s)")

        produced: List[CanonicalRecord] = []
        for index, canonical_id in enumerate(ids, 1):
            try:
                if await self._blocking(self.store.get, canonical_id, media_type):
                    logger.debug(f"[{index}/{len(ids)}] {canonical_id} already stored")
                    continue

                record = await self.get(canonical_id)
                if record:
                    produced.append(record)
                    logger.info(f"[{index}/{len(ids)}] {canonical_id}: {len(record.connectors)} connector(s)")
                else:
                    logger.info(f"[{index}/{len(ids)}] {canonical_id}: no match")
            except (CanonicalLookupError, ProviderFetchError) as e:
                logger.error(f"[{index}/{len(ids)}] {canonical_id} failed: {e}")

            if wait_ms:
                await asyncio.sleep(wait_ms / 1000.0)

        return produced

    async def crawl_seasonal(
        self,
        media_type: MediaType,
        max_pages: Optional[int] = None,
        wait_ms: Optional[int] = None
    ) -> List[CanonicalRecord]:
        """Page through the trending list, resolving and storing each page."""
        media_type = MediaType.parse(media_type)
        crawl = self.settings.crawl
        max_pages = crawl.max_pages if max_pages is None else max_pages
        wait_ms = crawl.wait_ms if wait_ms is None else wait_ms

        produced: List[CanonicalRecord] = []
        for page in range(1, max_pages + 1):
            try:
                seasonal = await self.anilist.get_seasonal(media_type, page=page, per_page=10)
                records = await self.resolve_media(seasonal.trending, media_type)
                produced.extend(records)
                logger.info(f"Page {page}/{max_pages}: stored {len(records)} record(s)")
            except (CanonicalLookupError, ProviderFetchError) as e:
                logger.error(f"Page {page}/{max_pages} failed: {e}")

            if wait_ms:
                await asyncio.sleep(wait_ms / 1000.0)

        return produced

    # =========================================================================
    # EXPORT
    # =========================================================================

    async def export(self, media_type: MediaType, path: Optional[str] = None) -> str:
        """Dump stored records as JSON, optionally writing them to `path`."""
        data = await self._blocking(self.store.export, MediaType.parse(media_type))
        if path:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(data)
            logger.info(f"Exported {MediaType.parse(media_type).value.lower()} records to {path}")
        return data

from __future__ import annotations

import asyncio
import logging
import random
import re
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Callable

from catalog_builder.domain.entities import BatchLookup, CatalogItem, NotFound, RepoFound, RepoMissing
from catalog_builder.domain.exceptions import ProviderError, RetryExhaustedError
from catalog_builder.domain.interfaces import IMetadataProvider
from catalog_builder.domain.timeutil import utcnow
from .rate_shaper import AdaptiveDelay
from .retry import PROVIDER_RETRY_POLICY, RetryPolicy, Sleep, retry_async
from .rotation import EnrichmentCandidate

log = logging.getLogger(__name__)

BATCH_SIZE    = 50
LOG_FREQUENCY = 10   # log progress + quota every N batches

GITHUB_URL_PATTERN = re.compile(r"github\.com/([^/]+/[^/]+)")


def extract_repo(url: str) -> str | None:
    """`https://github.com/owner/name/tree/main` -> `owner/name`. Non-GitHub URLs -> None."""
    match = GITHUB_URL_PATTERN.search(url)
    if not match:
        return None
    repo = match.group(1)
    return repo[:-4] if repo.endswith(".git") else repo


@dataclass
class EnrichmentStats:
    repos:             int  = 0
    batches:           int  = 0
    resolved:          int  = 0
    not_found:         int  = 0
    unknown:           int  = 0
    invalid:           int  = 0
    abandoned_batches: int  = 0
    items_updated:     int  = 0
    skipped:           bool = False


class BatchEnricher:
    """
    Attaches provider metadata to catalog items, one serialized batch at a time.

    All dependencies are injected - the provider, the retry policy, the
    adaptive delay, and even `sleep`/`rng`/`clock` - so the batching logic
    is testable without a network or real time.

    Items are mutated in place: the candidates reference the live objects
    held by the snapshot entries.
    """

    def __init__(
        self,
        provider: IMetadataProvider,
        batch_size: int = BATCH_SIZE,
        retry_policy: RetryPolicy = PROVIDER_RETRY_POLICY,
        delay: AdaptiveDelay | None = None,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._provider   = provider
        self._batch_size = batch_size
        self._policy     = retry_policy
        self._delay      = delay or AdaptiveDelay()
        self._sleep      = sleep
        self._rng        = rng
        self._clock      = clock

    @staticmethod
    def group_by_repo(candidates: list[EnrichmentCandidate]) -> dict[str, list[CatalogItem]]:
        """One provider entity per repository, however many catalog items point at it."""
        groups: dict[str, list[CatalogItem]] = {}
        for candidate in candidates:
            repo = extract_repo(candidate.item.url)
            if repo:
                groups.setdefault(repo, []).append(candidate.item)
        return groups

    @staticmethod
    def _apply(lookup: BatchLookup, groups: dict[str, list[CatalogItem]], called_at: datetime, stats: EnrichmentStats) -> None:
        stats.invalid += len(lookup.invalid)
        for repo, outcome in lookup.outcomes.items():
            if isinstance(outcome, RepoFound):
                record = outcome.metadata
                stats.resolved += 1
            elif isinstance(outcome, RepoMissing):
                record = NotFound(checked_at=called_at)
                stats.not_found += 1
            else:
                # Unknown: leave the record alone, the item stays a candidate next run
                stats.unknown += 1
                continue

            for item in groups.get(repo, []):
                item.metadata = record
                item.last_enriched = called_at
                stats.items_updated += 1

    async def enrich(self, candidates: list[EnrichmentCandidate]) -> EnrichmentStats:
        stats = EnrichmentStats()
        if not self._provider.is_authorized:
            log.warning("No GitHub token - skipping enrichment of %d candidates", len(candidates))
            stats.skipped = True
            return stats

        groups = self.group_by_repo(candidates)
        repos = list(groups)
        batches = [repos[i: i + self._batch_size] for i in range(0, len(repos), self._batch_size)]
        stats.repos = len(repos)
        stats.batches = len(batches)
        log.info("Enriching %d unique repos in %d batches", len(repos), len(batches))

        for n, batch in enumerate(batches, start=1):
            if n > 1:
                await self._sleep(self._delay.current)

            called_at = self._clock()
            try:
                lookup = await retry_async(
                    partial(self._provider.lookup_batch, batch),
                    self._policy,
                    sleep=self._sleep,
                    rng=self._rng,
                    description=f"enrichment batch {n}/{len(batches)}",
                )
            except (RetryExhaustedError, ProviderError) as exc:
                # Abandoned for this run; the items are still candidates next run
                stats.abandoned_batches += 1
                log.warning("Abandoning enrichment batch %d/%d (%d repos): %s", n, len(batches), len(batch), exc)
                continue

            self._apply(lookup, groups, called_at, stats)
            self._delay.record_success(lookup.rate_remaining)

            if n % LOG_FREQUENCY == 0:
                log.info(
                    "Enrichment progress | batch %d/%d | resolved=%d | not_found=%d | rate_remaining=%s",
                    n, len(batches), stats.resolved, stats.not_found, lookup.rate_remaining,
                )

        log.info(
            "Enrichment complete | repos=%d | resolved=%d | not_found=%d | unknown=%d | invalid=%d | abandoned_batches=%d",
            stats.repos, stats.resolved, stats.not_found, stats.unknown, stats.invalid, stats.abandoned_batches,
        )
        return stats

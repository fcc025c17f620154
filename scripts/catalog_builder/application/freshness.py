from __future__ import annotations

import asyncio
import logging
import random
from functools import partial
from typing import Optional

from catalog_builder.domain.entities import ListEntry, RemoteState, RepoFound, RepoMissing, SourceDescriptor
from catalog_builder.domain.exceptions import ProviderError, RetryExhaustedError
from catalog_builder.domain.interfaces import IMetadataProvider
from .retry import PROVIDER_RETRY_POLICY, RetryPolicy, Sleep, retry_async

log = logging.getLogger(__name__)

PROBE_BATCH_SIZE = 50

RemoteStates = dict[str, Optional[RemoteState]]


class FreshnessProber:
    """
    Asks the provider when each source repository was last pushed.

    One combined query per batch of ids. Every id ends up in the result:
    a RemoteState when resolved, None when unresolved for ANY reason
    (invalid id, explicit not-found, ambiguous null, abandoned batch,
    no credential). Unresolved sources are reprocessed, never skipped.
    """

    def __init__(
        self,
        provider: IMetadataProvider,
        batch_size: int = PROBE_BATCH_SIZE,
        retry_policy: RetryPolicy = PROVIDER_RETRY_POLICY,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._provider   = provider
        self._batch_size = batch_size
        self._policy     = retry_policy
        self._sleep      = sleep
        self._rng        = rng

    async def probe(self, repos: list[str]) -> RemoteStates:
        states: RemoteStates = {repo: None for repo in repos}
        if not self._provider.is_authorized:
            log.warning("No GitHub token - cannot probe freshness, treating %d lists as stale", len(repos))
            return states

        missing = unknown = 0
        for i in range(0, len(repos), self._batch_size):
            batch = repos[i: i + self._batch_size]
            try:
                lookup = await retry_async(
                    partial(self._provider.lookup_batch, batch),
                    self._policy,
                    sleep=self._sleep,
                    rng=self._rng,
                    description=f"freshness batch at {i}",
                )
            except (RetryExhaustedError, ProviderError) as exc:
                log.warning("Freshness probe failed for %d lists, treating as unresolved: %s", len(batch), exc)
                continue

            for repo in lookup.invalid:
                log.warning("Invalid list id %r - left unresolved", repo)
            for repo, outcome in lookup.outcomes.items():
                if isinstance(outcome, RepoFound) and outcome.metadata.pushed_at is not None:
                    states[repo] = RemoteState(pushed_at=outcome.metadata.pushed_at)
                elif isinstance(outcome, RepoMissing):
                    missing += 1
                    log.debug("List repo %s not found", repo)
                else:
                    unknown += 1

        resolved = sum(1 for state in states.values() if state is not None)
        log.info("Freshness probe | resolved=%d | not_found=%d | unknown=%d | of %d", resolved, missing, unknown, len(repos))
        return states


def is_stale(previous: ListEntry | None, remote: RemoteState | None) -> bool:
    """Stale iff never parsed, unresolved remotely, or pushed since the last parse."""
    if previous is None or remote is None:
        return True
    return remote.pushed_at > previous.last_parsed


def classify_sources(
    sources: list[SourceDescriptor],
    previous: dict[str, ListEntry],
    remote: RemoteStates,
) -> tuple[list[SourceDescriptor], list[SourceDescriptor]]:
    """Split sources into (stale, fresh), preserving input order."""
    stale: list[SourceDescriptor] = []
    fresh: list[SourceDescriptor] = []
    for source in sources:
        if is_stale(previous.get(source.repo), remote.get(source.repo)):
            stale.append(source)
        else:
            fresh.append(source)
    log.info("%d lists need re-parsing | %d lists unchanged (using cache)", len(stale), len(fresh))
    return stale, fresh

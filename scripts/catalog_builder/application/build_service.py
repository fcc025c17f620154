from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from catalog_builder.domain.entities import BuildResult
from catalog_builder.domain.interfaces import IBlocklistStore, ISnapshotStore, ISourceRegistry
from catalog_builder.domain.timeutil import utcnow
from .context import RunContext
from .enricher import BatchEnricher
from .freshness import FreshnessProber, classify_sources
from .list_processor import ListProcessor
from .retry_coordinator import RetryCoordinator
from .rotation import RECHECK_BATCH_SIZE, Blocklist, collect_candidates, reap_dead
from .selection import RunSelection, select_sources
from .snapshot_writer import SnapshotWriter

log = logging.getLogger(__name__)


class CatalogBuildService:
    """
    The top-level use case: bring the catalog snapshot up to date.

    Receives all dependencies via constructor injection.
    Knows the sequence of stages but none of their implementation details:

      probe -> classify -> process stale -> retry failed -> merge
            -> enrich (added + missing + rotation) -> reap -> persist
    """

    def __init__(
        self,
        registry: ISourceRegistry,
        snapshot_store: ISnapshotStore,
        blocklist_store: IBlocklistStore,
        prober: FreshnessProber,
        processor: ListProcessor,
        retry_coordinator: RetryCoordinator,
        enricher: BatchEnricher,
        writer: SnapshotWriter,
        recheck_size: int = RECHECK_BATCH_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registry        = registry
        self._snapshot_store  = snapshot_store
        self._blocklist_store = blocklist_store
        self._prober          = prober
        self._processor       = processor
        self._retry           = retry_coordinator
        self._enricher        = enricher
        self._writer          = writer
        self._recheck_size    = recheck_size
        self._clock           = clock

    def _start(self, selection: RunSelection) -> RunContext:
        """
        Load every input. A RegistryLoadError (or an empty selection) raised
        here is the one fatal condition: nothing has been touched yet.
        """
        sources = select_sources(self._registry.load(), selection)
        previous = self._snapshot_store.load()
        blocklist = Blocklist(self._blocklist_store.load())
        return RunContext(
            sources    = sources,
            previous   = dict(previous.lists) if previous else {},
            blocklist  = blocklist,
            started_at = self._clock(),
            merge_mode = selection.is_partial,
        )

    async def execute(self, selection: RunSelection | None = None) -> BuildResult:
        ctx = self._start(selection or RunSelection())
        log.info(
            "CatalogBuildService | %d lists selected | merge_mode=%s | blocklist=%d",
            len(ctx.sources), ctx.merge_mode, len(ctx.blocklist),
        )

        ctx.remote = await self._prober.probe([source.repo for source in ctx.sources])
        ctx.stale, ctx.fresh = classify_sources(ctx.sources, ctx.previous, ctx.remote)

        outcomes, failures = await self._processor.process_many(ctx.stale, ctx)
        for outcome in outcomes:
            ctx.record(outcome)

        ctx.retried = len(failures)
        report = await self._retry.run(failures, ctx)
        for outcome in report.recovered:
            ctx.record(outcome)
        ctx.failures = report.failed

        self._writer.merge(ctx)

        candidates = collect_candidates(ctx.entries, ctx.added, self._recheck_size)
        ctx.enrichment = await self._enricher.enrich(candidates)
        ctx.reaped = reap_dead(ctx.entries, ctx.blocklist)

        self._blocklist_store.save(ctx.blocklist.snapshot())
        snapshot = self._writer.write(ctx)

        elapsed = (self._clock() - ctx.started_at).total_seconds()
        result = BuildResult(
            status       = "partial" if ctx.failures else "success",
            selected     = len(ctx.sources),
            stale        = len(ctx.stale),
            fresh        = len(ctx.fresh),
            processed    = ctx.processed,
            retried      = ctx.retried,
            failed       = tuple(failure.repo for failure in ctx.failures),
            list_count   = snapshot.list_count,
            item_count   = snapshot.item_count,
            enriched     = ctx.enrichment.items_updated,
            reaped       = ctx.reaped,
            elapsed_secs = elapsed,
            merge_mode   = ctx.merge_mode,
            blocklisted  = ctx.blocklist.added_this_run,
        )
        log.info(
            "Build complete | %d items | %d lists | stale=%d | fresh=%d | retried=%d | failed=%d | enriched=%d | reaped=%d | blocklisted=%d | %.0fs",
            result.item_count, result.list_count, result.stale, result.fresh,
            result.retried, len(result.failed), result.enriched, result.reaped, result.blocklisted, elapsed,
        )
        return result

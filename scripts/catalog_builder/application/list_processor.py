from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from catalog_builder.domain.entities import ListEntry, SourceDescriptor, SourceFailure
from catalog_builder.domain.interfaces import IDocumentFetcher, ItemParser
from catalog_builder.domain.timeutil import utcnow
from .context import ListOutcome, RunContext
from .differ import diff_items

log = logging.getLogger(__name__)

MAX_CONCURRENT = 20


class ListProcessor:
    """
    Runs fetch -> parse -> dead-URL filter -> diff for stale sources.

    All dependencies are injected:
      - IDocumentFetcher -> how to get a README (injected)
      - ItemParser       -> how to turn it into items (injected)

    Fetches run concurrently via asyncio.gather but never more than
    `max_concurrent` at a time. Each source fails on its own: a failure is
    returned as a SourceFailure, never raised to the caller.
    """

    def __init__(
        self,
        fetcher: IDocumentFetcher,
        parser: ItemParser,
        max_concurrent: int = MAX_CONCURRENT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._fetcher   = fetcher
        self._parser    = parser
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._max_concurrent = max_concurrent
        self._clock     = clock

    async def process_one(self, source: SourceDescriptor, ctx: RunContext) -> ListOutcome:
        async with self._semaphore:
            readme = await self._fetcher.fetch(source.repo)

        parsed = self._parser(readme)
        items = ctx.blocklist.filter_items(parsed)
        if len(items) != len(parsed):
            log.debug("%s - dropped %d blocklisted items", source.repo, len(parsed) - len(items))

        previous = ctx.previous.get(source.repo)
        diff = diff_items(previous.items if previous else [], items)
        remote = ctx.remote.get(source.repo)
        entry = ListEntry(
            last_parsed = self._clock(),
            pushed_at   = remote.pushed_at if remote else None,
            items       = diff.kept,
        )
        return ListOutcome(source=source, entry=entry, diff=diff)

    async def _guarded(self, source: SourceDescriptor, ctx: RunContext) -> ListOutcome | SourceFailure:
        try:
            outcome = await self.process_one(source, ctx)
        except Exception as exc:
            # Fetch failure or any parse/diff exception: isolated to this source
            log.warning("%s - failed: %s", source.repo, exc)
            return SourceFailure(source=source, error=str(exc) or type(exc).__name__)

        diff = outcome.diff
        log.info(
            "%s - +%d added | -%d removed | %d kept",
            source.repo, len(diff.added), len(diff.removed), len(diff.unchanged) + len(diff.updated),
        )
        return outcome

    async def process_many(
        self, sources: list[SourceDescriptor], ctx: RunContext
    ) -> tuple[list[ListOutcome], list[SourceFailure]]:
        """Process every source; results come back in input order."""
        if not sources:
            return [], []
        log.info("Processing %d lists | concurrency=%d", len(sources), self._max_concurrent)

        results = await asyncio.gather(*[self._guarded(source, ctx) for source in sources])
        outcomes = [r for r in results if isinstance(r, ListOutcome)]
        failures = [r for r in results if isinstance(r, SourceFailure)]
        return outcomes, failures

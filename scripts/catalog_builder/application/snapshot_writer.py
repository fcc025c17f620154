from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from catalog_builder.domain.entities import ListEntry, Snapshot
from catalog_builder.domain.interfaces import ISnapshotStore
from catalog_builder.domain.timeutil import utcnow
from .context import RunContext

log = logging.getLogger(__name__)


def build_snapshot(entries: dict[str, ListEntry], generated_at: datetime) -> Snapshot:
    """Counts are always recomputed from the entries, never carried over."""
    return Snapshot(
        generated_at = generated_at,
        lists        = dict(entries),
        list_count   = len(entries),
        item_count   = sum(len(entry.items) for entry in entries.values()),
    )


class SnapshotWriter:
    """
    Assembles the final entry set and persists it through the injected store.

    `merge` runs before enrichment so rotation sees the whole catalog;
    `write` runs once, at the very end of the build.
    """

    def __init__(self, store: ISnapshotStore, clock: Callable[[], datetime] = utcnow) -> None:
        self._store = store
        self._clock = clock

    def merge(self, ctx: RunContext) -> None:
        carried = 0
        for source in ctx.fresh:
            entry = ctx.previous.get(source.repo)
            if entry is not None:
                ctx.entries[source.repo] = entry
                carried += 1

        # A source that failed every retry keeps its last good entry, if any
        kept_failed = 0
        for failure in ctx.failures:
            entry = ctx.previous.get(failure.repo)
            if entry is not None and failure.repo not in ctx.entries:
                ctx.entries[failure.repo] = entry
                kept_failed += 1

        if ctx.merge_mode:
            for repo, entry in ctx.previous.items():
                if repo not in ctx.entries:
                    ctx.entries[repo] = entry
                    ctx.preserved += 1

        log.info(
            "Merged entries | reprocessed=%d | carried=%d | kept_failed=%d | preserved=%d",
            ctx.processed, carried, kept_failed, ctx.preserved,
        )

    def write(self, ctx: RunContext) -> Snapshot:
        snapshot = build_snapshot(ctx.entries, self._clock())
        self._store.save(snapshot)
        return snapshot

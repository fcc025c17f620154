from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from catalog_builder.domain.entities import DiffResult, ListEntry, SourceDescriptor, SourceFailure
from .enricher import EnrichmentStats
from .freshness import RemoteStates
from .rotation import Blocklist, EnrichmentCandidate


@dataclass(frozen=True)
class ListOutcome:
    """Result of one successful fetch -> parse -> filter -> diff."""
    source: SourceDescriptor
    entry:  ListEntry
    diff:   DiffResult


@dataclass
class RunContext:
    """
    All mutable state of one build run.

    Constructed once by the build service and threaded through every
    stage. Only the driver coroutine writes to it; concurrent fetch tasks
    return ListOutcomes instead of touching `entries` themselves.
    """
    sources:    list[SourceDescriptor]
    previous:   dict[str, ListEntry]
    blocklist:  Blocklist
    started_at: datetime
    merge_mode: bool = False

    remote:     RemoteStates = field(default_factory=dict)
    stale:      list[SourceDescriptor] = field(default_factory=list)
    fresh:      list[SourceDescriptor] = field(default_factory=list)

    # Snapshot under construction: source id -> entry
    entries:    dict[str, ListEntry] = field(default_factory=dict)
    added:      list[EnrichmentCandidate] = field(default_factory=list)
    failures:   list[SourceFailure] = field(default_factory=list)

    processed:  int = 0
    retried:    int = 0
    preserved:  int = 0
    reaped:     int = 0
    enrichment: EnrichmentStats | None = None

    def record(self, outcome: ListOutcome) -> None:
        repo = outcome.source.repo
        self.entries[repo] = outcome.entry
        self.added.extend(EnrichmentCandidate(repo, item) for item in outcome.diff.added)
        self.processed += 1

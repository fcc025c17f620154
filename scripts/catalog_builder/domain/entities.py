from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union


@dataclass(frozen=True)
class SourceDescriptor:
    """
    One upstream awesome-list repository to harvest items from.

    Field names are OURS, not the registry file's. The translation happens
    in the anti-corruption layer of the file store, not here.
    """
    repo:       str
    name:       str
    popularity: int = 0


# Enrichment record: an explicit two-constructor sum type.
# An item either has no record, a Resolved one, or a NotFound dead marker.

@dataclass(frozen=True)
class Resolved:
    stars:     int
    language:  str | None
    pushed_at: datetime | None


@dataclass(frozen=True)
class NotFound:
    checked_at: datetime


EnrichmentRecord = Union[Resolved, NotFound]


@dataclass
class CatalogItem:
    """
    One harvested tool/library entry. Identity is `url`, scoped per source.

    Mutable on purpose: the enricher stamps `metadata` and `last_enriched`
    on the live object held by the snapshot entry.
    """
    name:          str
    url:           str
    description:   str
    category:      str
    subcategory:   str | None = None
    metadata:      EnrichmentRecord | None = None
    last_enriched: datetime | None = None


@dataclass
class ListEntry:
    last_parsed: datetime
    pushed_at:   datetime | None
    items:       list[CatalogItem] = field(default_factory=list)


@dataclass
class Snapshot:
    generated_at: datetime
    lists:        dict[str, ListEntry] = field(default_factory=dict)
    list_count:   int = 0
    item_count:   int = 0


@dataclass(frozen=True)
class DiffResult:
    added:     list[CatalogItem]
    removed:   list[CatalogItem]
    unchanged: list[CatalogItem]
    updated:   list[CatalogItem]

    @property
    def kept(self) -> list[CatalogItem]:
        """New authoritative item list for the source: unchanged, updated, then added."""
        return [*self.unchanged, *self.updated, *self.added]


# Provider boundary: three-way lookup outcome.
# Downstream code switches on the type, never on key presence.

@dataclass(frozen=True)
class RemoteState:
    """Freshness-relevant state of a source repository."""
    pushed_at: datetime


@dataclass(frozen=True)
class RepoFound:
    metadata: Resolved


@dataclass(frozen=True)
class RepoMissing:
    """Provider explicitly reported the repository as not found."""


@dataclass(frozen=True)
class RepoUnknown:
    """Null slot with no accompanying error. Deferred, never treated as dead."""


LookupOutcome = Union[RepoFound, RepoMissing, RepoUnknown]


@dataclass(frozen=True)
class BatchLookup:
    """One provider call: per-repo outcomes plus the remaining quota signal."""
    outcomes:       dict[str, LookupOutcome]
    rate_remaining: int | None = None
    invalid:        tuple[str, ...] = ()


@dataclass(frozen=True)
class SourceFailure:
    source: SourceDescriptor
    error:  str

    @property
    def repo(self) -> str:
        return self.source.repo


@dataclass(frozen=True)
class BuildResult:
    """
    Immutable value object summarising a completed build run.
    Returned by the application service when the build finishes.
    """
    status:          str
    selected:        int
    stale:           int
    fresh:           int
    processed:       int
    retried:         int
    failed:          tuple[str, ...]
    list_count:      int
    item_count:      int
    enriched:        int
    reaped:          int
    elapsed_secs:    float
    merge_mode:      bool = False
    blocklisted:     int = 0

    @property
    def failure_ratio(self) -> float:
        return len(self.failed) / self.selected if self.selected else 0.0

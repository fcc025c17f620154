"""
Staleness rotation, dead-item reaper and the dead-URL blocklist.

Rotation re-verifies the oldest-enriched resolved items a slice at a time,
so every item is eventually rechecked without re-enriching everything.
The reaper turns NotFound records into blocklist entries; the blocklist is
consulted before every diff so a reaped URL never comes back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from catalog_builder.domain.entities import CatalogItem, ListEntry, NotFound, Resolved

log = logging.getLogger(__name__)

RECHECK_BATCH_SIZE = 1000


@dataclass(frozen=True)
class EnrichmentCandidate:
    """A live item (mutated in place by the enricher) plus the source it belongs to."""
    source: str
    item:   CatalogItem


class Blocklist:
    """Append-only set of dead item URLs."""

    def __init__(self, urls: set[str] | None = None) -> None:
        self._urls: set[str] = set(urls or ())
        self._added = 0

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def __len__(self) -> int:
        return len(self._urls)

    @property
    def added_this_run(self) -> int:
        return self._added

    def add(self, url: str) -> None:
        if url not in self._urls:
            self._urls.add(url)
            self._added += 1

    def snapshot(self) -> set[str]:
        return set(self._urls)

    def filter_items(self, items: list[CatalogItem]) -> list[CatalogItem]:
        """Dead-URL filter: drop blocklisted items, keep order."""
        return [item for item in items if item.url not in self._urls]


def select_rotation(entries: dict[str, ListEntry], size: int = RECHECK_BATCH_SIZE) -> list[EnrichmentCandidate]:
    """Oldest-enriched Resolved items first. Ties keep source then item order."""
    resolved = [
        EnrichmentCandidate(source, item)
        for source, entry in entries.items()
        for item in entry.items
        if isinstance(item.metadata, Resolved) and item.last_enriched is not None
    ]
    resolved.sort(key=lambda candidate: candidate.item.last_enriched)
    return resolved[:size]


def collect_candidates(
    entries: dict[str, ListEntry],
    added: list[EnrichmentCandidate],
    recheck_size: int = RECHECK_BATCH_SIZE,
) -> list[EnrichmentCandidate]:
    """
    Merge the three origins of enrichment work, deduplicated per live item:
    newly added items, every item still lacking a record, and the rotation slice.

    Reparsed entries hold each URL once, so this is one candidate per
    (source, url). An older carried-over entry that still repeats a URL gets
    a candidate for every copy, so no copy is left without a record.
    """
    missing = [
        EnrichmentCandidate(source, item)
        for source, entry in entries.items()
        for item in entry.items
        if item.metadata is None
    ]
    rotation = select_rotation(entries, recheck_size)

    seen: set[int] = set()
    merged: list[EnrichmentCandidate] = []
    for candidate in [*added, *missing, *rotation]:
        key = id(candidate.item)
        if key in seen:
            continue
        seen.add(key)
        merged.append(candidate)

    log.info(
        "Enrichment queue | added=%d | missing=%d | rotation=%d | unique=%d",
        len(added), len(missing), len(rotation), len(merged),
    )
    return merged


def reap_dead(entries: dict[str, ListEntry], blocklist: Blocklist) -> int:
    """Remove every NotFound item from its entry and blocklist its URL."""
    reaped = 0
    for source, entry in entries.items():
        alive: list[CatalogItem] = []
        for item in entry.items:
            if isinstance(item.metadata, NotFound):
                blocklist.add(item.url)
                reaped += 1
                log.debug("Reaped dead item %s from %s", item.url, source)
            else:
                alive.append(item)
        entry.items = alive

    if reaped:
        log.info(
            "Reaped %d dead items | newly blocklisted=%d | blocklist size=%d",
            reaped, blocklist.added_this_run, len(blocklist),
        )
    return reaped

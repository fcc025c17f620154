from __future__ import annotations
from dataclasses import replace

from catalog_builder.domain.entities import CatalogItem, DiffResult


def unique_by_url(items: list[CatalogItem]) -> list[CatalogItem]:
    """First occurrence of each URL wins; a list may repeat a link under several headings."""
    seen: set[str] = set()
    unique: list[CatalogItem] = []
    for item in items:
        if item.url not in seen:
            seen.add(item.url)
            unique.append(item)
    return unique


def _index_by_url(items: list[CatalogItem]) -> dict[str, CatalogItem]:
    # Older snapshots may hold repeated URLs: the copy carrying a record wins
    by_url: dict[str, CatalogItem] = {}
    for item in items:
        current = by_url.get(item.url)
        if current is None or (current.metadata is None and item.metadata is not None):
            by_url[item.url] = item
    return by_url


def diff_items(old_items: list[CatalogItem], new_items: list[CatalogItem]) -> DiffResult:
    """
    Partition a freshly parsed list against the previous one, by URL.

    URL is the identity within a source, so repeated URLs in the new parse
    collapse to their first occurrence. Kept items (unchanged or updated)
    take name/description/category from the new parse and the enrichment
    record + last_enriched from the old item: content drift does not
    invalidate metadata. Removed items are dropped with no tombstone.
    Partitions preserve input order.
    """
    old_by_url = _index_by_url(old_items)
    new_items = unique_by_url(new_items)
    new_urls = {item.url for item in new_items}

    added: list[CatalogItem] = []
    unchanged: list[CatalogItem] = []
    updated: list[CatalogItem] = []

    for new_item in new_items:
        old_item = old_by_url.get(new_item.url)
        if old_item is None:
            added.append(replace(new_item, metadata=None, last_enriched=None))
            continue

        carried = replace(new_item, metadata=old_item.metadata, last_enriched=old_item.last_enriched)
        if old_item.name == new_item.name and old_item.description == new_item.description:
            unchanged.append(carried)
        else:
            updated.append(carried)

    removed = unique_by_url([item for item in old_items if item.url not in new_urls])
    return DiffResult(added=added, removed=removed, unchanged=unchanged, updated=updated)

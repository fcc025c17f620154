from __future__ import annotations

import gzip
import json
import logging
import os
import tempfile
from pathlib import Path

from catalog_builder.domain.entities import (
    CatalogItem,
    EnrichmentRecord,
    ListEntry,
    NotFound,
    Resolved,
    Snapshot,
    SourceDescriptor,
)
from catalog_builder.domain.exceptions import RegistryLoadError
from catalog_builder.domain.interfaces import IBlocklistStore, ISnapshotStore, ISourceRegistry
from catalog_builder.domain.timeutil import EPOCH, format_datetime, parse_datetime, utcnow

log = logging.getLogger(__name__)


def _atomic_write_bytes(path: Path, payload: bytes) -> None:
    """Write to a temp file in the same directory, then rename over the target."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


# ---------------------------------------------------------------------------
# Anti-corruption layer: JSON shape <-> domain objects
# ---------------------------------------------------------------------------

def record_to_dict(record: EnrichmentRecord) -> dict:
    if isinstance(record, NotFound):
        return {"notFound": True, "checkedAt": format_datetime(record.checked_at)}
    return {
        "stars":    record.stars,
        "language": record.language,
        "pushedAt": format_datetime(record.pushed_at),
    }


def record_from_dict(raw: object) -> EnrichmentRecord | None:
    """The marker key decides the variant HERE; downstream code only sees types."""
    if not isinstance(raw, dict):
        return None
    if raw.get("notFound") is True:
        checked_at = parse_datetime(raw.get("checkedAt"))
        return NotFound(checked_at) if checked_at else None
    stars = raw.get("stars")
    if not isinstance(stars, int):
        return None
    language = raw.get("language")
    return Resolved(
        stars     = stars,
        language  = language if isinstance(language, str) else None,
        pushed_at = parse_datetime(raw.get("pushedAt")),
    )


def item_to_dict(item: CatalogItem) -> dict:
    out: dict = {
        "name":        item.name,
        "url":         item.url,
        "description": item.description,
        "category":    item.category,
    }
    if item.subcategory:
        out["subcategory"] = item.subcategory
    if item.last_enriched:
        out["lastEnriched"] = format_datetime(item.last_enriched)
    if item.metadata is not None:
        out["metadata"] = record_to_dict(item.metadata)
    return out


def item_from_dict(raw: dict) -> CatalogItem:
    # Older artifacts stored the record under "github"
    metadata = raw.get("metadata", raw.get("github"))
    return CatalogItem(
        name          = str(raw["name"]),
        url           = str(raw["url"]),
        description   = str(raw.get("description") or ""),
        category      = str(raw.get("category") or "Uncategorized"),
        subcategory   = raw.get("subcategory") or None,
        metadata      = record_from_dict(metadata),
        last_enriched = parse_datetime(raw.get("lastEnriched")),
    )


def snapshot_to_dict(snapshot: Snapshot) -> dict:
    return {
        "generatedAt": format_datetime(snapshot.generated_at),
        "listCount":   snapshot.list_count,
        "itemCount":   snapshot.item_count,
        "lists": {
            repo: {
                "lastParsed": format_datetime(entry.last_parsed),
                "pushedAt":   format_datetime(entry.pushed_at) or "",
                "items":      [item_to_dict(item) for item in entry.items],
            }
            for repo, entry in snapshot.lists.items()
        },
    }


def snapshot_from_dict(raw: dict) -> Snapshot:
    lists: dict[str, ListEntry] = {}
    for repo, entry in (raw.get("lists") or {}).items():
        if not isinstance(entry, dict):
            continue
        items = []
        for raw_item in entry.get("items") or []:
            try:
                items.append(item_from_dict(raw_item))
            except (AttributeError, KeyError, TypeError) as exc:
                log.debug("Skipping malformed item in %s: %s", repo, exc)
        lists[repo] = ListEntry(
            # Unparseable lastParsed forces the list stale on the next probe
            last_parsed = parse_datetime(entry.get("lastParsed")) or EPOCH,
            pushed_at   = parse_datetime(entry.get("pushedAt")),
            items       = items,
        )
    return Snapshot(
        generated_at = parse_datetime(raw.get("generatedAt")) or utcnow(),
        lists        = lists,
        list_count   = len(lists),
        item_count   = sum(len(e.items) for e in lists.values()),
    )


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class JsonSourceRegistry(ISourceRegistry):
    """Reads `lists.json`: an array of {id, name, popularity} (or legacy {repo, name, stars})."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def load(self) -> list[SourceDescriptor]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise RegistryLoadError(f"Cannot read source registry {self._path}: {exc}") from exc
        if not isinstance(raw, list):
            raise RegistryLoadError(f"Source registry {self._path} is not a JSON array")

        sources = []
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            repo = entry.get("id") or entry.get("repo")
            if not isinstance(repo, str) or not repo:
                log.debug("Skipping registry entry without id: %s", entry)
                continue
            popularity = entry.get("popularity", entry.get("stars", 0))
            sources.append(SourceDescriptor(
                repo       = repo,
                name       = str(entry.get("name") or repo),
                popularity = popularity if isinstance(popularity, int) else 0,
            ))
        log.info("Loaded %d sources from %s", len(sources), self._path)
        return sources


class GzipSnapshotStore(ISnapshotStore):
    """Snapshot as gzip-compressed JSON (`items.json.gz`)."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def load(self) -> Snapshot | None:
        if not self._path.exists():
            log.info("No existing snapshot at %s, starting fresh", self._path)
            return None
        try:
            with gzip.open(self._path, "rt", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as exc:
            log.warning("Unreadable snapshot %s (%s), starting fresh", self._path, exc)
            return None
        if not isinstance(raw, dict):
            log.warning("Snapshot %s is not a JSON object, starting fresh", self._path)
            return None

        snapshot = snapshot_from_dict(raw)
        log.info("Loaded existing snapshot: %d items from %d lists", snapshot.item_count, snapshot.list_count)
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        body = json.dumps(snapshot_to_dict(snapshot), ensure_ascii=False, separators=(",", ":"))
        _atomic_write_bytes(self._path, gzip.compress(body.encode("utf-8")))
        log.info("Wrote %d items from %d lists to %s", snapshot.item_count, snapshot.list_count, self._path)


class JsonBlocklistStore(IBlocklistStore):
    """Flat, sorted, deduplicated JSON list of dead item URLs."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def load(self) -> set[str]:
        if not self._path.exists():
            return set()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Unreadable blocklist %s (%s), starting empty", self._path, exc)
            return set()
        urls = {url for url in raw if isinstance(url, str)} if isinstance(raw, list) else set()
        log.info("Loaded %d blocklisted URLs", len(urls))
        return urls

    def save(self, urls: set[str]) -> None:
        body = json.dumps(sorted(urls), indent=2) + "\n"
        _atomic_write_bytes(self._path, body.encode("utf-8"))
        log.debug("Wrote %d blocklisted URLs to %s", len(urls), self._path)

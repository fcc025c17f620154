"""
build_catalog.py - command line entry point for the catalog build

    build-catalog [FILTER] [--start N] [--count N] [--data-dir DIR]

Reads lists.json, items.json.gz and dead-urls.json from the data
directory, brings the snapshot up to date and rewrites the last two.
GITHUB_TOKEN enables freshness probing and enrichment; without it every
list is re-parsed and no metadata is fetched. Any FILTER or range turns
the run into a merge over the previous snapshot.

Exit status is 1 when the registry is unreadable, the filter matches
nothing, or more than FAILURE_THRESHOLD of the selected lists failed.

Object graph built here:
                      build_catalog.py  (wires everything)
                             |
                  CatalogBuildService
                             |
     +-----------+-----------+-------------+--------------+
     v           v           v             v              v
FreshnessProber ListProcessor RetryCoordinator BatchEnricher SnapshotWriter
     |           |    |                    |                    |
     v           v    v                    v                    v
GitHubClient  RawReadme parse_readme   GitHubClient      GzipSnapshotStore
              Fetcher
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

import httpx

# Application layer
from catalog_builder.application.build_service import CatalogBuildService
from catalog_builder.application.enricher import BatchEnricher
from catalog_builder.application.freshness import FreshnessProber
from catalog_builder.application.list_processor import ListProcessor
from catalog_builder.application.readme_parser import parse_readme
from catalog_builder.application.retry_coordinator import RetryCoordinator
from catalog_builder.application.selection import RunSelection
from catalog_builder.application.snapshot_writer import SnapshotWriter
from catalog_builder.domain.entities import BuildResult
from catalog_builder.domain.exceptions import CatalogBuildError

# Infrastructure layer
from catalog_builder.infrastructure.file_storage import GzipSnapshotStore, JsonBlocklistStore, JsonSourceRegistry
from catalog_builder.infrastructure.github_client import GitHubClient
from catalog_builder.infrastructure.readme_fetcher import RawReadmeFetcher

log = logging.getLogger("build_catalog")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_DATA_DIR  = Path("data")
REGISTRY_FILE     = "lists.json"
SNAPSHOT_FILE     = "items.json.gz"
BLOCKLIST_FILE    = "dead-urls.json"
FAILURE_THRESHOLD = 0.1   # exit non-zero when more than this share of lists failed


def _read_env() -> str | None:
    """GITHUB_TOKEN is optional: without it the build still runs, unprobed and unenriched."""
    token = os.environ.get("GITHUB_TOKEN")
    if not token:
        log.warning("GITHUB_TOKEN not set - freshness probing and enrichment are disabled")
    return token


# ---------------------------------------------------------------------------
# Dependency wiring
# ---------------------------------------------------------------------------

async def build_and_run(token: str | None, data_dir: Path, selection: RunSelection) -> BuildResult:
    """One shared httpx client serves both the GraphQL provider and the raw README fetcher."""
    async with httpx.AsyncClient() as client:
        # Infrastructure implementations
        github_client  = GitHubClient(token=token, client=client)
        fetcher        = RawReadmeFetcher(client=client)
        snapshot_store = GzipSnapshotStore(data_dir / SNAPSHOT_FILE)

        # Application services (receive infrastructure via injection)
        processor = ListProcessor(fetcher=fetcher, parser=parse_readme)
        service = CatalogBuildService(
            registry          = JsonSourceRegistry(data_dir / REGISTRY_FILE),
            snapshot_store    = snapshot_store,
            blocklist_store   = JsonBlocklistStore(data_dir / BLOCKLIST_FILE),
            prober            = FreshnessProber(provider=github_client),
            processor         = processor,
            retry_coordinator = RetryCoordinator(processor=processor),
            enricher          = BatchEnricher(provider=github_client),
            writer            = SnapshotWriter(store=snapshot_store),
        )
        return await service.execute(selection)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Incrementally rebuild the awesome-list item catalog")
    parser.add_argument("filter", nargs="?", default=None, help="Only process lists whose repo id contains this substring")
    parser.add_argument("--start", type=int, default=0, help="Index of the first list to process")
    parser.add_argument("--count", type=int, default=None, help="Number of lists to process")
    parser.add_argument(
        "--data-dir",
        type    = Path,
        default = DEFAULT_DATA_DIR,
        help    = f"Directory holding {REGISTRY_FILE}, {SNAPSHOT_FILE} and {BLOCKLIST_FILE} (default: {DEFAULT_DATA_DIR})",
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    args = _parse_args(argv)
    selection = RunSelection(name_filter=args.filter, start=args.start, count=args.count)
    token = _read_env()

    try:
        result = asyncio.run(build_and_run(token, args.data_dir, selection))
    except CatalogBuildError as exc:
        log.error("Build aborted: %s", exc)
        return 1

    if result.failure_ratio > FAILURE_THRESHOLD:
        log.error(
            "Failed | %d of %d lists failed (%.0f%% > %.0f%%): %s",
            len(result.failed), result.selected, result.failure_ratio * 100, FAILURE_THRESHOLD * 100,
            ", ".join(result.failed),
        )
        return 1

    log.info(
        "Done | status=%s | %d items | %d lists | %.0fs",
        result.status, result.item_count, result.list_count, result.elapsed_secs,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())

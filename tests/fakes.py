"""In-memory implementations of the domain interfaces, injected in place of GitHub and the filesystem."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from catalog_builder.domain.entities import (
    BatchLookup,
    CatalogItem,
    ListEntry,
    LookupOutcome,
    RepoUnknown,
    Snapshot,
    SourceDescriptor,
)
from catalog_builder.domain.exceptions import FetchError, RegistryLoadError
from catalog_builder.domain.interfaces import (
    IBlocklistStore,
    IDocumentFetcher,
    IMetadataProvider,
    ISnapshotStore,
    ISourceRegistry,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def at(hours: int) -> datetime:
    return T0 + timedelta(hours=hours)


def item(url: str, name: str = "X", description: str = "d", **kwargs) -> CatalogItem:
    return CatalogItem(name=name, url=url, description=description, category=kwargs.pop("category", "Tools"), **kwargs)


class FakeProvider(IMetadataProvider):
    """Answers from a fixed outcome table; queued exceptions are raised first, one per call."""

    def __init__(
        self,
        outcomes: dict[str, LookupOutcome] | None = None,
        authorized: bool = True,
        errors: list[Exception] | None = None,
        rate_remaining: int | None = 5000,
    ) -> None:
        self.outcomes = outcomes or {}
        self.authorized = authorized
        self.errors = list(errors or [])
        self.rate_remaining = rate_remaining
        self.calls: list[list[str]] = []

    @property
    def is_authorized(self) -> bool:
        return self.authorized

    async def lookup_batch(self, repos: list[str]) -> BatchLookup:
        self.calls.append(list(repos))
        if self.errors:
            raise self.errors.pop(0)
        return BatchLookup(
            outcomes={repo: self.outcomes.get(repo, RepoUnknown()) for repo in repos},
            rate_remaining=self.rate_remaining,
        )


class FakeFetcher(IDocumentFetcher):
    """
    README text per repo. `fail_times[repo] = n` makes the first n fetches fail.
    Tracks peak concurrency so tests can check the semaphore bound.
    """

    def __init__(self, readmes: dict[str, str], fail_times: dict[str, int] | None = None) -> None:
        self.readmes = readmes
        self.fail_times = dict(fail_times or {})
        self.calls: list[str] = []
        self.in_flight = 0
        self.peak = 0

    async def fetch(self, repo: str) -> str:
        self.calls.append(repo)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.fail_times.get(repo, 0) > 0:
                self.fail_times[repo] -= 1
                raise FetchError(repo, 4)
            if repo not in self.readmes:
                raise FetchError(repo, 4)
            return self.readmes[repo]
        finally:
            self.in_flight -= 1


class StaticRegistry(ISourceRegistry):

    def __init__(self, repos: list[str] | None = None, broken: bool = False) -> None:
        self.repos = repos or []
        self.broken = broken

    def load(self) -> list[SourceDescriptor]:
        if self.broken:
            raise RegistryLoadError("registry unreadable")
        return [SourceDescriptor(repo=repo, name=repo.split("/")[-1]) for repo in self.repos]


class InMemorySnapshotStore(ISnapshotStore):

    def __init__(self, snapshot: Snapshot | None = None) -> None:
        self.snapshot = snapshot
        self.saved: list[Snapshot] = []

    def load(self) -> Snapshot | None:
        return self.snapshot

    def save(self, snapshot: Snapshot) -> None:
        self.saved.append(snapshot)
        self.snapshot = snapshot


class InMemoryBlocklistStore(IBlocklistStore):

    def __init__(self, urls: set[str] | None = None) -> None:
        self.urls = set(urls or ())
        self.saves = 0

    def load(self) -> set[str]:
        return set(self.urls)

    def save(self, urls: set[str]) -> None:
        self.urls = set(urls)
        self.saves += 1


def snapshot_of(lists: dict[str, ListEntry]) -> Snapshot:
    return Snapshot(
        generated_at=T0,
        lists=lists,
        list_count=len(lists),
        item_count=sum(len(e.items) for e in lists.values()),
    )

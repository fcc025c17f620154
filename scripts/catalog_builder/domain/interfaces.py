"""
Seams of the catalog build.

Five collaborators sit outside the pipeline: the metadata provider (GitHub
GraphQL), the README fetcher, the source registry, the snapshot store and
the blocklist store. Each is an ABC here; `infrastructure/` holds the real
implementations and `tests/fakes.py` the in-memory ones. The parser is a
plain callable rather than a class.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable

from .entities import BatchLookup, CatalogItem, Snapshot, SourceDescriptor

# Pure function: raw README text -> ordered item candidates. No I/O.
ItemParser = Callable[[str], list[CatalogItem]]


class IMetadataProvider(ABC):
    """
    Contract that any repository-metadata client must fulfil.
    One call covers up to one batch of repositories.
    """

    @property
    @abstractmethod
    def is_authorized(self) -> bool:
        """False when no credential is configured. Callers must then skip lookups."""
        ...

    @abstractmethod
    async def lookup_batch(self, repos: list[str]) -> BatchLookup:
        """
        Look up one batch of `owner/name` ids in a single request.

        Ids failing name validation are excluded before sending and reported
        in `BatchLookup.invalid`; every sent id gets exactly one outcome.

        Raises:
            RateLimitError         - explicit rate-limit signal, retry later
            TransientProviderError - network error / 5xx, retry later
            ProviderError          - anything retrying will not fix
        """
        ...


class IDocumentFetcher(ABC):
    """Contract for retrieving the raw README of a source repository."""

    @abstractmethod
    async def fetch(self, repo: str) -> str:
        """Return README text. Raises FetchError when every fallback fails."""
        ...


class ISourceRegistry(ABC):

    @abstractmethod
    def load(self) -> list[SourceDescriptor]:
        """Raises RegistryLoadError when the registry cannot be read."""
        ...


class ISnapshotStore(ABC):
    """
    Contract for persisting the full snapshot.
    Swap the gzip file for object storage without touching application code.
    """

    @abstractmethod
    def load(self) -> Snapshot | None:
        """Previous snapshot, or None on a first run."""
        ...

    @abstractmethod
    def save(self, snapshot: Snapshot) -> None:
        """Persist atomically: readers never observe a half-written artifact."""
        ...


class IBlocklistStore(ABC):

    @abstractmethod
    def load(self) -> set[str]:
        ...

    @abstractmethod
    def save(self, urls: set[str]) -> None:
        """Rewrite the full, deduplicated list."""
        ...

from __future__ import annotations

import logging

import httpx

from catalog_builder.domain.exceptions import FetchError
from catalog_builder.domain.interfaces import IDocumentFetcher

log = logging.getLogger(__name__)

RAW_CONTENT_URL = "https://raw.githubusercontent.com"
BRANCHES        = ("main", "master")
FILENAMES       = ("README.md", "readme.md")
REQUEST_TIMEOUT = 15.0


class RawReadmeFetcher(IDocumentFetcher):
    """
    Fetches a README from raw.githubusercontent.com.

    Tries every (branch, filename) combination in order; the first 2xx
    wins. A timeout, network error or non-2xx is one failed attempt, never
    an exception escaping to the caller other than FetchError.

    Concurrency is bounded by the caller (ListProcessor's semaphore).
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = REQUEST_TIMEOUT,
        branches: tuple[str, ...] = BRANCHES,
        filenames: tuple[str, ...] = FILENAMES,
    ) -> None:
        self._client    = client
        self._timeout   = timeout
        self._branches  = branches
        self._filenames = filenames

    def candidate_urls(self, repo: str) -> list[str]:
        return [
            f"{RAW_CONTENT_URL}/{repo}/{branch}/{filename}"
            for branch in self._branches
            for filename in self._filenames
        ]

    async def fetch(self, repo: str) -> str:
        urls = self.candidate_urls(repo)
        for url in urls:
            try:
                response = await self._client.get(url, timeout=self._timeout, follow_redirects=True)
            except httpx.RequestError as exc:
                log.debug("Fetch attempt failed %s: %r", url, exc)
                continue
            if response.is_success:
                return response.text
            log.debug("Fetch attempt %s -> HTTP %d", url, response.status_code)

        raise FetchError(repo, len(urls))

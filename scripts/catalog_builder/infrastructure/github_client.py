from __future__ import annotations

import logging
import re

import httpx

from catalog_builder.domain.entities import (
    BatchLookup,
    LookupOutcome,
    RepoFound,
    RepoMissing,
    RepoUnknown,
    Resolved,
)
from catalog_builder.domain.exceptions import (
    ProviderError,
    RateLimitError,
    TransientProviderError,
)
from catalog_builder.domain.interfaces import IMetadataProvider
from catalog_builder.domain.timeutil import parse_datetime

log = logging.getLogger(__name__)

GITHUB_API_URL  = "https://api.github.com/graphql"
REQUEST_TIMEOUT = 30.0

# Ids are embedded verbatim in the query text, so anything outside this
# pattern never reaches the wire.
REPO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")

RATE_LIMIT_FRAGMENT = "rateLimit { remaining resetAt cost }"

REPO_FRAGMENT = """{
    stargazerCount
    primaryLanguage { name }
    pushedAt
  }"""


def is_valid_repo_id(repo: str) -> bool:
    return bool(REPO_ID_PATTERN.match(repo))


def build_batch_query(repos: list[str]) -> tuple[str, list[str]]:
    """
    Compose one aliased GraphQL query for a batch of repositories.

    Returns the query and the list of ids actually SENT. Alias `r{j}` is
    the j-th entry of that list, not of `repos`: when an id is dropped by
    validation every later slot must still map to the right repository.
    """
    sent = [repo for repo in repos if is_valid_repo_id(repo)]
    blocks = []
    for idx, repo in enumerate(sent):
        owner, name = repo.split("/", 1)
        blocks.append(f'  r{idx}: repository(owner: "{owner}", name: "{name}") {REPO_FRAGMENT}')
    query = "query {\n  " + RATE_LIMIT_FRAGMENT + "\n" + "\n".join(blocks) + "\n}"
    return query, sent


class GitHubClient(IMetadataProvider):
    """
    Concrete implementation of IMetadataProvider for GitHub's GraphQL API.

    The constructor receives an httpx.AsyncClient (injected) rather than
    creating one internally. This lets callers control the client lifecycle
    and makes testing trivial - pass a client built on httpx.MockTransport.

    A missing token is allowed: `is_authorized` turns False and the
    application layer skips lookups instead of failing the build.
    """

    def __init__(self, token: str | None, client: httpx.AsyncClient, timeout: float = REQUEST_TIMEOUT) -> None:
        self._client  = client
        self._token   = token
        self._timeout = timeout
        self._headers = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    @property
    def is_authorized(self) -> bool:
        return bool(self._token)

    # Anti-Corruption Layer
    @staticmethod
    def _parse_node(node: dict) -> Resolved | None:
        """
        Translate one raw `repository` node into our Resolved record.

        GitHub sends:          We store as:
          "stargazerCount"  ->  stars
          "primaryLanguage" ->  language
          "pushedAt"        ->  pushed_at

        If GitHub renames a field, fix it HERE only.
        """
        try:
            language = node.get("primaryLanguage")
            return Resolved(
                stars     = int(node["stargazerCount"]),
                language  = language["name"] if language else None,
                pushed_at = parse_datetime(node.get("pushedAt")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            log.debug("Skipping malformed repository node %s: %s", node, exc)
            return None

    @staticmethod
    def _retry_after(response: httpx.Response) -> float | None:
        value = response.headers.get("retry-after")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    async def _post(self, query: str) -> dict:
        """Send one query. Translates every failure mode into our exception types."""
        try:
            response = await self._client.post(
                GITHUB_API_URL,
                headers=self._headers,
                json={"query": query},
                timeout=self._timeout,
            )
        except httpx.RequestError as exc:
            raise TransientProviderError(f"request failed: {exc!r}") from exc

        status = response.status_code
        if status == 429 or (status == 403 and "rate limit" in response.text.lower()):
            raise RateLimitError(f"HTTP {status}", retry_after=self._retry_after(response))
        if status >= 500:
            raise TransientProviderError(f"HTTP {status}")
        if status >= 400:
            raise ProviderError(f"HTTP {status}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("response body is not JSON") from exc
        if not isinstance(payload, dict):
            raise ProviderError("response body is not a JSON object")

        # Check for GraphQL-level errors (different from HTTP errors)
        for err in payload.get("errors") or []:
            if isinstance(err, dict) and err.get("type") == "RATE_LIMITED":
                raise RateLimitError(err.get("message", "RATE_LIMITED"))
        return payload

    def _parse_batch(self, payload: dict, sent: list[str], invalid: tuple[str, ...]) -> BatchLookup:
        data = payload.get("data")
        errors = [err for err in payload.get("errors") or [] if isinstance(err, dict)]
        if not isinstance(data, dict):
            raise ProviderError(f"GraphQL response without data: {errors[:3]}")

        not_found: set[str] = set()
        for err in errors:
            path = err.get("path") or []
            if err.get("type") == "NOT_FOUND" and path:
                not_found.add(str(path[0]))
            else:
                log.warning("GraphQL error: %s", err.get("message", err))

        outcomes: dict[str, LookupOutcome] = {}
        for idx, repo in enumerate(sent):
            alias = f"r{idx}"
            node = data.get(alias)
            if isinstance(node, dict):
                resolved = self._parse_node(node)
                outcomes[repo] = RepoFound(resolved) if resolved else RepoUnknown()
            elif alias in not_found:
                outcomes[repo] = RepoMissing()
            else:
                # Null without an error: ambiguous, left for a later run
                outcomes[repo] = RepoUnknown()

        rate = data.get("rateLimit")
        remaining = rate.get("remaining") if isinstance(rate, dict) else None
        return BatchLookup(
            outcomes       = outcomes,
            rate_remaining = remaining if isinstance(remaining, int) else None,
            invalid        = invalid,
        )

    # IMetadataProvider implementation
    async def lookup_batch(self, repos: list[str]) -> BatchLookup:
        query, sent = build_batch_query(repos)
        sent_set = set(sent)
        invalid = tuple(repo for repo in repos if repo not in sent_set)
        if invalid:
            log.debug("Excluded %d invalid repo ids: %s", len(invalid), ", ".join(invalid[:5]))
        if not sent:
            return BatchLookup(outcomes={}, invalid=invalid)

        payload = await self._post(query)
        return self._parse_batch(payload, sent, invalid)

"""GitHub GraphQL page source for release and tag feeds.

Every transport or protocol problem is raised as ``ReleaseCacheError`` so the
sync engine has a single failure type to react to. Retrying is left to the
next sync pass.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from releasecache import __version__
from releasecache.config import GithubSettings
from releasecache.errors import ErrorCode, ReleaseCacheError
from releasecache.models.page import Page

if TYPE_CHECKING:
    from releasecache.config import Settings

log = structlog.get_logger()

F = TypeVar("F", bound=BaseModel)

# Both queries alias the connection to ``payload`` and the node fields to the
# names the Fetched* models expect, so one parser handles either feed.
RELEASES_QUERY = """
query($owner: String!, $name: String!, $cursor: String, $count: Int!) {
  repository(owner: $owner, name: $name) {
    payload: releases(
      first: $count
      after: $cursor
      orderBy: {field: CREATED_AT, direction: DESC}
    ) {
      nodes {
        version: tagName
        releaseTimestamp: publishedAt
        isDraft
        isPrerelease
        url
        id: databaseId
        name
        description
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""

TAGS_QUERY = """
query($owner: String!, $name: String!, $cursor: String, $count: Int!) {
  repository(owner: $owner, name: $name) {
    payload: refs(
      first: $count
      after: $cursor
      orderBy: {field: TAG_COMMIT_DATE, direction: DESC}
      refPrefix: "refs/tags/"
    ) {
      nodes {
        version: name
        target {
          type: __typename
          ... on Commit {
            oid
            releaseTimestamp: committedDate
          }
          ... on Tag {
            target {
              ... on Commit {
                oid
              }
            }
            tagger {
              releaseTimestamp: date
            }
          }
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""


def parse_package_name(package_name: str) -> tuple[str, str]:
    """Split ``owner/name`` into its parts.

    Raises:
        ReleaseCacheError: with INVALID_PACKAGE_NAME for anything else.
    """
    parts = package_name.strip().split("/")
    if len(parts) != 2 or not all(parts):
        raise ReleaseCacheError(
            ErrorCode.INVALID_PACKAGE_NAME,
            f"Package name must look like 'owner/name', got {package_name!r}",
            recoverable=False,
        )
    return parts[0], parts[1]


def _expect_object(value: Any, field: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ReleaseCacheError(
            ErrorCode.GRAPHQL_ERROR,
            f"GraphQL response field {field!r} is {type(value).__name__}, expected an object",
        )
    return value


def cache_key(api_url: str, package_name: str) -> str:
    """Store key for a package: ``https://api.github.com/`` + ``foo/bar`` → ``...:foo:bar``."""
    owner, name = parse_package_name(package_name)
    return f"{api_url}:{owner}:{name}"


def graphql_url(api_url: str) -> str:
    """GraphQL endpoint for a REST base URL (GitHub Enterprise drops the ``v3/``)."""
    base = api_url if api_url.endswith("/") else f"{api_url}/"
    return base.replace("/v3/", "/") + "graphql"


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient used for all GraphQL requests."""
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": f"releasecache/{__version__}",
    }
    if settings.github.token:
        headers["Authorization"] = f"Bearer {settings.github.token}"
    return httpx.AsyncClient(
        headers=headers,
        timeout=httpx.Timeout(settings.github.timeout_seconds),
    )


class GithubGraphqlSource(Generic[F]):
    """Pages through one repository's release or tag connection."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        query: str,
        package_name: str,
        item_model: type[F],
        settings: GithubSettings | None = None,
        api_url: str | None = None,
    ) -> None:
        self._client = client
        self._query = query
        self._owner, self._name = parse_package_name(package_name)
        self._page_model = Page[item_model]
        self._settings = settings or GithubSettings()
        self._url = graphql_url(api_url or self._settings.api_url)

    async def fetch_page(self, cursor: str | None) -> Page[F]:
        variables = {
            "owner": self._owner,
            "name": self._name,
            "cursor": cursor,
            "count": self._settings.page_size,
        }
        body = await self._post({"query": self._query, "variables": variables})
        return self._parse(body)

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            log.warning("graphql_request_failed", url=self._url, error=str(exc))
            raise ReleaseCacheError(
                ErrorCode.PAGE_FETCH_FAILED,
                f"Request to {self._url} failed: {exc}",
                recoverable=True,
            ) from exc

        if not response.is_success:
            status = response.status_code
            raise ReleaseCacheError(
                ErrorCode.PAGE_FETCH_FAILED,
                f"GraphQL endpoint returned HTTP {status}",
                recoverable=status >= 500 or status == 429,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ReleaseCacheError(
                ErrorCode.GRAPHQL_ERROR, "GraphQL response is not valid JSON"
            ) from exc

        if not isinstance(body, dict):
            raise ReleaseCacheError(ErrorCode.GRAPHQL_ERROR, "GraphQL response is not an object")
        return body

    def _parse(self, body: dict[str, Any]) -> Page[F]:
        errors = body.get("errors")
        if errors:
            if not isinstance(errors, list):
                errors = [errors]
            message = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in errors
            )
            raise ReleaseCacheError(ErrorCode.GRAPHQL_ERROR, message)

        data = _expect_object(body.get("data"), "data")
        if data.get("repository") is None:
            raise ReleaseCacheError(
                ErrorCode.GRAPHQL_ERROR,
                f"Repository {self._owner}/{self._name} not found",
            )

        repository = _expect_object(data["repository"], "repository")
        payload = _expect_object(repository.get("payload"), "payload")
        page_info = _expect_object(payload.get("pageInfo"), "pageInfo")
        raw_nodes = payload.get("nodes")
        if not isinstance(raw_nodes, list):
            raise ReleaseCacheError(ErrorCode.GRAPHQL_ERROR, "GraphQL payload has no nodes list")

        # GitHub returns null nodes for entries the token cannot see.
        nodes = [node for node in raw_nodes if node is not None]
        try:
            page = self._page_model(
                items=nodes,
                has_next_page=page_info.get("hasNextPage", False),
                end_cursor=page_info.get("endCursor"),
            )
        except ValidationError as exc:
            raise ReleaseCacheError(
                ErrorCode.GRAPHQL_ERROR, f"Unexpected GraphQL payload: {exc}"
            ) from exc

        if page.has_next_page and not page.end_cursor:
            raise ReleaseCacheError(
                ErrorCode.GRAPHQL_ERROR, "GraphQL page claims more results but has no cursor"
            )
        return page

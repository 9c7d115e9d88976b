"""Command line entry point.

    releasecache releases owner/name
    releasecache tags owner/name
    releasecache cleanup
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import aiosqlite
import typer

from releasecache.config import Settings
from releasecache.datasource import ReleaseFeed
from releasecache.errors import ReleaseCacheError
from releasecache.github import build_http_client
from releasecache.logs import configure_logging
from releasecache.store import SqliteRecordStore

if TYPE_CHECKING:
    from releasecache.models.cache import StoredItem

app = typer.Typer(
    name="releasecache",
    help="Query GitHub releases and tags through a local incremental cache.",
    no_args_is_help=True,
)

PackageArg = Annotated[str, typer.Argument(help="Repository as owner/name.")]
ApiUrlOpt = Annotated[
    str | None, typer.Option("--api-url", help="GitHub API base URL (GitHub Enterprise).")
]


async def _open_store(settings: Settings) -> tuple[aiosqlite.Connection, SqliteRecordStore]:
    db_path = Path(settings.cache.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(db_path)
    store = SqliteRecordStore(db)
    await store.init_db()
    return db, store


async def _query(kind: str, package_name: str, api_url: str | None) -> list[StoredItem]:
    settings = Settings()
    configure_logging(settings.logging)
    db, store = await _open_store(settings)
    try:
        await store.cleanup_if_due(settings.cache.cleanup_interval_hours)
        async with build_http_client(settings) as client:
            feed = ReleaseFeed(client, store, settings)
            if kind == "releases":
                return await feed.get_releases(package_name, api_url)
            return await feed.get_tags(package_name, api_url)
    finally:
        await db.close()


async def _cleanup() -> int:
    settings = Settings()
    configure_logging(settings.logging)
    db, store = await _open_store(settings)
    try:
        return await store.cleanup_expired()
    finally:
        await db.close()


def _emit(items: list[StoredItem]) -> None:
    ordered = sorted(items, key=lambda item: item.release_timestamp, reverse=True)
    typer.echo(json.dumps([item.model_dump(mode="json") for item in ordered], indent=2))


def _run_query(kind: str, package_name: str, api_url: str | None) -> None:
    try:
        items = asyncio.run(_query(kind, package_name, api_url))
    except ReleaseCacheError as exc:
        typer.echo(f"error [{exc.code}]: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc
    _emit(items)


@app.command()
def releases(package_name: PackageArg, api_url: ApiUrlOpt = None) -> None:
    """Print the published releases of a repository as JSON, newest first."""
    _run_query("releases", package_name, api_url)


@app.command()
def tags(package_name: PackageArg, api_url: ApiUrlOpt = None) -> None:
    """Print the tags of a repository as JSON, newest first."""
    _run_query("tags", package_name, api_url)


@app.command()
def cleanup() -> None:
    """Delete expired records from the local cache."""
    deleted = asyncio.run(_cleanup())
    typer.echo(f"deleted {deleted} expired record(s)")


if __name__ == "__main__":
    app()

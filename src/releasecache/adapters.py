"""Item adapters for the GitHub release and tag feeds."""

from __future__ import annotations

from releasecache.models.cache import StoredRelease, StoredTag
from releasecache.models.github import (
    AnnotatedTagTarget,
    CommitTarget,
    FetchedRelease,
    FetchedTag,
)

RELEASES_NAMESPACE = "github-releases-datasource-v2"
TAGS_NAMESPACE = "github-tags-datasource-v2"


class ReleaseAdapter:
    """Drafts are dropped; they have no stable tag and no publish date."""

    item_model = StoredRelease

    def coerce(self, fetched: FetchedRelease) -> StoredRelease | None:
        if fetched.is_draft or fetched.release_timestamp is None or fetched.id is None:
            return None
        return StoredRelease(
            version=fetched.version,
            release_timestamp=fetched.release_timestamp,
            is_stable=not fetched.is_prerelease,
            url=fetched.url,
            id=fetched.id,
            name=fetched.name,
            description=fetched.description,
        )

    def is_equivalent(self, old: StoredRelease, new: StoredRelease) -> bool:
        return (
            old.release_timestamp == new.release_timestamp
            and old.is_stable == new.is_stable
            and old.url == new.url
            and old.name == new.name
            and old.description == new.description
        )


class TagAdapter:
    item_model = StoredTag

    def coerce(self, fetched: FetchedTag) -> StoredTag | None:
        target = fetched.target
        if isinstance(target, CommitTarget):
            return StoredTag(
                version=fetched.version,
                release_timestamp=target.release_timestamp,
                hash=target.oid,
            )
        if isinstance(target, AnnotatedTagTarget):
            if target.target.oid is None or target.tagger is None:
                return None
            return StoredTag(
                version=fetched.version,
                release_timestamp=target.tagger.release_timestamp,
                hash=target.target.oid,
            )
        return None

    def is_equivalent(self, old: StoredTag, new: StoredTag) -> bool:
        return old.hash == new.hash and old.release_timestamp == new.release_timestamp

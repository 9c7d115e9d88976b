"""Raw GraphQL nodes, shaped by the field aliases in the feed queries."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Node(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FetchedRelease(_Node):
    version: str
    release_timestamp: datetime | None = None  # null while a release is a draft
    is_draft: bool = False
    is_prerelease: bool = False
    url: str
    id: int | None = None
    name: str | None = None
    description: str | None = None


class CommitRef(_Node):
    oid: str | None = None  # absent when an annotated tag points at a non-commit


class Tagger(_Node):
    release_timestamp: datetime


class CommitTarget(_Node):
    type: Literal["Commit"]
    oid: str
    release_timestamp: datetime


class AnnotatedTagTarget(_Node):
    type: Literal["Tag"]
    target: CommitRef
    tagger: Tagger | None = None


class OtherTarget(_Node):
    # Tags may point at trees or blobs; those carry no commit to pin.
    type: Literal["Tree", "Blob"]


TagTarget = Annotated[
    CommitTarget | AnnotatedTagTarget | OtherTarget,
    Field(discriminator="type"),
]


class FetchedTag(_Node):
    version: str
    target: TagTarget

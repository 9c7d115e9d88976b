from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

F = TypeVar("F", bound=BaseModel)


class Page(BaseModel, Generic[F]):
    """One slice of a newest-first feed, as returned by a page source."""

    items: list[F]
    has_next_page: bool
    end_cursor: str | None = None

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    PAGE_FETCH_FAILED = "PAGE_FETCH_FAILED"
    GRAPHQL_ERROR = "GRAPHQL_ERROR"
    INVALID_PACKAGE_NAME = "INVALID_PACKAGE_NAME"


class ReleaseCacheError(Exception):
    """Single error type raised across releasecache component boundaries.

    ``recoverable`` tells the caller whether retrying the same request later
    may succeed (network hiccup, 5xx) or not (bad input, missing repository).
    """

    def __init__(self, code: ErrorCode, message: str, recoverable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable

    def __repr__(self) -> str:
        return f"ReleaseCacheError(code={self.code!s}, recoverable={self.recoverable})"

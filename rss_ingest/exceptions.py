from __future__ import annotations

from typing import Optional


class FeedIngestError(Exception):
    """Base class for all ingestion failures."""


class InvalidInputError(FeedIngestError):
    """Raised when a URL fails syntax or scheme validation. Never fetched."""


class DuplicateFeedError(FeedIngestError):
    """Raised when a URL is already subscribed."""


class RSSFetchError(FeedIngestError):
    """Raised when a feed URL cannot be fetched through any relay."""


class FeedNotFoundError(FeedIngestError):
    """Raised when no candidate endpoint yields a parseable, non-empty feed."""

    def __init__(self, message: str, *, last_error: Optional[BaseException] = None) -> None:
        if last_error is not None:
            message = f"{message} ({last_error})"
        super().__init__(message)
        self.last_error = last_error


class IngestTimeoutError(FeedIngestError):
    """Raised when a per-item deadline is exceeded."""


class IngestCancelledError(FeedIngestError):
    """Raised when the caller cancelled the operation. Not a failure."""


class ParseError(FeedIngestError):
    """Raised when a stored record cannot be converted into a model."""


class EmptyFeedError(FeedIngestError):
    """Raised when a resolved feed contains no entries."""

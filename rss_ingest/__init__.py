"""
rss_ingest

Feed subscription and batch-import engine for RSS 2.0 / Atom / RDF feeds.

Core ideas:
- Input: one URL or a list of URLs (e.g. the xmlUrl values of an OPML import)
- Process: validate → dedup → resolve (direct URL, suffix probes, relays) → parse → commit
- Refresh: re-fetch a feed and merge, keeping read/starred flags by link
- Output: Feed and Entry collections persisted after every change

Example
-------
from rss_ingest import FeedReader, IngestSettings

reader = FeedReader(IngestSettings(concurrency=10))

result = reader.add_feeds_batch(
    [
        "https://www.theverge.com/rss/index.xml",
        "https://feeds.bbci.co.uk/news/rss.xml",
    ],
    on_progress=lambda current, total: print(f"{current}/{total}"),
)
print(result.success, result.failed, result.skipped, result.errors)

for entry in reader.entries(view="unread"):
    print(entry.pub_date, entry.title, entry.link)
"""
from .cancel import CancelToken
from .config import IngestSettings, load_settings
from .core import FeedReader
from .exceptions import (
    DuplicateFeedError,
    EmptyFeedError,
    FeedIngestError,
    FeedNotFoundError,
    IngestCancelledError,
    IngestTimeoutError,
    InvalidInputError,
    RSSFetchError,
)
from .merge import merge
from .models import Entry, Feed, IngestionResult, ParsedEntry, ParsedFeed
from .parser import parse_document
from .resolver import FeedSourceResolver
from .scheduler import IngestionScheduler
from .store import FeedStore, JsonFileBackend, MemoryBackend

__all__ = [
    "CancelToken",
    "DuplicateFeedError",
    "EmptyFeedError",
    "Entry",
    "Feed",
    "FeedIngestError",
    "FeedNotFoundError",
    "FeedReader",
    "FeedSourceResolver",
    "FeedStore",
    "IngestCancelledError",
    "IngestTimeoutError",
    "IngestionResult",
    "IngestionScheduler",
    "IngestSettings",
    "InvalidInputError",
    "JsonFileBackend",
    "MemoryBackend",
    "ParsedEntry",
    "ParsedFeed",
    "RSSFetchError",
    "load_settings",
    "merge",
    "parse_document",
]

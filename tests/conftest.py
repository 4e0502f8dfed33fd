"""Shared test fixtures."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional, Union

import pytest

from rss_ingest.config import IngestSettings
from rss_ingest.exceptions import FeedNotFoundError, RSSFetchError
from rss_ingest.models import ParsedEntry, ParsedFeed
from rss_ingest.store import FeedStore, MemoryBackend

PUB_DATE = "Mon, 06 Sep 2021 16:45:00 +0000"


def rss_document(
    count: int = 5,
    *,
    title: Optional[str] = "Example Feed",
    link_prefix: str = "https://example.com/posts/",
    body: str = "Body",
) -> bytes:
    items = "".join(
        f"<item><title>Post {i}</title><link>{link_prefix}{i}</link>"
        f"<description>{body} {i}</description><guid>post-{i}</guid>"
        f"<pubDate>{PUB_DATE}</pubDate></item>"
        for i in range(count)
    )
    title_xml = f"<title>{title}</title>" if title is not None else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel>'
        f"{title_xml}<link>https://example.com/</link><description>Example description</description>"
        f"{items}</channel></rss>"
    ).encode("utf-8")


def parsed_feed(count: int = 3, *, title: str = "Parsed Feed", link_prefix: str = "https://example.com/p/") -> ParsedFeed:
    return ParsedFeed(
        title=title,
        description="desc",
        format="rss",
        entries=[
            ParsedEntry(
                title=f"Item {i}",
                link=f"{link_prefix}{i}",
                content=f"Content {i}",
                snippet=f"Snippet {i}",
                guid=f"g{i}",
            )
            for i in range(count)
        ],
    )


class FakeFetcher:
    """Maps URLs to bytes or exceptions; unknown URLs fail like a 404."""

    def __init__(self, routes: Dict[str, Union[bytes, Exception]], delays: Optional[Dict[str, float]] = None) -> None:
        self.routes = routes
        self.delays = delays or {}
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def fetch(self, url: str) -> bytes:
        with self._lock:
            self.calls.append(url)
        if url in self.delays:
            time.sleep(self.delays[url])
        outcome = self.routes.get(url)
        if outcome is None:
            raise RSSFetchError(f"Failed to fetch feed: {url} (404)")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeResolver:
    """
    Resolver stand-in. `handler` decides per URL; tracks how many resolve
    calls are in flight at once.
    """

    def __init__(self, handler: Optional[Callable[[str], ParsedFeed]] = None) -> None:
        self.handler = handler or (lambda url: parsed_feed(link_prefix=url + "/"))
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def resolve(self, url: str) -> ParsedFeed:
        with self._lock:
            self.calls.append(url)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            return self.handler(url)
        finally:
            with self._lock:
                self.in_flight -= 1


def not_found(url: str) -> ParsedFeed:
    raise FeedNotFoundError(f"Unable to find a feed at {url}", last_error=RSSFetchError("404"))


@pytest.fixture
def settings():
    return IngestSettings(concurrency=10, item_timeout_sec=5.0, fetch_timeout_sec=1.0, relays=[])


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend):
    return FeedStore(backend)

"""Tests for feed endpoint discovery."""

from __future__ import annotations

import pytest

from rss_ingest.config import IngestSettings
from rss_ingest.exceptions import FeedNotFoundError, RSSFetchError
from rss_ingest.resolver import FeedSourceResolver, normalize_url

from .conftest import FakeFetcher, rss_document

BASE = "https://blog.example.com"


def _resolver(fetcher: FakeFetcher) -> FeedSourceResolver:
    return FeedSourceResolver(IngestSettings(relays=[]), fetcher=fetcher)


class TestNormalizeUrl:
    def test_trims_whitespace_and_trailing_slash(self):
        assert normalize_url("  https://example.com/blog/ ") == "https://example.com/blog"

    def test_leaves_clean_url(self):
        assert normalize_url("https://example.com/rss.xml") == "https://example.com/rss.xml"


class TestResolve:
    def test_direct_hit_skips_probing(self):
        fetcher = FakeFetcher({BASE: rss_document(5)})
        parsed = _resolver(fetcher).resolve(BASE + "/")
        assert len(parsed.entries) == 5
        assert fetcher.calls == [BASE]

    def test_suffix_probe_used_when_direct_fails(self):
        fetcher = FakeFetcher({BASE + "/feed": rss_document(2, title="Via Suffix")})
        parsed = _resolver(fetcher).resolve(BASE)
        assert parsed.title == "Via Suffix"
        assert fetcher.calls[0] == BASE

    def test_all_suffixes_are_probed(self):
        fetcher = FakeFetcher({})
        resolver = _resolver(fetcher)
        with pytest.raises(FeedNotFoundError):
            resolver.resolve(BASE)
        assert sorted(fetcher.calls) == sorted([BASE] + [BASE + s for s in resolver.suffixes])

    def test_priority_order_beats_arrival_order(self):
        fetcher = FakeFetcher(
            {
                BASE + "/feed": rss_document(1, title="Feed Suffix"),
                BASE + "/rss": rss_document(1, title="Rss Suffix"),
            },
            delays={BASE + "/feed": 0.3},
        )
        parsed = _resolver(fetcher).resolve(BASE)
        assert parsed.title == "Feed Suffix"

    def test_non_feed_document_is_skipped(self):
        fetcher = FakeFetcher(
            {
                BASE: b"<html><body>home page</body></html>",
                BASE + "/atom.xml": rss_document(3, title="Last Resort"),
            }
        )
        assert _resolver(fetcher).resolve(BASE).title == "Last Resort"

    def test_not_found_carries_last_error(self):
        fetcher = FakeFetcher({BASE + "/atom.xml": RSSFetchError("Failed to fetch feed: boom")})
        with pytest.raises(FeedNotFoundError) as info:
            _resolver(fetcher).resolve(BASE)
        assert isinstance(info.value.last_error, RSSFetchError)
        assert "boom" in str(info.value)

    def test_empty_direct_feed_returned_when_nothing_better(self):
        fetcher = FakeFetcher({BASE: rss_document(0, title="Quiet Feed")})
        parsed = _resolver(fetcher).resolve(BASE)
        assert parsed.title == "Quiet Feed"
        assert parsed.entries == []

    def test_empty_direct_feed_loses_to_populated_suffix(self):
        fetcher = FakeFetcher({BASE: rss_document(0), BASE + "/rss.xml": rss_document(4)})
        assert len(_resolver(fetcher).resolve(BASE).entries) == 4

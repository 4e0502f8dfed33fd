"""Tests for settings loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from rss_ingest.config import DEFAULT_RELAYS, DEFAULT_SUFFIXES, IngestSettings, load_settings


class TestDefaults:
    def test_defaults(self):
        s = IngestSettings()
        assert s.concurrency == 10
        assert s.item_timeout_sec == 30.0
        assert s.fetch_timeout_sec == 15.0
        assert s.relays == list(DEFAULT_RELAYS)
        assert s.suffixes[0] == "/feed"
        assert s.suffixes[-1] == "/atom.xml"
        assert len(DEFAULT_SUFFIXES) == 11
        assert s.validate() == []


class TestValidate:
    def test_bad_concurrency(self):
        assert any("CONCURRENCY" in e for e in IngestSettings(concurrency=0).validate())

    def test_bad_timeouts(self):
        errors = IngestSettings(item_timeout_sec=0, fetch_timeout_sec=-1).validate()
        assert any("ITEM_TIMEOUT" in e for e in errors)
        assert any("FETCH_TIMEOUT" in e for e in errors)

    def test_relay_without_placeholder(self):
        assert any("placeholder" in e for e in IngestSettings(relays=["https://relay.test/"]).validate())

    def test_no_route(self):
        assert any("no fetch route" in e for e in IngestSettings(relays=[], direct_fetch=False).validate())


class TestLoadSettings:
    def test_load_with_env_vars(self, monkeypatch):
        monkeypatch.setenv("RSS_INGEST_CONCURRENCY", "4")
        monkeypatch.setenv("RSS_INGEST_ITEM_TIMEOUT", "12.5")
        monkeypatch.setenv("RSS_INGEST_RELAYS", "https://r1.test/?u={url}, https://r2.test/{url}")
        monkeypatch.setenv("RSS_INGEST_DIRECT_FETCH", "false")
        monkeypatch.setenv("RSS_INGEST_STATE_PATH", "/tmp/x.json")
        s = load_settings()
        assert s.concurrency == 4
        assert s.item_timeout_sec == 12.5
        assert s.relays == ["https://r1.test/?u={url}", "https://r2.test/{url}"]
        assert s.direct_fetch is False
        assert s.state_path == Path("/tmp/x.json")

    def test_empty_relay_list(self, monkeypatch):
        monkeypatch.setenv("RSS_INGEST_RELAYS", "")
        assert load_settings().relays == []

    def test_non_numeric_concurrency(self, monkeypatch):
        monkeypatch.setenv("RSS_INGEST_CONCURRENCY", "abc")
        with pytest.raises(ValueError, match="RSS_INGEST_CONCURRENCY must be an integer, got 'abc'"):
            load_settings()

    def test_non_numeric_timeout(self, monkeypatch):
        monkeypatch.setenv("RSS_INGEST_FETCH_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="RSS_INGEST_FETCH_TIMEOUT must be a number"):
            load_settings()

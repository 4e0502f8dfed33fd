"""
Live subscription state and its persistence.

`FeedStore` is the only shared mutable resource during ingestion. Every
mutation happens under one re-entrant lock and is followed by a
whole-collection snapshot saved through a key-value backend.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, TypeVar, Union

from .exceptions import DuplicateFeedError, ParseError
from .logging_utils import log_event
from .merge import merge, replace_feed_entries
from .models import Entry, Feed, ParsedFeed
from .normalizer import now_ms, to_entries
from .parser import UNTITLED_FEED

logger = logging.getLogger(__name__)

FEEDS_KEY = "feeds"
ITEMS_KEY = "items"
TRANSLATIONS_KEY = "translations"

VIEW_MODES = ("all", "unread", "starred")

T = TypeVar("T")


class StateBackend(Protocol):
    def load(self, key: str) -> Optional[Any]:  # pragma: no cover - interface
        ...

    def save(self, key: str, value: Any) -> None:  # pragma: no cover - interface
        ...


class MemoryBackend:
    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self.data: Dict[str, Any] = dict(initial or {})
        self.save_count = 0

    def load(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    def save(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.save_count += 1


class JsonFileBackend:
    """All keys live in one JSON document, rewritten atomically on each save."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._data = self._read()

    def _read(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log_event(logger, logging.ERROR, "state_load_failed", path=str(self._path), error=str(exc))
            return {}
        if not isinstance(data, dict):
            log_event(logger, logging.ERROR, "state_load_failed", path=str(self._path), error="not an object")
            return {}
        return data

    def load(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(key)

    def save(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(self._path.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(self._data, fh, ensure_ascii=False)
                os.replace(tmp, self._path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise


def _load_records(backend: StateBackend, key: str, convert: Callable[[Any], T]) -> List[T]:
    raw = backend.load(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        log_event(logger, logging.ERROR, "state_record_dropped", key=key, dropped="all", reason="not a list")
        return []
    out: List[T] = []
    dropped = 0
    for record in raw:
        try:
            out.append(convert(record))
        except ParseError:
            dropped += 1
    if dropped:
        log_event(logger, logging.WARNING, "state_record_dropped", key=key, dropped=dropped, kept=len(out))
    return out


class FeedStore:
    def __init__(self, backend: Optional[StateBackend] = None) -> None:
        self._backend: StateBackend = backend or MemoryBackend()
        self._lock = threading.RLock()
        self._feeds: List[Feed] = _load_records(self._backend, FEEDS_KEY, Feed.from_dict)
        self._entries: List[Entry] = _load_records(self._backend, ITEMS_KEY, Entry.from_dict)

    # -- persistence ---------------------------------------------------

    def _save_feeds(self) -> None:
        self._backend.save(FEEDS_KEY, [f.to_dict() for f in self._feeds])

    def _save_entries(self) -> None:
        self._backend.save(ITEMS_KEY, [e.to_dict() for e in self._entries])
        log_event(logger, logging.DEBUG, "state_saved", feeds=len(self._feeds), items=len(self._entries))

    # -- queries -------------------------------------------------------

    def feeds(self) -> List[Feed]:
        with self._lock:
            return list(self._feeds)

    def get_feed(self, feed_id: str) -> Optional[Feed]:
        with self._lock:
            return next((f for f in self._feeds if f.id == feed_id), None)

    def has_url(self, url: str) -> bool:
        with self._lock:
            return any(f.url == url for f in self._feeds)

    def urls(self) -> List[str]:
        with self._lock:
            return [f.url for f in self._feeds]

    def entries(self, feed_id: Optional[str] = None, view: str = "all") -> List[Entry]:
        if view not in VIEW_MODES:
            raise ValueError(f"Unknown view mode: {view}")
        with self._lock:
            items = list(self._entries)
        if view == "unread":
            items = [e for e in items if not e.is_read]
        elif view == "starred":
            items = [e for e in items if e.is_starred]
        if feed_id:
            items = [e for e in items if e.feed_id == feed_id]
        return items

    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for e in self._entries if not e.is_read)

    def starred_count(self) -> int:
        with self._lock:
            return sum(1 for e in self._entries if e.is_starred)

    # -- ingestion -----------------------------------------------------

    def commit_new_feed(self, feed: Feed, entries: List[Entry]) -> None:
        """Prepend a new feed and its entries. Rejects a URL that is already subscribed."""
        with self._lock:
            if any(f.url == feed.url for f in self._feeds):
                raise DuplicateFeedError(f"Feed already exists: {feed.url}")
            self._feeds.insert(0, feed)
            self._entries = list(entries) + self._entries
            self._save_feeds()
            self._save_entries()

    def apply_refresh(self, feed_id: str, parsed: ParsedFeed, *, stamp: Optional[int] = None) -> List[Entry]:
        """
        Replace a feed's entries with a fresh parse, carrying read/starred
        flags forward by link. Raises KeyError if the feed no longer exists.
        """
        stamp = now_ms() if stamp is None else stamp
        with self._lock:
            index = next((i for i, f in enumerate(self._feeds) if f.id == feed_id), None)
            if index is None:
                raise KeyError(feed_id)
            fresh = to_entries(parsed.entries, feed_id, stamp=stamp)
            existing = [e for e in self._entries if e.feed_id == feed_id]
            merged = merge(feed_id, fresh, existing)
            self._entries = replace_feed_entries(self._entries, feed_id, merged)

            feed = self._feeds[index]
            self._feeds[index] = replace(
                feed,
                title=parsed.title if parsed.title != UNTITLED_FEED else feed.title,
                description=parsed.description if parsed.description is not None else feed.description,
                last_updated=stamp,
            )
            self._save_feeds()
            self._save_entries()
            return merged

    # -- user actions --------------------------------------------------

    def remove_feed(self, feed_id: str) -> bool:
        """Remove a feed, every entry it owns and their cached translations."""
        with self._lock:
            if not any(f.id == feed_id for f in self._feeds):
                return False
            removed = {e.id for e in self._entries if e.feed_id == feed_id}
            self._feeds = [f for f in self._feeds if f.id != feed_id]
            self._entries = [e for e in self._entries if e.feed_id != feed_id]
            self._save_feeds()
            self._save_entries()

            translations = self._backend.load(TRANSLATIONS_KEY)
            if isinstance(translations, dict) and removed & translations.keys():
                kept = {k: v for k, v in translations.items() if k not in removed}
                self._backend.save(TRANSLATIONS_KEY, kept)
            return True

    def _update_entries(self, predicate: Callable[[Entry], bool], change: Callable[[Entry], Entry]) -> int:
        with self._lock:
            changed = 0
            out: List[Entry] = []
            for e in self._entries:
                if predicate(e):
                    updated = change(e)
                    changed += updated != e
                    out.append(updated)
                else:
                    out.append(e)
            if changed:
                self._entries = out
                self._save_entries()
            return changed

    def mark_as_read(self, entry_id: str, is_read: bool = True) -> bool:
        return bool(self._update_entries(lambda e: e.id == entry_id, lambda e: replace(e, is_read=is_read)))

    def mark_all_as_read(self, feed_id: Optional[str] = None) -> int:
        return self._update_entries(
            lambda e: not feed_id or e.feed_id == feed_id,
            lambda e: replace(e, is_read=True),
        )

    def toggle_star(self, entry_id: str) -> bool:
        return bool(self._update_entries(lambda e: e.id == entry_id, lambda e: replace(e, is_starred=not e.is_starred)))

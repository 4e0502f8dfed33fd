from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .cancel import CancelToken
from .config import IngestSettings
from .exceptions import FeedIngestError, IngestCancelledError
from .models import Entry, Feed, IngestionResult
from .resolver import FeedSourceResolver
from .scheduler import IngestionScheduler, ProgressCallback
from .store import FeedStore, JsonFileBackend

logger = logging.getLogger(__name__)


class FeedReader:
    """
    High-level API: subscribe to feeds, refresh them and track read/starred state.

    Pipeline: validate → dedup → resolve (direct, suffix probes, relays) → parse
    → commit, or merge on refresh.

    Starting a new add cancels any add still in flight, and a new refresh-all
    cancels the previous one.
    """

    def __init__(
        self,
        settings: Optional[IngestSettings] = None,
        *,
        store: Optional[FeedStore] = None,
        resolver: Optional[FeedSourceResolver] = None,
    ) -> None:
        self.settings = settings or IngestSettings()
        self.store = store or FeedStore()
        self.scheduler = IngestionScheduler(self.store, resolver, self.settings)

        self.last_error: Optional[str] = None
        self._lock = threading.Lock()
        self._add_token: Optional[CancelToken] = None
        self._refresh_token: Optional[CancelToken] = None
        self._busy = 0

    @classmethod
    def from_settings(cls, settings: IngestSettings) -> "FeedReader":
        """Reader persisted to the JSON state file named by the settings."""
        return cls(settings, store=FeedStore(JsonFileBackend(settings.state_path)))

    @property
    def is_loading(self) -> bool:
        with self._lock:
            return self._busy > 0

    def _begin(self, attr: Optional[str]) -> CancelToken:
        token = CancelToken()
        with self._lock:
            if attr is not None:
                previous = getattr(self, attr)
                if previous is not None:
                    previous.cancel()
                setattr(self, attr, token)
            self._busy += 1
        return token

    def _end(self, attr: Optional[str], token: CancelToken) -> None:
        with self._lock:
            if attr is not None and getattr(self, attr) is token:
                setattr(self, attr, None)
            self._busy -= 1

    # -- subscribing ---------------------------------------------------

    def add_feed_or_raise(self, url: str) -> Feed:
        token = self._begin("_add_token")
        try:
            return self.scheduler.add_feed(url, token=token)
        finally:
            self._end("_add_token", token)

    def add_feed(self, url: str) -> bool:
        """Subscribe to one URL. Returns True if committed; see `last_error` otherwise."""
        self.last_error = None
        try:
            self.add_feed_or_raise(url)
        except IngestCancelledError:
            return False
        except FeedIngestError as exc:
            self.last_error = str(exc)
            return False
        except Exception as exc:  # same per-item rule as the batch pool
            logger.exception("Unexpected error while adding %s", url)
            self.last_error = str(exc) or exc.__class__.__name__
            return False
        return True

    def add_feeds_batch(
        self,
        urls: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[IngestionResult]:
        """Returns None if the batch was cancelled before it finished."""
        token = self._begin("_add_token")
        try:
            return self.scheduler.ingest(urls, on_progress=on_progress, token=token)
        finally:
            self._end("_add_token", token)

    def add_outlines(
        self,
        outlines: Iterable[Mapping[str, Any]],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[IngestionResult]:
        """Batch-add from OPML-style `{title, xmlUrl}` records; only `xmlUrl` is used."""
        urls = [o["xmlUrl"] for o in outlines if isinstance(o.get("xmlUrl"), str) and o["xmlUrl"]]
        return self.add_feeds_batch(urls, on_progress)

    def cancel_add_feed(self) -> None:
        with self._lock:
            token, self._add_token = self._add_token, None
        if token is not None:
            token.cancel()
        self.last_error = None

    # -- refreshing ----------------------------------------------------

    def refresh_feed(self, feed_id: str) -> bool:
        token = self._begin(None)
        try:
            self.scheduler.refresh_feed(feed_id, token=token)
        except (KeyError, IngestCancelledError):
            return False
        except FeedIngestError as exc:
            logger.warning("Refresh of %s failed: %s", feed_id, exc)
            return False
        finally:
            self._end(None, token)
        return True

    def refresh_all_feeds(self, on_progress: Optional[ProgressCallback] = None) -> Optional[IngestionResult]:
        token = self._begin("_refresh_token")
        try:
            return self.scheduler.refresh_all(on_progress=on_progress, token=token)
        finally:
            self._end("_refresh_token", token)

    def cancel_refresh(self) -> None:
        with self._lock:
            token, self._refresh_token = self._refresh_token, None
        if token is not None:
            token.cancel()

    # -- state ---------------------------------------------------------

    def feeds(self) -> List[Feed]:
        return self.store.feeds()

    def entries(self, feed_id: Optional[str] = None, view: str = "all") -> List[Entry]:
        return self.store.entries(feed_id, view)

    def remove_feed(self, feed_id: str) -> bool:
        return self.store.remove_feed(feed_id)

    def mark_as_read(self, entry_id: str, is_read: bool = True) -> bool:
        return self.store.mark_as_read(entry_id, is_read)

    def mark_all_as_read(self, feed_id: Optional[str] = None) -> int:
        return self.store.mark_all_as_read(feed_id)

    def toggle_star(self, entry_id: str) -> bool:
        return self.store.toggle_star(entry_id)

    def unread_count(self) -> int:
        return self.store.unread_count()

    def starred_count(self) -> int:
        return self.store.starred_count()

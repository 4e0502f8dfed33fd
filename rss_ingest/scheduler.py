"""
Bounded-concurrency ingestion engine.

A fixed number of worker threads claim candidates from a shared index in
input order. Each claimed item races its resolution against the batch's
cancel token and a per-item deadline. Successful items are committed to the
store immediately, so partial progress survives a later cancel or failure.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar
from urllib.parse import urlparse

from .cancel import CancelToken, race
from .config import IngestSettings
from .exceptions import (
    DuplicateFeedError,
    EmptyFeedError,
    FeedIngestError,
    IngestCancelledError,
    InvalidInputError,
)
from .logging_utils import log_event
from .models import Entry, Feed, IngestionResult, ParsedFeed
from .normalizer import generate_id, now_ms, to_entries
from .resolver import FeedSourceResolver
from .store import FeedStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

SUCCESS = "success"
FAILED = "failed"
SKIPPED = "skipped"
CANCELLED = "cancelled"

Outcome = Tuple[str, Optional[str]]

T = TypeVar("T")


def validate_url(url: str) -> str:
    """Return the trimmed URL or raise InvalidInputError. Never touches the network."""
    trimmed = (url or "").strip()
    try:
        parsed = urlparse(trimmed)
    except ValueError as exc:
        raise InvalidInputError("invalid URL format") from exc
    scheme = parsed.scheme.lower()
    if not scheme or (scheme in ("http", "https") and not parsed.netloc):
        raise InvalidInputError("invalid URL format")
    if scheme not in ("http", "https"):
        raise InvalidInputError("only HTTP and HTTPS URLs are supported")
    return trimmed


class IngestionScheduler:
    def __init__(
        self,
        store: FeedStore,
        resolver: Optional[FeedSourceResolver] = None,
        settings: Optional[IngestSettings] = None,
    ) -> None:
        self._settings = settings or IngestSettings()
        self._store = store
        self._resolver = resolver or FeedSourceResolver(self._settings)

    @property
    def concurrency(self) -> int:
        return max(1, int(self._settings.concurrency or 1))

    # -- pre-filtering -------------------------------------------------

    def prefilter(self, urls: Sequence[str]) -> Tuple[List[str], IngestionResult]:
        """
        Split input into network-bound candidates and an initial result that
        already counts invalid (failed) and already-subscribed (skipped) URLs.
        A URL repeated within the same batch is skipped after its first use.
        """
        result = IngestionResult()
        existing = set(self._store.urls())
        candidates: List[str] = []
        for url in urls:
            try:
                trimmed = validate_url(url)
            except InvalidInputError as exc:
                result.add_error(url, str(exc))
                continue
            if trimmed in existing:
                result.skipped += 1
                continue
            existing.add(trimmed)
            candidates.append(trimmed)
        return candidates, result

    # -- worker pool ---------------------------------------------------

    def _run_pool(
        self,
        items: Sequence[T],
        handle: Callable[[T, ThreadPoolExecutor, CancelToken], Outcome],
        result: IngestionResult,
        *,
        label: Callable[[T], str],
        token: CancelToken,
        on_progress: Optional[ProgressCallback],
    ) -> bool:
        """
        Drive `items` through `handle` on a fixed-width pool. Returns False if
        the batch was cancelled.
        """
        total = len(items)
        if total == 0:
            return not token.cancelled

        claim_lock = threading.Lock()
        result_lock = threading.Lock()
        state = {"next": 0, "completed": 0}

        width = min(self.concurrency, total)
        resolve_pool = ThreadPoolExecutor(max_workers=width, thread_name_prefix="rss-resolve")

        def worker() -> None:
            while not token.cancelled:
                with claim_lock:
                    if state["next"] >= total:
                        return
                    item = items[state["next"]]
                    state["next"] += 1

                try:
                    kind, message = handle(item, resolve_pool, token)
                except Exception as exc:  # surface as per-item failure, never abort siblings
                    logger.exception("Unexpected error while processing %s", label(item))
                    kind, message = FAILED, str(exc) or exc.__class__.__name__

                if kind == CANCELLED:
                    return

                with result_lock:
                    if kind == SUCCESS:
                        result.success += 1
                    elif kind == SKIPPED:
                        result.skipped += 1
                    else:
                        result.add_error(label(item), message or "failed")
                    state["completed"] += 1
                    if on_progress is not None and not token.cancelled:
                        on_progress(state["completed"], total)

        try:
            with ThreadPoolExecutor(max_workers=width, thread_name_prefix="rss-worker") as workers:
                try:
                    for future in [workers.submit(worker) for _ in range(width)]:
                        future.result()
                except BaseException:
                    # Ctrl-C or a failing callback: stop siblings before the pool joins them.
                    token.cancel()
                    raise
        finally:
            # In-flight resolutions abandoned by a cancel or timeout finish on their own.
            resolve_pool.shutdown(wait=False, cancel_futures=True)

        return not token.cancelled

    # -- new subscriptions ---------------------------------------------

    def _resolve(self, url: str, pool: ThreadPoolExecutor, token: CancelToken) -> ParsedFeed:
        token.raise_if_cancelled()
        started: Future = Future()

        def run() -> ParsedFeed:
            started.set_result(None)
            return self._resolver.resolve(url)

        future = pool.submit(run)
        # The deadline covers the fetch itself, not time queued behind abandoned work.
        race(started, token, None)
        parsed = race(future, token, self._settings.item_timeout_sec)
        token.raise_if_cancelled()
        if not parsed.entries:
            raise EmptyFeedError("feed has no entries")
        return parsed

    def _commit(self, url: str, parsed: ParsedFeed) -> Feed:
        stamp = now_ms()
        feed = Feed(
            id=generate_id(),
            title=parsed.title,
            url=url,
            description=parsed.description,
            last_updated=stamp,
        )
        self._store.commit_new_feed(feed, to_entries(parsed.entries, feed.id, stamp=stamp))
        log_event(logger, logging.INFO, "feed_committed", url=url, feed_id=feed.id, entries=len(parsed.entries))
        return feed

    def _ingest_one(self, url: str, pool: ThreadPoolExecutor, token: CancelToken) -> Outcome:
        try:
            parsed = self._resolve(url, pool, token)
            self._commit(url, parsed)
        except IngestCancelledError:
            return CANCELLED, None
        except DuplicateFeedError:
            return SKIPPED, None
        except FeedIngestError as exc:
            log_event(logger, logging.WARNING, "feed_ingest_failed", url=url, error=str(exc))
            return FAILED, str(exc)
        return SUCCESS, None

    def ingest(
        self,
        urls: Sequence[str],
        *,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancelToken] = None,
    ) -> Optional[IngestionResult]:
        """
        Subscribe to many URLs at once.

        Returns None when the batch was cancelled: feeds committed before the
        cancel stay in the store, but no result is delivered.
        """
        token = token or CancelToken()
        candidates, result = self.prefilter(urls)

        finished = self._run_pool(
            candidates,
            self._ingest_one,
            result,
            label=lambda u: u,
            token=token,
            on_progress=on_progress,
        )
        if not finished:
            log_event(logger, logging.INFO, "batch_cancelled", total=len(candidates))
            return None

        log_event(
            logger,
            logging.INFO,
            "batch_completed",
            success=result.success,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result

    def add_feed(self, url: str, *, token: Optional[CancelToken] = None) -> Feed:
        """
        Subscribe to one URL. Same validation, race and commit rules as
        `ingest`, without a pool. Raises the typed FeedIngestError on failure.
        """
        token = token or CancelToken()
        trimmed = validate_url(url)
        if self._store.has_url(trimmed):
            raise DuplicateFeedError("feed already exists")

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rss-resolve")
        try:
            parsed = self._resolve(trimmed, pool, token)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return self._commit(trimmed, parsed)

    # -- refresh -------------------------------------------------------

    def _refresh_one(self, feed: Feed, pool: ThreadPoolExecutor, token: CancelToken) -> Outcome:
        try:
            parsed = self._resolve(feed.url, pool, token)
            merged = self._store.apply_refresh(feed.id, parsed)
        except IngestCancelledError:
            return CANCELLED, None
        except KeyError:
            # removed by the user while the fetch was in flight
            return SKIPPED, None
        except FeedIngestError as exc:
            log_event(logger, logging.WARNING, "feed_refresh_failed", feed_id=feed.id, url=feed.url, error=str(exc))
            return FAILED, str(exc)
        log_event(logger, logging.INFO, "feed_refreshed", feed_id=feed.id, entries=len(merged))
        return SUCCESS, None

    def refresh_feed(self, feed_id: str, *, token: Optional[CancelToken] = None) -> List[Entry]:
        token = token or CancelToken()
        feed = self._store.get_feed(feed_id)
        if feed is None:
            raise KeyError(feed_id)
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rss-resolve")
        try:
            parsed = self._resolve(feed.url, pool, token)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return self._store.apply_refresh(feed_id, parsed)

    def refresh_all(
        self,
        *,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancelToken] = None,
    ) -> Optional[IngestionResult]:
        """Refresh every subscribed feed; progress is (feeds done, total feeds)."""
        token = token or CancelToken()
        result = IngestionResult()
        finished = self._run_pool(
            self._store.feeds(),
            self._refresh_one,
            result,
            label=lambda f: f.url,
            token=token,
            on_progress=on_progress,
        )
        return result if finished else None

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence, Tuple

from .config import IngestSettings
from .exceptions import FeedNotFoundError, RSSFetchError
from .fetcher import FeedFetcher
from .logging_utils import log_event
from .models import ParsedFeed
from .parser import parse_document

logger = logging.getLogger(__name__)

Attempt = Tuple[Optional[ParsedFeed], Optional[Exception]]


def normalize_url(url: str) -> str:
    url = url.strip()
    return url[:-1] if url.endswith("/") else url


class FeedSourceResolver:
    """
    Discover a working feed endpoint for a user-supplied URL.

    The bare URL is tried first. If it does not yield a non-empty feed, every
    suffix candidate is fetched concurrently and the winner is picked by the
    suffix list's order, never by arrival order, so the outcome does not
    depend on network jitter.
    """

    def __init__(
        self,
        settings: Optional[IngestSettings] = None,
        *,
        fetcher: Optional[FeedFetcher] = None,
    ) -> None:
        self._settings = settings or IngestSettings()
        self._fetcher = fetcher or FeedFetcher(self._settings)

    @property
    def suffixes(self) -> Sequence[str]:
        return self._settings.suffixes

    def try_url(self, url: str) -> Attempt:
        try:
            raw = self._fetcher.fetch(url)
        except RSSFetchError as exc:
            return None, exc
        parsed = parse_document(raw)
        if parsed is None:
            return None, RSSFetchError(f"Not a recognizable feed: {url}")
        return parsed, None

    def resolve(self, url: str) -> ParsedFeed:
        base = normalize_url(url)

        direct, last_error = self.try_url(base)
        if direct is not None and direct.entries:
            log_event(logger, logging.INFO, "feed_resolved", url=base, candidate=base, format=direct.format)
            return direct

        candidates = [base + suffix for suffix in self.suffixes]
        if candidates:
            pool = ThreadPoolExecutor(
                max_workers=len(candidates),
                thread_name_prefix="rss-probe",
            )
            try:
                futures = [pool.submit(self.try_url, c) for c in candidates]
                for candidate, future in zip(candidates, futures):
                    parsed, error = future.result()
                    if parsed is not None and parsed.entries:
                        log_event(
                            logger,
                            logging.INFO,
                            "feed_resolved",
                            url=base,
                            candidate=candidate,
                            format=parsed.format,
                        )
                        return parsed
                    if error is not None:
                        last_error = error
            finally:
                # Lower-priority probes may still be running; their results are ignored.
                pool.shutdown(wait=False, cancel_futures=True)

        if direct is not None:
            # A real feed with no items beats a guess; the caller reports it as empty.
            return direct

        log_event(logger, logging.WARNING, "feed_probe_failed", url=base, error=str(last_error))
        raise FeedNotFoundError(f"Unable to find a feed at {base}", last_error=last_error)

from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import quote

import requests

from .config import IngestSettings
from .exceptions import RSSFetchError
from .logging_utils import log_event

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/rss+xml, application/xml, text/xml, */*"


class FeedFetcher:
    """
    Fetch raw feed documents over HTTP.

    Each fetch walks an ordered route list: the target URL itself (unless
    disabled), then every relay template with the target URL substituted in.
    The first route returning a success status wins.
    """

    def __init__(
        self,
        settings: Optional[IngestSettings] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings or IngestSettings()
        self._session = session or requests.Session()
        self._headers = {
            "Accept": ACCEPT_HEADER,
            "User-Agent": self._settings.user_agent,
        }

    def routes(self, url: str) -> List[str]:
        out: List[str] = []
        if self._settings.direct_fetch:
            out.append(url)
        encoded = quote(url, safe="")
        out.extend(relay.format(url=encoded) for relay in self._settings.relays)
        return out

    def fetch(self, url: str) -> bytes:
        """
        Fetch a single feed URL and return the response body.

        Raises RSSFetchError when every route fails (network error, timeout or
        non-success status).
        """
        last_error: Optional[Exception] = None
        for route in self.routes(url):
            try:
                response = self._session.get(
                    route,
                    headers=self._headers,
                    timeout=self._settings.fetch_timeout_sec,
                    allow_redirects=True,
                )
                response.raise_for_status()
                return response.content
            except requests.RequestException as exc:
                last_error = exc
                log_event(
                    logger,
                    logging.DEBUG,
                    "relay_attempt_failed",
                    url=url,
                    route=route,
                    error=str(exc),
                )
                continue

        reason = str(last_error) if last_error else "no fetch route configured"
        raise RSSFetchError(f"Failed to fetch feed: {url} ({reason})")

"""Settings loaded from environment variables / .env file."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from dotenv import load_dotenv

DEFAULT_RELAYS: Tuple[str, ...] = (
    "https://api.allorigins.win/raw?url={url}",
    "https://corsproxy.io/?{url}",
    "https://api.codetabs.com/v1/proxy?quest={url}",
)

# Probed in this order after the bare URL fails. Order decides the winner.
DEFAULT_SUFFIXES: Tuple[str, ...] = (
    "/feed",
    "/feed/",
    "/rss",
    "/rss/",
    "/index.xml",
    "/feed.xml",
    "/rss.xml",
    "?format=rss",
    "?format=atom",
    "/atom",
    "/atom.xml",
)

DEFAULT_USER_AGENT = "rss-ingest/0.1 (+https://pypi.org/project/rss-ingest/)"


@dataclass
class IngestSettings:
    concurrency: int = 10
    item_timeout_sec: float = 30.0
    fetch_timeout_sec: float = 15.0
    relays: List[str] = field(default_factory=lambda: list(DEFAULT_RELAYS))
    direct_fetch: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    suffixes: List[str] = field(default_factory=lambda: list(DEFAULT_SUFFIXES))
    state_path: Path = Path("data/rss_state.json")
    log_level: str = "INFO"

    def validate(self) -> List[str]:
        """Returns a list of problems (empty = valid)."""
        errors = []
        if self.concurrency < 1:
            errors.append(f"RSS_INGEST_CONCURRENCY must be >= 1, got {self.concurrency}")
        if self.item_timeout_sec <= 0:
            errors.append(f"RSS_INGEST_ITEM_TIMEOUT must be > 0, got {self.item_timeout_sec}")
        if self.fetch_timeout_sec <= 0:
            errors.append(f"RSS_INGEST_FETCH_TIMEOUT must be > 0, got {self.fetch_timeout_sec}")
        for relay in self.relays:
            if "{url}" not in relay:
                errors.append(f"relay template lacks {{url}} placeholder: {relay}")
        if not self.direct_fetch and not self.relays:
            errors.append("no fetch route: direct fetch disabled and no relays configured")
        return errors


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _env_number(name: str, default: str, cast):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        kind = "an integer" if cast is int else "a number"
        raise ValueError(f"{name} must be {kind}, got {raw!r}") from None


def load_settings() -> IngestSettings:
    load_dotenv()

    relays = os.environ.get("RSS_INGEST_RELAYS")
    return IngestSettings(
        concurrency=_env_number("RSS_INGEST_CONCURRENCY", "10", int),
        item_timeout_sec=_env_number("RSS_INGEST_ITEM_TIMEOUT", "30", float),
        fetch_timeout_sec=_env_number("RSS_INGEST_FETCH_TIMEOUT", "15", float),
        relays=_split_list(relays) if relays is not None else list(DEFAULT_RELAYS),
        direct_fetch=os.environ.get("RSS_INGEST_DIRECT_FETCH", "true").lower() in ("true", "1", "yes"),
        user_agent=os.environ.get("RSS_INGEST_USER_AGENT", DEFAULT_USER_AGENT),
        state_path=Path(os.environ.get("RSS_INGEST_STATE_PATH", "data/rss_state.json")),
        log_level=os.environ.get("RSS_INGEST_LOG_LEVEL", "INFO").upper(),
    )

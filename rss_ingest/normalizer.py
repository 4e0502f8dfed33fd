from __future__ import annotations

import secrets
import string
import time
from typing import Iterable, List, Optional

from .models import Entry, ParsedEntry

UNTITLED_ENTRY = "Untitled"
DESCRIPTION_FALLBACK_LENGTH = 200

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_id(length: int = 13) -> str:
    """Opaque random feed id. Never derived from the feed URL."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def now_ms() -> int:
    return int(time.time() * 1000)


def to_entry(item: ParsedEntry, *, feed_id: str, index: int, stamp: int) -> Entry:
    """
    Convert a ParsedEntry into an unread, unstarred Entry owned by `feed_id`.

    The id is `<feed_id>-<guid or index>-<stamp>`: unique within one conversion
    as long as guids are unique, but the same parse converted twice within the
    same millisecond yields the same ids.
    """
    content = item.content or item.snippet or ""
    description = item.snippet or (item.content or "")[:DESCRIPTION_FALLBACK_LENGTH]
    key = item.guid or str(index)

    return Entry(
        id=f"{feed_id}-{key}-{stamp}",
        feed_id=feed_id,
        title=item.title or UNTITLED_ENTRY,
        link=item.link or "",
        description=description,
        content=content,
        pub_date=item.pub_date,
        author=item.author,
        categories=list(item.categories),
        is_read=False,
        is_starred=False,
    )


def to_entries(
    items: Iterable[ParsedEntry],
    feed_id: str,
    *,
    stamp: Optional[int] = None,
) -> List[Entry]:
    stamp = now_ms() if stamp is None else stamp
    return [to_entry(it, feed_id=feed_id, index=i, stamp=stamp) for i, it in enumerate(items)]

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Sequence

from .models import Entry


def merge(
    feed_id: str,
    fresh: Iterable[Entry],
    existing: Iterable[Entry],
) -> List[Entry]:
    """
    Reconcile a feed's freshly parsed entries with its stored ones.

    Fresh content always wins; read/starred flags are carried over from the
    stored entry with the same link. Stored entries missing from the fresh
    parse are dropped. Entries without a link never match anything.
    """
    by_link: Dict[str, Entry] = {}
    for old in existing:
        if old.feed_id != feed_id or not old.link:
            continue
        by_link.setdefault(old.link, old)

    out: List[Entry] = []
    for new in fresh:
        old = by_link.get(new.link) if new.link else None
        if old is None:
            out.append(replace(new, feed_id=feed_id, is_read=False, is_starred=False))
        else:
            out.append(replace(new, feed_id=feed_id, is_read=old.is_read, is_starred=old.is_starred))
    return out


def replace_feed_entries(
    collection: Sequence[Entry],
    feed_id: str,
    merged: Sequence[Entry],
) -> List[Entry]:
    """Swap one feed's entries for `merged`, placed ahead of every other feed's."""
    return list(merged) + [e for e in collection if e.feed_id != feed_id]

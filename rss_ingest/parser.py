from __future__ import annotations

import xml.sax
from typing import Any, Dict, List, Optional

import feedparser

from .models import ParsedEntry, ParsedFeed

UNTITLED_FEED = "Untitled feed"
SNIPPET_LENGTH = 300


def _detect_format(version: str) -> Optional[str]:
    """
    Map feedparser's version string onto rss / atom / rdf. RSS 2.0 family wins
    over Atom, Atom over RDF, anything else is unrecognized.
    """
    if version in ("rss090", "rss10"):
        return "rdf"
    if version.startswith("rss"):
        return "rss"
    if version.startswith("atom"):
        return "atom"
    return None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def _get_link(entry: Dict[str, Any]) -> Optional[str]:
    # feedparser already prefers rel=alternate for `link`
    link = _text(entry.get("link"))
    if link:
        return link
    for candidate in entry.get("links") or []:
        href = _text(candidate.get("href")) if isinstance(candidate, dict) else None
        if href:
            return href
    return None


def _get_content(entry: Dict[str, Any]) -> Optional[str]:
    for block in entry.get("content") or []:
        value = _text(block.get("value")) if isinstance(block, dict) else None
        if value:
            return value
    return _text(entry.get("summary")) or _text(entry.get("description"))


def _get_categories(entry: Dict[str, Any]) -> List[str]:
    out: List[str] = []
    for tag in entry.get("tags") or []:
        if isinstance(tag, dict):
            term = _text(tag.get("term"))
            if term:
                out.append(term)
    return out


def parse_entry(entry: Dict[str, Any], *, fmt: str = "rss") -> ParsedEntry:
    """
    Map a raw feed entry (from feedparser) to a ParsedEntry.

    Content prefers the rich body (content:encoded / atom content) over the
    summary; the snippet is always cut from the summary/description field.
    """
    summary = _text(entry.get("summary")) or _text(entry.get("description"))
    link = _get_link(entry)

    guid = _text(entry.get("id")) or _text(entry.get("guid"))
    if guid is None and fmt == "rdf":
        guid = link

    return ParsedEntry(
        title=_text(entry.get("title")),
        link=link,
        content=_get_content(entry),
        snippet=summary[:SNIPPET_LENGTH] if summary else None,
        pub_date=_text(entry.get("published")) or _text(entry.get("updated")),
        author=_text(entry.get("author")),
        categories=_get_categories(entry),
        guid=guid,
    )


def parse_document(raw: bytes) -> Optional[ParsedFeed]:
    """
    Parse raw feed bytes into a ParsedFeed.

    Returns None (not an error) when the document is not a recognizable feed or
    is structurally malformed XML, so callers can move on to another candidate.
    """
    feed = feedparser.parse(raw)

    exc = getattr(feed, "bozo_exception", None)
    if getattr(feed, "bozo", 0) and isinstance(exc, xml.sax.SAXException):
        return None

    fmt = _detect_format(getattr(feed, "version", "") or "")
    if fmt is None:
        return None

    meta = feed.get("feed", {}) or {}
    description = _text(meta.get("subtitle")) or _text(meta.get("description"))
    entries = [parse_entry(e, fmt=fmt) for e in feed.get("entries", []) or []]

    return ParsedFeed(
        title=_text(meta.get("title")) or UNTITLED_FEED,
        description=description,
        format=fmt,
        entries=entries,
    )

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .exceptions import ParseError


@dataclass(frozen=True)
class ParsedEntry:
    """One item as it appears in a fetched document, before it belongs to a feed."""
    title: Optional[str] = None
    link: Optional[str] = None
    content: Optional[str] = None
    snippet: Optional[str] = None
    pub_date: Optional[str] = None
    author: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    guid: Optional[str] = None


@dataclass(frozen=True)
class ParsedFeed:
    title: str
    description: Optional[str] = None
    format: str = ""
    entries: List[ParsedEntry] = field(default_factory=list)


@dataclass(frozen=True)
class Feed:
    """
    A subscription. `url` never changes after creation and `id` is never
    derived from it.
    """
    id: str
    title: str
    url: str
    description: Optional[str] = None
    last_updated: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "title": self.title, "url": self.url}
        if self.description is not None:
            data["description"] = self.description
        if self.last_updated is not None:
            data["lastUpdated"] = self.last_updated
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Feed":
        if not isinstance(data, dict):
            raise ParseError("feed record is not an object")
        for key in ("id", "title", "url"):
            if not isinstance(data.get(key), str):
                raise ParseError(f"feed record lacks string field {key!r}")
        description = data.get("description")
        last_updated = data.get("lastUpdated")
        return cls(
            id=data["id"],
            title=data["title"],
            url=data["url"],
            description=description if isinstance(description, str) else None,
            last_updated=last_updated if isinstance(last_updated, int) else None,
        )


@dataclass(frozen=True)
class Entry:
    """
    An article owned by exactly one feed.

    WARNING: ingestion never sets `is_read`/`is_starred` except to carry them
    forward during a refresh. Only explicit user actions change them.
    """
    id: str
    feed_id: str
    title: str
    link: str
    description: str = ""
    content: str = ""
    pub_date: Optional[str] = None
    author: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    is_read: bool = False
    is_starred: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "feedId": self.feed_id,
            "title": self.title,
            "link": self.link,
            "description": self.description,
            "content": self.content,
            "categories": list(self.categories),
            "isRead": self.is_read,
            "isStarred": self.is_starred,
        }
        if self.pub_date is not None:
            data["pubDate"] = self.pub_date
        if self.author is not None:
            data["author"] = self.author
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Entry":
        if not isinstance(data, dict):
            raise ParseError("item record is not an object")
        for key in ("id", "feedId", "title", "link"):
            if not isinstance(data.get(key), str):
                raise ParseError(f"item record lacks string field {key!r}")
        for key in ("isRead", "isStarred"):
            if not isinstance(data.get(key), bool):
                raise ParseError(f"item record lacks boolean field {key!r}")
        categories = data.get("categories")
        if not isinstance(categories, list):
            categories = []
        return cls(
            id=data["id"],
            feed_id=data["feedId"],
            title=data["title"],
            link=data["link"],
            description=data.get("description") or "",
            content=data.get("content") or "",
            pub_date=data.get("pubDate"),
            author=data.get("author"),
            categories=[c for c in categories if isinstance(c, str)],
            is_read=data["isRead"],
            is_starred=data["isStarred"],
        )


@dataclass
class IngestionResult:
    """Per-batch outcome. Produced once, reported, then discarded."""
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def add_error(self, url: str, message: str) -> None:
        self.failed += 1
        self.errors.append(f"{url}: {message}")

"""Command-line entry point: `rss-ingest add|import|refresh|list|remove`."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config import load_settings
from .core import FeedReader
from .logging_utils import configure_logging
from .models import IngestionResult


def _print_progress(current: int, total: int) -> None:
    print(f"\r{current}/{total}", end="", file=sys.stderr, flush=True)
    if current == total:
        print(file=sys.stderr)


def _report(result: Optional[IngestionResult]) -> int:
    if result is None:
        print("cancelled")
        return 1
    print(f"success={result.success} failed={result.failed} skipped={result.skipped}")
    for error in result.errors:
        print(f"  {error}")
    return 0 if result.failed == 0 else 2


def _read_url_file(path: Path) -> List[str]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip() and not line.lstrip().startswith("#")]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rss-ingest", description="Subscribe to and refresh RSS/Atom/RDF feeds.")
    parser.add_argument("--state", type=Path, help="JSON state file (overrides RSS_INGEST_STATE_PATH)")
    parser.add_argument("--concurrency", type=int, help="worker pool width")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="subscribe to one or more URLs")
    add.add_argument("urls", nargs="+")

    imp = sub.add_parser("import", help="subscribe to every URL listed in a file, one per line")
    imp.add_argument("file", type=Path)

    sub.add_parser("refresh", help="refresh every subscribed feed")
    sub.add_parser("list", help="list subscribed feeds")

    rm = sub.add_parser("remove", help="remove a feed and all of its entries")
    rm.add_argument("feed_id")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except ValueError as exc:
        print(f"config error: {exc}", file=sys.stderr)
        return 2
    if args.state is not None:
        settings.state_path = args.state
    if args.concurrency is not None:
        settings.concurrency = args.concurrency
    problems = settings.validate()
    if problems:
        for problem in problems:
            print(f"config error: {problem}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    reader = FeedReader.from_settings(settings)

    try:
        if args.command == "add":
            if len(args.urls) == 1:
                if reader.add_feed(args.urls[0]):
                    print(f"added {reader.feeds()[0].title}")
                    return 0
                print(f"error: {reader.last_error or 'cancelled'}", file=sys.stderr)
                return 2
            return _report(reader.add_feeds_batch(args.urls, _print_progress))
        if args.command == "import":
            return _report(reader.add_feeds_batch(_read_url_file(args.file), _print_progress))
        if args.command == "refresh":
            return _report(reader.refresh_all_feeds(_print_progress))
        if args.command == "list":
            for feed in reader.feeds():
                unread = len(reader.entries(feed.id, "unread"))
                print(f"{feed.id}\t{unread} unread\t{feed.title}\t{feed.url}")
            return 0
        if args.command == "remove":
            if reader.remove_feed(args.feed_id):
                return 0
            print(f"error: no feed with id {args.feed_id}", file=sys.stderr)
            return 1
    except KeyboardInterrupt:
        reader.cancel_add_feed()
        reader.cancel_refresh()
        print("cancelled", file=sys.stderr)
        return 130
    return 1


if __name__ == "__main__":
    sys.exit(main())

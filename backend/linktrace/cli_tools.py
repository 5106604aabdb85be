#!/usr/bin/env python3
"""
Operator console for links and clicks.
Usage: python -m linktrace.cli_tools create URL | list | clicks CODE | delete-click ID
"""

import argparse
import sys

from .database import get_db, init_db
from .errors import CodeExhaustedError, PersistenceError
from .logging_config import setup_logging
from .schemas import ShortenRequest
from .services import LinkService, ClickService
from .utils import format_short_url


def create_link(url: str) -> int:
    """Shorten a URL and print the result."""
    try:
        url = ShortenRequest(url=url).url
    except ValueError as e:
        print(f"Invalid URL: {e}", file=sys.stderr)
        return 1

    init_db()
    db = next(get_db())
    try:
        link = LinkService.create_link(db, url)
    except (CodeExhaustedError, PersistenceError) as e:
        print(f"Failed to create link: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()

    print(f"{format_short_url(link.short_code)} -> {link.original_url}")
    return 0


def list_links() -> int:
    """List all links with click counts."""
    init_db()
    db = next(get_db())
    try:
        rows = LinkService.list_links_with_click_counts(db)
    finally:
        db.close()

    if not rows:
        print("No links found.")
        return 0

    print("\nLinks:")
    print("-" * 100)
    print(f"{'Code':<12} {'Clicks':<8} {'Created':<18} {'URL'}")
    print("-" * 100)
    for row in rows:
        created = row["created_at"].strftime("%Y-%m-%d %H:%M") if row["created_at"] else "-"
        print(f"{row['short_code']:<12} {row['click_count']:<8} {created:<18} {row['original_url'][:60]}")
    print("-" * 100)
    return 0


def show_clicks(code: str) -> int:
    """Print the clicks recorded for one link."""
    init_db()
    db = next(get_db())
    try:
        link = LinkService.get_link_by_code(db, code)
        if not link:
            print(f"Link {code} not found.", file=sys.stderr)
            return 1

        clicks = ClickService.get_clicks_for_link(db, link.id)
        print(f"\n{code} -> {link.original_url} ({len(clicks)} clicks)")
        print("-" * 100)
        print(f"{'ID':<8} {'When':<20} {'IP':<18} {'WebRTC IP':<18} {'Location'}")
        print("-" * 100)
        for click in clicks:
            when = click.clicked_at.strftime("%Y-%m-%d %H:%M:%S") if click.clicked_at else "-"
            place = ", ".join(p for p in (click.city, click.country) if p) or "-"
            print(f"{click.id:<8} {when:<20} {(click.ip or '-'):<18} {(click.webrtc_ip or '-'):<18} {place}")
        print("-" * 100)
    finally:
        db.close()
    return 0


def delete_click(click_id: int) -> int:
    """Delete a click by ID."""
    init_db()
    db = next(get_db())
    try:
        if ClickService.delete_click(db, click_id):
            print(f"Click {click_id} deleted.")
            return 0
        print(f"Click {click_id} not found.", file=sys.stderr)
        return 1
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="linktrace operator console")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    create_parser = subparsers.add_parser("create", help="Shorten a URL")
    create_parser.add_argument("url", help="Destination URL")

    subparsers.add_parser("list", help="List all links with click counts")

    clicks_parser = subparsers.add_parser("clicks", help="Show clicks for a short code")
    clicks_parser.add_argument("code", help="Short code")

    delete_parser = subparsers.add_parser("delete-click", help="Delete a click")
    delete_parser.add_argument("id", type=int, help="ID of the click to delete")

    args = parser.parse_args(argv)
    setup_logging(console=True)

    if args.command == "create":
        return create_link(args.url)
    elif args.command == "list":
        return list_links()
    elif args.command == "clicks":
        return show_clicks(args.code)
    elif args.command == "delete-click":
        return delete_click(args.id)

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())

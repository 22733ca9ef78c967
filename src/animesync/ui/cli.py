# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from animesync.app import build_local_session, build_remote_session
from animesync.config import configure_logging, optional_env_var
from animesync.domain.model import InteractionStatus
from animesync.domain.outcome import Failure

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from animesync.app import SyncSession
    from animesync.domain.model import AnimeSummary, Comment
    from animesync.domain.sync import CatalogPaginator

log = logging.getLogger(__name__)

DEFAULT_TAIL_SECONDS = 30.0


def _add_session_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--backend",
        choices=("local", "remote"),
        default="local",
        help="Row store to use: local SQLite or the managed backend (default: %(default)s)",
    )
    parser.add_argument(
        "--user-id",
        type=str,
        default=None,
        help="Signed-in user id (defaults to ANIMESYNC_USER_ID)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Browse and sync the anime community")
    subparsers = parser.add_subparsers(dest="command", required=True)

    catalog = subparsers.add_parser("catalog", help="Browse the anime catalog")
    catalog_sub = catalog.add_subparsers(dest="catalog_command", required=True)
    for name, help_text in (("top", "Top rated anime"), ("season", "Current season")):
        listing = catalog_sub.add_parser(name, help=help_text)
        listing.add_argument(
            "--pages",
            type=int,
            default=1,
            help="Number of pages to load (default: %(default)s)",
        )
        _add_session_options(listing)
    show = catalog_sub.add_parser("show", help="Show one anime in detail")
    show.add_argument("anime_id", type=int, help="Catalog id of the anime")
    _add_session_options(show)

    interactions = subparsers.add_parser("interactions", help="Watched/favorite statuses")
    interactions_sub = interactions.add_subparsers(dest="interactions_command", required=True)
    set_cmd = interactions_sub.add_parser("set", help="Toggle a status on an anime")
    set_cmd.add_argument("anime_id", type=int, help="Catalog id of the anime")
    set_cmd.add_argument(
        "status",
        choices=[str(status) for status in InteractionStatus],
        help="Status to toggle",
    )
    _add_session_options(set_cmd)
    list_cmd = interactions_sub.add_parser("list", help="List your statuses")
    _add_session_options(list_cmd)

    comments = subparsers.add_parser("comments", help="Post comments")
    comments_sub = comments.add_subparsers(dest="comments_command", required=True)
    tail = comments_sub.add_parser("tail", help="Print a post's comments and follow new ones")
    tail.add_argument("post_id", type=str, help="Post id")
    tail.add_argument(
        "--seconds",
        type=float,
        default=DEFAULT_TAIL_SECONDS,
        help="How long to follow new comments (default: %(default)s)",
    )
    _add_session_options(tail)

    args = parser.parse_args(list(argv))
    if getattr(args, "pages", 1) < 1:
        raise ValueError("--pages must be at least 1")
    if getattr(args, "seconds", 0.0) < 0:
        raise ValueError("--seconds must be non-negative")
    return args


def _build_session(args: argparse.Namespace) -> SyncSession:
    user_id = args.user_id or optional_env_var("ANIMESYNC_USER_ID")
    if args.backend == "remote":
        return build_remote_session(user_id)
    return build_local_session(user_id)


def _format_summary(item: AnimeSummary, status: InteractionStatus | None) -> str:
    rating = f"{item.rating:.1f}" if item.rating is not None else "-"
    marker = f" [{status}]" if status is not None else ""
    return f"{item.id:>6}  {rating:>4}  {item.title}{marker}"


def _format_comment(comment: Comment) -> str:
    return f"{comment.created_at:%Y-%m-%d %H:%M}  {comment.user_id}: {comment.content}"


async def _show_listing(browser: CatalogPaginator, pages: int) -> None:
    for _ in range(pages):
        outcome = await browser.load_more()
        if outcome is None:
            break
        if not outcome.ok:
            raise RuntimeError(outcome.message)
    for item, status in browser.annotated():
        print(_format_summary(item, status))


async def _show_detail(session: SyncSession, anime_id: int) -> None:
    outcome = await session.anime_detail(anime_id)
    if not outcome.ok:
        raise RuntimeError(outcome.message)
    detail = outcome.value
    print(detail.title)
    if detail.title_english and detail.title_english != detail.title:
        print(detail.title_english)
    print(f"Rating: {detail.rating if detail.rating is not None else '-'}")
    print(f"Episodes: {detail.episodes if detail.episodes is not None else '?'}")
    print(f"Status: {detail.status or '-'}  Aired: {detail.aired or '-'}")
    if detail.genres:
        print(f"Genres: {detail.genre_label}")
    if detail.studios:
        print(f"Studios: {', '.join(detail.studios)}")
    if detail.synopsis:
        print()
        print(detail.synopsis)


async def _set_interaction(session: SyncSession, anime_id: int, status: str) -> None:
    applied = session.set_interaction(anime_id, InteractionStatus(status))
    if isinstance(applied, Failure):
        raise RuntimeError(applied.message)
    outcome = await applied.wait()
    if not outcome.ok:
        raise RuntimeError(outcome.message)
    current = session.cache.interactions.status_of(anime_id)
    print(f"{anime_id}: {current or 'none'}")


def _list_interactions(session: SyncSession) -> None:
    for anime_id, status in sorted(session.cache.interactions.items().items()):
        print(f"{anime_id:>6}  {status}")


async def _tail_comments(session: SyncSession, post_id: str, seconds: float) -> None:
    outcome = await session.open_post(post_id)
    if not outcome.ok:
        raise RuntimeError(outcome.message)
    print(outcome.value.title)
    printed: set[str] = set()

    def flush() -> None:
        for comment in session.comments(post_id):
            if comment.id not in printed:
                printed.add(comment.id)
                print(_format_comment(comment))

    flush()
    loop = asyncio.get_running_loop()
    deadline = loop.time() + seconds
    while loop.time() < deadline:
        await asyncio.sleep(min(0.5, max(deadline - loop.time(), 0)))
        flush()
    session.close_post(post_id)


async def _run(args: argparse.Namespace) -> None:
    session = _build_session(args)
    try:
        await session.start()
        if args.command == "catalog":
            if args.catalog_command == "top":
                await _show_listing(session.top_anime(), args.pages)
            elif args.catalog_command == "season":
                await _show_listing(session.current_season(), args.pages)
            else:
                await _show_detail(session, args.anime_id)
        elif args.command == "interactions":
            if args.interactions_command == "set":
                await _set_interaction(session, args.anime_id, args.status)
            else:
                _list_interactions(session)
        elif args.command == "comments":
            await _tail_comments(session, args.post_id, args.seconds)
        else:
            raise ValueError(f"Unsupported command: {args.command}")
    finally:
        await session.close()


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        asyncio.run(_run(parsed_args))
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()

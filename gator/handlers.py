"""The handlers behind each command."""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timedelta
from decimal import Decimal
from fractions import Fraction
from typing import Optional

import requests

from gator.commands import Command, CommandError, State
from gator.database import Database, DatabaseError, DuplicateError, Feed, User
from gator.rss import fetch_feed

log = logging.getLogger(__name__)

SEPARATOR = "====================================="
DEFAULT_BROWSE_LIMIT = 2
RFC1123Z = "%a, %d %b %Y %H:%M:%S %z"

_UNIT_SECONDS = {
    "ns": Fraction(1, 10**9),
    "us": Fraction(1, 10**6),
    "µs": Fraction(1, 10**6),
    "μs": Fraction(1, 10**6),
    "ms": Fraction(1, 10**3),
    "s": Fraction(1),
    "m": Fraction(60),
    "h": Fraction(3600),
}
_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_MAX_NANOSECONDS = 2**63 - 1
_INTEGER = re.compile(r"[+-]?[0-9]+")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1h30m"``, ``"1.5s"`` or ``"500ms"``."""
    error = ValueError(f'time: invalid duration "{text}"')
    body = text
    negative = body.startswith("-")
    if body.startswith(("-", "+")):
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise error

    total = Fraction(0)
    pos = 0
    while pos < len(body):
        match = _COMPONENT.match(body, pos)
        if match is None:
            raise error
        total += Fraction(Decimal(match.group(1))) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    limit = _MAX_NANOSECONDS + (1 if negative else 0)
    if total * 10**9 > limit:
        raise error
    micros = round(total * 10**6)
    return timedelta(microseconds=-micros if negative else micros)


def _trim(value: int, scale: int) -> str:
    whole, frac = divmod(value, scale)
    digits = f"{frac:0{len(str(scale)) - 1}d}".rstrip("0")
    return f"{whole}.{digits}" if digits else str(whole)


def _format_duration(delta: timedelta) -> str:
    micros = delta // timedelta(microseconds=1)
    if micros == 0:
        return "0s"
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_trim(micros, 1000)}ms"
    hours, rest = divmod(micros, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    text = f"{_trim(rest, 1_000_000)}s"
    if hours:
        text = f"{hours}h{minutes}m{text}"
    elif minutes:
        text = f"{minutes}m{text}"
    return sign + text


def _format_time(moment: Optional[datetime]) -> str:
    if moment is None:
        return "0001-01-01 00:00:00 +0000 UTC"
    text = moment.strftime("%Y-%m-%d %H:%M:%S")
    fraction = f"{moment.microsecond:06d}".rstrip("0")
    if fraction:
        text += "." + fraction
    return f"{text} {moment.strftime('%z %Z')}".rstrip()


def parse_pub_date(text: str) -> Optional[datetime]:
    """Parse an RFC 1123 date with numeric zone, or return None."""
    try:
        return datetime.strptime(text, RFC1123Z)
    except ValueError:
        return None


# users


def _print_user(user: User) -> None:
    print(f" * ID:      {user.id}")
    print(f" * Name:    {user.name}")


def handle_register(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    try:
        user = state.db.create_user(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"couldn't create user: {exc}") from exc
    try:
        state.cfg.set_user(user.name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User created successfully:")
    _print_user(user)


def handle_login(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    name = cmd.args[0]
    try:
        state.db.get_user(name)
    except DatabaseError as exc:
        raise CommandError(f"couldn't find user: {exc}") from exc
    try:
        state.cfg.set_user(name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User switched successfully!")


def handle_users(state: State, cmd: Command) -> None:
    try:
        users = state.db.get_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't list users: {exc}") from exc
    for user in users:
        if user.name == state.cfg.current_user_name:
            print(f"* {user.name} (current)")
        else:
            print(f"* {user.name}")


def handle_reset(state: State, cmd: Command) -> None:
    try:
        state.db.delete_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't delete users: {exc}") from exc
    print("Database reset successful!")


# aggregation


def handle_agg(state: State, cmd: Command) -> None:
    """Scrape one feed now and then once per interval, forever."""
    if not 1 <= len(cmd.args) <= 2:
        raise CommandError(f"usage: {cmd.name} <time_between_reqs>")
    try:
        interval = parse_duration(cmd.args[0])
    except ValueError as exc:
        raise CommandError(f"invalid duration: {exc}") from exc
    if interval <= timedelta(0):
        raise CommandError("invalid duration: interval must be positive")

    log.info("collecting feeds every %s...", _format_duration(interval))
    period = interval.total_seconds()
    next_tick = time.monotonic()
    while True:
        scrape_feeds(state)
        next_tick += period
        now = time.monotonic()
        if next_tick < now:
            next_tick = now
        time.sleep(next_tick - now)


def scrape_feeds(state: State) -> None:
    """Scrape the feed that is most in need of it."""
    try:
        feed = state.db.get_next_feed_to_fetch()
    except DatabaseError as exc:
        log.info("Couldn't get next feeds to fetch %s", exc)
        return
    log.info("Found a feed to fetch!")
    scrape_feed(state.db, feed)


def scrape_feed(db: Database, feed: Feed) -> None:
    """Mark ``feed`` fetched, download it and store its items as posts."""
    try:
        db.mark_feed_fetched(feed.id)
    except DatabaseError as exc:
        log.info("Couldn't mark the feed %s fetched: %s", feed.name, exc)
        return

    try:
        data = fetch_feed(feed.url)
    except (requests.RequestException, ValueError) as exc:
        log.info("Couldn't collect feed %s: %s", feed.name, exc)
        return

    for item in data.items:
        try:
            db.create_post(
                feed_id=feed.id,
                title=item.title,
                url=item.link,
                description=item.description,
                published_at=parse_pub_date(item.pub_date),
            )
        except DuplicateError:
            continue
        except DatabaseError as exc:
            log.info("couldn't create post: %s", exc)
    log.info("Feed %s collected, %d posts found", feed.name, len(data.items))


# feeds


def _print_feed(feed: Feed, user: User) -> None:
    print(f"* ID:            {feed.id}")
    print(f"* Created:       {_format_time(feed.created_at)}")
    print(f"* Updated:       {_format_time(feed.updated_at)}")
    print(f"* Name:          {feed.name}")
    print(f"* URL:           {feed.url}")
    print(f"* UserID:        {feed.user_id}")
    print(f"* User:          {user.name}")
    print(f"* LastFetchedAt: {_format_time(feed.last_fetched_at)}")


def _print_feed_follow(user_name: str, feed_name: str) -> None:
    print(f"* User:          {user_name}")
    print(f"* Feed:          {feed_name}")


def handle_add_feed(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 2:
        raise CommandError(f"usage: {cmd.name} <name> <url>")
    name, url = cmd.args
    try:
        feed = state.db.create_feed(name=name, url=url, user_id=user.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't create feed: {exc}") from exc
    try:
        follow = state.db.create_feed_follow(user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't create feed follow: {exc}") from exc

    print("Feed created successfully")
    _print_feed(feed, user)
    print()
    print("Feed follow successfully:")
    _print_feed_follow(follow.user_name, follow.feed_name)
    print(SEPARATOR)


def handle_feeds(state: State, cmd: Command) -> None:
    try:
        feeds = state.db.get_feeds()
    except DatabaseError as exc:
        raise CommandError(f"couldn't get feeds: {exc}") from exc
    if not feeds:
        print("no feeds found.")
        return
    print(f"Found {len(feeds)} feeds:")
    for feed in feeds:
        try:
            user = state.db.get_user_by_id(feed.user_id)
        except DatabaseError as exc:
            raise CommandError(f"couldn't get user: {exc}") from exc
        _print_feed(feed, user)
        print(SEPARATOR)


# feed follows


def handle_follow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <feed_url>")
    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"couldn't get feed: {exc}") from exc
    try:
        follow = state.db.create_feed_follow(user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't create feed follow: {exc}") from exc
    print("Feed follow created:")
    _print_feed_follow(follow.user_name, follow.feed_name)


def handle_following(state: State, cmd: Command, user: User) -> None:
    try:
        follows = state.db.get_feed_follows_for_user(user.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't get feed follows: {exc}") from exc
    if not follows:
        print("No feed follows found for this user.")
        return
    print(f"Feed follows for user {user.name}:")
    for follow in follows:
        print(f"* {follow.feed_name}")


def handle_unfollow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <feed_url>")
    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"couldn't get feed: {exc}") from exc
    try:
        state.db.delete_feed_follow(user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't delete feed follow: {exc}") from exc
    print(f"{feed.name} unfollowed successfully!")


# posts


def handle_browse(state: State, cmd: Command, user: User) -> None:
    limit = DEFAULT_BROWSE_LIMIT
    if cmd.args:
        text = cmd.args[0]
        if not _INTEGER.fullmatch(text):
            raise CommandError(f'invalid limit: parsing "{text}": invalid syntax')
        limit = int(text)
    try:
        posts = state.db.get_posts_for_user(user.id, limit)
    except DatabaseError as exc:
        raise CommandError(f"couldn't get posts for user: {exc}") from exc

    print(f"Found {len(posts)} posts for user {user.name}:")
    for post in posts:
        moment = post.published_at
        date = f"{moment:%a %b} {moment.day}" if moment is not None else "Mon Jan 1"
        print(f"{date} from {post.feed_name}")
        print(f"--- {post.title} ---")
        print(f"    {post.description or ''}")
        print(f"Link: {post.url}")
        print(SEPARATOR)
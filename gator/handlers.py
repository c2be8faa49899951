"""The commands of the feed aggregator."""

from __future__ import annotations

import logging
import re
import time
import uuid
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import Callable

from .commands import Command, CommandError, State
from .database import DatabaseError, DuplicateError
from .models import Feed, Post, User
from .rss import FeedFetchError, RSSFeed, fetch_feed

logger = logging.getLogger(__name__)

_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_UNIT_NS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_NUMBER = re.compile(r"(\d*)(?:\.(\d*))?")
_UNIT = re.compile(r"[^\d.]*")
_PUB_DATE = re.compile(
    r"(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun), (\d{2}) (Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec) "
    r"(\d{4}) (\d{1,2}):(\d{2}):(\d{2})(?:\.(\d+))? ([+-])(\d{2})(\d{2})"
)
_INTEGER = re.compile(r"[+-]?\d+")


# durations and times


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1h30m``, ``1.5s`` or ``500ms``."""
    rest = text
    negative = False
    if rest[:1] in ("+", "-"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f'time: invalid duration "{text}"')

    total = Fraction(0)
    pos = 0
    while pos < len(rest):
        number = _NUMBER.match(rest, pos)
        whole, frac = number.group(1), number.group(2)
        if not whole and not frac:
            raise ValueError(f'time: invalid duration "{text}"')
        pos = number.end()
        unit_match = _UNIT.match(rest, pos)
        unit = unit_match.group()
        pos = unit_match.end()
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        if unit not in _UNIT_NS:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        value = Fraction(int(whole or "0"))
        if frac:
            value += Fraction(int(frac), 10 ** len(frac))
        total += value * _UNIT_NS[unit]

    microseconds = int(total) // 1000
    return timedelta(microseconds=-microseconds if negative else microseconds)


def _decimal(value: int, size: int) -> str:
    whole, remainder = divmod(value, size)
    digits = len(str(size)) - 1
    fraction = str(remainder).zfill(digits).rstrip("0") if digits else ""
    return f"{whole}.{fraction}" if fraction else str(whole)


def _format_duration(value: timedelta) -> str:
    ns = (value // timedelta(microseconds=1)) * 1000
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < 1_000_000_000:
        unit, size = "ns", 1
        for candidate, candidate_size in (("\u00b5s", 1_000), ("ms", 1_000_000)):
            if ns >= candidate_size:
                unit, size = candidate, candidate_size
        return sign + _decimal(ns, size) + unit
    hours, rest = divmod(ns, 3_600_000_000_000)
    minutes, rest = divmod(rest, 60_000_000_000)
    text = _decimal(rest, 1_000_000_000) + "s"
    if hours or minutes:
        text = f"{minutes}m{text}"
    if hours:
        text = f"{hours}h{text}"
    return sign + text


def _parse_pub_date(text: str) -> datetime | None:
    match = _PUB_DATE.fullmatch(text)
    if match is None:
        return None
    day, month, year, hour, minute, second, frac, sign, off_h, off_m = match.groups()
    offset = timedelta(hours=int(off_h), minutes=int(off_m))
    try:
        zone = timezone(-offset if sign == "-" else offset)
        micro = int(frac[:6].ljust(6, "0")) if frac else 0
        return datetime(
            int(year),
            _MONTHS.index(month) + 1,
            int(day),
            int(hour),
            int(minute),
            int(second),
            micro,
            tzinfo=zone,
        )
    except ValueError:
        return None


def _zone_name(value: datetime) -> str:
    offset = value.utcoffset()
    if offset is None or offset == timedelta(0):
        return "UTC"
    return value.strftime("%z")


def _rfc1123(value: datetime) -> str:
    return (
        f"{_DAYS[value.weekday()]}, {value.day:02d} {_MONTHS[value.month - 1]} "
        f"{value.year:04d} {value:%H:%M:%S} {_zone_name(value)}"
    )


def _timestamp(value: datetime) -> str:
    text = value.strftime("%Y-%m-%d %H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.strftime("%z") if value.tzinfo is not None else "+0000"
    return f"{text} {offset} {_zone_name(value)}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# formatting


def format_post(post: Post) -> str:
    lines = [f"- Title:  {post.title}"]
    if post.description is not None:
        lines.append(f"- description:  {post.description}")
    lines.append(f"- URL:  {post.url}")
    if post.published_at is not None:
        lines.append(f"- published at:  {_rfc1123(post.published_at)}")
    lines.append("=" * 57)
    return "\n".join(lines) + "\n"


def format_feed(feed: Feed, user: User) -> str:
    return "\n".join(
        [
            f"* ID:            {feed.id}",
            f"* Created:       {_timestamp(feed.created_at)}",
            f"* Updated:       {_timestamp(feed.updated_at)}",
            f"* Name:          {feed.name}",
            f"* URL:           {feed.url}",
            f"* UserID:        {user.name}",
        ]
    )


def format_feed_follow(user_name: str, feed_name: str) -> str:
    return f"* User:          {user_name}\n* Feed:          {feed_name}"


def format_user(user: User) -> str:
    return f" * ID:\t\t{user.id}\n * Name:    {user.name}"


# aggregation


def scrape_feeds(state: State, fetch: Callable[[str], RSSFeed] = fetch_feed) -> list[Post]:
    """Fetch the feed due next, store its new posts and return them."""
    try:
        feed = state.db.get_next_feed_to_fetch()
    except DatabaseError as exc:
        logger.warning("couldn't retrieve the next feed to fetch: %s", exc)
        return []
    print(f"fetching feeds for {feed.name}...")

    saved: list[Post] = []
    try:
        try:
            feed_data = fetch(feed.url)
        except FeedFetchError as exc:
            logger.warning("couldn't fetch feed: %s", exc)
            return saved

        print(f"Title for feed {feed.name} are: ")
        print()
        for item in feed_data.items:
            now = _now()
            try:
                post = state.db.create_post(
                    uuid.uuid4(),
                    now,
                    now,
                    item.title,
                    item.link,
                    item.description or None,
                    _parse_pub_date(item.pub_date),
                    feed.id,
                )
            except DuplicateError:
                logger.info("skipping duplicate post")
                continue
            except DatabaseError as exc:
                logger.warning("error writing the post to the database: %s", exc)
                continue
            saved.append(post)
            print(f"- {item.title}")
        logger.info("Feed %s collected, %d posts found", feed.name, len(feed_data.items))
        print("=" * 61)
        print()
    finally:
        try:
            state.db.mark_feed_fetched(feed.id)
        except DatabaseError as exc:
            logger.warning("couldn't mark feed as fetched: %s", exc)
    return saved


def handle_agg(state: State, cmd: Command) -> None:
    """Scrape one feed every interval, forever."""
    if len(cmd.args) != 1:
        raise CommandError(f"usage {cmd.name} <time_between_reqs>")
    try:
        interval = parse_duration(cmd.args[0])
    except ValueError as exc:
        raise CommandError(
            "time_between_reqs should be in the form of #h, #m, #s, "
            f"or a combination of that: {exc}"
        ) from exc
    if interval <= timedelta(0):
        raise CommandError("time_between_reqs must be positive")

    print(f"Collecting feeds every {_format_duration(interval)}")
    seconds = interval.total_seconds()
    next_run = time.monotonic()
    while True:
        scrape_feeds(state)
        next_run += seconds
        now = time.monotonic()
        if next_run < now:
            next_run = now
        time.sleep(next_run - now)


# browsing


def handle_browse(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) > 1:
        raise CommandError(f"usage: {cmd.name} <limit(default 2)>")
    limit = 2
    if cmd.args:
        text = cmd.args[0]
        if not _INTEGER.fullmatch(text):
            raise CommandError(f'invalid limit "{text}"')
        limit = int(text)
    try:
        posts = state.db.get_posts_for_user(user.id, limit)
    except DatabaseError as exc:
        raise CommandError(str(exc)) from exc

    for number, post in enumerate(posts):
        name = ""
        try:
            name = state.db.get_feed_by_id(post.feed_id).name
        except DatabaseError as exc:
            logger.warning("couldn't find the feed for post titled %s: %s", post.title, exc)
        print(f"Post #{number} from feed {name}:")
        print(format_post(post))


# feeds


def handle_feeds(state: State, cmd: Command) -> None:
    try:
        feeds = state.db.get_feeds()
    except DatabaseError as exc:
        raise CommandError(f"couldn't get feeds: {exc}") from exc
    if not feeds:
        print("No feeds found.")
        return
    print(f"Found {len(feeds)} feeds:")
    for feed in feeds:
        try:
            user = state.db.get_user_by_id(feed.user_id)
        except DatabaseError as exc:
            raise CommandError(f"couldn't get user: {exc}") from exc
        print(format_feed(feed, user))
        print("=" * 37)


def handle_add_feed(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 2:
        raise CommandError(f"usage: {cmd.name} <name> <url>")
    name, url = cmd.args
    now = _now()
    try:
        feed = state.db.create_feed(uuid.uuid4(), now, now, name, url, user.id)
    except DatabaseError as exc:
        raise CommandError(f"failed to create feed: {exc}") from exc
    try:
        follow = state.db.create_feed_follow(
            uuid.uuid4(), feed.created_at, feed.updated_at, user.id, feed.id
        )
    except DatabaseError as exc:
        raise CommandError(f"failed to create feed follow entry: {exc}") from exc

    print("Feed created successfully:")
    print(format_feed(feed, user))
    print()
    print("Feed followed successfully:")
    print(format_feed_follow(follow.user_name, follow.feed_name))
    print("=" * 38)


# follows


def handle_unfollow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage {cmd.name} <feed_url>")
    url = cmd.args[0]
    try:
        feed = state.db.get_feed_by_url(url)
    except DatabaseError as exc:
        raise CommandError(f"couldn't retrieve feed: {exc}") from exc
    try:
        state.db.delete_feed_follow(user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't delete the feed follow: {exc}") from exc
    print(f"{url} follow deleted successfully!")


def handle_follow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <feed_url>")
    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(str(exc)) from exc
    now = _now()
    try:
        follow = state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't create feed follow: {exc}") from exc
    print("Feed follow created:")
    print(format_feed_follow(follow.user_name, follow.feed_name))


def handle_following(state: State, cmd: Command, user: User) -> None:
    try:
        follows = state.db.get_feed_follows_for_user(user.id)
    except DatabaseError as exc:
        raise CommandError(str(exc)) from exc
    if not follows:
        print("No feed follows found for this user.")
        return
    print(f"user {user.name} follows the following feeds:")
    for follow in follows:
        print(f"- {follow.feed_name}")


# users


def handle_reset(state: State, cmd: Command) -> None:
    try:
        state.db.delete_all_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't delete all users: {exc}") from exc
    print("Database reset successfully!")


def handle_register(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    now = _now()
    try:
        user = state.db.create_user(uuid.uuid4(), now, now, cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"couldn't create user: {exc}") from exc
    try:
        state.cfg.set_user(user.name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User created successfully")
    print(format_user(user))


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
        raise CommandError(f"couldn't set user: {exc}") from exc
    print("User switched successfully")


def handle_users(state: State, cmd: Command) -> None:
    try:
        users = state.db.get_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't retrieve all users: {exc}") from exc
    if not users:
        print("No users were added so far.")
        return
    for user in users:
        if user.name == state.cfg.current_user_name:
            print(f"* {user.name} (current)")
        else:
            print(f"* {user.name}")
"""SQLite-backed storage for users, feeds, follows and posts."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, TypeVar

from .models import Feed, FeedFollowRow, Post, User

_T = TypeVar("_T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    description TEXT,
    published_at TEXT,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
"""

_USER_COLUMNS = "id, created_at, updated_at, name"
_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"
_POST_COLUMNS = "id, created_at, updated_at, title, url, description, published_at, feed_id"
_FOLLOW_SELECT = """
SELECT feed_follows.id, feed_follows.created_at, feed_follows.updated_at,
       feed_follows.user_id, feed_follows.feed_id,
       feeds.name AS feed_name, users.name AS user_name
FROM feed_follows
INNER JOIN feeds ON feeds.id = feed_follows.feed_id
INNER JOIN users ON users.id = feed_follows.user_id
"""


class DatabaseError(Exception):
    """A query failed."""


class NotFoundError(DatabaseError, LookupError):
    """A query that returns one row found none."""


class DuplicateError(DatabaseError):
    """An insert broke a uniqueness constraint."""


def _encode_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _decode_time(text: str | None) -> datetime | None:
    return None if text is None else datetime.fromisoformat(text)


def _user(row: sqlite3.Row) -> User:
    return User(
        id=uuid.UUID(row["id"]),
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
        name=row["name"],
    )


def _feed(row: sqlite3.Row) -> Feed:
    return Feed(
        id=uuid.UUID(row["id"]),
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
        name=row["name"],
        url=row["url"],
        user_id=uuid.UUID(row["user_id"]),
        last_fetched_at=_decode_time(row["last_fetched_at"]),
    )


def _follow_row(row: sqlite3.Row) -> FeedFollowRow:
    return FeedFollowRow(
        id=uuid.UUID(row["id"]),
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
        user_id=uuid.UUID(row["user_id"]),
        feed_id=uuid.UUID(row["feed_id"]),
        feed_name=row["feed_name"],
        user_name=row["user_name"],
    )


def _post(row: sqlite3.Row) -> Post:
    return Post(
        id=uuid.UUID(row["id"]),
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
        title=row["title"],
        url=row["url"],
        description=row["description"],
        published_at=_decode_time(row["published_at"]),
        feed_id=uuid.UUID(row["feed_id"]),
    )


@contextmanager
def _translated() -> Iterator[None]:
    try:
        yield
    except sqlite3.IntegrityError as exc:
        if "UNIQUE" in str(exc):
            raise DuplicateError(str(exc)) from exc
        raise DatabaseError(str(exc)) from exc
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


class Queries:
    """The queries the application runs against its database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._conn.row_factory = sqlite3.Row

    def __enter__(self) -> Queries:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()

    def _execute(self, sql: str, params: tuple = ()) -> None:
        with _translated():
            self._conn.execute(sql, params)

    def _one(self, sql: str, params: tuple, build: Callable[[sqlite3.Row], _T]) -> _T:
        with _translated():
            row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise NotFoundError("no rows in result set")
        return build(row)

    def _many(self, sql: str, params: tuple, build: Callable[[sqlite3.Row], _T]) -> list[_T]:
        with _translated():
            rows = self._conn.execute(sql, params).fetchall()
        return [build(row) for row in rows]

    # users

    def create_user(self, id: uuid.UUID, created_at: datetime, updated_at: datetime, name: str) -> User:
        self._execute(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (str(id), _encode_time(created_at), _encode_time(updated_at), name),
        )
        return self.get_user_by_id(id)

    def delete_all_users(self) -> None:
        self._execute("DELETE FROM users")

    def get_user(self, name: str) -> User:
        return self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE name = ?", (name,), _user)

    def get_user_by_id(self, id: uuid.UUID) -> User:
        return self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (str(id),), _user)

    def get_users(self) -> list[User]:
        return self._many(f"SELECT {_USER_COLUMNS} FROM users", (), _user)

    # feeds

    def create_feed(
        self,
        id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        name: str,
        url: str,
        user_id: uuid.UUID,
    ) -> Feed:
        self._execute(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (str(id), _encode_time(created_at), _encode_time(updated_at), name, url, str(user_id)),
        )
        return self.get_feed_by_id(id)

    def get_feed_by_id(self, id: uuid.UUID) -> Feed:
        return self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(id),), _feed)

    def get_feed_by_url(self, url: str) -> Feed:
        return self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,), _feed)

    def get_feeds(self) -> list[Feed]:
        return self._many(f"SELECT {_FEED_COLUMNS} FROM feeds", (), _feed)

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed fetched longest ago, never-fetched feeds first."""
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds "
            "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC, created_at "
            "LIMIT 1",
            (),
            _feed,
        )

    def mark_feed_fetched(self, id: uuid.UUID) -> None:
        now = _encode_time(datetime.now(timezone.utc))
        self._execute(
            "UPDATE feeds SET updated_at = ?, last_fetched_at = ? WHERE id = ?",
            (now, now, str(id)),
        )

    # feed follows

    def create_feed_follow(
        self,
        id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        user_id: uuid.UUID,
        feed_id: uuid.UUID,
    ) -> FeedFollowRow:
        self._execute(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (str(id), _encode_time(created_at), _encode_time(updated_at), str(user_id), str(feed_id)),
        )
        return self._one(_FOLLOW_SELECT + "WHERE feed_follows.id = ?", (str(id),), _follow_row)

    def delete_feed_follow(self, user_id: uuid.UUID, feed_id: uuid.UUID) -> None:
        self._execute(
            "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = ?",
            (str(user_id), str(feed_id)),
        )

    def get_feed_follows_for_user(self, user_id: uuid.UUID) -> list[FeedFollowRow]:
        return self._many(
            _FOLLOW_SELECT + "WHERE feed_follows.user_id = ?", (str(user_id),), _follow_row
        )

    # posts

    def create_post(
        self,
        id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        title: str,
        url: str,
        description: str | None,
        published_at: datetime | None,
        feed_id: uuid.UUID,
    ) -> Post:
        self._execute(
            f"INSERT INTO posts ({_POST_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(id),
                _encode_time(created_at),
                _encode_time(updated_at),
                title,
                url,
                description,
                _encode_time(published_at),
                str(feed_id),
            ),
        )
        return self._one(f"SELECT {_POST_COLUMNS} FROM posts WHERE id = ?", (str(id),), _post)

    def get_posts_for_user(self, user_id: uuid.UUID, limit: int) -> list[Post]:
        """Return the newest posts of the feeds the user follows; undated posts come first."""
        if limit < 0:
            raise DatabaseError("LIMIT must not be negative")
        return self._many(
            f"SELECT {_POST_COLUMNS} FROM posts "
            "WHERE feed_id IN (SELECT feed_id FROM feed_follows WHERE user_id = ?) "
            "ORDER BY published_at IS NULL DESC, published_at DESC "
            "LIMIT ?",
            (str(user_id), limit),
            _post,
        )


def _database_path(url: str) -> str:
    if "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    if scheme != "sqlite":
        raise DatabaseError(f"unsupported database url: {url}")
    if not rest:
        return ":memory:"
    return rest[1:] if rest.startswith("/") else rest


def connect(url: str) -> Queries:
    """Open the database at ``url`` (a path or ``sqlite://`` URL) and create its tables."""
    path = _database_path(url)
    try:
        conn = sqlite3.connect(path, isolation_level=None)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.executescript(_SCHEMA)
    except sqlite3.Error as exc:
        raise DatabaseError(f"error connecting to db: {exc}") from exc
    return Queries(conn)
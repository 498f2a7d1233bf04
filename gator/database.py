"""SQLite storage for users, feeds, feed follows and posts."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, List, Optional

SCHEMA = """
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

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


class DatabaseError(Exception):
    """A query failed."""


class NotFoundError(DatabaseError):
    """A query that should return one row returned none."""


class DuplicateError(DatabaseError):
    """An insert broke a uniqueness constraint."""


@dataclass(frozen=True)
class User:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str


@dataclass(frozen=True)
class Feed:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: uuid.UUID
    last_fetched_at: Optional[datetime]


@dataclass(frozen=True)
class FeedFollow:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID


@dataclass(frozen=True)
class FeedFollowRow(FeedFollow):
    """A feed follow together with the names of its feed and user."""

    feed_name: str
    user_name: str


@dataclass(frozen=True)
class Post:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    description: Optional[str]
    published_at: Optional[datetime]
    feed_id: uuid.UUID


@dataclass(frozen=True)
class PostRow(Post):
    """A post together with the name of its feed."""

    feed_name: str


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_db(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    else:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(_TIMESTAMP_FORMAT)


def _from_db(text: Optional[str]) -> Optional[datetime]:
    return None if text is None else datetime.fromisoformat(text)


def _user(row: sqlite3.Row) -> User:
    return User(
        id=uuid.UUID(row["id"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        name=row["name"],
    )


def _feed(row: sqlite3.Row) -> Feed:
    return Feed(
        id=uuid.UUID(row["id"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        name=row["name"],
        url=row["url"],
        user_id=uuid.UUID(row["user_id"]),
        last_fetched_at=_from_db(row["last_fetched_at"]),
    )


def _feed_follow_row(row: sqlite3.Row) -> FeedFollowRow:
    return FeedFollowRow(
        id=uuid.UUID(row["id"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        user_id=uuid.UUID(row["user_id"]),
        feed_id=uuid.UUID(row["feed_id"]),
        feed_name=row["feed_name"],
        user_name=row["user_name"],
    )


def _post_fields(row: sqlite3.Row) -> dict:
    return dict(
        id=uuid.UUID(row["id"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        title=row["title"],
        url=row["url"],
        description=row["description"],
        published_at=_from_db(row["published_at"]),
        feed_id=uuid.UUID(row["feed_id"]),
    )


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except sqlite3.IntegrityError as exc:
        if "UNIQUE" in str(exc):
            raise DuplicateError(str(exc)) from exc
        raise DatabaseError(str(exc)) from exc
    except sqlite3.OperationalError as exc:
        raise DatabaseError(str(exc)) from exc


_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"
_USER_COLUMNS = "id, created_at, updated_at, name"
_FOLLOW_SELECT = """
SELECT feed_follows.id, feed_follows.created_at, feed_follows.updated_at,
       feed_follows.user_id, feed_follows.feed_id,
       feeds.name AS feed_name, users.name AS user_name
FROM feed_follows
INNER JOIN feeds ON feed_follows.feed_id = feeds.id
INNER JOIN users ON feed_follows.user_id = users.id
"""


class Database:
    """Queries over a SQLite connection."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")

    def create_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        with _translate_errors():
            self._conn.executescript(SCHEMA)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _write(self, sql: str, params: tuple = ()) -> None:
        with _translate_errors(), self._conn:
            self._conn.execute(sql, params)

    def _one(self, sql: str, params: tuple, what: str) -> sqlite3.Row:
        with _translate_errors():
            row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise NotFoundError(f"{what} not found")
        return row

    def _many(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with _translate_errors():
            return self._conn.execute(sql, params).fetchall()

    # users

    def create_user(self, name: str) -> User:
        now = _to_db(_now())
        user_id = str(uuid.uuid4())
        self._write(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (user_id, now, now, name),
        )
        return self.get_user_by_id(uuid.UUID(user_id))

    def delete_users(self) -> None:
        """Delete every user, and through cascades everything they own."""
        self._write("DELETE FROM users")

    def get_user(self, name: str) -> User:
        row = self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE name = ?", (name,), f"user {name!r}"
        )
        return _user(row)

    def get_user_by_id(self, user_id: uuid.UUID) -> User:
        row = self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?",
            (str(user_id),),
            f"user {user_id}",
        )
        return _user(row)

    def get_users(self) -> List[User]:
        return [_user(row) for row in self._many(f"SELECT {_USER_COLUMNS} FROM users")]

    # feeds

    def create_feed(self, name: str, url: str, user_id: uuid.UUID) -> Feed:
        now = _to_db(_now())
        feed_id = str(uuid.uuid4())
        self._write(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (feed_id, now, now, name, url, str(user_id)),
        )
        row = self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (feed_id,), "feed"
        )
        return _feed(row)

    def get_feed_by_url(self, url: str) -> Feed:
        row = self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,), f"feed {url!r}"
        )
        return _feed(row)

    def get_feeds(self) -> List[Feed]:
        return [_feed(row) for row in self._many(f"SELECT {_FEED_COLUMNS} FROM feeds")]

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed never fetched, or else fetched longest ago."""
        row = self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds "
            "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC LIMIT 1",
            (),
            "feed to fetch",
        )
        return _feed(row)

    def mark_feed_fetched(self, feed_id: uuid.UUID) -> Feed:
        now = _to_db(_now())
        self._write(
            "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (now, now, str(feed_id)),
        )
        row = self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?",
            (str(feed_id),),
            f"feed {feed_id}",
        )
        return _feed(row)

    # feed follows

    def create_feed_follow(self, user_id: uuid.UUID, feed_id: uuid.UUID) -> FeedFollowRow:
        now = _to_db(_now())
        follow_id = str(uuid.uuid4())
        self._write(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (follow_id, now, now, str(user_id), str(feed_id)),
        )
        row = self._one(
            _FOLLOW_SELECT + "WHERE feed_follows.id = ?", (follow_id,), "feed follow"
        )
        return _feed_follow_row(row)

    def delete_feed_follow(self, user_id: uuid.UUID, feed_id: uuid.UUID) -> None:
        self._write(
            "DELETE FROM feed_follows WHERE feed_id = ? AND user_id = ?",
            (str(feed_id), str(user_id)),
        )

    def get_feed_follows_for_user(self, user_id: uuid.UUID) -> List[FeedFollowRow]:
        rows = self._many(
            _FOLLOW_SELECT + "WHERE feed_follows.user_id = ?", (str(user_id),)
        )
        return [_feed_follow_row(row) for row in rows]

    # posts

    def create_post(
        self,
        feed_id: uuid.UUID,
        title: str,
        url: str,
        description: Optional[str],
        published_at: Optional[datetime],
    ) -> Post:
        now = _to_db(_now())
        post_id = str(uuid.uuid4())
        self._write(
            "INSERT INTO posts (id, created_at, updated_at, title, url, description, "
            "published_at, feed_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (post_id, now, now, title, url, description, _to_db(published_at), str(feed_id)),
        )
        row = self._one("SELECT * FROM posts WHERE id = ?", (post_id,), "post")
        return Post(**_post_fields(row))

    def get_posts_for_user(self, user_id: uuid.UUID, limit: int) -> List[PostRow]:
        """Return the newest posts from feeds the user follows, undated ones first."""
        if limit < 0:
            raise DatabaseError("LIMIT must not be negative")
        rows = self._many(
            "SELECT posts.*, feeds.name AS feed_name FROM posts "
            "JOIN feed_follows ON feed_follows.feed_id = posts.feed_id "
            "JOIN feeds ON posts.feed_id = feeds.id "
            "WHERE feed_follows.user_id = ? "
            "ORDER BY posts.published_at IS NULL DESC, posts.published_at DESC "
            "LIMIT ?",
            (str(user_id), limit),
        )
        return [PostRow(**_post_fields(row), feed_name=row["feed_name"]) for row in rows]


def connect(url: str) -> Database:
    """Open the database at ``url`` (a path or ``sqlite://`` URL) with its schema."""
    target = url
    for prefix in ("sqlite:///", "sqlite://"):
        if url.startswith(prefix):
            target = url[len(prefix):] or ":memory:"
            break
    db = Database(sqlite3.connect(target))
    db.create_schema()
    return db
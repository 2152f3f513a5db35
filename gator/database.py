"""SQLite storage for users, feeds, follows and posts."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional

from .models import Feed, FeedFollowRow, Post, User


class DatabaseError(Exception):
    """A query failed."""


class UniqueViolation(DatabaseError):
    """An insert broke a unique constraint."""


class NotFound(DatabaseError):
    """A query that expects one row found none."""


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
_POST_COLUMNS = (
    "posts.id, posts.created_at, posts.updated_at, posts.title, posts.url, "
    "posts.description, posts.published_at, posts.feed_id"
)
_FOLLOW_ROW_QUERY = """
SELECT feed_follows.id, feed_follows.created_at, feed_follows.updated_at,
       feed_follows.user_id, feed_follows.feed_id,
       feeds.name AS feed_name, users.name AS user_name
FROM feed_follows
INNER JOIN users ON feed_follows.user_id = users.id
INNER JOIN feeds ON feed_follows.feed_id = feeds.id
"""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _encode_time(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _decode_time(value: Optional[str]) -> Optional[datetime]:
    return None if value is None else datetime.fromisoformat(value)


def _user(row) -> User:
    return User(
        id=uuid.UUID(row[0]),
        created_at=_decode_time(row[1]),
        updated_at=_decode_time(row[2]),
        name=row[3],
    )


def _feed(row) -> Feed:
    return Feed(
        id=uuid.UUID(row[0]),
        created_at=_decode_time(row[1]),
        updated_at=_decode_time(row[2]),
        name=row[3],
        url=row[4],
        user_id=uuid.UUID(row[5]),
        last_fetched_at=_decode_time(row[6]),
    )


def _post(row) -> Post:
    return Post(
        id=uuid.UUID(row[0]),
        created_at=_decode_time(row[1]),
        updated_at=_decode_time(row[2]),
        title=row[3],
        url=row[4],
        description=row[5],
        published_at=_decode_time(row[6]),
        feed_id=uuid.UUID(row[7]),
    )


def _follow_row(row) -> FeedFollowRow:
    return FeedFollowRow(
        id=uuid.UUID(row[0]),
        created_at=_decode_time(row[1]),
        updated_at=_decode_time(row[2]),
        user_id=uuid.UUID(row[3]),
        feed_id=uuid.UUID(row[4]),
        feed_name=row[5],
        user_name=row[6],
    )


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except sqlite3.IntegrityError as exc:
        message = str(exc)
        if "UNIQUE constraint" in message:
            raise UniqueViolation(f"unique constraint violated: {message}") from exc
        raise DatabaseError(message) from exc
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


class Queries:
    """Typed queries over an SQLite connection."""

    def __init__(
        self,
        connection: sqlite3.Connection,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        connection.isolation_level = None
        connection.execute("PRAGMA foreign_keys = ON")
        self._conn = connection
        self._clock = clock or _utc_now
        self._in_transaction = False

    def _execute(self, sql: str, params=()) -> sqlite3.Cursor:
        with _translate_errors():
            return self._conn.execute(sql, params)

    def _one(self, sql: str, params, convert):
        row = self._execute(sql, params).fetchone()
        if row is None:
            raise NotFound("no rows in result set")
        return convert(row)

    def _many(self, sql: str, params, convert) -> list:
        return [convert(row) for row in self._execute(sql, params).fetchall()]

    def create_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        with _translate_errors():
            self._conn.executescript(_SCHEMA)

    @contextmanager
    def transaction(self) -> Iterator["Queries"]:
        """Run the enclosed queries atomically; roll back on an exception."""
        if self._in_transaction:
            raise DatabaseError("a transaction is already in progress")
        self._execute("BEGIN")
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        else:
            self._execute("COMMIT")
        finally:
            self._in_transaction = False

    # users

    def create_user(self, name: str) -> User:
        now = _encode_time(self._clock())
        return self._one(
            f"INSERT INTO users ({_USER_COLUMNS}) VALUES (?, ?, ?, ?) "
            f"RETURNING {_USER_COLUMNS}",
            (str(uuid.uuid4()), now, now, name),
            _user,
        )

    def get_user(self, name: str) -> User:
        return self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE name = ?", (name,), _user
        )

    def get_users(self) -> list[User]:
        return self._many(f"SELECT {_USER_COLUMNS} FROM users", (), _user)

    def get_user_by_id(self, user_id: uuid.UUID) -> User:
        return self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (str(user_id),), _user
        )

    def reset(self) -> None:
        """Delete every user, and with them everything they own."""
        self._execute("DELETE FROM users")

    # feeds

    def create_feed(self, name: str, url: str, user_id: uuid.UUID) -> Feed:
        now = _encode_time(self._clock())
        return self._one(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
            f"VALUES (?, ?, ?, ?, ?, ?) RETURNING {_FEED_COLUMNS}",
            (str(uuid.uuid4()), now, now, name, url, str(user_id)),
            _feed,
        )

    def get_feed(self, feed_id: uuid.UUID) -> Feed:
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(feed_id),), _feed
        )

    def get_feed_from_url(self, url: str) -> Feed:
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,), _feed
        )

    def get_feeds(self) -> list[Feed]:
        return self._many(f"SELECT {_FEED_COLUMNS} FROM feeds", (), _feed)

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed fetched longest ago, never-fetched feeds first."""
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds "
            "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC LIMIT 1",
            (),
            _feed,
        )

    def mark_feed_fetched(self, feed_id: uuid.UUID) -> None:
        now = _encode_time(self._clock())
        self._execute(
            "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (now, now, str(feed_id)),
        )

    # follows

    def create_feed_follow(self, user_id: uuid.UUID, feed_id: uuid.UUID) -> FeedFollowRow:
        follow_id = str(uuid.uuid4())
        now = _encode_time(self._clock())
        self._execute(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (follow_id, now, now, str(user_id), str(feed_id)),
        )
        return self._one(
            _FOLLOW_ROW_QUERY + "WHERE feed_follows.id = ?", (follow_id,), _follow_row
        )

    def get_feed_follows_for_user(self, user_id: uuid.UUID) -> list[FeedFollowRow]:
        return self._many(
            _FOLLOW_ROW_QUERY + "WHERE users.id = ? ORDER BY feed_follows.created_at",
            (str(user_id),),
            _follow_row,
        )

    def unfollow(self, user_id: uuid.UUID, feed_id: uuid.UUID) -> None:
        self._execute(
            "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = ?",
            (str(user_id), str(feed_id)),
        )

    # posts

    def create_post(
        self,
        title: str,
        url: str,
        description: Optional[str],
        published_at: Optional[datetime],
        feed_id: uuid.UUID,
    ) -> Post:
        now = _encode_time(self._clock())
        return self._one(
            "INSERT INTO posts (id, created_at, updated_at, title, url, description, "
            "published_at, feed_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
            "RETURNING id, created_at, updated_at, title, url, description, "
            "published_at, feed_id",
            (
                str(uuid.uuid4()),
                now,
                now,
                title,
                url,
                description,
                _encode_time(published_at),
                str(feed_id),
            ),
            _post,
        )

    def get_posts_for_user(self, user_id: uuid.UUID, limit: int) -> list[Post]:
        """Return the newest posts from the feeds *user_id* follows."""
        if limit < 0:
            raise ValueError("limit must not be negative")
        return self._many(
            f"SELECT {_POST_COLUMNS} FROM posts "
            "INNER JOIN feed_follows ON posts.feed_id = feed_follows.feed_id "
            "WHERE feed_follows.user_id = ? "
            "ORDER BY posts.updated_at DESC LIMIT ?",
            (str(user_id), limit),
            _post,
        )


def connect(path: str) -> Queries:
    """Open the database at *path* and make sure its tables exist."""
    try:
        connection = sqlite3.connect(path)
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc
    queries = Queries(connection)
    queries.create_schema()
    return queries
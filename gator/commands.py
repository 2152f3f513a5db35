"""Command registry and the handlers behind each command."""

from __future__ import annotations

import functools
import re
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable

from .config import Config
from .database import DatabaseError, NotFound, Queries
from .feed import RSSFeed, fetch_feed, scrape_feeds
from .models import User


class CommandError(Exception):
    """A command was given bad arguments or could not be run."""


@dataclass
class State:
    """What every command handler works with."""

    config: Config
    db: Queries
    fetch: Callable[[str], RSSFeed] = fetch_feed
    sleep: Callable[[float], None] = time.sleep


@dataclass
class Command:
    name: str
    args: list[str] = field(default_factory=list)


Handler = Callable[[State, Command], None]
LoggedInHandler = Callable[[State, Command, User], None]


@dataclass
class Commands:
    """Maps command names to their handlers."""

    handlers: dict[str, Handler] = field(default_factory=dict)

    def register(self, name: str, handler: Handler) -> None:
        self.handlers[name] = handler

    def run(self, state: State, cmd: Command) -> None:
        handler = self.handlers.get(cmd.name)
        if handler is None:
            raise CommandError("Command does not exist.")
        handler(state, cmd)


# durations

_NANOSECOND = 1
_MICROSECOND = 1000 * _NANOSECOND
_MILLISECOND = 1000 * _MICROSECOND
_SECOND = 1000 * _MILLISECOND
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE
_MAX_DURATION = 2**63 - 1

_UNITS = {
    "ns": _NANOSECOND,
    "us": _MICROSECOND,
    "µs": _MICROSECOND,
    "μs": _MICROSECOND,
    "ms": _MILLISECOND,
    "s": _SECOND,
    "m": _MINUTE,
    "h": _HOUR,
}

_NUMBER = re.compile(r"(\d*)(?:\.(\d*))?")
_UNIT = re.compile(r"[^\d.]*")


def _parse_duration_ns(text: str) -> int:
    rest = text
    negative = False
    if rest[:1] in ("+", "-"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return 0
    if not rest:
        raise ValueError(f'time: invalid duration "{text}"')
    total = 0
    while rest:
        number = _NUMBER.match(rest)
        whole, fraction = number.group(1), number.group(2)
        if not whole and not fraction:
            raise ValueError(f'time: invalid duration "{text}"')
        rest = rest[number.end():]
        unit = _UNIT.match(rest).group(0)
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        if unit not in _UNITS:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        rest = rest[len(unit):]
        scale = _UNITS[unit]
        value = int(whole or "0") * scale
        if fraction:
            value += int(fraction) * scale // 10 ** len(fraction)
        total += value
        if total > _MAX_DURATION:
            raise ValueError(f'time: invalid duration "{text}"')
    return -total if negative else total


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "1m30s" or "1.5h"."""
    ns = _parse_duration_ns(text)
    micros = abs(ns) // _MICROSECOND
    return timedelta(microseconds=-micros if ns < 0 else micros)


def _fraction(value: int, digits: int) -> str:
    text = f"{value:0{digits}d}".rstrip("0")
    return f".{text}" if text else ""


def _format_duration(ns: int) -> str:
    sign = "-" if ns < 0 else ""
    u = abs(ns)
    if u == 0:
        return "0s"
    if u < _SECOND:
        if u < _MICROSECOND:
            return f"{sign}{u}ns"
        if u < _MILLISECOND:
            return f"{sign}{u // _MICROSECOND}{_fraction(u % _MICROSECOND, 3)}µs"
        return f"{sign}{u // _MILLISECOND}{_fraction(u % _MILLISECOND, 6)}ms"
    seconds, frac = divmod(u, _SECOND)
    text = f"{seconds % 60}{_fraction(frac, 9)}s"
    minutes = seconds // 60
    if minutes:
        text = f"{minutes % 60}m{text}"
        hours = minutes // 60
        if hours:
            text = f"{hours}h{text}"
    return sign + text


# handlers

def middleware_logged_in(handler: LoggedInHandler) -> Handler:
    """Wrap *handler* so that it receives the current user."""

    @functools.wraps(handler)
    def wrapper(state: State, cmd: Command) -> None:
        user = state.db.get_user(state.config.current_user_name)
        handler(state, cmd, user)

    return wrapper


def handler_login(state: State, cmd: Command) -> None:
    if not cmd.args:
        raise CommandError("No username given.")
    username = cmd.args[0]
    try:
        user = state.db.get_user(username)
    except NotFound:
        raise SystemExit(1)
    if user.name != username:
        raise SystemExit(1)
    state.config.set_user(username)
    print(f"Username has been set to: {username}")


def handler_register(state: State, cmd: Command) -> None:
    if not cmd.args:
        raise CommandError("No username given. Cannot register.")
    username = cmd.args[0]
    user = state.db.create_user(username)
    state.config.set_user(username)
    print(
        f"User: {user.name} created.\nID: {user.id}\n"
        f"CreatedAT: {user.created_at}\nUpdatedAT: {user.updated_at}"
    )


def handler_agg(state: State, cmd: Command) -> None:
    """Scrape feeds forever, one every interval."""
    if len(cmd.args) != 1:
        raise CommandError("Wrong agrument given. Need time_between_reqs.")
    ns = _parse_duration_ns(cmd.args[0])
    if ns <= 0:
        raise CommandError("non-positive interval for agg")
    print(f"Collecting feeds every {_format_duration(ns)}")
    state.db.get_user(state.config.current_user_name)
    interval = ns / _SECOND
    while True:
        started = time.monotonic()
        try:
            scrape_feeds(state.db, state.fetch)
        except Exception as exc:
            print(f"Error {exc}")
        remaining = interval - (time.monotonic() - started)
        state.sleep(max(remaining, 0.0))


def handler_reset(state: State, cmd: Command) -> None:
    try:
        state.db.reset()
    except DatabaseError as exc:
        raise CommandError(f"Database not reset. Error: {exc}") from exc
    print("Table successfully reset.")


def handler_get_users(state: State, cmd: Command) -> None:
    for user in state.db.get_users():
        suffix = " (current)" if user.name == state.config.current_user_name else ""
        print(f"* {user.name}{suffix}")


def handler_add_feed(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 2:
        raise CommandError("No Feed-Name and/or url given.")
    name, url = cmd.args
    feed = state.db.create_feed(name, url, user.id)
    state.db.create_feed_follow(user.id, feed.id)
    print(
        f"ID: {feed.id}\nCreatedAT: {feed.created_at}\nUpdatedAT: {feed.updated_at}\n"
        f"Name: {feed.name}, URL: {feed.url}, UserID: {feed.user_id}"
    )


def handler_feeds(state: State, cmd: Command) -> None:
    for feed in state.db.get_feeds():
        creator = state.db.get_user_by_id(feed.user_id)
        print(f"Feed: {feed.name}\nURL: {feed.url}\nCreator: {creator.name}")


def handler_follow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError("Wrong argument given. Need URL.")
    feed = state.db.get_feed_from_url(cmd.args[0])
    follow = state.db.create_feed_follow(user.id, feed.id)
    print(f"Feed_Name: {follow.feed_name}\nUsername: {follow.user_name}")


def handler_following(state: State, cmd: Command, user: User) -> None:
    follows = state.db.get_feed_follows_for_user(user.id)
    print(f"User: {state.config.current_user_name}\nFollowing Feeds:")
    for follow in follows:
        print(f"- {follow.feed_name}")


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError("Wrong argument given. Need URL of Feed to unfollow.")
    feed = state.db.get_feed_from_url(cmd.args[0])
    state.db.unfollow(user.id, feed.id)


_INTEGER = re.compile(r"[+-]?[0-9]+")


def handler_browse(state: State, cmd: Command, user: User) -> None:
    limit = 2
    if len(cmd.args) == 1:
        text = cmd.args[0]
        if not _INTEGER.fullmatch(text):
            raise CommandError(f'invalid limit: parsing "{text}": invalid syntax')
        limit = int(text)
    posts = state.db.get_posts_for_user(user.id, limit)
    print(f"Posts for User: {user.name}:")
    for post in posts:
        print(f" - Title: {post.title}")
        print(f"- URL: {post.url}")
        print(f"- Description: {post.description or ''}")
        print(" --- ")
"""Fetching RSS feeds and storing their items as posts."""

from __future__ import annotations

import html
import logging
import re
import urllib.error
import urllib.request
import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator, Optional

from .database import DatabaseError, Queries, UniqueViolation
from .models import Post

logger = logging.getLogger(__name__)

USER_AGENT = "gator"

_RFC1123Z = re.compile(
    r"[A-Za-z]{3}, \d{2} [A-Za-z]{3} \d{4} \d{2}:\d{2}:\d{2} [+-]\d{4}"
)


@dataclass
class RSSItem:
    """One entry of a feed's channel."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """The channel of an RSS document and its items."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ElementTree.Element, name: str) -> Iterator[ElementTree.Element]:
    return (child for child in element if _local_name(child.tag) == name)


def _direct_text(element: ElementTree.Element) -> str:
    parts = [element.text or ""]
    parts.extend(child.tail or "" for child in element)
    return "".join(parts)


def _last_text(element: ElementTree.Element, name: str) -> str:
    value = ""
    for child in _children(element, name):
        value = _direct_text(child)
    return value


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document; titles and descriptions have HTML entities decoded."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    try:
        root = ElementTree.fromstring(data)
    except ElementTree.ParseError as exc:
        raise ValueError(f"invalid feed: {exc}") from exc

    feed = RSSFeed()
    for channel in _children(root, "channel"):
        feed.title = html.unescape(_last_text(channel, "title"))
        feed.link = _last_text(channel, "link")
        feed.description = html.unescape(_last_text(channel, "description"))
        feed.items.extend(
            RSSItem(
                title=html.unescape(_last_text(item, "title")),
                link=_last_text(item, "link"),
                description=html.unescape(_last_text(item, "description")),
                pub_date=_last_text(item, "pubDate"),
            )
            for item in _children(channel, "item")
        )
    return feed


def parse_pub_date(text: str) -> Optional[datetime]:
    """Parse an RFC 1123 date with numeric zone, or return None."""
    if not _RFC1123Z.fullmatch(text):
        return None
    try:
        return datetime.strptime(text, "%a, %d %b %Y %H:%M:%S %z")
    except ValueError:
        return None


def fetch_feed(url: str, timeout: Optional[float] = None) -> RSSFeed:
    """Download and parse the feed at *url*."""
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    options = {} if timeout is None else {"timeout": timeout}
    try:
        with urllib.request.urlopen(request, **options) as response:
            body = response.read()
    except urllib.error.HTTPError as exc:
        body = exc.read()
    return parse_feed(body)


def scrape_feeds(
    queries: Queries, fetch: Callable[[str], RSSFeed] = fetch_feed
) -> list[Post]:
    """Fetch the feed due next and store its new items; return the posts created."""
    next_feed = queries.get_next_feed_to_fetch()
    queries.mark_feed_fetched(next_feed.id)
    feed = fetch(next_feed.url)
    print("Scanning for Feed...")
    created: list[Post] = []
    for item in feed.items:
        try:
            post = queries.create_post(
                title=item.title,
                url=item.link,
                description=item.description,
                published_at=parse_pub_date(item.pub_date),
                feed_id=next_feed.id,
            )
        except UniqueViolation:
            continue
        except DatabaseError as exc:
            logger.error("Error: %s", exc)
            continue
        created.append(post)
    return created
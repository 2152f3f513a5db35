import threading
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from gator.database import NotFound, connect
from gator.feed import RSSFeed, RSSItem, fetch_feed, parse_feed, parse_pub_date, scrape_feeds

SAMPLE = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel>
<title>Example &amp;amp; Co</title>
<link>https://example.com/</link>
<description>News</description>
<item><title>First</title><link>https://example.com/1</link>
<description>One &amp;lt;b&amp;gt;</description>
<pubDate>Mon, 02 Jan 2006 15:04:05 -0700</pubDate></item>
<item><title>Second</title><link>https://example.com/2</link>
<description>Two</description><pubDate>not a date</pubDate></item>
</channel></rss>"""


def test_parse_feed_channel_fields():
    feed = parse_feed(SAMPLE)
    assert feed.title == "Example & Co"
    assert feed.link == "https://example.com/"
    assert feed.description == "News"


def test_parse_feed_items():
    feed = parse_feed(SAMPLE)
    assert [item.title for item in feed.items] == ["First", "Second"]
    assert feed.items[0].description == "One <b>"
    assert feed.items[0].pub_date == "Mon, 02 Jan 2006 15:04:05 -0700"
    assert feed.items[1].link == "https://example.com/2"


def test_parse_feed_accepts_str():
    assert parse_feed(SAMPLE.decode("utf-8")) == parse_feed(SAMPLE)


def test_parse_feed_without_channel_is_empty():
    assert parse_feed(b"<rss></rss>") == RSSFeed()


def test_parse_feed_rejects_malformed_xml():
    with pytest.raises(ValueError):
        parse_feed(b"<rss><channel>")


def test_parse_pub_date_rfc1123z():
    parsed = parse_pub_date("Mon, 02 Jan 2006 15:04:05 -0700")
    assert parsed == datetime(2006, 1, 2, 15, 4, 5, tzinfo=timezone(timedelta(hours=-7)))


@pytest.mark.parametrize("text", ["", "not a date", "2006-01-02T15:04:05Z", "Mon, 02 Jan 2006 15:04:05 MST"])
def test_parse_pub_date_invalid(text):
    assert parse_pub_date(text) is None


@pytest.fixture
def rss_server():
    seen = {}

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            seen["agent"] = self.headers.get("User-Agent")
            self.send_response(200)
            self.send_header("Content-Type", "application/rss+xml")
            self.end_headers()
            self.wfile.write(SAMPLE)

        def log_message(self, *args):
            pass

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/feed", seen
    server.shutdown()
    server.server_close()


def test_fetch_feed_over_http(rss_server):
    url, seen = rss_server
    feed = fetch_feed(url, timeout=5)
    assert feed == parse_feed(SAMPLE)
    assert seen["agent"] == "gator"


@pytest.fixture
def queries():
    return connect(":memory:")


def _fake_fetch(feed):
    calls = []

    def fetch(url):
        calls.append(url)
        return feed

    return fetch, calls


def test_scrape_feeds_creates_posts(queries, capsys):
    user = queries.create_user("alice")
    stored = queries.create_feed("Example", "https://example.com/rss", user.id)
    queries.create_feed_follow(user.id, stored.id)
    fetch, calls = _fake_fetch(parse_feed(SAMPLE))

    created = scrape_feeds(queries, fetch)

    assert calls == ["https://example.com/rss"]
    assert [post.url for post in created] == ["https://example.com/1", "https://example.com/2"]
    assert created[0].published_at == parse_pub_date("Mon, 02 Jan 2006 15:04:05 -0700")
    assert created[1].published_at is None
    assert created[1].description == "Two"
    assert "Scanning for Feed..." in capsys.readouterr().out
    assert queries.get_feed(stored.id).last_fetched_at is not None
    assert len(queries.get_posts_for_user(user.id, 10)) == 2


def test_scrape_feeds_skips_duplicates(queries):
    user = queries.create_user("alice")
    stored = queries.create_feed("Example", "https://example.com/rss", user.id)
    queries.create_feed_follow(user.id, stored.id)
    fetch, _ = _fake_fetch(parse_feed(SAMPLE))

    scrape_feeds(queries, fetch)
    again = scrape_feeds(queries, fetch)

    assert again == []
    assert len(queries.get_posts_for_user(user.id, 10)) == 2


def test_scrape_feeds_rotates_through_feeds(queries):
    user = queries.create_user("alice")
    queries.create_feed("One", "https://example.com/a", user.id)
    queries.create_feed("Two", "https://example.com/b", user.id)
    fetch, calls = _fake_fetch(RSSFeed(items=[RSSItem(title="x", link="https://example.com/x")]))

    scrape_feeds(queries, fetch)
    scrape_feeds(queries, fetch)

    assert sorted(calls) == ["https://example.com/a", "https://example.com/b"]


def test_scrape_feeds_without_feeds(queries):
    fetch, calls = _fake_fetch(RSSFeed())
    with pytest.raises(NotFound):
        scrape_feeds(queries, fetch)
    assert calls == []
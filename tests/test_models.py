import dataclasses
import uuid
from datetime import datetime, timezone

import pytest

from gator.models import Feed, FeedFollow, FeedFollowRow, Post, User

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_user(name="alice", user_id=None):
    return User(id=user_id or uuid.uuid4(), created_at=NOW, updated_at=NOW, name=name)


def test_user_equality_by_value():
    uid = uuid.uuid4()
    assert make_user("alice", uid) == make_user("alice", uid)
    assert make_user("alice", uid) != make_user("bob", uid)


def test_user_is_frozen():
    user = make_user()
    with pytest.raises(dataclasses.FrozenInstanceError):
        user.name = "mallory"
    assert user.name == "alice"


def test_feed_last_fetched_defaults_to_none():
    feed = Feed(
        id=uuid.uuid4(),
        created_at=NOW,
        updated_at=NOW,
        name="blog",
        url="https://blog.example.com/rss",
        user_id=uuid.uuid4(),
    )
    assert feed.last_fetched_at is None
    fetched = dataclasses.replace(feed, last_fetched_at=NOW)
    assert fetched.last_fetched_at == NOW
    assert fetched.url == feed.url


def test_models_are_hashable_and_deduplicate():
    uid = uuid.uuid4()
    follows = {
        FeedFollow(id=uid, created_at=NOW, updated_at=NOW, user_id=uid, feed_id=uid),
        FeedFollow(id=uid, created_at=NOW, updated_at=NOW, user_id=uid, feed_id=uid),
    }
    assert len(follows) == 1


def test_post_fields_keep_optional_values():
    post = Post(
        id=uuid.uuid4(),
        created_at=NOW,
        updated_at=NOW,
        title="Hello",
        url="https://blog.example.com/hello",
        description=None,
        published_at=None,
        feed_id=uuid.uuid4(),
    )
    assert post.description is None
    assert post.published_at is None
    assert dataclasses.astuple(post)[3:5] == ("Hello", "https://blog.example.com/hello")


def test_feed_follow_row_field_order():
    follow_id = uuid.uuid4()
    user_id = uuid.uuid4()
    feed_id = uuid.uuid4()
    row = FeedFollowRow(follow_id, NOW, NOW, user_id, feed_id, "blog", "alice")
    assert row.id == follow_id
    assert row.user_id == user_id
    assert row.feed_id == feed_id
    assert row.feed_name == "blog"
    assert row.user_name == "alice"
    assert dataclasses.astuple(row) == (follow_id, NOW, NOW, user_id, feed_id, "blog", "alice")
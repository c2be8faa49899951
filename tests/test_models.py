import dataclasses
import uuid
from datetime import datetime, timezone

import pytest

from gator.models import Feed, FeedFollow, FeedFollowRow, Post, User

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_user_equality_by_value():
    uid = uuid.uuid4()
    assert User(uid, T0, T0, "alice") == User(uid, T0, T0, "alice")
    assert User(uid, T0, T0, "alice") != User(uid, T0, T0, "bob")


def test_feed_last_fetched_defaults_to_none():
    feed = Feed(uuid.uuid4(), T0, T0, "news", "https://news.example.com/rss", uuid.uuid4())
    assert feed.last_fetched_at is None


def test_records_are_frozen():
    user = User(uuid.uuid4(), T0, T0, "alice")
    with pytest.raises(dataclasses.FrozenInstanceError):
        user.name = "bob"
    assert user.name == "alice"


def test_feed_follow_row_carries_names():
    row = FeedFollowRow(uuid.uuid4(), T0, T0, uuid.uuid4(), uuid.uuid4(), "news", "alice")
    assert (row.feed_name, row.user_name) == ("news", "alice")


def test_feed_follow_replace():
    follow = FeedFollow(uuid.uuid4(), T0, T0, uuid.uuid4(), uuid.uuid4())
    other_feed = uuid.uuid4()
    changed = dataclasses.replace(follow, feed_id=other_feed)
    assert changed.feed_id == other_feed
    assert changed.user_id == follow.user_id


def test_post_optional_fields():
    post = Post(uuid.uuid4(), T0, T0, "title", "https://example.com/a", None, None, uuid.uuid4())
    assert post.description is None
    assert post.published_at is None
    assert post.title == "title"
import sqlite3
import time
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from gator.database import (
    Database,
    DatabaseError,
    DuplicateError,
    NotFoundError,
    connect,
)


@pytest.fixture
def db():
    database = connect(":memory:")
    yield database
    database.close()


@pytest.fixture
def user(db):
    return db.create_user("alice")


@pytest.fixture
def feed(db, user):
    return db.create_feed("Blog", "https://blog.example.com/rss", user.id)


def test_create_and_get_user(db):
    created = db.create_user("alice")
    assert created.name == "alice"
    assert db.get_user("alice") == created
    assert db.get_user_by_id(created.id) == created
    assert created.created_at.tzinfo is not None


def test_duplicate_user_name_raises(db, user):
    with pytest.raises(DuplicateError):
        db.create_user(user.name)


def test_missing_user_raises_not_found(db):
    with pytest.raises(NotFoundError):
        db.get_user("nobody")
    with pytest.raises(NotFoundError):
        db.get_user_by_id(uuid.uuid4())


def test_get_users_lists_all(db):
    db.create_user("a")
    db.create_user("b")
    assert {u.name for u in db.get_users()} == {"a", "b"}


def test_delete_users_cascades(db, user, feed):
    db.create_feed_follow(user.id, feed.id)
    db.delete_users()
    assert db.get_users() == []
    assert db.get_feeds() == []
    assert db.get_feed_follows_for_user(user.id) == []


def test_create_feed_and_lookup(db, user, feed):
    assert feed.user_id == user.id
    assert feed.last_fetched_at is None
    assert db.get_feed_by_url(feed.url) == feed
    assert db.get_feeds() == [feed]


def test_duplicate_feed_url_raises(db, user, feed):
    with pytest.raises(DuplicateError):
        db.create_feed("Other", feed.url, user.id)


def test_feed_for_unknown_user_raises(db):
    with pytest.raises(DatabaseError) as info:
        db.create_feed("X", "https://x.example.com", uuid.uuid4())
    assert not isinstance(info.value, DuplicateError)


def test_missing_feed_raises_not_found(db):
    with pytest.raises(NotFoundError):
        db.get_feed_by_url("https://none.example.com")
    with pytest.raises(NotFoundError):
        db.get_next_feed_to_fetch()
    with pytest.raises(NotFoundError):
        db.mark_feed_fetched(uuid.uuid4())


def test_next_feed_prefers_unfetched_then_oldest(db, user):
    first = db.create_feed("A", "https://a.example.com", user.id)
    second = db.create_feed("B", "https://b.example.com", user.id)
    marked = db.mark_feed_fetched(first.id)
    assert marked.last_fetched_at is not None
    assert db.get_next_feed_to_fetch().id == second.id
    time.sleep(0.02)
    db.mark_feed_fetched(second.id)
    assert db.get_next_feed_to_fetch().id == first.id


def test_mark_feed_fetched_updates_timestamp(db, feed):
    marked = db.mark_feed_fetched(feed.id)
    assert marked.updated_at >= feed.updated_at
    assert marked.last_fetched_at == marked.updated_at


def test_feed_follow_carries_names(db, user, feed):
    follow = db.create_feed_follow(user.id, feed.id)
    assert follow.user_name == user.name
    assert follow.feed_name == feed.name
    assert db.get_feed_follows_for_user(user.id) == [follow]


def test_duplicate_follow_raises(db, user, feed):
    db.create_feed_follow(user.id, feed.id)
    with pytest.raises(DuplicateError):
        db.create_feed_follow(user.id, feed.id)


def test_follow_unknown_feed_raises(db, user):
    with pytest.raises(DatabaseError):
        db.create_feed_follow(user.id, uuid.uuid4())


def test_delete_feed_follow(db, user, feed):
    db.create_feed_follow(user.id, feed.id)
    db.delete_feed_follow(user.id, feed.id)
    assert db.get_feed_follows_for_user(user.id) == []
    db.delete_feed_follow(user.id, feed.id)
    assert db.get_feed_follows_for_user(user.id) == []


def test_create_post_round_trips_times(db, feed):
    published = datetime(2024, 5, 1, 12, 30, tzinfo=timezone(timedelta(hours=2)))
    post = db.create_post(feed.id, "Hello", "https://blog.example.com/1", "Body", published)
    assert post.published_at == published
    assert post.description == "Body"
    assert post.feed_id == feed.id


def test_duplicate_post_url_raises(db, feed):
    db.create_post(feed.id, "One", "https://blog.example.com/1", None, None)
    with pytest.raises(DuplicateError):
        db.create_post(feed.id, "Two", "https://blog.example.com/1", None, None)


def test_posts_for_user_order_and_limit(db, user, feed):
    db.create_feed_follow(user.id, feed.id)
    older = datetime(2024, 1, 1, tzinfo=timezone.utc)
    newer = datetime(2024, 6, 1, tzinfo=timezone.utc)
    db.create_post(feed.id, "old", "https://blog.example.com/old", "d", older)
    db.create_post(feed.id, "new", "https://blog.example.com/new", "d", newer)
    db.create_post(feed.id, "undated", "https://blog.example.com/u", None, None)

    posts = db.get_posts_for_user(user.id, 10)
    assert [p.title for p in posts] == ["undated", "new", "old"]
    assert all(p.feed_name == feed.name for p in posts)
    assert [p.title for p in db.get_posts_for_user(user.id, 2)] == ["undated", "new"]


def test_posts_only_from_followed_feeds(db, user, feed):
    other = db.create_feed("Other", "https://other.example.com", user.id)
    db.create_feed_follow(user.id, feed.id)
    db.create_post(other.id, "hidden", "https://other.example.com/1", None, None)
    db.create_post(feed.id, "shown", "https://blog.example.com/1", None, None)
    assert [p.title for p in db.get_posts_for_user(user.id, 5)] == ["shown"]


def test_negative_limit_raises(db, user):
    with pytest.raises(DatabaseError):
        db.get_posts_for_user(user.id, -1)


def test_connect_with_sqlite_url(tmp_path):
    path = tmp_path / "feeds.db"
    with connect(f"sqlite:///{path}") as database:
        database.create_user("alice")
    with connect(str(path)) as database:
        assert [u.name for u in database.get_users()] == ["alice"]


def test_database_from_connection_and_close():
    database = Database(sqlite3.connect(":memory:"))
    database.create_schema()
    with database:
        assert database.get_users() == []
    with pytest.raises(sqlite3.ProgrammingError):
        database.get_users()
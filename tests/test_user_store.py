"""
Tests for the SQLite whitelist store.
"""

import sqlite3

import pytest

from ollamabot.telegram_bot import user_store
from ollamabot.telegram_bot.user_store import AuthStoreError, UserStore


@pytest.fixture
def store(tmp_path):
    s = UserStore(str(tmp_path / "nested" / "bot_users.db"))
    yield s
    s.close()


def test_creates_parent_directory(tmp_path):
    """Missing directories are created."""
    path = tmp_path / "a" / "b" / "users.db"
    UserStore(str(path)).close()
    assert path.exists()


def test_membership(store):
    """Added users become members."""
    assert store.is_member(1) is False
    store.add_user(1)
    assert store.is_member(1) is True


def test_add_user_is_upsert(store, monkeypatch):
    """Re-adding keeps created_at and bumps last_activity."""
    monkeypatch.setattr(user_store, "_utcnow", lambda: "2024-01-01T00:00:00Z")
    store.add_user(7)
    monkeypatch.setattr(user_store, "_utcnow", lambda: "2024-06-01T00:00:00Z")
    store.add_user(7)

    [record] = store.list_users()
    assert record.created_at == "2024-01-01T00:00:00Z"
    assert record.last_activity == "2024-06-01T00:00:00Z"


def test_touch_updates_existing_only(store, monkeypatch):
    """Touch never inserts a row."""
    monkeypatch.setattr(user_store, "_utcnow", lambda: "2024-01-01T00:00:00Z")
    store.add_user(5)
    monkeypatch.setattr(user_store, "_utcnow", lambda: "2024-03-01T12:00:00Z")
    store.touch(5)
    store.touch(6)

    assert store.is_member(6) is False
    [record] = store.list_users()
    assert record.last_activity == "2024-03-01T12:00:00Z"


def test_list_ordered_by_creation(store, monkeypatch):
    """Users are listed oldest first."""
    for ts, uid in [("2024-01-03T00:00:00Z", 30), ("2024-01-01T00:00:00Z", 10), ("2024-01-02T00:00:00Z", 20)]:
        monkeypatch.setattr(user_store, "_utcnow", lambda ts=ts: ts)
        store.add_user(uid)

    assert [u.telegram_id for u in store.list_users()] == [10, 20, 30]
    assert [u.telegram_id for u in store.list_users(2)] == [10, 20]


def test_list_non_positive_limit_uses_default(store):
    """Zero limit falls back to the default."""
    for uid in range(3):
        store.add_user(uid)
    assert len(store.list_users(0)) == 3


def test_empty_list(store):
    """Empty table lists nothing."""
    assert store.list_users() == []


def test_errors_wrapped(store):
    """sqlite3 errors surface as AuthStoreError."""
    store.close()
    with pytest.raises(AuthStoreError):
        store.is_member(1)


def test_open_failure(tmp_path):
    """Unopenable path raises AuthStoreError."""
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    with pytest.raises(AuthStoreError):
        UserStore(str(blocker / "users.db"))


def test_schema(store):
    """Table columns match the original schema."""
    conn = sqlite3.connect(store.db_path)
    columns = [row[1] for row in conn.execute("PRAGMA table_info(users)")]
    conn.close()
    assert columns == ["telegram_id", "created_at", "last_activity"]

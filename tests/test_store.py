"""Tests for the SQLAlchemy capsule store."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from timecapsule.errors import DependencyFailure


def test_lookup_by_owner(store, make_user, make_capsule, clock):
    alice = make_user("alice")
    bob = make_user("bob")
    mine = make_capsule(alice, clock.now)
    make_capsule(bob, clock.now)

    assert [c.id for c in store.get_by_owner("alice")] == [mine.id]
    assert store.get_by_owner("nobody") == []


def test_before_and_after_split_at_the_boundary(store, make_user, make_capsule, clock):
    alice = make_user("alice")
    past = make_capsule(alice, clock.now - timedelta(seconds=1))
    exact = make_capsule(alice, clock.now)
    future = make_capsule(alice, clock.now + timedelta(seconds=1))
    make_capsule(alice, None)

    assert [c.id for c in store.get_by_owner_before("alice", clock.now)] == [past.id, exact.id]
    assert [c.id for c in store.get_by_owner_after("alice", clock.now)] == [future.id]


def test_due_excludes_unlocked_and_future(store, make_user, make_capsule, clock):
    owner = make_user()
    due = make_capsule(owner, clock.now - timedelta(minutes=1))
    make_capsule(owner, clock.now - timedelta(minutes=2), unlocked=True)
    make_capsule(owner, clock.now + timedelta(minutes=1))
    make_capsule(owner, None)

    assert [c.id for c in store.get_due(clock.now)] == [due.id]


def test_mark_unlocked_refuses_capsules_not_yet_due(store, make_user, make_capsule, clock):
    capsule = make_capsule(make_user(), clock.now + timedelta(seconds=30))
    assert store.mark_unlocked(capsule.id, clock.now) is False
    assert store.get_by_id(capsule.id).unlocked is False


def test_mark_unlocked_records_transition_time(store, make_user, make_capsule, clock):
    capsule = make_capsule(make_user(), clock.now - timedelta(seconds=30))
    assert store.mark_unlocked(capsule.id, clock.now) is True

    stored = store.get_by_id(capsule.id)
    assert stored.unlocked is True
    assert stored.unlocked_at == clock.now


def test_update_locked_writes_while_still_locked(store, make_user, make_capsule, clock):
    capsule = make_capsule(make_user(), clock.now + timedelta(days=1), message="old")
    assert store.update_locked(capsule.id, clock.now, message="new") is True
    assert store.get_by_id(capsule.id).message == "new"


def test_update_locked_refuses_due_and_unlocked_capsules(store, make_user, make_capsule, clock):
    owner = make_user()
    due = make_capsule(owner, clock.now, message="due")
    opened = make_capsule(owner, clock.now + timedelta(days=1), message="open", unlocked=True)

    assert store.update_locked(due.id, clock.now, message="x") is False
    assert store.update_locked(opened.id, clock.now, message="x") is False
    assert store.get_by_id(due.id).message == "due"
    assert store.get_by_id(opened.id).message == "open"


def test_unlock_time_round_trips(store, db, make_user, make_capsule):
    unlock_at = datetime(2031, 7, 14, 8, 15, 42)
    capsule = make_capsule(make_user(), unlock_at)
    db.expire_all()
    assert store.get_by_id(capsule.id).unlock_at == unlock_at


def test_save_updates_existing_row(store, make_user, make_capsule, clock):
    capsule = make_capsule(make_user(), clock.now)
    capsule.title = "renamed"
    store.save(capsule)
    assert [c.title for c in store.get_all()] == ["renamed"]


def test_delete(store, make_user, make_capsule, clock):
    capsule = make_capsule(make_user(), clock.now)
    store.delete(capsule)
    assert store.get_all() == []


def test_database_errors_become_dependency_failures(store, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(store.db, "execute", broken)
    with pytest.raises(DependencyFailure):
        store.get_all()
    with pytest.raises(DependencyFailure):
        store.mark_unlocked(1, datetime(2026, 1, 1))


def test_user_lookups(store, make_user):
    make_user("alice")
    make_user("bob", role="ADMIN")

    assert store.get_user_by_username("alice").email == "alice@example.com"
    assert store.get_user_by_email("bob@example.com").is_admin
    assert store.get_user_by_username("carol") is None
    assert [u.username for u in store.list_users()] == ["alice", "bob"]

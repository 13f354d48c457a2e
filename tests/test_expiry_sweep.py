"""Unit tests for auth/expiry.py -- sweep_expired().

Covers:
- expired ephemeral accounts are deleted and reported in discovery order
- standard accounts and unexpired ephemeral accounts are untouched
- a second pass over the same store reports nothing (no replay)
- overlapping passes that both saw the same account emit exactly one
  notification between them
- a failing delete is skipped without aborting the pass
- a failing scan raises PersistenceFailure
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from auth.errors import PersistenceFailure
from auth.expiry import sweep_expired
from auth.store import AccountStore


class _StaleScanStore:
    """Wraps a real store but answers scans with a snapshot taken earlier.

    Models a connection that scanned before another connection's deletes
    landed.
    """

    def __init__(self, store: AccountStore, snapshot: list) -> None:
        self._store = store
        self._snapshot = snapshot

    def scan_expired_ephemeral(self, now):
        return list(self._snapshot)

    def delete_by_username(self, username: str) -> bool:
        return self._store.delete_by_username(username)


class _FlakyDeleteStore(_StaleScanStore):
    def __init__(self, store: AccountStore, snapshot: list, fail_for: str) -> None:
        super().__init__(store, snapshot)
        self._fail_for = fail_for

    def delete_by_username(self, username: str) -> bool:
        if username == self._fail_for:
            raise PersistenceFailure("account delete failed")
        return super().delete_by_username(username)


class _BrokenScanStore:
    def scan_expired_ephemeral(self, now):
        raise PersistenceFailure("expiry scan failed")


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


def test_deletes_and_reports_in_order(store: AccountStore, ephemeral_account, now) -> None:
    store.insert(ephemeral_account("anon_b", now - timedelta(hours=1)))
    store.insert(ephemeral_account("anon_a", now - timedelta(days=3)))
    store.insert(ephemeral_account("anon_live", now + timedelta(days=10)))
    store.insert(ephemeral_account("regular", now - timedelta(days=40), is_ephemeral=False))

    notifications = sweep_expired(store, now)

    assert [n.username for n in notifications] == ["anon_a", "anon_b"]
    assert all(n.deleted_at == now for n in notifications)
    assert store.find_by_username("anon_a") is None
    assert store.find_by_username("anon_b") is None
    assert store.find_by_username("anon_live") is not None
    assert store.find_by_username("regular") is not None


def test_second_pass_reports_nothing(store: AccountStore, ephemeral_account, now) -> None:
    store.insert(ephemeral_account("anon_once", now - timedelta(minutes=1)))
    assert len(sweep_expired(store, now)) == 1
    assert sweep_expired(store, now) == []


def test_overlapping_passes_emit_exactly_once(store: AccountStore, ephemeral_account, now) -> None:
    store.insert(ephemeral_account("anon_race", now - timedelta(minutes=1)))
    # Both connections discover the account before either deletes it.
    snapshot_a = store.scan_expired_ephemeral(now)
    snapshot_b = store.scan_expired_ephemeral(now)

    first = sweep_expired(_StaleScanStore(store, snapshot_a), now)
    second = sweep_expired(_StaleScanStore(store, snapshot_b), now)

    usernames = [n.username for n in first + second]
    assert usernames == ["anon_race"]


def test_failed_delete_is_skipped(store: AccountStore, ephemeral_account, now) -> None:
    store.insert(ephemeral_account("anon_stuck", now - timedelta(days=2)))
    store.insert(ephemeral_account("anon_ok", now - timedelta(days=1)))
    snapshot = store.scan_expired_ephemeral(now)

    notifications = sweep_expired(_FlakyDeleteStore(store, snapshot, fail_for="anon_stuck"), now)

    assert [n.username for n in notifications] == ["anon_ok"]
    # Still there; the next pass picks it up.
    assert store.find_by_username("anon_stuck") is not None
    assert [n.username for n in sweep_expired(store, now)] == ["anon_stuck"]


def test_scan_failure_raises(now) -> None:
    with pytest.raises(PersistenceFailure):
        sweep_expired(_BrokenScanStore(), now)


def test_notification_json_shape(store: AccountStore, ephemeral_account, now) -> None:
    store.insert(ephemeral_account("anon_json", now - timedelta(seconds=1)))
    (notification,) = sweep_expired(store, now)
    payload = notification.to_dict()
    assert set(payload) == {"username", "deleted_at"}
    assert payload["username"] == "anon_json"
    assert datetime.fromisoformat(payload["deleted_at"]) == now

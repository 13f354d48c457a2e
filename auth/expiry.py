"""
auth/expiry.py -- Scan for expired ephemeral accounts and delete them.

sweep_expired() is one scan-and-delete pass. Every /ws/expiry connection runs
it on its own timer (api/notifier.py), so several passes can overlap and find
the same account. Notifications are therefore emitted only for deletions that
actually removed a row: delete_by_username() is atomic and reports whether
this call deleted it, and a pass whose delete found nothing stays silent.
Exactly one notification is produced per expired account, system-wide.

Per-record delete failures are skipped: the account is still expired on the
next pass and gets picked up then. A failed scan is raised to the caller.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime

from auth.errors import PersistenceFailure
from auth.models import ExpiryNotification
from auth.store import AccountStore

logger = logging.getLogger("fivechan.auth.expiry")


def sweep_expired(store: AccountStore, now: datetime) -> list[ExpiryNotification]:
    """Delete ephemeral accounts expired at `now`; return one notification per deletion.

    Notifications follow discovery order. Raises PersistenceFailure if the
    scan itself fails.
    """
    expired = store.scan_expired_ephemeral(now)
    notifications: list[ExpiryNotification] = []
    for account in expired:
        try:
            deleted = store.delete_by_username(account.username)
        except PersistenceFailure:
            logger.warning("Delete of expired account %s failed; retrying next scan", account.username, exc_info=True)
            continue
        if not deleted:
            # Another connection's sweep got there first.
            continue
        notifications.append(ExpiryNotification(username=account.username, deleted_at=now))
    if notifications:
        logger.info("Deleted %d expired ephemeral account(s)", len(notifications))
    return notifications

"""
api/notifier.py -- Per-connection expiry notification loop for /ws/expiry.

One ExpiryNotifier per accepted WebSocket. While ACTIVE, two tasks run:

  scan loop         -- every `interval` seconds, run sweep_expired() in the
                       threadpool and push each ExpiryNotification to the
                       client as JSON, in discovery order.
  disconnect watcher -- reads from the socket until the peer goes away.
                       Inbound messages carry no meaning and are dropped.

Both share one asyncio.Event as the cancellation token. Whichever side sees
the connection end first sets it; the scan loop waits on that event between
ticks and checks it again before every scan and every send, so nothing is
scanned, deleted or written after the peer is known to be gone. CLOSED is
terminal: a reconnecting client gets a fresh notifier with no memory.

Failure policy:
  send fails         -> CLOSED immediately, no retry.
  whole scan fails   -> one {"error": ...} message, loop continues next tick.
  single delete fails -> handled inside sweep_expired() (skipped, retried on
                         a later tick).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum

from fastapi import WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from auth.errors import PersistenceFailure
from auth.expiry import sweep_expired
from auth.store import AccountStore

logger = logging.getLogger("fivechan.api.notifier")

DEFAULT_SCAN_INTERVAL = 5.0
SCAN_ERROR_MESSAGE = {"error": "Failed to check expired accounts"}


class ConnectionState(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpiryNotifier:
    """Scan-and-notify loop bound to a single WebSocket connection."""

    def __init__(
        self,
        websocket: WebSocket,
        store: AccountStore,
        interval: float = DEFAULT_SCAN_INTERVAL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._websocket = websocket
        self._store = store
        self._interval = interval
        self._clock = clock
        self._closed = asyncio.Event()
        self.state = ConnectionState.ACTIVE

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        if not self._closed.is_set():
            self._closed.set()
            self.state = ConnectionState.CLOSED

    async def run(self) -> None:
        """Run until the connection closes. Always leaves the notifier CLOSED."""
        watcher = asyncio.create_task(self._watch_disconnect())
        try:
            while not self.closed:
                if await self._wait_for_tick():
                    break
                await self._tick()
        finally:
            self.close()
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher

    async def _wait_for_tick(self) -> bool:
        """Sleep one interval. Returns True if the connection closed meanwhile."""
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            return self.closed
        return True

    async def _tick(self) -> None:
        try:
            notifications = await run_in_threadpool(sweep_expired, self._store, self._clock())
        except PersistenceFailure:
            logger.warning("Expiry scan failed", exc_info=True)
            await self._send(SCAN_ERROR_MESSAGE)
            return

        for i, notification in enumerate(notifications):
            if self.closed:
                # Peer left mid-batch; the rest are not replayed to anyone.
                logger.info("Dropped %d undelivered expiry notification(s)", len(notifications) - i)
                return
            if not await self._send(notification.to_dict()):
                return

    async def _send(self, payload: dict) -> bool:
        if self.closed:
            return False
        try:
            await self._websocket.send_json(payload)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            logger.info("Expiry notification write failed, closing connection: %s", exc)
            self.close()
            return False
        return True

    async def _watch_disconnect(self) -> None:
        try:
            while not self.closed:
                message = await self._websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            logger.debug("Expiry connection read ended: %s", exc)
        finally:
            self.close()

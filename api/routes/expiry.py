"""
api/routes/expiry.py -- WebSocket endpoint for ephemeral account expiry.

Route:
  GET /ws/expiry  -- upgrade; the server pushes {"username", "deleted_at"}
                     for every ephemeral account this connection's scans
                     delete. No client-to-server messages are defined.

A plain HTTP GET on the same path (no upgrade headers) gets 426 Upgrade
Required from the companion HTTP route below.
"""

from __future__ import annotations

import contextlib
import logging

from fastapi import APIRouter, WebSocket
from fastapi.responses import JSONResponse
from starlette.websockets import WebSocketState

from api.models import ErrorResponse
from api.notifier import ExpiryNotifier

logger = logging.getLogger("fivechan.api.expiry")

router = APIRouter()


@router.websocket("/ws/expiry")
async def expiry_feed(websocket: WebSocket) -> None:
    await websocket.accept()
    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
    logger.info("Expiry feed connected: %s", client)

    notifier = ExpiryNotifier(
        websocket,
        websocket.app.state.account_store,
        interval=websocket.app.state.expiry_scan_interval,
    )
    try:
        await notifier.run()
    finally:
        if (
            websocket.client_state == WebSocketState.CONNECTED
            and websocket.application_state == WebSocketState.CONNECTED
        ):
            # The peer may vanish between the state check and the close frame.
            with contextlib.suppress(RuntimeError, OSError):
                await websocket.close()
        logger.info("Expiry feed closed: %s", client)


@router.get("/ws/expiry", include_in_schema=False)
def expiry_feed_requires_upgrade() -> JSONResponse:
    return JSONResponse(
        status_code=426,
        content=ErrorResponse(error="WebSocket upgrade required", code="upgrade_required").model_dump(),
        headers={"Upgrade": "websocket", "Connection": "Upgrade"},
    )

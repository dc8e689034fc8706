# routers/realtime.py

import asyncio
from typing import Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool

from core.change_feed import change_feed
from core.logging_config import logger
from core.permission_helpers import has_permission, is_admin
from core.supabase_client import get_supabase_client
from dependencies.auth import CurrentUser, resolve_user
from models.change import ChangeEvent
from models.enums import ChangeOperation

router = APIRouter(tags=["Realtime"])

# Seconds between checks for a closed socket while the feed is idle
POLL_INTERVAL = 1.0


def visible_to(event: ChangeEvent, user: CurrentUser) -> bool:
    """Private chat and profile rows only reach the people entitled to them."""
    if event.operation == ChangeOperation.RESYNC:
        return True

    if event.table == "messages":
        recipient = event.record.get("recipient_id")
        if recipient is None:
            return True
        return user.id in (str(recipient), str(event.record.get("profile_id")))

    if event.table == "profiles":
        return is_admin(user) or str(event.record.get("id")) == user.id

    return True


async def _authenticate(token: Optional[str]) -> CurrentUser:
    client = get_supabase_client()
    if not client or not token:
        raise HTTPException(401, "Missing token")
    return await run_in_threadpool(resolve_user, client, token)


@router.websocket("/realtime/ws")
async def realtime_stream(websocket: WebSocket, token: str = None, table: str = None):
    """
    Streams change events for the caller's building as JSON:
    ``{"operation", "table", "building_id", "record", "committed_at"}``.

    Connect with ``?token=<access token>`` and optionally ``&table=visitors``.
    A ``resync`` event means the client fell behind and should re-fetch.
    """
    try:
        user = await _authenticate(token)
    except HTTPException as e:
        logger.info(f"Realtime connection refused: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    if not user.building_id or not has_permission(user, "realtime:subscribe"):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    subscription = change_feed.subscribe(user.building_id, table)
    logger.info(f"Realtime subscriber {user.id} joined building {user.building_id} ({table or 'all tables'})")

    async def watch_disconnect():
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            subscription.close()

    watcher = asyncio.create_task(watch_disconnect())

    try:
        while not subscription.closed:
            event = await run_in_threadpool(subscription.get, POLL_INTERVAL)
            if event is None or not visible_to(event, user):
                continue
            await websocket.send_json(event.model_dump(mode="json"))
    except WebSocketDisconnect:
        pass
    finally:
        subscription.close()
        watcher.cancel()
        logger.info(f"Realtime subscriber {user.id} left building {user.building_id}")

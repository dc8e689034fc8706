# routers/webhooks.py

import secrets
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException
from supabase import Client

from core.change_feed import ChangeFeed, commit_time
from core.config import settings
from core.errors import GateError
from core.logging_config import logger
from dependencies.database import get_db_client, get_change_feed
from models.change import ChangeEvent, DatabaseWebhookPayload
from models.enums import ChangeOperation
from services.notifications import handle_telegram_callback

router = APIRouter(
    prefix="/webhooks",
    tags=["Webhooks"],
)


def verify_shared_secret(provided: Optional[str], expected: Optional[str], source: str) -> bool:
    """
    Constant-time check of a webhook's shared-secret header.

    Without a configured secret the hook is accepted outside production
    (with a warning) and refused in production.
    """
    if not expected:
        if settings.ENV == "production":
            logger.error(f"{source} webhook secret not configured - rejecting call")
            return False
        logger.warning(f"{source} webhook secret not configured - verification disabled")
        return True

    return bool(provided) and secrets.compare_digest(provided, expected)


# ============================================================
# Telegram bot updates (Approve / Deny buttons)
# ============================================================
@router.post("/telegram")
def telegram_update(
    update: dict = Body(...),
    secret_token: Optional[str] = Header(None, alias="X-Telegram-Bot-Api-Secret-Token"),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Receives bot updates set up with `setWebhook(secret_token=...)`.

    Only `callback_query` updates are acted upon. The response is always
    `{"ok": true}` once authenticated, so Telegram does not redeliver.
    """
    if not verify_shared_secret(secret_token, settings.TELEGRAM_WEBHOOK_SECRET, "Telegram"):
        raise HTTPException(401, "Invalid webhook secret")

    callback = update.get("callback_query")
    if not callback:
        return {"ok": True}

    try:
        outcome = handle_telegram_callback(client, callback, feed=feed)
    except GateError as e:
        logger.error(f"Telegram callback {callback.get('id')} failed: {e}")
        return {"ok": True, "result": "error"}

    logger.info(f"Telegram callback {callback.get('id')}: {outcome['result']}")
    return {"ok": True, **outcome}


# ============================================================
# Supabase database webhook -> change feed
# ============================================================
@router.post("/supabase/changes")
def supabase_changes(
    payload: DatabaseWebhookPayload,
    webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret"),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Republishes rows written outside this API (dashboard edits, SQL jobs)
    to realtime subscribers. Configure the webhook with an
    `X-Webhook-Secret` header equal to `SUPABASE_WEBHOOK_SECRET`.

    Events carry the row's own write time, so a late echo of a change
    already published cannot overwrite a newer state.
    """
    if not verify_shared_secret(webhook_secret, settings.SUPABASE_WEBHOOK_SECRET, "Supabase"):
        raise HTTPException(401, "Invalid webhook secret")

    try:
        operation = ChangeOperation(payload.type.lower())
    except ValueError:
        raise HTTPException(400, f"Unsupported change type '{payload.type}'")

    if operation == ChangeOperation.RESYNC:
        raise HTTPException(400, f"Unsupported change type '{payload.type}'")

    record = payload.old_record if operation == ChangeOperation.DELETE else payload.record
    record = record or {}

    building_id = record.get("building_id")
    if payload.table == "buildings":
        building_id = record.get("id")

    if not building_id:
        logger.debug(f"Ignoring {payload.table} change without building scope")
        return {"success": True, "delivered": 0}

    delivered = feed.publish(ChangeEvent(
        operation=operation,
        table=payload.table,
        building_id=str(building_id),
        record=record,
        committed_at=commit_time(operation, record),
    ))
    return {"success": True, "delivered": delivered}

# routers/messages.py

import re

from fastapi import APIRouter, Depends, HTTPException, Query
from supabase import Client

from dependencies.auth import get_current_user, CurrentUser
from dependencies.database import get_db_client, get_change_feed
from core.change_feed import ChangeFeed
from core.errors import handle_supabase_error
from core.logging_config import logger
from core.permission_helpers import requires_permission, resolve_building_id, is_admin
from models.enums import ChangeOperation
from models.message import MessageCreate, MessageRead

router = APIRouter(
    prefix="/messages",
    tags=["Messages"],
)

PROFILE_ID_PATTERN = re.compile(r"[0-9A-Za-z-]+")


@router.post(
    "",
    response_model=MessageRead,
    status_code=201,
    dependencies=[Depends(requires_permission("messages:write"))],
)
def send_message(
    payload: MessageCreate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Post to the building chat.

    - `recipient_id` null: building-wide channel
    - `recipient_id` set: private message to a member of the same building
    - `image_url` may be a data URL; images are limited to 2MB
    """
    building_id = resolve_building_id(current_user)

    if payload.recipient_id is not None:
        if payload.recipient_id == current_user.id:
            raise HTTPException(400, "You cannot message yourself")
        try:
            recipient = (
                client.table("profiles")
                .select("id")
                .eq("id", payload.recipient_id)
                .eq("building_id", building_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise handle_supabase_error(e, "Failed to look up recipient", 500)

        if not recipient.data:
            raise HTTPException(404, "Recipient not found in your building")

    data = {
        "building_id": building_id,
        "profile_id": current_user.id,
        "recipient_id": payload.recipient_id,
        "user_name": current_user.display_name,
        "content": payload.content.strip() if payload.content else None,
        "image_url": payload.image_url,
    }

    try:
        result = client.table("messages").insert(data).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to send message", 500)

    if not result.data:
        raise HTTPException(500, "Failed to send message")

    record = result.data[0]
    feed.publish_row(ChangeOperation.INSERT, "messages", record)
    return record


@router.get(
    "",
    response_model=list[MessageRead],
    dependencies=[Depends(requires_permission("messages:read"))],
)
def list_messages(
    with_user: str = Query(None, description="Only the private conversation with this profile"),
    limit: int = Query(100, ge=1, le=500),
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
):
    """
    Building-wide messages plus private ones I sent or received, oldest first.
    With `with_user`, only the private thread with that member.
    """
    building_id = resolve_building_id(current_user)
    me = current_user.id

    # Interpolated into a PostgREST filter
    if with_user and not PROFILE_ID_PATTERN.fullmatch(with_user):
        raise HTTPException(400, "Invalid profile id")

    if with_user:
        visibility = (
            f"and(profile_id.eq.{me},recipient_id.eq.{with_user}),"
            f"and(profile_id.eq.{with_user},recipient_id.eq.{me})"
        )
    else:
        visibility = f"recipient_id.is.null,profile_id.eq.{me},recipient_id.eq.{me}"

    try:
        result = (
            client.table("messages")
            .select("*")
            .eq("building_id", building_id)
            .or_(visibility)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch messages", 500)

    return list(reversed(result.data or []))


@router.delete(
    "/{message_id}",
    dependencies=[Depends(requires_permission("messages:write"))],
)
def delete_message(
    message_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """Authors delete their own messages; building admins can moderate."""
    try:
        existing = client.table("messages").select("*").eq("id", message_id).limit(1).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to load message", 500)

    if not existing.data:
        raise HTTPException(404, "Message not found")

    message = existing.data[0]
    own = str(message["profile_id"]) == current_user.id
    moderator = is_admin(current_user) and str(message["building_id"]) == str(current_user.building_id)
    if not (own or moderator):
        raise HTTPException(403, "You can only delete your own messages")

    try:
        client.table("messages").delete().eq("id", message_id).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete message", 500)

    logger.info(f"Message {message_id} deleted by {current_user.id}")
    feed.publish_row(ChangeOperation.DELETE, "messages", message)
    return {"success": True, "deleted_id": message_id}

# services/notifications.py

"""
Gate intercom: tells residents a walk-in is waiting, and turns their
Telegram button taps back into visitor decisions.

Delivery is best-effort. Every channel failure is logged and swallowed;
nothing here can fail the request that created the visitor.
"""

from typing import Callable

from fastapi import BackgroundTasks
from supabase import Client

from core import telegram
from core.change_feed import ChangeFeed
from core.errors import GateError, InvalidState, NotFound
from core.logging_config import logger
from core.notifications import send_telegram_arrival, send_web_push
from core.utils import format_unit, normalize_wing
from models.visitor import VisitorArrival
from services.residents import find_unit_residents
from services.visitors import decide, get_visitor


PUSH_TITLE = "UrbanGate: Visitor Arrival"


def _unit_residents(client: Client, building_id: str, wing, flat_number: str) -> list[dict]:
    """Verified residents of exactly this (wing, flat_number) unit."""
    wing = normalize_wing(wing)
    residents = find_unit_residents(client, building_id, flat_number, wing, verified_only=True)
    return [r for r in residents if normalize_wing(r.get("wing")) == wing]


def dispatch_visitor_arrival(client: Client, arrival: VisitorArrival) -> dict:
    """
    Deliver an arrival alert to every verified resident of the unit over
    each channel they registered. Returns per-channel counts.
    """
    summary = {"push": 0, "telegram": 0, "failed": 0}

    try:
        residents = _unit_residents(
            client, arrival.building_id, arrival.wing, arrival.flat_number
        )
    except GateError as e:
        logger.warning(f"Arrival alert for visitor {arrival.visitor_id} skipped: {e}")
        return summary

    reachable = [r for r in residents if r.get("push_subscription") or r.get("telegram_chat_id")]
    if not reachable:
        logger.info(
            f"No notification channels active for unit {format_unit(arrival.wing, arrival.flat_number)}"
        )
        return summary

    body = f"{arrival.guest_name} is requesting entry for {arrival.purpose}."

    for resident in reachable:
        if resident.get("push_subscription"):
            try:
                send_web_push(
                    client,
                    resident["push_subscription"],
                    PUSH_TITLE,
                    body,
                    {"visitorId": arrival.visitor_id, "action": "intercom_request"},
                )
                summary["push"] += 1
            except Exception as e:
                summary["failed"] += 1
                logger.warning(f"Web push delivery failed for profile {resident.get('id')}: {e}")

        if resident.get("telegram_chat_id"):
            try:
                send_telegram_arrival(
                    resident["telegram_chat_id"],
                    arrival.guest_name,
                    arrival.purpose,
                    arrival.visitor_id,
                )
                summary["telegram"] += 1
            except Exception as e:
                summary["failed"] += 1
                logger.warning(f"Telegram delivery failed for profile {resident.get('id')}: {e}")

    return summary


def background_notifier(client: Client, background_tasks: BackgroundTasks) -> Callable[[VisitorArrival], None]:
    """Notifier that runs the dispatch after the response is sent."""
    def notify(arrival: VisitorArrival):
        background_tasks.add_task(dispatch_visitor_arrival, client, arrival)
    return notify


# ============================================================
# Inbound Telegram button taps
# ============================================================
def _reply(callback_id: str, text: str):
    try:
        telegram.answer_callback_query(callback_id, text)
    except Exception as e:
        logger.warning(f"answerCallbackQuery failed: {e}")


def handle_telegram_callback(client: Client, callback: dict, feed: ChangeFeed = None) -> dict:
    """
    Apply an Approve/Deny tap. The chat must belong to a verified resident
    of the visitor's unit; the decision goes through the same status guard
    as the in-app one, so a second tap reports "already handled".
    """
    callback_id = callback.get("id")
    message = callback.get("message") or {}
    chat_id = (message.get("chat") or {}).get("id")

    try:
        approve, visitor_id = telegram.parse_callback_data(callback.get("data"))
    except ValueError as e:
        logger.warning(str(e))
        _reply(callback_id, "Unknown action")
        return {"result": "ignored"}

    try:
        visitor = get_visitor(client, visitor_id)
    except NotFound:
        _reply(callback_id, "Visitor not found")
        return {"result": "not_found"}

    residents = _unit_residents(
        client, visitor["building_id"], visitor.get("wing"), visitor["flat_number"]
    )
    if chat_id is None or not any(
        str(r.get("telegram_chat_id")) == str(chat_id) for r in residents
    ):
        logger.warning(f"Telegram chat {chat_id} tried to decide visitor {visitor_id} for another unit")
        _reply(callback_id, "You are not a resident of this unit")
        return {"result": "forbidden"}

    try:
        decide(
            client,
            visitor_id,
            approve,
            building_id=visitor["building_id"],
            flat_number=visitor["flat_number"],
            wing=visitor.get("wing"),
            feed=feed,
        )
        label = "APPROVED ✅" if approve else "DENIED ❌"
        result = "approved" if approve else "denied"
    except InvalidState:
        label = "ALREADY HANDLED"
        result = "conflict"

    _reply(callback_id, f"Visitor {label}")

    if message.get("message_id") is not None:
        try:
            telegram.edit_message_text(
                chat_id,
                message["message_id"],
                f"{telegram.escape_markdown(message.get('text', ''))}\n\n*RESULT:* {label}",
            )
        except Exception as e:
            logger.warning(f"editMessageText failed: {e}")

    return {"result": result, "visitor_id": visitor_id}

# core/telegram.py

import re
from typing import Optional

import requests

from core.config import settings
from core.logging_config import logger


class TelegramError(Exception):
    pass


APPROVE = "approve"
DENY = "deny"

_MARKDOWN_SPECIALS = re.compile(r"([_*`\[])")


def is_configured() -> bool:
    return bool(settings.TELEGRAM_BOT_TOKEN)


def escape_markdown(text: str) -> str:
    """Escape user text for Telegram's legacy Markdown parse mode."""
    return _MARKDOWN_SPECIALS.sub(r"\\\1", text or "")


def call(method: str, payload: dict) -> Optional[dict]:
    """
    POST to the Bot API. Raises TelegramError when the bot is not
    configured or Telegram answers ``ok: false``.
    """
    if not is_configured():
        raise TelegramError("TELEGRAM_BOT_TOKEN not configured")

    url = f"{settings.TELEGRAM_API_BASE}/bot{settings.TELEGRAM_BOT_TOKEN}/{method}"
    response = requests.post(url, json=payload, timeout=settings.HTTP_TIMEOUT_SECONDS)

    try:
        data = response.json()
    except ValueError:
        raise TelegramError(f"{method}: non-JSON response (status {response.status_code})")

    if not data.get("ok"):
        raise TelegramError(f"{method}: {data.get('description', 'unknown error')}")

    logger.debug(f"Telegram {method} ok")
    return data.get("result")


# -----------------------------------------------------
# Bot API methods used by the gate intercom
# -----------------------------------------------------
def send_message(chat_id, text: str, reply_markup: dict = None) -> Optional[dict]:
    payload = {"chat_id": chat_id, "text": text, "parse_mode": "Markdown"}
    if reply_markup:
        payload["reply_markup"] = reply_markup
    return call("sendMessage", payload)


def answer_callback_query(callback_query_id: str, text: str):
    return call("answerCallbackQuery", {"callback_query_id": callback_query_id, "text": text})


def edit_message_text(chat_id, message_id: int, text: str):
    return call("editMessageText", {
        "chat_id": chat_id,
        "message_id": message_id,
        "text": text,
        "parse_mode": "Markdown",
    })


def decision_keyboard(visitor_id: str) -> dict:
    return {
        "inline_keyboard": [[
            {"text": "✅ Approve Entry", "callback_data": f"{APPROVE}:{visitor_id}"},
            {"text": "❌ Deny Entry", "callback_data": f"{DENY}:{visitor_id}"},
        ]]
    }


def parse_callback_data(data: str) -> tuple[bool, str]:
    """``approve:<id>`` / ``deny:<id>`` → (approve, visitor_id)."""
    action, sep, visitor_id = (data or "").partition(":")
    if not sep or not visitor_id or action not in (APPROVE, DENY):
        raise ValueError(f"Unrecognised callback data: {data!r}")
    return action == APPROVE, visitor_id

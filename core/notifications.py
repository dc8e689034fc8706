# core/notifications.py

from supabase import Client

from core import telegram
from core.config import settings
from core.logging_config import logger


# -----------------------------------------------------
# 📲 Web push (delegated to the Supabase edge function)
# -----------------------------------------------------
def send_web_push(client: Client, subscription: dict, title: str, body: str, metadata: dict = None):
    """
    Hand one push message to the edge function, which holds the VAPID keys
    and talks to the browser push service. Raises on failure.
    """
    client.functions.invoke(
        settings.PUSH_FUNCTION_NAME,
        invoke_options={
            "body": {
                "destination": subscription,
                "title": title,
                "body": body,
                "metadata": metadata or {},
            }
        },
    )
    logger.info("Web push handed to edge function")


# -----------------------------------------------------
# 🤖 Telegram intercom message with Approve / Deny buttons
# -----------------------------------------------------
def send_telegram_arrival(chat_id, guest_name: str, purpose: str, visitor_id: str):
    """Raises telegram.TelegramError / requests errors on failure."""
    text = (
        "🔔 *UrbanGate Arrival*\n\n"
        f"*Guest:* {telegram.escape_markdown(guest_name)}\n"
        f"*Purpose:* {telegram.escape_markdown(purpose)}\n\n"
        "*Action Required:* Choose an option below:"
    )
    telegram.send_message(chat_id, text, reply_markup=telegram.decision_keyboard(visitor_id))
    logger.info(f"Telegram arrival message sent to chat {chat_id}")

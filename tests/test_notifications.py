# tests/test_notifications.py

"""
Tests for arrival alerts and Telegram approve/deny callbacks.
"""

from unittest.mock import Mock, patch

import pytest

from core import telegram
from core.config import settings
from models.enums import VisitorStatus, VisitorType
from models.visitor import VisitorArrival
from services.notifications import dispatch_visitor_arrival, handle_telegram_callback
from tests.conftest import BUILDING_ID


SUBSCRIPTION = {"endpoint": "https://push.example/abc", "keys": {"p256dh": "x", "auth": "y"}}


@pytest.fixture
def reachable_resident(fake_db, resident_user):
    fake_db.tables["profiles"][0].update(
        {"telegram_chat_id": "5550101", "push_subscription": SUBSCRIPTION}
    )
    return resident_user


@pytest.fixture
def waiting_visitor(fake_db):
    return fake_db.seed(
        "visitors",
        building_id=BUILDING_ID,
        wing="A",
        flat_number="101",
        name="Ravi Kumar",
        phone="9876543210",
        purpose="Family visit",
        type=VisitorType.WALK_IN.value,
        status=VisitorStatus.WAITING_APPROVAL.value,
    )


def arrival_for(visitor) -> VisitorArrival:
    return VisitorArrival(
        visitor_id=visitor["id"],
        building_id=BUILDING_ID,
        wing="A",
        flat_number="101",
        guest_name=visitor["name"],
        purpose=visitor["purpose"],
    )


def callback(data, chat_id="5550101", message_id=77):
    return {
        "id": "cb-1",
        "data": data,
        "message": {"message_id": message_id, "chat": {"id": chat_id}, "text": "UrbanGate Arrival"},
    }


# ============================================================
# Dispatch
# ============================================================
def test_dispatch_uses_every_registered_channel(fake_db, reachable_resident, waiting_visitor):
    with patch("services.notifications.send_telegram_arrival") as send_telegram:
        summary = dispatch_visitor_arrival(fake_db, arrival_for(waiting_visitor))

    assert summary == {"push": 1, "telegram": 1, "failed": 0}

    fake_db.functions.invoke.assert_called_once()
    name, kwargs = fake_db.functions.invoke.call_args.args[0], fake_db.functions.invoke.call_args.kwargs
    assert name == settings.PUSH_FUNCTION_NAME
    body = kwargs["invoke_options"]["body"]
    assert body["destination"] == SUBSCRIPTION
    assert body["metadata"]["visitorId"] == waiting_visitor["id"]
    assert "Ravi Kumar" in body["body"]

    send_telegram.assert_called_once_with("5550101", "Ravi Kumar", "Family visit", waiting_visitor["id"])


def test_dispatch_skips_unverified_residents(fake_db, unverified_user, waiting_visitor):
    fake_db.tables["profiles"][0].update({"telegram_chat_id": "5550303"})
    arrival = arrival_for(waiting_visitor).model_copy(update={"wing": None, "flat_number": "303"})

    with patch("services.notifications.send_telegram_arrival") as send_telegram:
        summary = dispatch_visitor_arrival(fake_db, arrival)

    assert summary == {"push": 0, "telegram": 0, "failed": 0}
    send_telegram.assert_not_called()


def test_channel_failures_are_swallowed(fake_db, reachable_resident, waiting_visitor):
    fake_db.functions.invoke.side_effect = RuntimeError("edge function down")

    with patch(
        "services.notifications.send_telegram_arrival",
        side_effect=telegram.TelegramError("chat not found"),
    ):
        summary = dispatch_visitor_arrival(fake_db, arrival_for(waiting_visitor))

    assert summary == {"push": 0, "telegram": 0, "failed": 2}


def test_telegram_arrival_message_has_decision_buttons(monkeypatch):
    monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", "123:abc")
    response = Mock()
    response.json.return_value = {"ok": True, "result": {"message_id": 1}}

    with patch("core.telegram.requests.post", return_value=response) as post:
        from core.notifications import send_telegram_arrival
        send_telegram_arrival("5550101", "Ravi_Kumar", "Family visit", "visitor-9")

    url = post.call_args.args[0]
    payload = post.call_args.kwargs["json"]
    assert url.endswith("/bot123:abc/sendMessage")
    assert "Ravi\\_Kumar" in payload["text"]
    buttons = payload["reply_markup"]["inline_keyboard"][0]
    assert [b["callback_data"] for b in buttons] == ["approve:visitor-9", "deny:visitor-9"]


def test_telegram_requires_token(monkeypatch):
    monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", None)
    with pytest.raises(telegram.TelegramError):
        telegram.send_message("1", "hello")


@pytest.mark.parametrize("data", [None, "", "approve", "maybe:123", "deny:"])
def test_bad_callback_data(data):
    with pytest.raises(ValueError):
        telegram.parse_callback_data(data)


# ============================================================
# Callbacks
# ============================================================
@patch("services.notifications.telegram.edit_message_text")
@patch("services.notifications.telegram.answer_callback_query")
def test_approve_button_admits_visitor(answer, edit, fake_db, reachable_resident, waiting_visitor):
    outcome = handle_telegram_callback(fake_db, callback(f"approve:{waiting_visitor['id']}"))

    assert outcome["result"] == "approved"
    stored = fake_db.rows("visitors")[0]
    assert stored["status"] == VisitorStatus.ENTERED.value
    assert stored["check_in_at"] is not None
    answer.assert_called_once_with("cb-1", "Visitor APPROVED ✅")
    assert "RESULT" in edit.call_args.args[2]


@patch("services.notifications.telegram.edit_message_text")
@patch("services.notifications.telegram.answer_callback_query")
def test_second_tap_reports_already_handled(answer, edit, fake_db, reachable_resident, waiting_visitor):
    handle_telegram_callback(fake_db, callback(f"deny:{waiting_visitor['id']}"))
    outcome = handle_telegram_callback(fake_db, callback(f"approve:{waiting_visitor['id']}"))

    assert outcome["result"] == "conflict"
    assert fake_db.rows("visitors")[0]["status"] == VisitorStatus.REJECTED.value
    assert answer.call_args.args[1] == "Visitor ALREADY HANDLED"


@patch("services.notifications.telegram.edit_message_text")
@patch("services.notifications.telegram.answer_callback_query")
def test_foreign_chat_cannot_decide(answer, edit, fake_db, reachable_resident, waiting_visitor):
    outcome = handle_telegram_callback(
        fake_db, callback(f"approve:{waiting_visitor['id']}", chat_id="9999")
    )

    assert outcome["result"] == "forbidden"
    assert fake_db.rows("visitors")[0]["status"] == VisitorStatus.WAITING_APPROVAL.value
    edit.assert_not_called()


@patch("services.notifications.telegram.answer_callback_query")
def test_callback_for_unknown_visitor(answer, fake_db):
    outcome = handle_telegram_callback(fake_db, callback("approve:missing"))

    assert outcome["result"] == "not_found"
    answer.assert_called_once_with("cb-1", "Visitor not found")


# ============================================================
# Same flat number, different wing
# ============================================================
def test_dispatch_reaches_only_the_visitors_wing(fake_db, reachable_resident, other_wing_user, waiting_visitor):
    with patch("services.notifications.send_telegram_arrival") as send_telegram:
        summary = dispatch_visitor_arrival(fake_db, arrival_for(waiting_visitor))

    assert summary == {"push": 1, "telegram": 1, "failed": 0}
    send_telegram.assert_called_once()
    assert send_telegram.call_args.args[0] == "5550101"


@patch("services.notifications.telegram.edit_message_text")
@patch("services.notifications.telegram.answer_callback_query")
def test_other_wing_chat_cannot_decide(answer, edit, fake_db, reachable_resident, other_wing_user, waiting_visitor):
    outcome = handle_telegram_callback(
        fake_db, callback(f"deny:{waiting_visitor['id']}", chat_id="5550202")
    )

    assert outcome["result"] == "forbidden"
    assert fake_db.rows("visitors")[0]["status"] == VisitorStatus.WAITING_APPROVAL.value
    answer.assert_called_once_with("cb-1", "You are not a resident of this unit")

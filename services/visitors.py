# services/visitors.py

"""
Visitor gate-pass workflow.

    (new) --resident issues pass----------> PENDING ----gate enters code---> ENTERED
    (new) --gate logs walk-in (consent)---> WAITING_APPROVAL --approve-----> ENTERED
                                                             --deny--------> REJECTED
    (new) --gate logs walk-in (cleared)---> ENTERED ------gate logs exit---> EXITED

EXITED and REJECTED are terminal.

Every transition is one conditional UPDATE (``... WHERE status = expected``)
so two actors racing on the same visitor cannot both win: the loser's update
matches no row and is reported as InvalidState (or NotFound for codes).
The Supabase client is passed in by the caller.

A unit is (wing, flat_number). Flat numbers repeat across wings, so
resident-side reads and decisions match the wing exactly; a visitor without
a wing belongs to a building that has none.
"""

import secrets
from typing import Callable, Optional

from supabase import Client

from core.change_feed import ChangeFeed
from core.config import settings
from core.errors import (
    NotFound,
    InvalidState,
    Unauthorized,
    PersistenceError,
    is_invalid_input,
    is_unique_violation,
    persistence_error,
)
from core.logging_config import logger
from core.utils import format_unit, normalize_wing, utc_now_iso
from models.enums import ChangeOperation, VisitorStatus, VisitorType
from models.visitor import GuestInfo, VisitorArrival
from services.residents import find_unit_residents


TABLE = "visitors"

INVITE_CODE_MIN = 100000
INVITE_CODE_MAX = 999999

# Same message for "never issued" and "already used"
INVALID_PASS_MESSAGE = "Invalid or expired pass"

ALLOWED_TRANSITIONS = {
    VisitorStatus.PENDING: {VisitorStatus.ENTERED},
    VisitorStatus.WAITING_APPROVAL: {VisitorStatus.ENTERED, VisitorStatus.REJECTED},
    VisitorStatus.ENTERED: {VisitorStatus.EXITED},
    VisitorStatus.EXITED: set(),
    VisitorStatus.REJECTED: set(),
}


def generate_invite_code() -> str:
    """Uniform random 6-digit code, 100000-999999."""
    return str(INVITE_CODE_MIN + secrets.randbelow(INVITE_CODE_MAX - INVITE_CODE_MIN + 1))


def can_transition(current: VisitorStatus, target: VisitorStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[VisitorStatus(current)]


# -----------------------------------------------------
# Internal helpers
# -----------------------------------------------------
def _scoped(query, scope: dict):
    for key, value in scope.items():
        if value is not None:
            query = query.eq(key, value)
    return query


def _unit(flat_number: Optional[str], wing: Optional[str]) -> Optional[tuple]:
    if flat_number is None:
        return None
    return normalize_wing(wing), flat_number.strip()


def _in_unit(query, unit: Optional[tuple]):
    """Exact unit match: no wing only matches visitors stored without one."""
    if unit is None:
        return query
    wing, flat_number = unit
    query = query.eq("flat_number", flat_number)
    if wing is None:
        return query.is_("wing", "null")
    return query.eq("wing", wing)


def _publish(feed: Optional[ChangeFeed], operation: ChangeOperation, record: dict):
    if feed is not None:
        feed.publish_row(operation, TABLE, record)


def _guest_row(building_id: str, wing: Optional[str], flat_number: str, guest: GuestInfo) -> dict:
    return {
        "building_id": building_id,
        "wing": normalize_wing(wing),
        "flat_number": flat_number.strip(),
        "name": guest.name.strip(),
        "phone": guest.phone.strip(),
        "purpose": guest.purpose.strip(),
        "updated_at": utc_now_iso(),
    }


def _insert(client: Client, row: dict) -> dict:
    res = client.table(TABLE).insert(row).execute()
    if not res.data:
        raise PersistenceError("Visitor insert returned no data")
    return res.data[0]


def get_visitor(
    client: Client,
    visitor_id: str,
    building_id: str = None,
    flat_number: str = None,
    wing: str = None,
) -> dict:
    try:
        query = _in_unit(
            _scoped(
                client.table(TABLE).select("*").eq("id", visitor_id),
                {"building_id": building_id},
            ),
            _unit(flat_number, wing),
        )
        res = query.limit(1).execute()
    except Exception as e:
        if is_invalid_input(e):
            raise NotFound("Visitor not found")
        raise persistence_error(e, "Failed to load visitor")

    if not res.data:
        raise NotFound("Visitor not found")
    return res.data[0]


def _transition(
    client: Client,
    visitor_id: str,
    expected: VisitorStatus,
    target: VisitorStatus,
    changes: dict = None,
    scope: dict = None,
    unit: tuple = None,
    feed: ChangeFeed = None,
) -> dict:
    """Compare-and-swap on status. Raises NotFound / InvalidState on miss."""
    if not can_transition(expected, target):
        raise ValueError(f"Illegal visitor transition {expected} -> {target}")

    scope = scope or {}
    update = {"status": target.value, **(changes or {}), "updated_at": utc_now_iso()}

    try:
        query = _in_unit(
            _scoped(
                client.table(TABLE)
                .update(update)
                .eq("id", visitor_id)
                .eq("status", expected.value),
                scope,
            ),
            unit,
        )
        res = query.execute()
    except Exception as e:
        if is_invalid_input(e):
            raise NotFound("Visitor not found")
        raise persistence_error(e, f"Failed to move visitor to {target}")

    if res.data:
        record = res.data[0]
        logger.info(f"Visitor {visitor_id}: {expected} -> {target}")
        _publish(feed, ChangeOperation.UPDATE, record)
        return record

    # Nothing matched: either the visitor is gone or someone else moved it
    wing, flat_number = unit if unit else (None, None)
    current = get_visitor(
        client,
        visitor_id,
        building_id=scope.get("building_id"),
        flat_number=flat_number,
        wing=wing,
    )
    logger.warning(
        f"Visitor {visitor_id}: refused {expected} -> {target}, current status {current['status']}"
    )
    raise InvalidState(
        f"Visitor is {current['status']}; this action needs {expected}"
    )


# ============================================================
# Pass issuance / walk-ins
# ============================================================
def _code_in_use(client: Client, building_id: str, code: str) -> bool:
    res = (
        client.table(TABLE)
        .select("id")
        .eq("building_id", building_id)
        .eq("status", VisitorStatus.PENDING.value)
        .eq("invite_code", code)
        .limit(1)
        .execute()
    )
    return bool(res.data)


def issue_pre_approved_pass(
    client: Client,
    building_id: str,
    flat_number: str,
    guest: GuestInfo,
    wing: str = None,
    feed: ChangeFeed = None,
    max_attempts: int = None,
) -> dict:
    """
    Resident creates a PENDING visitor with a single-use 6-digit code.

    The code is unique among the building's PENDING visitors: it is
    redrawn when already held, and when a storage-level unique index
    rejects the insert.
    """
    max_attempts = max_attempts or settings.INVITE_CODE_MAX_ATTEMPTS

    for attempt in range(1, max_attempts + 1):
        code = generate_invite_code()
        try:
            if _code_in_use(client, building_id, code):
                logger.info(f"Invite code collision in building {building_id} (attempt {attempt})")
                continue

            record = _insert(client, {
                **_guest_row(building_id, wing, flat_number, guest),
                "type": VisitorType.PRE_APPROVED.value,
                "status": VisitorStatus.PENDING.value,
                "invite_code": code,
            })
        except PersistenceError:
            raise
        except Exception as e:
            if is_unique_violation(e):
                logger.info(f"Invite code rejected by unique index (attempt {attempt})")
                continue
            raise persistence_error(e, "Failed to issue visitor pass")

        logger.info(
            f"Pre-approved pass issued for unit {format_unit(wing, flat_number)} in building {building_id}"
        )
        _publish(feed, ChangeOperation.INSERT, record)
        return record

    raise PersistenceError("Could not allocate a unique invite code, try again")


def _resolve_wing(residents: list[dict], wing: Optional[str], flat_number: str) -> Optional[str]:
    """The wing a walk-in is for; ambiguous when the flat exists in several wings."""
    if wing is not None:
        return wing
    wings = {normalize_wing(r.get("wing")) for r in residents}
    if len(wings) > 1:
        listed = ", ".join(sorted(w or "-" for w in wings))
        raise Unauthorized(f"Unit {flat_number} exists in wings {listed}; specify the wing")
    return wings.pop()


def request_walk_in_entry(
    client: Client,
    building_id: str,
    flat_number: str,
    guest: GuestInfo,
    wing: str = None,
    notify: Optional[Callable[[VisitorArrival], None]] = None,
    feed: ChangeFeed = None,
) -> dict:
    """
    Gate staff asks a resident to let a walk-in in.

    The unit must have a verified resident; otherwise Unauthorized and
    nothing is written. Without a wing the flat must exist in one wing
    only. ``notify`` is called fire-and-forget: its failure is logged and
    never undoes the visitor record.
    """
    wing = normalize_wing(wing)
    residents = find_unit_residents(client, building_id, flat_number, wing)
    if not residents:
        raise Unauthorized(f"No resident registered for unit {format_unit(wing, flat_number)}")
    wing = _resolve_wing(residents, wing, flat_number)
    if not any(r.get("is_verified") for r in residents):
        raise Unauthorized("Resident not verified by admin")

    try:
        record = _insert(client, {
            **_guest_row(building_id, wing, flat_number, guest),
            "type": VisitorType.WALK_IN.value,
            "status": VisitorStatus.WAITING_APPROVAL.value,
        })
    except PersistenceError:
        raise
    except Exception as e:
        raise persistence_error(e, "Failed to log walk-in visitor")

    logger.info(
        f"Walk-in {record['id']} waiting for approval from unit {format_unit(wing, flat_number)}"
    )
    _publish(feed, ChangeOperation.INSERT, record)

    if notify is not None:
        arrival = VisitorArrival(
            visitor_id=str(record["id"]),
            building_id=str(record["building_id"]),
            wing=record.get("wing"),
            flat_number=record["flat_number"],
            guest_name=record["name"],
            purpose=record["purpose"],
        )
        try:
            notify(arrival)
        except Exception as e:
            logger.warning(f"Arrival notification for visitor {record['id']} failed: {e}")

    return record


def log_walk_in_entry(
    client: Client,
    building_id: str,
    flat_number: str,
    guest: GuestInfo,
    wing: str = None,
    feed: ChangeFeed = None,
) -> dict:
    """Gate staff admits a walk-in directly (no resident consent needed)."""
    try:
        record = _insert(client, {
            **_guest_row(building_id, wing, flat_number, guest),
            "type": VisitorType.WALK_IN.value,
            "status": VisitorStatus.ENTERED.value,
            "check_in_at": utc_now_iso(),
        })
    except PersistenceError:
        raise
    except Exception as e:
        raise persistence_error(e, "Failed to log walk-in visitor")

    logger.info(f"Walk-in {record['id']} admitted to unit {format_unit(wing, flat_number)}")
    _publish(feed, ChangeOperation.INSERT, record)
    return record


# ============================================================
# Gate / resident transitions
# ============================================================
def validate_code(client: Client, building_id: str, code: str, feed: ChangeFeed = None) -> dict:
    """PENDING -> ENTERED for the building's pass with this code."""
    code = (code or "").strip()
    if not (code.isdigit() and len(code) == 6):
        raise NotFound(INVALID_PASS_MESSAGE)

    try:
        res = (
            client.table(TABLE)
            .select("id")
            .eq("building_id", building_id)
            .eq("invite_code", code)
            .eq("status", VisitorStatus.PENDING.value)
            .order("created_at")
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise persistence_error(e, "Failed to validate pass")

    if not res.data:
        logger.warning(f"Rejected gate code in building {building_id}")
        raise NotFound(INVALID_PASS_MESSAGE)

    try:
        return _transition(
            client,
            res.data[0]["id"],
            VisitorStatus.PENDING,
            VisitorStatus.ENTERED,
            {"check_in_at": utc_now_iso()},
            scope={"building_id": building_id, "invite_code": code},
            feed=feed,
        )
    except (InvalidState, NotFound):
        # Used by someone else between lookup and update
        raise NotFound(INVALID_PASS_MESSAGE)


def decide(
    client: Client,
    visitor_id: str,
    approve: bool,
    building_id: str = None,
    flat_number: str = None,
    wing: str = None,
    feed: ChangeFeed = None,
) -> dict:
    """
    Resident decision on a WAITING_APPROVAL walk-in.

    With ``flat_number`` the visitor must belong to exactly that
    (wing, flat_number) unit. A second decision on the same visitor
    fails with InvalidState.
    """
    if approve:
        target, changes = VisitorStatus.ENTERED, {"check_in_at": utc_now_iso()}
    else:
        target, changes = VisitorStatus.REJECTED, {}

    return _transition(
        client,
        visitor_id,
        VisitorStatus.WAITING_APPROVAL,
        target,
        changes,
        scope={"building_id": building_id},
        unit=_unit(flat_number, wing),
        feed=feed,
    )


def record_exit(client: Client, visitor_id: str, building_id: str = None, feed: ChangeFeed = None) -> dict:
    return _transition(
        client,
        visitor_id,
        VisitorStatus.ENTERED,
        VisitorStatus.EXITED,
        {"check_out_at": utc_now_iso()},
        scope={"building_id": building_id},
        feed=feed,
    )


# ============================================================
# Reads
# ============================================================
def list_visitors(
    client: Client,
    building_id: str,
    flat_number: str = None,
    wing: str = None,
    status: VisitorStatus = None,
    limit: int = 100,
) -> list[dict]:
    try:
        query = _in_unit(
            _scoped(
                client.table(TABLE).select("*"),
                {
                    "building_id": building_id,
                    "status": status.value if status else None,
                },
            ),
            _unit(flat_number, wing),
        )
        res = query.order("created_at", desc=True).limit(limit).execute()
    except Exception as e:
        raise persistence_error(e, "Failed to list visitors")
    return res.data or []

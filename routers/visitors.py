# routers/visitors.py

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from supabase import Client

from dependencies.auth import get_current_user, CurrentUser
from dependencies.database import get_db_client, get_change_feed
from core.change_feed import ChangeFeed
from core.config import settings
from core.permission_helpers import (
    requires_permission,
    resolve_building_id,
    require_unit,
)
from core.rate_limiter import require_rate_limit, get_rate_limit_identifier
from services import visitors as visitor_service
from services.notifications import background_notifier

from models.enums import UserRole, VisitorStatus
from models.visitor import (
    PreApprovedPassCreate,
    WalkInCreate,
    CodeValidation,
    VisitorDecision,
    VisitorRead,
)


router = APIRouter(
    prefix="/visitors",
    tags=["Visitors"],
)


# ============================================================
# RESIDENT - pre-approved pass
# ============================================================
@router.post(
    "/passes",
    response_model=VisitorRead,
    status_code=201,
    summary="Issue a pre-approved gate pass",
    dependencies=[Depends(requires_permission("visitors:invite"))],
)
def issue_pass(
    payload: PreApprovedPassCreate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Creates a PENDING visitor for the caller's own unit. The response holds
    the 6-digit `invite_code` to share with the guest; it opens the gate once.
    """
    wing, flat_number = require_unit(current_user)
    return visitor_service.issue_pre_approved_pass(
        client,
        resolve_building_id(current_user),
        flat_number,
        payload,
        wing=wing,
        feed=feed,
    )


# ============================================================
# SECURITY - walk-ins
# ============================================================
@router.post(
    "/walk-ins",
    response_model=VisitorRead,
    status_code=201,
    summary="Ask a resident to approve a walk-in",
    dependencies=[Depends(requires_permission("visitors:gate"))],
)
def request_walk_in(
    payload: WalkInCreate,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Logs the visitor as WAITING_APPROVAL and alerts the unit's residents
    (web push / Telegram) after the response is sent.

    403 `Unauthorized` when the unit has no verified resident; nothing is stored.
    """
    return visitor_service.request_walk_in_entry(
        client,
        resolve_building_id(current_user),
        payload.flat_number,
        payload,
        wing=payload.wing,
        notify=background_notifier(client, background_tasks),
        feed=feed,
    )


@router.post(
    "/walk-ins/admit",
    response_model=VisitorRead,
    status_code=201,
    summary="Admit a walk-in directly",
    dependencies=[Depends(requires_permission("visitors:gate"))],
)
def admit_walk_in(
    payload: WalkInCreate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return visitor_service.log_walk_in_entry(
        client,
        resolve_building_id(current_user),
        payload.flat_number,
        payload,
        wing=payload.wing,
        feed=feed,
    )


@router.post(
    "/validate-code",
    response_model=VisitorRead,
    summary="Open the gate with a 6-digit pass",
    dependencies=[Depends(requires_permission("visitors:gate"))],
)
def validate_code(
    payload: CodeValidation,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    PENDING -> ENTERED. Unknown and already used codes both answer
    404 "Invalid or expired pass".
    """
    require_rate_limit(
        request,
        identifier=get_rate_limit_identifier(request, current_user.id),
        max_requests=settings.GATE_CODE_RATE_LIMIT,
        scope="gate-code",
    )
    return visitor_service.validate_code(
        client, resolve_building_id(current_user), payload.code, feed=feed
    )


@router.post(
    "/{visitor_id}/exit",
    response_model=VisitorRead,
    summary="Log a visitor leaving",
    dependencies=[Depends(requires_permission("visitors:gate"))],
)
def record_exit(
    visitor_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return visitor_service.record_exit(
        client, visitor_id, building_id=resolve_building_id(current_user), feed=feed
    )


# ============================================================
# RESIDENT - approve / deny
# ============================================================
@router.post(
    "/{visitor_id}/decision",
    response_model=VisitorRead,
    summary="Approve or deny a waiting walk-in",
    dependencies=[Depends(requires_permission("visitors:decide"))],
)
def decide_visitor(
    visitor_id: str,
    payload: VisitorDecision,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Only residents of the visitor's unit (wing and flat) can decide. A
    second decision (here or from Telegram) answers 409 `InvalidState`.
    """
    wing, flat_number = require_unit(current_user)
    return visitor_service.decide(
        client,
        visitor_id,
        payload.approve,
        building_id=resolve_building_id(current_user),
        flat_number=flat_number,
        wing=wing,
        feed=feed,
    )


# ============================================================
# LIST
# ============================================================
@router.get(
    "",
    response_model=list[VisitorRead],
    summary="Visitor log",
    dependencies=[Depends(requires_permission("visitors:read"))],
)
def list_visitors(
    status: Optional[VisitorStatus] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    building_id: str = Query(None, description="Super admin only"),
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_db_client),
):
    """Residents see their own unit; gate staff and admins see the whole building."""
    building_id = resolve_building_id(current_user, building_id)

    wing, flat_number = None, None
    if current_user.role == UserRole.RESIDENT:
        wing, flat_number = require_unit(current_user)

    return visitor_service.list_visitors(
        client, building_id, flat_number=flat_number, wing=wing, status=status, limit=limit
    )

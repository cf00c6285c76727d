# routers/reservations.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from core.logging_config import logger
from core.permission_helpers import (
    ALL_MEMBERSHIP_ROLES,
    PROPERTY_EDITOR_ROLES,
    check_property_scope,
    require_record_access,
    requires_feature,
    scope_rows,
)
from core.session import SessionContext
from core.supabase_client import get_admin_client
from core.supabase_helpers import execute, safe_delete, safe_insert, safe_update, unwrap
from core.utils import utc_now_iso
from models.enums import ReservationStatus
from models.reservation import ReservationCreate, ReservationDecision, ReservationUpdate


router = APIRouter(
    prefix="/reservations",
    tags=["Calendar"],
)

can_view = requires_feature("calendar_view")
can_edit = requires_feature("calendar_edit")

CANCELLABLE = (ReservationStatus.pending.value, ReservationStatus.approved.value)


def _is_requester(context: SessionContext, reservation: dict) -> bool:
    return reservation.get("user_id") == context.user.id


def get_reservation_row(client, context: SessionContext, reservation_id: str,
                        roles=ALL_MEMBERSHIP_ROLES) -> dict:
    return require_record_access(client, context.user.id, "reservations", reservation_id,
                                 label="Reservation", roles=roles)


# ============================================================================
# READ
# ============================================================================
@router.get("", summary="List reservations")
def list_reservations(
    property_id: Optional[str] = None,
    status: Optional[ReservationStatus] = None,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, property_id)

    query = client.table("reservations").select("*")
    if property_id:
        query = query.eq("property_id", property_id)
    if status:
        query = query.eq("status", status.value)

    reservations = unwrap(execute(query.order("start_date")), "Failed to load reservations") or []
    return scope_rows(client, context.user.id, reservations)


@router.get("/{reservation_id}", summary="Get one reservation")
def get_reservation(
    reservation_id: str,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    return get_reservation_row(client, context, reservation_id)


# ============================================================================
# REQUEST (anyone who can see the calendar)
# ============================================================================
@router.post("", status_code=201, summary="Request a stay")
def create_reservation(
    payload: ReservationCreate,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, payload.property_id)

    data = payload.model_dump(mode="json")
    data.update({
        "user_id": context.user.id,
        "status": ReservationStatus.pending.value,
        "created_at": utc_now_iso(),
    })
    return safe_insert(client, "reservations", data)


@router.patch("/{reservation_id}", summary="Edit a reservation")
def update_reservation(
    reservation_id: str,
    payload: ReservationUpdate,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    """Requester while still pending, or a calendar editor at any time."""
    reservation = get_reservation_row(client, context, reservation_id)

    editor = context.can_access("manager", "calendar_edit")
    pending_own = _is_requester(context, reservation) and reservation["status"] == ReservationStatus.pending.value
    if not (editor or pending_own):
        raise HTTPException(403, "Only the requester (while pending) or a calendar editor can edit this reservation.")
    if not pending_own:
        check_property_scope(client, context.user.id, reservation.get("property_id"), PROPERTY_EDITOR_ROLES)

    updates = payload.model_dump(exclude_unset=True, mode="json")
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    start = updates.get("start_date", reservation.get("start_date"))
    end = updates.get("end_date", reservation.get("end_date"))
    if start and end and str(end) < str(start):
        raise HTTPException(400, "end_date must be on or after start_date")

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "reservations", {"id": reservation_id}, updates)


# ============================================================================
# STATUS TRANSITIONS
# ============================================================================
@router.post("/{reservation_id}/decision", summary="Approve or deny a pending request")
def decide_reservation(
    reservation_id: str,
    payload: ReservationDecision,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    reservation = get_reservation_row(client, context, reservation_id, PROPERTY_EDITOR_ROLES)
    if reservation["status"] != ReservationStatus.pending.value:
        raise HTTPException(400, f"Reservation is already {reservation['status']}")

    logger.info(f"Reservation {reservation_id} {payload.status} by {context.user.id}")
    return safe_update(client, "reservations", {"id": reservation_id}, {
        "status": payload.status,
        "reviewed_by": context.user.id,
        "updated_at": utc_now_iso(),
    })


@router.post("/{reservation_id}/cancel", summary="Cancel a reservation")
def cancel_reservation(
    reservation_id: str,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    reservation = get_reservation_row(client, context, reservation_id)

    if not (_is_requester(context, reservation) or context.can_access("manager", "calendar_edit")):
        raise HTTPException(403, "Only the requester or a calendar editor can cancel this reservation.")
    if not _is_requester(context, reservation):
        check_property_scope(client, context.user.id, reservation.get("property_id"), PROPERTY_EDITOR_ROLES)
    if reservation["status"] not in CANCELLABLE:
        raise HTTPException(400, f"Reservation is already {reservation['status']}")

    return safe_update(client, "reservations", {"id": reservation_id}, {
        "status": ReservationStatus.cancelled.value,
        "updated_at": utc_now_iso(),
    })


@router.delete("/{reservation_id}", summary="Delete a reservation")
def delete_reservation(
    reservation_id: str,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_reservation_row(client, context, reservation_id, PROPERTY_EDITOR_ROLES)
    safe_delete(client, "reservations", {"id": reservation_id})
    return {"success": True}

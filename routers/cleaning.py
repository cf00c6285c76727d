# routers/cleaning.py

"""
Turnover cleaning.

    rooms + task catalogue (per property)
    visit (usually created from a reservation)
        → one visit task per catalogue task, ticked off room by room
    issues reported while cleaning, resolved later

Browsing, working through a visit and reporting issues need checklists_view;
editing rooms and the catalogue or resolving issues needs checklists_edit.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from supabase import Client

from core.logging_config import get_logger
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
from core.supabase_helpers import execute, safe_delete, safe_insert, safe_select, safe_update, unwrap
from core.utils import slugify, utc_now_iso
from models.cleaning import (
    CleaningTaskCreate,
    CleaningTaskUpdate,
    IssueCreate,
    IssueResolve,
    RoomCreate,
    RoomUpdate,
    VisitCreate,
    VisitTaskComplete,
)
from models.enums import CleaningVisitStatus

log = get_logger("cleaning")

router = APIRouter(
    prefix="/cleaning",
    tags=["Cleaning"],
)

can_view = requires_feature("checklists_view")
can_edit = requires_feature("checklists_edit")


# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def get_visit_row(client, context: SessionContext, visit_id: str,
                  roles=ALL_MEMBERSHIP_ROLES) -> dict:
    return require_record_access(client, context.user.id, "cleaning_visits", visit_id,
                                 label="Cleaning visit", roles=roles)


def ensure_open(visit: dict):
    if visit.get("status") == CleaningVisitStatus.completed.value:
        raise HTTPException(400, "Cleaning visit is already completed.")


def progress(visit_tasks: list) -> dict:
    done = sum(1 for vt in visit_tasks if vt.get("is_completed"))
    return {"completed": done, "total": len(visit_tasks)}


def sync_visit_tasks(client, visit: dict):
    """
    Catalogue tasks of the visit's property plus one visit task for each.
    Tasks added to the catalogue after the visit started get their row here.
    """
    tasks = safe_select(client, "cleaning_tasks", {"property_id": visit["property_id"]},
                        order="display_order")
    visit_tasks = safe_select(client, "cleaning_visit_tasks", {"visit_id": visit["id"]})

    known = {vt["task_id"] for vt in visit_tasks}
    missing = [
        {
            "visit_id": visit["id"],
            "task_id": task["id"],
            "is_completed": False,
            "created_at": utc_now_iso(),
        }
        for task in tasks if task["id"] not in known
    ]
    if missing:
        created = unwrap(
            execute(client.table("cleaning_visit_tasks").insert(missing)),
            "Failed to create visit tasks",
        ) or []
        visit_tasks = visit_tasks + created

    return tasks, visit_tasks


def merge_tasks(tasks: list, visit_tasks: list, room: Optional[str] = None) -> list:
    by_task = {vt["task_id"]: vt for vt in visit_tasks}
    merged = []
    for task in tasks:
        if room is not None and task.get("room") != room:
            continue
        vt = by_task.get(task["id"], {})
        merged.append({
            **task,
            # older rows only carry "task"
            "name": task.get("name") or task.get("task"),
            "visit_task_id": vt.get("id"),
            "is_completed": bool(vt.get("is_completed")),
            "completed_by": vt.get("completed_by"),
            "completed_at": vt.get("completed_at"),
            "visit_photo_url": vt.get("photo_url"),
        })
    return merged


def group_by_room(merged: list) -> list:
    rooms = {}
    for task in merged:
        rooms.setdefault(task.get("room"), []).append(task)

    return [
        {
            "room": room,
            "tasks": tasks,
            "completed": sum(1 for t in tasks if t["is_completed"]),
            "total": len(tasks),
        }
        for room, tasks in rooms.items()
    ]


# ============================================================================
# SUMMARY
# ============================================================================
@router.get("/summary", summary="Cleaning dashboard counts for one property")
def cleaning_summary(
    property_id: str = Query(...),
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, property_id)

    tasks = safe_select(client, "cleaning_tasks", {"property_id": property_id})
    issues = safe_select(client, "cleaning_issues", {"property_id": property_id, "is_resolved": False})
    open_visits = safe_select(
        client, "cleaning_visits",
        {"property_id": property_id, "status": CleaningVisitStatus.in_progress.value},
        order="visit_date", desc=True,
    )

    return {
        "property_id": property_id,
        "task_count": len(tasks),
        "room_count": len({t.get("room") for t in tasks}),
        "open_issues": len(issues),
        "active_visit": open_visits[0] if open_visits else None,
    }


# ============================================================================
# ROOMS
# ============================================================================
@router.get("/rooms", summary="List rooms")
def list_rooms(
    property_id: Optional[str] = None,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, property_id)

    query = client.table("cleaning_room_types").select("*")
    if property_id:
        query = query.eq("property_id", property_id)
    rooms = unwrap(execute(query.order("name")), "Failed to load rooms") or []
    return scope_rows(client, context.user.id, rooms)


@router.post("/rooms", status_code=201, summary="Add a room")
def create_room(
    payload: RoomCreate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, payload.property_id, PROPERTY_EDITOR_ROLES)

    slug = slugify(payload.slug or payload.name)
    if not slug:
        raise HTTPException(400, "Room name must contain letters or digits.")

    if safe_select(client, "cleaning_room_types", {"property_id": payload.property_id, "slug": slug}):
        raise HTTPException(400, f"A room with slug '{slug}' already exists for this property.")

    return safe_insert(client, "cleaning_room_types", {
        "property_id": payload.property_id,
        "name": payload.name,
        "slug": slug,
        "icon": payload.icon,
        "created_by": context.user.id,
        "created_at": utc_now_iso(),
    })


@router.patch("/rooms/{room_id}", summary="Rename a room")
def update_room(
    room_id: str,
    payload: RoomUpdate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    require_record_access(client, context.user.id, "cleaning_room_types", room_id,
                          label="Room", roles=PROPERTY_EDITOR_ROLES)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    # the slug stays put; catalogue tasks point at it
    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "cleaning_room_types", {"id": room_id}, updates)


@router.delete("/rooms/{room_id}", summary="Remove a room without tasks")
def delete_room(
    room_id: str,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    room = require_record_access(client, context.user.id, "cleaning_room_types", room_id,
                                 label="Room", roles=PROPERTY_EDITOR_ROLES)

    if safe_select(client, "cleaning_tasks", {"property_id": room["property_id"], "room": room["slug"]}):
        raise HTTPException(400, "Room still has cleaning tasks; move or delete them first.")

    safe_delete(client, "cleaning_room_types", {"id": room_id})
    return {"success": True}


# ============================================================================
# TASK CATALOGUE
# ============================================================================
@router.get("/tasks", summary="List cleaning tasks")
def list_tasks(
    property_id: Optional[str] = None,
    room: Optional[str] = None,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, property_id)

    query = client.table("cleaning_tasks").select("*")
    if property_id:
        query = query.eq("property_id", property_id)
    if room:
        query = query.eq("room", room)
    tasks = unwrap(execute(query.order("display_order")), "Failed to load cleaning tasks") or []
    return scope_rows(client, context.user.id, tasks)


@router.post("/tasks", status_code=201, summary="Add a task to a room")
def create_task(
    payload: CleaningTaskCreate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, payload.property_id, PROPERTY_EDITOR_ROLES)

    data = payload.model_dump()
    if data["display_order"] is None:
        data["display_order"] = len(safe_select(
            client, "cleaning_tasks", {"property_id": payload.property_id, "room": payload.room},
        ))
    data.update({"created_by": context.user.id, "created_at": utc_now_iso()})
    return safe_insert(client, "cleaning_tasks", data)


@router.patch("/tasks/{task_id}")
def update_task(
    task_id: str,
    payload: CleaningTaskUpdate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    require_record_access(client, context.user.id, "cleaning_tasks", task_id,
                          label="Cleaning task", roles=PROPERTY_EDITOR_ROLES)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "cleaning_tasks", {"id": task_id}, updates)


@router.delete("/tasks/{task_id}")
def delete_task(
    task_id: str,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    require_record_access(client, context.user.id, "cleaning_tasks", task_id,
                          label="Cleaning task", roles=PROPERTY_EDITOR_ROLES)

    # history keeps nothing for a task that no longer exists
    safe_delete(client, "cleaning_visit_tasks", {"task_id": task_id})
    safe_delete(client, "cleaning_tasks", {"id": task_id})
    return {"success": True}


# ============================================================================
# VISITS
# ============================================================================
@router.post("/visits", status_code=201, summary="Start a cleaning visit")
def create_visit(
    payload: VisitCreate,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    """
    From a reservation: the visit takes the reservation's property and start
    date. Otherwise property_id is required and the date defaults to today.
    """
    if payload.reservation_id:
        reservation = require_record_access(client, context.user.id, "reservations",
                                            payload.reservation_id, label="Reservation")
        property_id = reservation.get("property_id")
        if not property_id:
            raise HTTPException(400, "Reservation is not linked to a property.")
        visit_date = reservation.get("start_date")
    elif payload.property_id:
        check_property_scope(client, context.user.id, payload.property_id)
        property_id = payload.property_id
        visit_date = (payload.visit_date or date.today()).isoformat()
    else:
        raise HTTPException(400, "Either reservation_id or property_id is required.")

    visit = safe_insert(client, "cleaning_visits", {
        "property_id": property_id,
        "reservation_id": payload.reservation_id,
        "visit_date": visit_date,
        "status": CleaningVisitStatus.in_progress.value,
        "created_by": context.user.id,
        "created_at": utc_now_iso(),
    })

    tasks, visit_tasks = sync_visit_tasks(client, visit)
    log.info(f"Cleaning visit {visit['id']} started for property {property_id} ({len(visit_tasks)} tasks)")

    return {**visit, "progress": progress(visit_tasks)}


@router.get("/visits", summary="Cleaning history, newest first")
def list_visits(
    property_id: Optional[str] = None,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, property_id)

    query = client.table("cleaning_visits").select("*")
    if property_id:
        query = query.eq("property_id", property_id)
    visits = unwrap(execute(query.order("visit_date", desc=True)), "Failed to load cleaning visits") or []
    visits = scope_rows(client, context.user.id, visits)
    if not visits:
        return []

    visit_ids = [v["id"] for v in visits]
    visit_tasks = unwrap(
        execute(client.table("cleaning_visit_tasks").select("*").in_("visit_id", visit_ids)),
        "Failed to load visit tasks",
    ) or []

    reservation_ids = [v["reservation_id"] for v in visits if v.get("reservation_id")]
    titles = {}
    if reservation_ids:
        reservations = unwrap(
            execute(client.table("reservations").select("id, title").in_("id", reservation_ids)),
            "Failed to load reservations",
        ) or []
        titles = {r["id"]: r.get("title") for r in reservations}

    return [
        {
            **visit,
            "reservation_title": titles.get(visit.get("reservation_id")),
            "progress": progress([vt for vt in visit_tasks if vt["visit_id"] == visit["id"]]),
        }
        for visit in visits
    ]


@router.get("/visits/{visit_id}", summary="Visit with its tasks grouped by room")
def get_visit(
    visit_id: str,
    room: Optional[str] = None,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    visit = get_visit_row(client, context, visit_id)

    if visit.get("status") == CleaningVisitStatus.completed.value:
        tasks = safe_select(client, "cleaning_tasks", {"property_id": visit["property_id"]},
                            order="display_order")
        visit_tasks = safe_select(client, "cleaning_visit_tasks", {"visit_id": visit_id})
    else:
        tasks, visit_tasks = sync_visit_tasks(client, visit)

    merged = merge_tasks(tasks, visit_tasks, room)
    return {
        **visit,
        "progress": progress(visit_tasks),
        "rooms": group_by_room(merged),
    }


@router.post("/visits/{visit_id}/tasks/{visit_task_id}/complete", summary="Tick / untick one task")
def complete_visit_task(
    visit_id: str,
    visit_task_id: str,
    payload: VisitTaskComplete = VisitTaskComplete(),
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    visit = get_visit_row(client, context, visit_id)
    ensure_open(visit)

    if not safe_select(client, "cleaning_visit_tasks", {"id": visit_task_id, "visit_id": visit_id}):
        raise HTTPException(404, f"Visit task '{visit_task_id}' not found")

    done = payload.is_completed
    updates = {
        "is_completed": done,
        "completed_by": context.user.id if done else None,
        "completed_at": utc_now_iso() if done else None,
    }
    if payload.photo_url is not None:
        updates["photo_url"] = payload.photo_url

    return safe_update(client, "cleaning_visit_tasks", {"id": visit_task_id}, updates)


@router.post("/visits/{visit_id}/rooms/{room}/complete", summary="Tick every task in a room")
def complete_room(
    visit_id: str,
    room: str,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    visit = get_visit_row(client, context, visit_id)
    ensure_open(visit)

    tasks, visit_tasks = sync_visit_tasks(client, visit)
    ids = [t["visit_task_id"] for t in merge_tasks(tasks, visit_tasks, room) if t["visit_task_id"]]
    if not ids:
        raise HTTPException(404, f"No cleaning tasks for room '{room}'")

    query = (
        client.table("cleaning_visit_tasks")
        .update({
            "is_completed": True,
            "completed_by": context.user.id,
            "completed_at": utc_now_iso(),
        })
        .in_("id", ids)
    )
    updated = unwrap(execute(query), "Failed to complete room tasks") or []
    return {"success": True, "room": room, "completed": len(updated)}


@router.post("/visits/{visit_id}/complete", summary="Finish a visit")
def complete_visit(
    visit_id: str,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    """Open tasks do not block finishing; the history shows the progress."""
    visit = get_visit_row(client, context, visit_id)
    ensure_open(visit)

    visit_tasks = safe_select(client, "cleaning_visit_tasks", {"visit_id": visit_id})
    updated = safe_update(client, "cleaning_visits", {"id": visit_id}, {
        "status": CleaningVisitStatus.completed.value,
        "completed_by": context.user.id,
        "completed_at": utc_now_iso(),
    })

    log.info(f"Cleaning visit {visit_id} completed by {context.user.id}")
    return {**updated, "progress": progress(visit_tasks)}


@router.delete("/visits/{visit_id}", summary="Delete a visit and its task rows")
def delete_visit(
    visit_id: str,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_visit_row(client, context, visit_id, PROPERTY_EDITOR_ROLES)

    safe_delete(client, "cleaning_visit_tasks", {"visit_id": visit_id})
    safe_delete(client, "cleaning_visits", {"id": visit_id})
    return {"success": True}


# ============================================================================
# ISSUES
# ============================================================================
@router.get("/issues", summary="List reported issues")
def list_issues(
    property_id: Optional[str] = None,
    resolved: Optional[bool] = None,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, property_id)

    query = client.table("cleaning_issues").select("*")
    if property_id:
        query = query.eq("property_id", property_id)
    if resolved is not None:
        query = query.eq("is_resolved", resolved)
    issues = unwrap(execute(query.order("created_at", desc=True)), "Failed to load issues") or []
    return scope_rows(client, context.user.id, issues)


@router.post("/issues", status_code=201, summary="Report an issue")
def create_issue(
    payload: IssueCreate,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, payload.property_id)

    data = payload.model_dump(mode="json")
    data.update({
        "reported_by": context.user.id,
        "is_resolved": False,
        "created_at": utc_now_iso(),
    })
    issue = safe_insert(client, "cleaning_issues", data)
    log.info(f"Cleaning issue {issue['id']} ({payload.severity.value}) reported at {payload.property_id}")
    return issue


@router.post("/issues/{issue_id}/resolve", summary="Mark an issue resolved")
def resolve_issue(
    issue_id: str,
    payload: IssueResolve = IssueResolve(),
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    issue = require_record_access(client, context.user.id, "cleaning_issues", issue_id,
                                  label="Issue", roles=PROPERTY_EDITOR_ROLES)
    if issue.get("is_resolved"):
        raise HTTPException(400, "Issue is already resolved.")

    updates = {
        "is_resolved": True,
        "resolved_by": context.user.id,
        "resolved_at": utc_now_iso(),
    }
    if payload.notes is not None:
        updates["notes"] = payload.notes
    return safe_update(client, "cleaning_issues", {"id": issue_id}, updates)

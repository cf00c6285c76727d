# routers/tasks.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from core.permission_helpers import (
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
from models.enums import TaskPriority, TaskStatus
from models.task import TaskCreate, TaskUpdate


router = APIRouter(
    prefix="/tasks",
    tags=["Tasks"],
)

can_view = requires_feature("tasks_view")
can_edit = requires_feature("tasks_edit")


@router.get("", summary="Task board")
def list_tasks(
    property_id: Optional[str] = None,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    assigned_to: Optional[str] = None,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, property_id)

    query = client.table("tasks").select("*")
    if property_id:
        query = query.eq("property_id", property_id)
    if status:
        query = query.eq("status", status.value)
    if priority:
        query = query.eq("priority", priority.value)
    if assigned_to:
        query = query.eq("assigned_to", assigned_to)

    tasks = unwrap(execute(query.order("created_at", desc=True)), "Failed to load tasks") or []
    return scope_rows(client, context.user.id, tasks)


@router.get("/{task_id}", summary="Get one task")
def get_task(
    task_id: str,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    return require_record_access(client, context.user.id, "tasks", task_id, label="Task")


@router.post("", status_code=201, summary="Create a task")
def create_task(
    payload: TaskCreate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, payload.property_id, PROPERTY_EDITOR_ROLES)

    data = payload.model_dump(mode="json")
    data.update({"created_by": context.user.id, "created_at": utc_now_iso()})
    return safe_insert(client, "tasks", data)


@router.patch("/{task_id}", summary="Update a task")
def update_task(
    task_id: str,
    payload: TaskUpdate,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    """
    Editors change anything. The assignee may move the task between
    columns (status) but nothing else.
    """
    task = require_record_access(client, context.user.id, "tasks", task_id, label="Task")
    updates = payload.model_dump(exclude_unset=True, mode="json")
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    editor = context.can_access("manager", "tasks_edit")
    assignee_move = task.get("assigned_to") == context.user.id and set(updates) == {"status"}
    if not (editor or assignee_move):
        raise HTTPException(403, "Insufficient permissions: permission 'tasks_edit' required")
    if not assignee_move:
        check_property_scope(client, context.user.id, task.get("property_id"), PROPERTY_EDITOR_ROLES)

    if updates.get("status") == TaskStatus.completed.value:
        updates["completed_at"] = utc_now_iso()
    elif "status" in updates:
        updates["completed_at"] = None

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "tasks", {"id": task_id}, updates)


@router.delete("/{task_id}", summary="Delete a task")
def delete_task(
    task_id: str,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    require_record_access(client, context.user.id, "tasks", task_id, label="Task",
                          roles=PROPERTY_EDITOR_ROLES)
    safe_delete(client, "tasks", {"id": task_id})
    return {"success": True}

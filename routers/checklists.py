# routers/checklists.py

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
from core.supabase_helpers import execute, safe_delete, safe_insert, safe_select, safe_update, unwrap
from core.utils import utc_now_iso
from models.checklist import ChecklistCreate, ChecklistItemCreate, ChecklistItemUpdate, ChecklistUpdate


router = APIRouter(
    prefix="/checklists",
    tags=["Checklists"],
)

can_view = requires_feature("checklists_view")
can_edit = requires_feature("checklists_edit")


def load_items(client, checklist_id: str) -> list:
    return safe_select(client, "checklist_items", {"checklist_id": checklist_id}, order="order_index")


def get_checklist_row(client, context: SessionContext, checklist_id: str,
                      roles=ALL_MEMBERSHIP_ROLES) -> dict:
    return require_record_access(client, context.user.id, "checklists", checklist_id,
                                 label="Checklist", roles=roles)


def get_item(client, checklist_id: str, item_id: str) -> dict:
    rows = safe_select(client, "checklist_items", {"id": item_id, "checklist_id": checklist_id})
    if not rows:
        raise HTTPException(404, f"Checklist item '{item_id}' not found")
    return rows[0]


def _item_row(checklist_id: str, item: ChecklistItemCreate, position: int) -> dict:
    data = item.model_dump()
    if data.get("order_index") is None:
        data["order_index"] = position
    data.update({"checklist_id": checklist_id, "created_at": utc_now_iso()})
    return data


# ============================================================================
# CHECKLISTS
# ============================================================================
@router.get("", summary="List checklists")
def list_checklists(
    property_id: Optional[str] = None,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, property_id)

    query = client.table("checklists").select("*")
    if property_id:
        query = query.eq("property_id", property_id)
    checklists = unwrap(execute(query.order("created_at", desc=True)), "Failed to load checklists") or []
    return scope_rows(client, context.user.id, checklists)


@router.get("/{checklist_id}", summary="Checklist with its items")
def get_checklist(
    checklist_id: str,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    checklist = get_checklist_row(client, context, checklist_id)
    return {**checklist, "items": load_items(client, checklist_id)}


@router.post("", status_code=201, summary="Create a checklist (optionally with items)")
def create_checklist(
    payload: ChecklistCreate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    """
    Checklist row first, then one insert for all items. When the items
    insert fails the checklist stays; the error carries its id.
    """
    check_property_scope(client, context.user.id, payload.property_id, PROPERTY_EDITOR_ROLES)

    checklist = safe_insert(client, "checklists", {
        "title": payload.title,
        "description": payload.description,
        "property_id": payload.property_id,
        "created_by": context.user.id,
        "created_at": utc_now_iso(),
    })

    items = []
    if payload.items:
        rows = [_item_row(checklist["id"], item, i) for i, item in enumerate(payload.items)]
        result = execute(client.table("checklist_items").insert(rows))
        if result.error is not None:
            logger.error(f"Checklist {checklist['id']} created but its items failed: {result.error.message}")
            raise HTTPException(500, {
                "error": f"Checklist created but items could not be saved: {result.error.message}",
                "code": result.error.code,
                "created": {"checklist_id": checklist["id"]},
                "partial_success": True,
            })
        items = result.data or []

    return {**checklist, "items": items}


@router.patch("/{checklist_id}", summary="Rename / describe a checklist")
def update_checklist(
    checklist_id: str,
    payload: ChecklistUpdate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_checklist_row(client, context, checklist_id, PROPERTY_EDITOR_ROLES)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "checklists", {"id": checklist_id}, updates)


@router.delete("/{checklist_id}", summary="Delete a checklist and its items")
def delete_checklist(
    checklist_id: str,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_checklist_row(client, context, checklist_id, PROPERTY_EDITOR_ROLES)

    # items first; nothing cascades for us
    safe_delete(client, "checklist_items", {"checklist_id": checklist_id})
    safe_delete(client, "checklists", {"id": checklist_id})
    return {"success": True}


# ============================================================================
# ITEMS
# ============================================================================
@router.post("/{checklist_id}/items", status_code=201, summary="Add an item")
def add_item(
    checklist_id: str,
    payload: ChecklistItemCreate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_checklist_row(client, context, checklist_id, PROPERTY_EDITOR_ROLES)
    position = len(load_items(client, checklist_id))
    return safe_insert(client, "checklist_items", _item_row(checklist_id, payload, position))


@router.patch("/{checklist_id}/items/{item_id}", summary="Edit an item")
def update_item(
    checklist_id: str,
    item_id: str,
    payload: ChecklistItemUpdate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_checklist_row(client, context, checklist_id, PROPERTY_EDITOR_ROLES)
    get_item(client, checklist_id, item_id)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "checklist_items", {"id": item_id}, updates)


@router.post("/{checklist_id}/items/{item_id}/toggle", summary="Tick / untick an item")
def toggle_item(
    checklist_id: str,
    item_id: str,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    """Anyone who can see the checklist can work through it."""
    get_checklist_row(client, context, checklist_id)
    item = get_item(client, checklist_id, item_id)
    done = not bool(item.get("is_completed"))

    return safe_update(client, "checklist_items", {"id": item_id}, {
        "is_completed": done,
        "completed_by": context.user.id if done else None,
        "completed_at": utc_now_iso() if done else None,
    })


@router.delete("/{checklist_id}/items/{item_id}", summary="Remove an item")
def delete_item(
    checklist_id: str,
    item_id: str,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_checklist_row(client, context, checklist_id, PROPERTY_EDITOR_ROLES)
    get_item(client, checklist_id, item_id)
    safe_delete(client, "checklist_items", {"id": item_id})
    return {"success": True}

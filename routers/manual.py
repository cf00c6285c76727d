# routers/manual.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

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
from core.supabase_helpers import execute, safe_delete, safe_get, safe_insert, safe_select, safe_update, unwrap
from core.utils import utc_now_iso
from models.manual import ManualItemCreate, ManualItemUpdate, ManualSectionCreate, ManualSectionUpdate


router = APIRouter(
    prefix="/manual",
    tags=["House Manual"],
)

can_view = requires_feature("manual_view")
can_edit = requires_feature("manual_edit")


def _next_index(rows: list) -> int:
    indexes = [r.get("order_index") for r in rows if r.get("order_index") is not None]
    return max(indexes) + 1 if indexes else 0


def get_section_row(client, context: SessionContext, section_id: str,
                    roles=ALL_MEMBERSHIP_ROLES) -> dict:
    return require_record_access(client, context.user.id, "manual_sections", section_id,
                                 label="Manual section", roles=roles)


def get_item_row(client, context: SessionContext, item_id: str) -> dict:
    """Items carry no property_id; edit rights follow their section."""
    item = safe_get(client, "manual_items", item_id, label="Manual item")
    get_section_row(client, context, item["section_id"], PROPERTY_EDITOR_ROLES)
    return item


# ============================================================================
# SECTIONS
# ============================================================================
@router.get("/sections", summary="Manual sections with their items, in order")
def list_sections(
    property_id: Optional[str] = None,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, property_id)

    query = client.table("manual_sections").select("*")
    if property_id:
        query = query.eq("property_id", property_id)
    sections = unwrap(execute(query.order("order_index")), "Failed to load manual sections") or []
    sections = scope_rows(client, context.user.id, sections)
    if not sections:
        return []

    items_query = (
        client.table("manual_items")
        .select("*")
        .in_("section_id", [s["id"] for s in sections])
        .order("order_index")
    )
    items = unwrap(execute(items_query), "Failed to load manual items") or []

    by_section = {}
    for item in items:
        by_section.setdefault(item["section_id"], []).append(item)

    return [{**s, "items": by_section.get(s["id"], [])} for s in sections]


@router.get("/sections/{section_id}")
def get_section(
    section_id: str,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    section = get_section_row(client, context, section_id)
    items = safe_select(client, "manual_items", {"section_id": section_id}, order="order_index")
    return {**section, "items": items}


@router.post("/sections", status_code=201)
def create_section(
    payload: ManualSectionCreate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, payload.property_id, PROPERTY_EDITOR_ROLES)

    data = payload.model_dump()
    if data.get("order_index") is None:
        siblings = safe_select(client, "manual_sections",
                               {"property_id": payload.property_id} if payload.property_id else None)
        data["order_index"] = _next_index(siblings)

    data["created_at"] = utc_now_iso()
    return safe_insert(client, "manual_sections", data)


@router.patch("/sections/{section_id}")
def update_section(
    section_id: str,
    payload: ManualSectionUpdate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_section_row(client, context, section_id, PROPERTY_EDITOR_ROLES)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "manual_sections", {"id": section_id}, updates)


@router.delete("/sections/{section_id}", summary="Delete a section and its items")
def delete_section(
    section_id: str,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_section_row(client, context, section_id, PROPERTY_EDITOR_ROLES)
    safe_delete(client, "manual_items", {"section_id": section_id})
    safe_delete(client, "manual_sections", {"id": section_id})
    return {"success": True}


# ============================================================================
# ITEMS
# ============================================================================
@router.post("/sections/{section_id}/items", status_code=201)
def create_item(
    section_id: str,
    payload: ManualItemCreate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_section_row(client, context, section_id, PROPERTY_EDITOR_ROLES)

    data = payload.model_dump()
    if data.get("order_index") is None:
        data["order_index"] = _next_index(safe_select(client, "manual_items", {"section_id": section_id}))

    data.update({"section_id": section_id, "created_at": utc_now_iso()})
    return safe_insert(client, "manual_items", data)


@router.patch("/items/{item_id}")
def update_item(
    item_id: str,
    payload: ManualItemUpdate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_item_row(client, context, item_id)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "manual_items", {"id": item_id}, updates)


@router.delete("/items/{item_id}")
def delete_item(
    item_id: str,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    get_item_row(client, context, item_id)
    safe_delete(client, "manual_items", {"id": item_id})
    return {"success": True}

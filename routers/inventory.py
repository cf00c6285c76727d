# routers/inventory.py

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
from models.inventory import InventoryItemCreate, InventoryItemUpdate


router = APIRouter(
    prefix="/inventory",
    tags=["Inventory"],
)

can_view = requires_feature("inventory_view")
can_edit = requires_feature("inventory_edit")


def is_low_stock(item: dict) -> bool:
    threshold = item.get("threshold")
    if threshold is None:
        return False
    return (item.get("quantity") or 0) <= threshold


@router.get("", summary="List inventory")
def list_inventory(
    property_id: Optional[str] = None,
    category: Optional[str] = None,
    low_stock: bool = False,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, property_id)

    query = client.table("inventory").select("*")
    if property_id:
        query = query.eq("property_id", property_id)
    if category:
        query = query.eq("category", category)

    items = unwrap(execute(query.order("name")), "Failed to load inventory") or []
    items = scope_rows(client, context.user.id, items)
    items = [{**item, "low_stock": is_low_stock(item)} for item in items]

    # quantity <= threshold is a column-to-column compare; filter here
    if low_stock:
        items = [item for item in items if item["low_stock"]]
    return items


@router.get("/{item_id}")
def get_item(
    item_id: str,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    item = require_record_access(client, context.user.id, "inventory", item_id, label="Inventory item")
    return {**item, "low_stock": is_low_stock(item)}


@router.post("", status_code=201)
def create_item(
    payload: InventoryItemCreate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, payload.property_id, PROPERTY_EDITOR_ROLES)

    data = payload.model_dump()
    data.update({"user_id": context.user.id, "created_at": utc_now_iso()})
    return safe_insert(client, "inventory", data)


@router.patch("/{item_id}")
def update_item(
    item_id: str,
    payload: InventoryItemUpdate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    require_record_access(client, context.user.id, "inventory", item_id, label="Inventory item",
                          roles=PROPERTY_EDITOR_ROLES)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "inventory", {"id": item_id}, updates)


@router.delete("/{item_id}")
def delete_item(
    item_id: str,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    require_record_access(client, context.user.id, "inventory", item_id, label="Inventory item",
                          roles=PROPERTY_EDITOR_ROLES)
    safe_delete(client, "inventory", {"id": item_id})
    return {"success": True}

# routers/properties.py

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from core.logging_config import logger
from core.permission_helpers import (
    PROPERTY_EDITOR_ROLES,
    get_accessible_tenant_ids,
    require_property_access,
    require_tenant_role,
)
from core.supabase_client import get_admin_client
from core.supabase_helpers import execute, safe_insert, safe_update, unwrap
from core.utils import utc_now_iso
from dependencies.auth import CurrentUser, get_current_user
from models.property import PropertyCreate, PropertyUpdate


router = APIRouter(
    prefix="/properties",
    tags=["Properties"],
)


# ============================================================================
# PROPERTY CRUD (scoped to the caller's tenants)
# ============================================================================
@router.get("", summary="List properties in the caller's tenants")
def list_properties(
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    tenant_ids = get_accessible_tenant_ids(client, current_user.id)
    if not tenant_ids:
        return []

    query = (
        client.table("properties")
        .select("*")
        .in_("tenant_id", tenant_ids)
        .order("created_at", desc=True)
    )
    return unwrap(execute(query), "Failed to load properties") or []


@router.get("/{property_id}", summary="Get one property")
def get_property(
    property_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    return require_property_access(client, current_user.id, property_id)


@router.post("", status_code=201, summary="Create a property")
def create_property(
    payload: PropertyCreate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    tenant_id = payload.tenant_id
    if tenant_id is None:
        tenant_ids = get_accessible_tenant_ids(client, current_user.id)
        if len(tenant_ids) != 1:
            raise HTTPException(400, "tenant_id is required when you belong to several tenants (or none).")
        tenant_id = tenant_ids[0]

    require_tenant_role(client, current_user.id, tenant_id, PROPERTY_EDITOR_ROLES)

    data = payload.model_dump(exclude={"tenant_id"})
    data.update({
        "tenant_id": tenant_id,
        "created_by": current_user.id,
        "created_at": utc_now_iso(),
    })

    row = safe_insert(client, "properties", data)
    logger.info(f"Property {row and row.get('id')} created in tenant {tenant_id} by {current_user.id}")
    return row


@router.patch("/{property_id}", summary="Update a property")
def update_property(
    property_id: str,
    payload: PropertyUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    require_property_access(client, current_user.id, property_id, PROPERTY_EDITOR_ROLES)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "properties", {"id": property_id}, updates)

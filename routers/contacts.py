# routers/contacts.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from core.permission_helpers import (
    PROPERTY_EDITOR_ROLES,
    check_property_scope,
    get_accessible_tenant_ids,
    require_record_access,
    requires_feature,
    scope_rows,
)
from core.session import SessionContext
from core.supabase_client import get_admin_client
from core.supabase_helpers import execute, safe_delete, safe_insert, safe_update, unwrap
from core.utils import utc_now_iso
from models.contact import ContactCreate, ContactUpdate
from models.enums import MembershipStatus


router = APIRouter(
    prefix="/contacts",
    tags=["Contacts"],
)

can_view = requires_feature("contacts_view")
can_edit = requires_feature("contacts_edit")

# profile columns safe to show other members
PEOPLE_COLUMNS = "id, full_name, email, phone_number, role"


@router.get("", summary="Service contacts, highest priority first")
def list_contacts(
    property_id: Optional[str] = None,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, property_id)

    query = client.table("contacts").select("*")
    if property_id:
        query = query.eq("property_id", property_id)
    query = query.order("priority", desc=True).order("name")

    contacts = unwrap(execute(query), "Failed to load contacts") or []
    return scope_rows(client, context.user.id, contacts)


@router.get("/people", summary="Users who opted into the contact list")
def list_people(
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    """Only people sharing an active tenant with the caller."""
    tenant_ids = get_accessible_tenant_ids(client, context.user.id)
    if not tenant_ids:
        return []

    members = unwrap(execute(
        client.table("tenant_users")
        .select("user_id")
        .in_("tenant_id", tenant_ids)
        .eq("status", MembershipStatus.active.value)
    ), "Failed to load tenant members") or []

    query = (
        client.table("profiles")
        .select(PEOPLE_COLUMNS)
        .in_("id", sorted({m["user_id"] for m in members}))
        .eq("show_in_contacts", True)
        .order("full_name")
    )
    return unwrap(execute(query), "Failed to load profiles") or []


@router.get("/{contact_id}")
def get_contact(
    contact_id: str,
    context: SessionContext = Depends(can_view),
    client: Client = Depends(get_admin_client),
):
    return require_record_access(client, context.user.id, "contacts", contact_id, label="Contact")


@router.post("", status_code=201)
def create_contact(
    payload: ContactCreate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, payload.property_id, PROPERTY_EDITOR_ROLES)

    data = payload.model_dump()
    data.update({"created_by": context.user.id, "created_at": utc_now_iso()})
    return safe_insert(client, "contacts", data)


@router.patch("/{contact_id}")
def update_contact(
    contact_id: str,
    payload: ContactUpdate,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    require_record_access(client, context.user.id, "contacts", contact_id, label="Contact",
                          roles=PROPERTY_EDITOR_ROLES)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "contacts", {"id": contact_id}, updates)


@router.delete("/{contact_id}")
def delete_contact(
    contact_id: str,
    context: SessionContext = Depends(can_edit),
    client: Client = Depends(get_admin_client),
):
    require_record_access(client, context.user.id, "contacts", contact_id, label="Contact",
                          roles=PROPERTY_EDITOR_ROLES)
    safe_delete(client, "contacts", {"id": contact_id})
    return {"success": True}

# routers/tenants.py

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from core.auth_provider import AuthProvider, user_from_response
from core.config import settings
from core.logging_config import logger
from core.permission_helpers import (
    ALL_MEMBERSHIP_ROLES,
    TENANT_ADMIN_ROLES,
    get_active_memberships,
    require_tenant_role,
)
from core.supabase_client import get_admin_client
from core.supabase_helpers import execute, safe_delete, safe_insert, safe_select, safe_update, unwrap
from core.utils import utc_now_iso
from dependencies.auth import CurrentUser, get_current_user
from models.enums import MembershipRole, MembershipStatus
from models.tenant import TenantCreate, TenantMemberInvite, TenantMemberUpdate
from services import tenant_signup


router = APIRouter(
    prefix="/tenants",
    tags=["Tenants"],
)


# -----------------------------------------------------
# Helper: a tenant always keeps one active owner
# -----------------------------------------------------
def prevent_removing_last_owner(client, tenant_id: str, user_id: str):
    owners = safe_select(client, "tenant_users", {
        "tenant_id": tenant_id,
        "role": MembershipRole.owner.value,
        "status": MembershipStatus.active.value,
    })
    owner_ids = {o["user_id"] for o in owners}

    if user_id in owner_ids and len(owner_ids) == 1:
        raise HTTPException(400, "A tenant must keep at least one owner.")


def get_membership(client, tenant_id: str, user_id: str) -> dict:
    rows = safe_select(client, "tenant_users", {"tenant_id": tenant_id, "user_id": user_id})
    if not rows:
        raise HTTPException(404, "Membership not found")
    return rows[0]


# -----------------------------------------------------
# LIST / CREATE TENANTS
# -----------------------------------------------------
@router.get("", summary="Tenants the current user belongs to")
def list_tenants(
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    memberships = get_active_memberships(client, current_user.id)
    if not memberships:
        return []

    role_by_tenant = {m["tenant_id"]: m["role"] for m in memberships}
    query = client.table("tenants").select("*").in_("id", list(role_by_tenant))
    tenants = unwrap(execute(query), "Failed to load tenants") or []

    return [{**t, "membership_role": role_by_tenant.get(t["id"])} for t in tenants]


@router.post("", status_code=201, summary="Create an additional tenant")
def create_tenant(
    payload: TenantCreate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    return tenant_signup.create_tenant(client, current_user, payload.name.strip())


# -----------------------------------------------------
# MEMBERS
# -----------------------------------------------------
@router.get("/{tenant_id}/members", summary="List tenant members")
def list_members(
    tenant_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    require_tenant_role(client, current_user.id, tenant_id, ALL_MEMBERSHIP_ROLES)
    return safe_select(client, "tenant_users", {"tenant_id": tenant_id}, order="created_at")


@router.post("/{tenant_id}/members", status_code=201, summary="Add or invite a member")
def add_member(
    tenant_id: str,
    payload: TenantMemberInvite,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    """
    Known email → active membership.
    Unknown email → invitation + 'invited' membership.
    """
    membership = require_tenant_role(client, current_user.id, tenant_id, TENANT_ADMIN_ROLES)

    if payload.role == MembershipRole.owner and membership["role"] != MembershipRole.owner.value:
        raise HTTPException(403, "Only an owner may add another owner.")

    email = payload.email.strip().lower()
    existing = safe_select(client, "profiles", {"email": email})

    if existing:
        user_id = existing[0]["id"]
        status = MembershipStatus.active.value
        invite_sent = False
    else:
        result = AuthProvider(client, privileged=True).invite_user_by_email(
            email,
            redirect_to=settings.invite_redirect_url,
            data={
                "property_name": settings.PROPERTY_NAME,
                "full_name": payload.full_name,
                "tenant_id": tenant_id,
            },
        )
        user = user_from_response(unwrap(result, "Failed to send invitation"))
        user_id = str(user.id)
        status = MembershipStatus.invited.value
        invite_sent = True

    if safe_select(client, "tenant_users", {"tenant_id": tenant_id, "user_id": user_id}):
        raise HTTPException(400, "User is already a member of this tenant.")

    row = safe_insert(client, "tenant_users", {
        "tenant_id": tenant_id,
        "user_id": user_id,
        "role": payload.role.value,
        "status": status,
        "created_at": utc_now_iso(),
    })

    logger.info(f"{current_user.id} added {user_id} to tenant {tenant_id} as {payload.role.value} ({status})")
    return {"success": True, "membership": row, "invite_sent": invite_sent}


@router.patch("/{tenant_id}/members/{user_id}", summary="Change a member's role or status")
def update_member(
    tenant_id: str,
    user_id: str,
    payload: TenantMemberUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    actor = require_tenant_role(client, current_user.id, tenant_id, TENANT_ADMIN_ROLES)
    target = get_membership(client, tenant_id, user_id)

    updates = payload.model_dump(exclude_unset=True, mode="json")
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    touches_owner = target["role"] == MembershipRole.owner.value or updates.get("role") == MembershipRole.owner.value
    if touches_owner and actor["role"] != MembershipRole.owner.value:
        raise HTTPException(403, "Only an owner may change owner memberships.")

    losing_owner = target["role"] == MembershipRole.owner.value and (
        updates.get("role", MembershipRole.owner.value) != MembershipRole.owner.value
        or updates.get("status", MembershipStatus.active.value) != MembershipStatus.active.value
    )
    if losing_owner:
        prevent_removing_last_owner(client, tenant_id, user_id)

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "tenant_users", {"tenant_id": tenant_id, "user_id": user_id}, updates)


@router.delete("/{tenant_id}/members/{user_id}", summary="Remove a member (or leave)")
def remove_member(
    tenant_id: str,
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    if user_id != current_user.id:
        actor = require_tenant_role(client, current_user.id, tenant_id, TENANT_ADMIN_ROLES)
    else:
        actor = get_membership(client, tenant_id, user_id)

    target = get_membership(client, tenant_id, user_id)
    if target["role"] == MembershipRole.owner.value:
        if actor["role"] != MembershipRole.owner.value:
            raise HTTPException(403, "Only an owner may remove an owner.")
        prevent_removing_last_owner(client, tenant_id, user_id)

    safe_delete(client, "tenant_users", {"tenant_id": tenant_id, "user_id": user_id})
    logger.info(f"{current_user.id} removed {user_id} from tenant {tenant_id}")
    return {"success": True}

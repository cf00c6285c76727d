# routers/admin.py

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from core.auth_provider import AuthProvider, user_from_response
from core.config import settings
from core.logging_config import logger
from core.permission_helpers import requires_access
from core.roles import is_valid_role
from core.session import SessionContext
from core.supabase_client import get_admin_client
from core.supabase_helpers import execute, unwrap
from core.utils import first_row
from models.user import (
    AdminCreateUser,
    AdminUpdateUser,
    DeletionResult,
    ProvisioningResult,
    RoleGrant,
)
from services import user_provisioning


# users_manage in the matrix, or the owner role
require_user_admin = requires_access(role="owner", permission="users_manage")

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_user_admin)],
)


# -----------------------------------------------------
# Helper: only owners hand out the owner role
# -----------------------------------------------------
def validate_role_change(context: SessionContext, desired_role: str):
    if not is_valid_role(desired_role):
        raise HTTPException(400, f"Invalid role: {desired_role}")

    if desired_role == "owner" and not context.has_role("owner"):
        raise HTTPException(403, "Only an owner may assign the owner role.")


def protect_owner_account(context: SessionContext, client, user_id: str):
    """Accounts currently holding owner are changed or removed by owners only."""
    if context.has_role("owner"):
        return
    if "owner" in user_provisioning.get_user_roles(client, user_id):
        raise HTTPException(403, "Only an owner may modify an owner account.")


# -----------------------------------------------------
# CREATE USER (principal + profile + role + invite)
# -----------------------------------------------------
@router.post(
    "/users",
    response_model=ProvisioningResult,
    status_code=201,
    summary="Create a user and send an invitation",
)
def create_user(
    payload: AdminCreateUser,
    context: SessionContext = Depends(require_user_admin),
    client: Client = Depends(get_admin_client),
):
    """
    Responds 201 even when the role row or the invitation failed;
    check `roleAssigned` / `inviteSent`. A failed first or second step is
    a ProvisioningError (400 / 500) naming the step.
    """
    validate_role_change(context, payload.role.value)

    payload.email = payload.email.strip().lower()
    result = user_provisioning.provision_user(client, payload)

    logger.info(f"User {result.user_id} created by {context.user.id}")
    return result


# -----------------------------------------------------
# LIST USERS
# -----------------------------------------------------
@router.get("/users", summary="List users with their roles")
def list_users(client: Client = Depends(get_admin_client)):
    return user_provisioning.list_users_with_roles(client)


# -----------------------------------------------------
# GET USER
# -----------------------------------------------------
@router.get("/users/{user_id}", summary="Get one user")
def get_user(user_id: str, client: Client = Depends(get_admin_client)):
    result = AuthProvider(client, privileged=True).get_user_by_id(user_id)
    user = user_from_response(result.data) if result.ok else None
    if user is None:
        raise HTTPException(404, "User not found")

    profile = first_row(unwrap(
        execute(client.table("profiles").select("*").eq("id", user_id)),
        "Failed to load profile",
    ))

    return {
        "id": str(user.id),
        "email": getattr(user, "email", None),
        "metadata": getattr(user, "user_metadata", None) or {},
        "profile": profile,
        "roles": user_provisioning.get_user_roles(client, user_id),
    }


# -----------------------------------------------------
# UPDATE USER
# -----------------------------------------------------
@router.patch("/users/{user_id}", summary="Update a user")
def update_user(
    user_id: str,
    payload: AdminUpdateUser,
    context: SessionContext = Depends(require_user_admin),
    client: Client = Depends(get_admin_client),
):
    protect_owner_account(context, client, user_id)
    if payload.role is not None:
        validate_role_change(context, payload.role.value)
        if user_id == context.user.id and payload.role.value != context.highest_role:
            raise HTTPException(400, "You cannot change your own role.")

    result = user_provisioning.update_user(client, user_id, payload)
    logger.info(f"User {user_id} updated by {context.user.id}: {result['updated']}")
    return result


# -----------------------------------------------------
# DELETE USER (roles → profile → auth)
# -----------------------------------------------------
@router.delete("/users/{user_id}", response_model=DeletionResult, summary="Delete a user")
def delete_user(
    user_id: str,
    context: SessionContext = Depends(require_user_admin),
    client: Client = Depends(get_admin_client),
):
    if user_id == context.user.id:
        raise HTTPException(400, "You cannot delete your own account.")

    protect_owner_account(context, client, user_id)
    user_provisioning.ensure_not_last_owner(client, user_id)

    result = user_provisioning.delete_user(client, user_id)
    logger.info(f"User {user_id} deleted by {context.user.id}")
    return result


# -----------------------------------------------------
# ROLE ASSIGNMENTS
# -----------------------------------------------------
@router.post("/users/{user_id}/roles", summary="Grant an additional role")
def grant_role(
    user_id: str,
    payload: RoleGrant,
    context: SessionContext = Depends(require_user_admin),
    client: Client = Depends(get_admin_client),
):
    validate_role_change(context, payload.role.value)
    protect_owner_account(context, client, user_id)
    roles = user_provisioning.grant_role(client, user_id, payload.role.value)
    return {"success": True, "user_id": user_id, "roles": roles}


@router.delete("/users/{user_id}/roles/{role}", summary="Revoke a role")
def revoke_role(
    user_id: str,
    role: str,
    context: SessionContext = Depends(require_user_admin),
    client: Client = Depends(get_admin_client),
):
    validate_role_change(context, role)
    protect_owner_account(context, client, user_id)
    roles = user_provisioning.revoke_role(client, user_id, role)
    return {"success": True, "user_id": user_id, "roles": roles}


# -----------------------------------------------------
# RESEND INVITE
# -----------------------------------------------------
@router.post("/users/{user_id}/resend-invite", summary="Resend the invitation email")
def resend_invite(user_id: str, client: Client = Depends(get_admin_client)):
    auth = AuthProvider(client, privileged=True)

    result = auth.get_user_by_id(user_id)
    user = user_from_response(result.data) if result.ok else None
    if user is None or not getattr(user, "email", None):
        raise HTTPException(404, "User not found")

    sent = auth.invite_user_by_email(
        user.email,
        redirect_to=settings.invite_redirect_url,
        data={"property_name": settings.PROPERTY_NAME},
    )
    if sent.error is not None:
        logger.warning(f"Resend invite to {user.email} failed: {sent.error.message}")
        raise HTTPException(500, {"error": f"Failed to send invitation: {sent.error.message}",
                                  "code": sent.error.code})

    return {"success": True, "user_id": user_id, "inviteSent": True}

# services/user_provisioning.py

"""
Administrator-side principal lifecycle: create (profile + role + invitation),
update, delete, and multi-role grant / revoke.

profiles.role is a read cache of the highest entry in user_roles. It is only
ever written right after a user_roles write for the same principal.
"""

from typing import Iterable, Optional

from fastapi import HTTPException

from core.auth_provider import AuthProvider, user_from_response
from core.config import settings
from core.logging_config import get_logger
from core.roles import highest_role, validate_role
from core.supabase_helpers import SupabaseResult, execute, unwrap
from core.utils import utc_now_iso
from models.user import AdminCreateUser, AdminUpdateUser, DeletionResult, ProvisioningResult
from services.provisioning import ProvisioningSaga, ProvisioningStep

log = get_logger("provisioning.users")

PROFILE_FIELDS = ("full_name", "email", "phone_number", "address", "show_in_contacts")


def _compensate_default(compensate: Optional[bool]) -> bool:
    return settings.PROVISIONING_COMPENSATE if compensate is None else compensate


# ============================================================
# CREATE
# ============================================================
def provision_user(
    client,
    payload: AdminCreateUser,
    *,
    redirect_to: Optional[str] = None,
    compensate: Optional[bool] = None,
) -> ProvisioningResult:
    """
    1. create principal (no password)   fatal, auth error surfaced verbatim
    2. insert profile                    fatal
    3. insert role assignment            non-fatal
    4. send invitation                   non-fatal
    """
    role = validate_role(str(payload.role))
    auth = AuthProvider(client, privileged=True)
    redirect_to = redirect_to or settings.invite_redirect_url

    def create_principal(state):
        result = auth.create_user(
            payload.email,
            metadata={"full_name": payload.full_name, "role": role},
        )
        user = user_from_response(result.data) if result.ok else None
        if result.ok:
            state["user_id"] = str(user.id)
        return result

    def delete_principal(state):
        return auth.delete_user(state["user_id"])

    def insert_profile(state):
        now = utc_now_iso()
        return execute(
            client.table("profiles").insert({
                "id": state["user_id"],
                "full_name": payload.full_name,
                "email": payload.email,
                "phone_number": payload.phone_number,
                "address": payload.address,
                "show_in_contacts": payload.show_in_contacts,
                "role": role,
                "created_at": now,
                "updated_at": now,
            })
        )

    def delete_profile(state):
        return execute(client.table("profiles").delete().eq("id", state["user_id"]))

    def assign_role(state):
        now = utc_now_iso()
        return execute(
            client.table("user_roles").insert({
                "user_id": state["user_id"],
                "role": role,
                "assigned_at": now,
                "created_at": now,
                "updated_at": now,
            })
        )

    def send_invitation(state):
        return auth.invite_user_by_email(
            payload.email,
            redirect_to=redirect_to,
            data={"property_name": settings.PROPERTY_NAME},
        )

    saga = ProvisioningSaga("provision_user", [
        ProvisioningStep(
            "create_principal", create_principal,
            undo=delete_principal,
            record=lambda data: {"user_id": str(user_from_response(data).id)},
            status_code=400,
            describe="create auth user",
        ),
        ProvisioningStep("insert_profile", insert_profile, undo=delete_profile,
                         describe="create profile"),
        ProvisioningStep("assign_role", assign_role, fatal=False),
        ProvisioningStep("send_invitation", send_invitation, fatal=False),
    ], compensate=_compensate_default(compensate))

    state = {}
    outcome = saga.run(state)

    log.info(
        f"Provisioned {payload.email} as {state['user_id']} "
        f"(role={'ok' if outcome.succeeded('assign_role') else 'FAILED'}, "
        f"invite={'sent' if outcome.succeeded('send_invitation') else 'FAILED'})"
    )

    return ProvisioningResult(
        success=True,
        user_id=state["user_id"],
        invite_sent=outcome.succeeded("send_invitation"),
        role_assigned=outcome.succeeded("assign_role"),
        warnings=outcome.failed,
    )


# ============================================================
# DELETE
# ============================================================
def delete_user(client, user_id: str) -> DeletionResult:
    """
    Reverse dependency order:
    1. role assignments   non-fatal
    2. profile            fatal, auth user untouched
    3. auth principal     fatal, reported as partial success
    """
    auth = AuthProvider(client, privileged=True)

    saga = ProvisioningSaga("delete_user", [
        ProvisioningStep(
            "delete_role_assignments",
            lambda s: execute(client.table("user_roles").delete().eq("user_id", user_id)),
            fatal=False,
        ),
        ProvisioningStep(
            "delete_profile",
            lambda s: execute(client.table("profiles").delete().eq("id", user_id)),
            describe="delete profile",
        ),
        ProvisioningStep(
            "delete_principal",
            lambda s: auth.delete_user(user_id),
            describe="delete auth user (profile and roles already removed)",
        ),
    ])

    outcome = saga.run({"user_id": user_id})
    return DeletionResult(success=True, user_id=user_id, warnings=outcome.failed)


# ============================================================
# ROLE ASSIGNMENTS
# ============================================================
def get_user_roles(client, user_id: str) -> list:
    query = client.table("user_roles").select("role").eq("user_id", user_id)
    rows = unwrap(execute(query), "Failed to load user roles") or []
    return [r["role"] for r in rows if r.get("role")]


def _sync_profile_role(client, user_id: str, roles: Iterable[str]) -> SupabaseResult:
    return execute(
        client.table("profiles")
        .update({"role": highest_role(roles), "updated_at": utc_now_iso()})
        .eq("id", user_id)
    )


def ensure_not_last_owner(client, user_id: str):
    """An owner role may not be removed from the only principal holding it."""
    query = client.table("user_roles").select("user_id").eq("role", "owner")
    holders = {r["user_id"] for r in (unwrap(execute(query), "Failed to load owners") or [])}

    if user_id in holders and len(holders) == 1:
        raise HTTPException(400, "Cannot remove the last remaining owner.")


def grant_role(client, user_id: str, role: str) -> list:
    role = validate_role(role)
    roles = get_user_roles(client, user_id)

    if role not in roles:
        now = utc_now_iso()
        unwrap(
            execute(client.table("user_roles").insert({
                "user_id": user_id,
                "role": role,
                "assigned_at": now,
                "created_at": now,
                "updated_at": now,
            })),
            "Failed to assign role",
        )
        roles.append(role)

    unwrap(_sync_profile_role(client, user_id, roles), "Failed to update profile role")
    return roles


def revoke_role(client, user_id: str, role: str) -> list:
    role = validate_role(role)
    if role == "owner":
        ensure_not_last_owner(client, user_id)

    unwrap(
        execute(
            client.table("user_roles").delete()
            .eq("user_id", user_id)
            .eq("role", role)
        ),
        "Failed to remove role",
    )

    roles = [r for r in get_user_roles(client, user_id) if r != role]
    unwrap(_sync_profile_role(client, user_id, roles), "Failed to update profile role")
    return roles


def _set_single_role(client, user_id: str, role: str) -> SupabaseResult:
    """
    Replace the principal's assignments with exactly `role`, then refresh the
    profile cache. Insert before delete so the principal is never role-less.
    """
    current = execute(client.table("user_roles").select("role").eq("user_id", user_id))
    if current.error is not None:
        return current

    held = {r.get("role") for r in (current.data or [])}
    now = utc_now_iso()

    if role not in held:
        inserted = execute(client.table("user_roles").insert({
            "user_id": user_id,
            "role": role,
            "assigned_at": now,
            "created_at": now,
            "updated_at": now,
        }))
        if inserted.error is not None:
            return inserted

    if held - {role}:
        removed = execute(
            client.table("user_roles").delete()
            .eq("user_id", user_id)
            .neq("role", role)
        )
        if removed.error is not None:
            return removed

    return _sync_profile_role(client, user_id, [role])


# ============================================================
# UPDATE
# ============================================================
def update_user(client, user_id: str, payload: AdminUpdateUser) -> dict:
    """
    1. auth principal (email / metadata)
    2. role assignment + profile role cache
    3. profile fields
    All fatal; the error names the step that stopped the update.
    """
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    role = updates.get("role")
    if role is not None:
        role = validate_role(str(role))
        if "owner" in get_user_roles(client, user_id) and role != "owner":
            ensure_not_last_owner(client, user_id)

    auth = AuthProvider(client, privileged=True)
    steps = []

    auth_attrs = {}
    if "email" in updates:
        auth_attrs["email"] = updates["email"]
    metadata = {k: updates[k] for k in ("full_name",) if k in updates}
    if role is not None:
        metadata["role"] = role
    if metadata:
        auth_attrs["user_metadata"] = metadata

    if auth_attrs:
        steps.append(ProvisioningStep(
            "update_principal",
            lambda s: auth.update_user(user_id, auth_attrs),
            status_code=400,
            describe="update auth user",
        ))

    if role is not None:
        steps.append(ProvisioningStep(
            "set_role",
            lambda s: _set_single_role(client, user_id, role),
            describe="update role assignment",
        ))

    profile = {k: updates[k] for k in PROFILE_FIELDS if k in updates}
    if profile:
        profile["updated_at"] = utc_now_iso()
        steps.append(ProvisioningStep(
            "update_profile",
            lambda s: execute(client.table("profiles").update(profile).eq("id", user_id)),
            describe="update profile",
        ))

    ProvisioningSaga("update_user", steps).run()
    return {"success": True, "user_id": user_id, "updated": sorted(updates)}


# ============================================================
# LIST
# ============================================================
def list_users_with_roles(client) -> list:
    auth = AuthProvider(client, privileged=True)
    users = unwrap(auth.list_users(), "Failed to list users") or []

    role_rows = unwrap(execute(client.table("user_roles").select("user_id, role")), "Failed to load roles") or []
    profiles = unwrap(execute(client.table("profiles").select("*")), "Failed to load profiles") or []

    roles_by_user = {}
    for row in role_rows:
        roles_by_user.setdefault(row["user_id"], []).append(row["role"])
    profile_by_id = {p["id"]: p for p in profiles}

    results = []
    for u in users:
        uid = str(u.id)
        meta = getattr(u, "user_metadata", None) or {}
        profile = profile_by_id.get(uid, {})
        results.append({
            "id": uid,
            "email": getattr(u, "email", None),
            "full_name": profile.get("full_name") or meta.get("full_name"),
            "phone_number": profile.get("phone_number"),
            "show_in_contacts": profile.get("show_in_contacts"),
            "roles": roles_by_user.get(uid, []),
            "has_profile": uid in profile_by_id,
            "created_at": str(getattr(u, "created_at", "") or ""),
        })

    results.sort(key=lambda x: x.get("created_at") or "", reverse=True)
    return results

# services/tenant_signup.py

"""
Self-service onboarding:

    sign up → tenant (unique slug) → owner membership → first property

Everything after sign-up is written with the service-role client. When the
auth provider wants the email confirmed first, the flow stops and resumes in
complete_signup() once the user comes back with a session.
"""

import secrets
import time
from typing import Optional

from fastapi import HTTPException

from core.auth_provider import AuthProvider, session_from_response, user_from_response
from core.config import settings
from core.errors import is_unique_violation
from core.logging_config import get_logger
from core.supabase_helpers import SupabaseResult, execute, unwrap
from core.utils import first_row, slugify, utc_now_iso
from models.enums import AppRole, MembershipRole, MembershipStatus
from services.provisioning import ProvisioningError, ProvisioningSaga, ProvisioningStep

log = get_logger("provisioning.signup")


def generate_tenant_slug(first_name: str, last_name: str = "",
                         now: Optional[float] = None, token: Optional[str] = None) -> str:
    """
    "Jane", "Doe" -> "jane-doe-1760000000000-3fa9c2"

    Millisecond timestamp plus random hex, so two identical names in the
    same second still produce different slugs.
    """
    base = slugify(first_name, last_name) or "tenant"
    millis = int((time.time() if now is None else now) * 1000)
    return f"{base}-{millis}-{token or secrets.token_hex(3)}"


def tenant_name_for(first_name: str) -> str:
    return f"{first_name}'s Properties" if first_name else "My Properties"


def _insert_tenant(client, name: str, owner_id: str, first_name: str, last_name: str,
                   state: dict) -> SupabaseResult:
    """Insert the tenant, drawing a fresh slug when the unique index rejects one."""
    attempts = max(1, settings.SLUG_MAX_ATTEMPTS)
    result = SupabaseResult()

    for attempt in range(1, attempts + 1):
        slug = generate_tenant_slug(first_name, last_name)
        result = execute(client.table("tenants").insert({
            "name": name,
            "slug": slug,
            "owner_user_id": owner_id,
            "created_at": utc_now_iso(),
        }))

        if result.error is None:
            row = first_row(result.data) or {}
            state["tenant_id"] = row.get("id")
            state["tenant_slug"] = row.get("slug", slug)
            return result

        if not is_unique_violation(result.error.message, result.error.code):
            return result

        log.warning(f"Tenant slug collision on '{slug}' (attempt {attempt}/{attempts})")

    return result


def _insert_owner_membership(client, tenant_id: str, user_id: str) -> SupabaseResult:
    return execute(client.table("tenant_users").insert({
        "tenant_id": tenant_id,
        "user_id": user_id,
        "role": MembershipRole.owner.value,
        "status": MembershipStatus.active.value,
        "created_at": utc_now_iso(),
    }))


def _row_id(key: str):
    return lambda data: {key: (first_row(data) or {}).get("id")}


# App-wide role for a self-service owner. Tenant ownership lives on the
# membership; the app-level owner role also administers every account.
SIGNUP_APP_ROLE = AppRole.manager.value


def _ensure_profile(client, user_id: str, email: Optional[str], full_name: str,
                    state: dict) -> SupabaseResult:
    """Insert the profile unless one exists (the resumed path may already have it)."""
    existing = execute(client.table("profiles").select("id").eq("id", user_id))
    if existing.error is not None or existing.data:
        return existing

    now = utc_now_iso()
    result = execute(client.table("profiles").insert({
        "id": user_id,
        "email": email,
        "full_name": full_name,
        "role": SIGNUP_APP_ROLE,
        "created_at": now,
        "updated_at": now,
    }))
    if result.ok:
        state["profile_inserted"] = True
    return result


def _ensure_app_role(client, user_id: str, state: dict) -> SupabaseResult:
    """Grant SIGNUP_APP_ROLE to a user holding no role yet; existing roles are kept."""
    existing = execute(client.table("user_roles").select("role").eq("user_id", user_id))
    if existing.error is not None or existing.data:
        return existing

    now = utc_now_iso()
    result = execute(client.table("user_roles").insert({
        "user_id": user_id,
        "role": SIGNUP_APP_ROLE,
        "assigned_at": now,
        "created_at": now,
        "updated_at": now,
    }))
    if result.ok:
        state["role_inserted"] = True
    return result


# ============================================================
# PROFILE + ROLE + TENANT + MEMBERSHIP + PROPERTY
# ============================================================
def provision_tenant(client, user_id: str, first_name: str, last_name: str,
                     property_data: dict, *, email: Optional[str] = None,
                     compensate: Optional[bool] = None) -> dict:
    """
    Steps 2-6 of signup. Everything is fatal except the app role grant.
    The error names the failing step and lists every id created so far
    (the auth user included).
    """
    compensate = settings.PROVISIONING_COMPENSATE if compensate is None else compensate
    full_name = f"{first_name} {last_name}".strip()

    def insert_profile(state):
        return _ensure_profile(client, user_id, email, full_name, state)

    def delete_profile(state):
        if not state.get("profile_inserted"):
            return SupabaseResult()
        return execute(client.table("profiles").delete().eq("id", user_id))

    def assign_role(state):
        return _ensure_app_role(client, user_id, state)

    def revoke_role(state):
        if not state.get("role_inserted"):
            return SupabaseResult()
        return execute(
            client.table("user_roles").delete()
            .eq("user_id", user_id)
            .eq("role", SIGNUP_APP_ROLE)
        )

    def insert_tenant(state):
        return _insert_tenant(client, tenant_name_for(first_name), user_id,
                              first_name, last_name, state)

    def insert_membership(state):
        return _insert_owner_membership(client, state["tenant_id"], user_id)

    def insert_property(state):
        result = execute(client.table("properties").insert({
            "name": property_data.get("name"),
            "address": property_data.get("address"),
            "description": property_data.get("description"),
            "latitude": property_data.get("latitude"),
            "longitude": property_data.get("longitude"),
            "tenant_id": state["tenant_id"],
            "created_by": user_id,
            "created_at": utc_now_iso(),
        }))
        if result.ok:
            state["property_id"] = (first_row(result.data) or {}).get("id")
        return result

    saga = ProvisioningSaga("signup", [
        ProvisioningStep(
            "insert_profile", insert_profile,
            undo=delete_profile,
            describe="create profile",
        ),
        ProvisioningStep("assign_role", assign_role, fatal=False, undo=revoke_role),
        ProvisioningStep(
            "insert_tenant", insert_tenant,
            undo=lambda s: execute(client.table("tenants").delete().eq("id", s["tenant_id"])),
            record=_row_id("tenant_id"),
            describe="create tenant",
        ),
        ProvisioningStep(
            "insert_membership", insert_membership,
            undo=lambda s: execute(
                client.table("tenant_users").delete()
                .eq("tenant_id", s["tenant_id"])
                .eq("user_id", user_id)
            ),
            record=_row_id("membership_id"),
            describe="link user to tenant",
        ),
        ProvisioningStep(
            "insert_property", insert_property,
            record=_row_id("property_id"),
            describe="create property",
        ),
    ], compensate=compensate)

    state = {}
    outcome = saga.run(state, created={"user_id": user_id})

    log.info(f"Tenant {state['tenant_id']} ({state['tenant_slug']}) provisioned for {user_id}")

    return {
        "success": True,
        "status": "provisioned",
        "user_id": user_id,
        "role_assigned": outcome.succeeded("assign_role"),
        "tenant_id": state["tenant_id"],
        "tenant_slug": state["tenant_slug"],
        "property_id": state["property_id"],
        "redirect_to": f"/properties/{state['property_id']}",
    }


# ============================================================
# SIGNUP (public)
# ============================================================
def signup(public_client, admin_client, payload) -> dict:
    """
    1. sign up through the public auth API
       - no session → {"status": "confirmation_required"} and stop
    2-4. provision_tenant()
    """
    auth = AuthProvider(public_client)
    result = auth.sign_up(
        payload.email,
        payload.password,
        metadata={
            "first_name": payload.first_name,
            "last_name": payload.last_name,
            "full_name": f"{payload.first_name} {payload.last_name}".strip(),
        },
        redirect_to=settings.invite_redirect_url,
    )

    if result.error is not None:
        log.warning(f"Sign-up failed for {payload.email}: {result.error.message}")
        raise ProvisioningError(
            "create_account",
            result.error.message,
            code=result.error.code,
            status_code=400,
        )

    user = user_from_response(result.data)
    if user is None or not getattr(user, "id", None):
        raise ProvisioningError("create_account", "Sign-up returned no user", status_code=400)

    user_id = str(user.id)

    if session_from_response(result.data) is None:
        log.info(f"Sign-up for {payload.email} awaiting email confirmation ({user_id})")
        return {
            "success": True,
            "status": "confirmation_required",
            "user_id": user_id,
            "email": payload.email,
            "message": "Check your email to confirm your account, then sign in to finish setup.",
        }

    return provision_tenant(
        admin_client,
        user_id,
        payload.first_name,
        payload.last_name,
        payload.property.model_dump(),
        email=payload.email,
    )


def _owned_tenant_ids(client, user_id: str) -> list:
    query = (
        client.table("tenant_users")
        .select("tenant_id")
        .eq("user_id", user_id)
        .eq("role", MembershipRole.owner.value)
    )
    rows = unwrap(execute(query), "Failed to load tenant memberships") or []
    return [r["tenant_id"] for r in rows]


def complete_signup(client, current_user, property_data: dict) -> dict:
    """Resume a signup paused for email confirmation."""
    if _owned_tenant_ids(client, current_user.id):
        raise HTTPException(400, "Signup already completed for this account.")

    first = current_user.first_name or (current_user.full_name or "").split(" ")[0]
    last = current_user.last_name or ""

    return provision_tenant(client, current_user.id, first, last, property_data,
                            email=current_user.email)


# ============================================================
# ADDITIONAL TENANT
# ============================================================
def create_tenant(client, current_user, name: str) -> dict:
    state = {}

    saga = ProvisioningSaga("create_tenant", [
        ProvisioningStep(
            "insert_tenant",
            lambda s: _insert_tenant(client, name, current_user.id,
                                     current_user.first_name or name,
                                     current_user.last_name or "", s),
            record=_row_id("tenant_id"),
            describe="create tenant",
        ),
        ProvisioningStep(
            "insert_membership",
            lambda s: _insert_owner_membership(client, s["tenant_id"], current_user.id),
            record=_row_id("membership_id"),
            describe="link user to tenant",
        ),
    ])
    saga.run(state)

    return {
        "success": True,
        "tenant_id": state["tenant_id"],
        "tenant_slug": state["tenant_slug"],
        "name": name,
    }

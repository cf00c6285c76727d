from typing import Any, Callable, Iterable, Optional

from fastapi import Depends, HTTPException

from core.logging_config import get_logger
from core.permissions import FEATURE_ROLE_FLOOR, is_valid_feature
from core.roles import normalize_role
from core.session import RoleRequirement, SessionContext
from core.supabase_helpers import execute, safe_get, unwrap
from dependencies.auth import CurrentUser, get_session_context
from models.enums import MembershipRole, MembershipStatus

log = get_logger("permissions")


# -----------------------------------------------------
# Load roles + matrix rows into a context
# -----------------------------------------------------
def load_session_context(client, user: CurrentUser,
                         context: Optional[SessionContext] = None) -> SessionContext:
    """
    user_roles first, then role_permissions for the held roles only.
    Any store error leaves the context in `error` (everything denied);
    calling again with the same context is the retry path.
    """
    context = context or SessionContext(user)
    context.begin_loading()

    roles_res = execute(
        client.table("user_roles").select("role").eq("user_id", user.id)
    )
    if roles_res.error is not None:
        log.warning(f"Role lookup failed for {user.id}: {roles_res.error.message}")
        context.mark_error(roles_res.error.message)
        return context

    roles = [row.get("role") for row in (roles_res.data or []) if row.get("role")]
    if not roles:
        context.mark_ready([], [])
        return context

    lookup = sorted({normalize_role(r) for r in roles})
    perms_res = execute(
        client.table("role_permissions")
        .select("role, feature, allowed")
        .in_("role", lookup)
    )
    if perms_res.error is not None:
        log.warning(f"Permission matrix lookup failed for {user.id}: {perms_res.error.message}")
        context.mark_error(perms_res.error.message)
        return context

    context.mark_ready(roles, perms_res.data or [])
    return context


# -----------------------------------------------------
# Gate: content when allowed, fallback otherwise
# -----------------------------------------------------
def permission_gate(
    context: Optional[SessionContext],
    content: Any,
    *,
    required_role: RoleRequirement = None,
    required_permission: Optional[str] = None,
    fallback: Any = None,
    custom_check: Optional[Callable[[], bool]] = None,
) -> Any:
    """
    custom_check, when given, replaces the role/permission checks.
    With both a role and a permission, either one grants access.
    """
    if custom_check is not None:
        if not callable(custom_check):
            return fallback
        try:
            return content if custom_check() is True else fallback
        except Exception as e:
            log.warning(f"Custom permission check failed closed: {e}")
            return fallback

    if not required_role and not required_permission:
        return content

    if context is None:
        return fallback

    check = getattr(context, "can_access", None)
    if not callable(check):
        return fallback

    return content if check(required_role, required_permission) else fallback


def filter_gated(context: Optional[SessionContext], items: Iterable[dict]) -> list:
    """Keep items whose `required_role` / `required_permission` pass the gate."""
    visible = []
    for item in items:
        kept = permission_gate(
            context,
            item,
            required_role=item.get("required_role"),
            required_permission=item.get("required_permission"),
        )
        if kept is not None:
            visible.append(kept)
    return visible


# -----------------------------------------------------
# FastAPI dependency wrappers
# -----------------------------------------------------
def requires_access(role: RoleRequirement = None, permission: Optional[str] = None):
    """
    Usage:
        @router.post("/", dependencies=[Depends(requires_access("manager", "tasks_edit"))])
    """

    def dependency(context: SessionContext = Depends(get_session_context)) -> SessionContext:
        if context.can_access(role, permission):
            return context

        user_id = getattr(context.user, "id", None)
        log.info(f"Access denied for {user_id}: role={role} permission={permission} state={context.state.value}")

        if context.error:
            raise HTTPException(403, f"Permissions could not be loaded: {context.error}")

        wanted = " or ".join(
            p for p in (
                f"role '{role}'" if role else None,
                f"permission '{permission}'" if permission else None,
            ) if p
        )
        raise HTTPException(403, f"Insufficient permissions: {wanted} required")

    return dependency


def requires_role(role: RoleRequirement):
    return requires_access(role=role)


def requires_permission(permission: str):
    return requires_access(permission=permission)


def requires_feature(feature: str):
    """Matrix permission for `feature` OR the feature's role floor."""
    if not is_valid_feature(feature):
        raise ValueError(f"Unknown feature: {feature}")
    return requires_access(role=FEATURE_ROLE_FLOOR[feature], permission=feature)


# ============================================================
# TENANT / PROPERTY SCOPE
# ============================================================

ALL_MEMBERSHIP_ROLES = tuple(MembershipRole.list())
PROPERTY_EDITOR_ROLES = (MembershipRole.owner.value, MembershipRole.admin.value, MembershipRole.manager.value)
TENANT_ADMIN_ROLES = (MembershipRole.owner.value, MembershipRole.admin.value)


def get_active_memberships(client, user_id: str) -> list:
    query = (
        client.table("tenant_users")
        .select("*")
        .eq("user_id", user_id)
        .eq("status", MembershipStatus.active.value)
    )
    return unwrap(execute(query), "Failed to load tenant memberships") or []


def get_accessible_tenant_ids(client, user_id: str) -> list:
    return [m["tenant_id"] for m in get_active_memberships(client, user_id)]


def require_tenant_role(client, user_id: str, tenant_id: str,
                        roles: Iterable[str] = ALL_MEMBERSHIP_ROLES) -> dict:
    """Active membership with one of `roles`, or 403."""
    query = (
        client.table("tenant_users")
        .select("*")
        .eq("tenant_id", tenant_id)
        .eq("user_id", user_id)
        .eq("status", MembershipStatus.active.value)
    )
    rows = unwrap(execute(query), "Failed to check tenant membership") or []
    roles = tuple(roles)

    for membership in rows:
        if membership.get("role") in roles:
            return membership

    raise HTTPException(403, f"You do not have access to tenant {tenant_id}")


def require_property_access(client, user_id: str, property_id: str,
                            roles: Iterable[str] = ALL_MEMBERSHIP_ROLES) -> dict:
    """The property row if the user is an active member of its tenant; 404 / 403 otherwise."""
    query = client.table("properties").select("*").eq("id", property_id)
    rows = unwrap(execute(query), "Failed to load property") or []
    if not rows:
        raise HTTPException(404, f"Property '{property_id}' not found")

    prop = rows[0]
    require_tenant_role(client, user_id, prop["tenant_id"], roles)
    return prop


def check_property_scope(client, user_id: str, property_id: Optional[str],
                         roles: Iterable[str] = ALL_MEMBERSHIP_ROLES) -> Optional[dict]:
    """Feature records may be unscoped; when a property is named the caller must belong to it."""
    if not property_id:
        return None
    return require_property_access(client, user_id, property_id, roles)


def get_accessible_property_ids(client, user_id: str) -> list:
    tenant_ids = get_accessible_tenant_ids(client, user_id)
    if not tenant_ids:
        return []

    query = client.table("properties").select("id").in_("tenant_id", tenant_ids)
    rows = unwrap(execute(query), "Failed to load properties") or []
    return [r["id"] for r in rows]


def scope_rows(client, user_id: str, rows: list) -> list:
    """
    Unscoped rows (no property_id) plus rows of properties in the caller's
    tenants. PostgREST can't express "null or in (...)" in one filter, so
    the cut happens here.
    """
    if not any(r.get("property_id") for r in rows):
        return rows

    allowed = set(get_accessible_property_ids(client, user_id))
    return [r for r in rows if not r.get("property_id") or r["property_id"] in allowed]


def require_record_access(client, user_id: str, table: str, row_id: str, *,
                          label: Optional[str] = None,
                          roles: Iterable[str] = ALL_MEMBERSHIP_ROLES) -> dict:
    """Row by id (404), then the property scope of that row (403)."""
    row = safe_get(client, table, row_id, label=label)
    check_property_scope(client, user_id, row.get("property_id"), roles)
    return row

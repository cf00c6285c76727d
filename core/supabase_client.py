# core/supabase_client.py

from typing import Iterable, Optional

from fastapi import HTTPException
from supabase import Client, create_client
from supabase.client import ClientOptions

from core.config import settings
from core.logging_config import logger


# Relations queried by the health / diagnostics endpoints
CORE_TABLES = (
    "profiles",
    "user_roles",
    "role_permissions",
    "tenants",
    "tenant_users",
    "properties",
)

FEATURE_TABLES = (
    "reservations",
    "tasks",
    "checklists",
    "checklist_items",
    "notes",
    "contacts",
    "inventory",
    "manual_sections",
    "manual_items",
    "cleaning_room_types",
    "cleaning_tasks",
    "cleaning_visits",
    "cleaning_visit_tasks",
    "cleaning_issues",
)


def _server_options() -> ClientOptions:
    # Server side: never keep a user session inside a shared client
    return ClientOptions(auto_refresh_token=False, persist_session=False)


# ============================================================
# Service-role client (privileged, server only)
# ============================================================

def get_supabase_client() -> Optional[Client]:
    """
    Supabase client using the SERVICE ROLE KEY, or None when unconfigured.
    REQUIRED for:
        - auth.admin.create_user / delete_user / invite_user_by_email
        - auth.admin.update_user_by_id / list_users
        - writes that cross users (profiles, user_roles, role_permissions)
    """
    url = settings.SUPABASE_URL
    key = settings.SUPABASE_SERVICE_ROLE_KEY

    if not url or not key:
        logger.error("Missing Supabase credentials")
        logger.error(f"   URL: {url}")
        logger.error(f"   SERVICE ROLE KEY: {'SET' if key else 'MISSING'}")
        return None

    try:
        return create_client(url, key, options=_server_options())
    except Exception as e:
        logger.error(f"Supabase init error: {e}", exc_info=True)
        return None


def get_admin_client() -> Client:
    """FastAPI dependency: service-role client or 500."""
    client = get_supabase_client()
    if client is None:
        raise HTTPException(500, "Supabase client not configured")
    return client


# ============================================================
# Anon-key client (self-service auth calls)
# ============================================================

def get_public_client() -> Client:
    """
    FastAPI dependency: a fresh anon-key client per request.
    sign_up / sign_in_with_password store the resulting session on the client,
    so it must never be shared between callers.
    """
    url = settings.SUPABASE_URL
    key = settings.SUPABASE_ANON_KEY

    if not url or not key:
        logger.error("Missing Supabase anon credentials")
        raise HTTPException(500, "Supabase public client not configured")

    try:
        return create_client(url, key, options=_server_options())
    except Exception as e:
        logger.error(f"Supabase public init error: {e}", exc_info=True)
        raise HTTPException(500, "Supabase public client not configured")


# ============================================================
# Connectivity check (health + diagnostics)
# ============================================================

def ping_supabase(client: Optional[Client] = None, tables: Iterable[str] = CORE_TABLES) -> dict:
    """
    Per-table connectivity check.
    Does NOT query auth tables.
    """
    client = client or get_supabase_client()
    if client is None:
        return {"service": "Supabase", "status": "not_configured", "tables": {}}

    results = {}
    failures = 0

    for table in tables:
        try:
            res = client.table(table).select("*").limit(1).execute()
            results[table] = {"status": "ok", "rows_found": len(res.data or [])}
        except Exception as err:
            failures += 1
            results[table] = {"status": "error", "detail": str(err)}

    return {
        "service": "Supabase",
        "status": "ok" if failures == 0 else "degraded",
        "tables": results,
    }

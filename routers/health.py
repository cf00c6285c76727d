# routers/health.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from core.config import settings
from core.config_validator import validate_optional_config, validate_required_config
from core.supabase_client import CORE_TABLES, FEATURE_TABLES, get_supabase_client, ping_supabase
from dependencies.auth import bearer_scheme, get_current_user

router = APIRouter(
    prefix="/health",
    tags=["Health"],
)


# -----------------------------------------------------
# GET /health/app
# -----------------------------------------------------
@router.get("/app", summary="App health check")
def health_app():
    """Lightweight check for uptime monitors."""
    return {
        "service": settings.PROJECT_NAME,
        "status": "ok",
    }


# -----------------------------------------------------
# GET /health/db
# Supabase connection + core table queries, no auth
# -----------------------------------------------------
@router.get("/db", summary="Supabase / DB health check")
def health_db():
    status = ping_supabase()
    return {
        "service": "Supabase",
        "status": status.get("status", "unknown"),
        "details": status,
    }


# -----------------------------------------------------
# GET /health/diagnostics
# Where the UI sends people whose loading spinner timed out
# -----------------------------------------------------
@router.get("/diagnostics", summary="Configuration, auth and per-table check")
def diagnostics(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)):
    """
    Never fails: every check reports its own status. Secrets are only
    reported as set / missing. Anonymous callers get the overall status;
    the config block and the per-table results need a valid session.
    """
    client = get_supabase_client()

    current_user = None
    auth_error = None
    if credentials is not None and client is not None:
        try:
            current_user = get_current_user(credentials, client)
        except HTTPException as e:
            auth_error = e.detail

    missing_required = validate_required_config()
    missing_optional = validate_optional_config()

    if client is not None:
        db = ping_supabase(client, tables=CORE_TABLES + FEATURE_TABLES)
    else:
        db = {"service": "Supabase", "status": "not_configured", "tables": {}}

    report = {
        "status": "ok" if not missing_required and db["status"] == "ok" else "degraded",
        "environment": settings.ENV,
        "auth": {
            "authenticated": current_user is not None,
            "user_id": current_user.id if current_user else None,
            "error": auth_error,
        },
    }

    if current_user is None:
        report["database"] = {"status": db["status"]}
        return report

    report.update({
        "config": {
            "missing_required": missing_required,
            "missing_optional": missing_optional,
            "base_url": settings.BASE_URL,
            "invite_redirect_url": settings.invite_redirect_url,
            "loading_timeout_seconds": settings.LOADING_TIMEOUT_SECONDS,
        },
        "database": db,
    })
    return report

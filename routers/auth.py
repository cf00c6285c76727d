# routers/auth.py

from fastapi import APIRouter, Depends, HTTPException, Request
from supabase import Client

from core.auth_provider import AuthProvider, session_from_response, user_from_response
from core.config import settings
from core.logging_config import logger
from core.permission_helpers import filter_gated
from core.rate_limiter import (
    LOGIN_LIMIT,
    RESET_PASSWORD_LIMIT,
    get_rate_limit_identifier,
    require_rate_limit,
)
from core.session import SessionContext
from core.supabase_client import get_admin_client, get_public_client
from core.supabase_helpers import execute, safe_update, unwrap
from core.utils import first_row, utc_now_iso
from dependencies.auth import CurrentUser, get_current_user, get_session_context
from models.auth import (
    EmailUpdate,
    LoginRequest,
    LogoutRequest,
    PasswordResetRequest,
    PasswordUpdate,
    TokenResponse,
    VerifyOtpRequest,
)
from models.user import ProfileUpdate


router = APIRouter(
    prefix="/auth",
    tags=["Auth"],
)


# Menu entries; each one is shown only when its gate passes.
NAVIGATION = [
    {"key": "home", "label": "Home", "path": "/"},
    {"key": "calendar", "label": "Calendar", "path": "/calendar", "required_permission": "calendar_view"},
    {"key": "tasks", "label": "Tasks", "path": "/tasks", "required_permission": "tasks_view"},
    {"key": "checklists", "label": "Checklists", "path": "/checklists", "required_permission": "checklists_view"},
    {"key": "manual", "label": "House Manual", "path": "/manual", "required_permission": "manual_view"},
    {"key": "inventory", "label": "Inventory", "path": "/inventory", "required_permission": "inventory_view"},
    {"key": "contacts", "label": "Contacts", "path": "/contacts", "required_permission": "contacts_view"},
    {"key": "cleaning", "label": "Cleaning", "path": "/cleaning", "required_permission": "checklists_view"},
    {"key": "notes", "label": "Notes", "path": "/notes", "required_role": "friend"},
    {"key": "users", "label": "Users", "path": "/admin/users", "required_role": "owner", "required_permission": "users_manage"},
    {"key": "permissions", "label": "Permissions", "path": "/admin/permissions", "required_role": "owner"},
]


def _token_response(data) -> TokenResponse:
    session = session_from_response(data)
    if session is None or not getattr(session, "access_token", None):
        raise HTTPException(401, "No session returned. Confirm your email and try again.")

    user = user_from_response(data)
    return TokenResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token or "",
        expires_in=session.expires_in or 3600,
        user_id=str(user.id) if user is not None and getattr(user, "id", None) else None,
    )


# ============================================================
# LOGIN (SUPABASE AUTH)
# ============================================================
@router.post("/login", response_model=TokenResponse, summary="Authenticate user")
def login(
    payload: LoginRequest,
    request: Request,
    client: Client = Depends(get_public_client),
):
    require_rate_limit(request, LOGIN_LIMIT)

    email = payload.email.strip().lower()
    result = AuthProvider(client).sign_in(email, payload.password)

    if result.error is not None:
        logger.warning(f"Login failed for {email}: {result.error.message}")
        # GoTrue text ("Invalid login credentials", "Email not confirmed") is shown as-is
        raise HTTPException(401, result.error.message or "Invalid email or password")

    return _token_response(result.data)


# ============================================================
# LOGOUT
# ============================================================
@router.post("/logout", summary="Sign out (local / global / others)")
def logout(
    payload: LogoutRequest = LogoutRequest(),
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    result = AuthProvider(client, privileged=True).sign_out(current_user.access_token, payload.scope)
    unwrap(result, "Sign out")

    logger.info(f"User {current_user.id} signed out (scope={payload.scope})")
    return {"success": True, "scope": payload.scope}


# ============================================================
# CURRENT USER
# ============================================================
def _load_profile(client, user_id: str):
    query = client.table("profiles").select("*").eq("id", user_id)
    return first_row(unwrap(execute(query), "Failed to load profile"))


@router.get("/me", summary="Current authenticated user")
def read_me(
    context: SessionContext = Depends(get_session_context),
    client: Client = Depends(get_admin_client),
):
    user: CurrentUser = context.user
    return {
        **user.model_dump(),
        "profile": _load_profile(client, user.id),
        "roles": list(context.roles),
        "highest_role": context.highest_role,
    }


@router.patch("/me", summary="Update current user profile")
def update_profile(
    payload: ProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    """
    Self-service profile edit. Role changes go through /admin/users.
    """
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    if "full_name" in updates:
        metadata = {**current_user.metadata, "full_name": updates["full_name"]}
        auth = AuthProvider(client, privileged=True)
        unwrap(auth.update_user(current_user.id, {"user_metadata": metadata}), "Failed to update auth user")

    updates["updated_at"] = utc_now_iso()
    profile = safe_update(client, "profiles", {"id": current_user.id}, updates)
    if profile is None:
        raise HTTPException(404, "Profile not found")

    logger.info(f"User {current_user.id} updated their profile")
    return profile


# ============================================================
# SESSION STATE (what the UI needs to gate itself)
# ============================================================
@router.get("/session", summary="Session lifecycle state, roles and permissions")
def read_session(context: SessionContext = Depends(get_session_context)):
    """
    Always 200 for a valid token, even when the permission data failed to
    load: state "error" tells the UI to show retry + diagnostics.
    """
    return {
        **context.snapshot(),
        "loading_timeout_seconds": settings.LOADING_TIMEOUT_SECONDS,
        "diagnostics_path": "/health/diagnostics",
    }


@router.get("/navigation", summary="Menu entries visible to the current user")
def read_navigation(context: SessionContext = Depends(get_session_context)):
    return {
        "state": context.state.value,
        "items": filter_gated(context, NAVIGATION),
    }


# ============================================================
# CREDENTIAL CHANGES
# ============================================================
@router.post("/password", summary="Set a new password")
def update_password(
    payload: PasswordUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    result = AuthProvider(client, privileged=True).update_user(
        current_user.id, {"password": payload.password}
    )
    if result.error is not None:
        raise HTTPException(400, result.error.message)

    logger.info(f"User {current_user.id} changed their password")
    return {"success": True}


@router.post("/email", summary="Change sign-in email")
def update_email(
    payload: EmailUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    email = payload.email.strip().lower()
    result = AuthProvider(client, privileged=True).update_user(current_user.id, {"email": email})
    if result.error is not None:
        raise HTTPException(400, result.error.message)

    safe_update(client, "profiles", {"id": current_user.id}, {"email": email, "updated_at": utc_now_iso()})

    logger.info(f"User {current_user.id} changed email to {email}")
    return {"success": True, "email": email}


@router.post("/verify", response_model=TokenResponse, summary="Verify an emailed token")
def verify(payload: VerifyOtpRequest, client: Client = Depends(get_public_client)):
    """Callback for signup confirmation, invitation, magic link and recovery emails."""
    result = AuthProvider(client).verify_otp(payload.token_hash, payload.type)
    if result.error is not None:
        logger.warning(f"OTP verification failed ({payload.type}): {result.error.message}")
        raise HTTPException(400, result.error.message)

    return _token_response(result.data)


# ============================================================
# PASSWORD RESET
# ============================================================
@router.post(
    "/reset-password",
    summary="Send password reset email",
    responses={
        200: {"description": "Email sent (or no such account)"},
        429: {"description": "Rate limit exceeded"},
    },
)
def reset_password(
    payload: PasswordResetRequest,
    request: Request,
    client: Client = Depends(get_public_client),
):
    """
    Always reports success so the response does not reveal whether
    the email has an account.
    """
    email = payload.email.strip().lower()

    identifier = get_rate_limit_identifier(request, user_id=email)
    require_rate_limit(request, RESET_PASSWORD_LIMIT, identifier=identifier)

    client_ip = get_rate_limit_identifier(request)
    logger.info(f"Password reset attempt: email={email}, {client_ip}")

    redirect_to = settings.invite_redirect_url.replace("/auth/callback", "/auth/reset-password")
    result = AuthProvider(client).reset_password(email, redirect_to=redirect_to)

    if result.error is not None:
        logger.error(f"Failed to send password reset email to {email}: {result.error.message}")
    else:
        logger.info(f"Password reset email sent: email={email}")

    return {
        "success": True,
        "message": "If an account exists with this email, a password reset link has been sent.",
    }

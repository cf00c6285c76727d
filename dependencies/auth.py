from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, Field
from supabase import Client

from core.auth_provider import AuthProvider, user_from_response
from core.session import SessionContext
from core.supabase_client import get_admin_client


bearer_scheme = HTTPBearer(auto_error=False)


# ============================================================
# Current User (identity from Supabase Auth)
# ============================================================
class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None

    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    # user_metadata["role"]: a hint set at creation, not an authorization source
    role_hint: Optional[str] = None

    metadata: dict = {}

    # bearer token of this request; needed for sign-out, never serialized
    access_token: Optional[str] = Field(None, exclude=True)


def current_user_from_auth(auth_user, access_token: Optional[str] = None) -> CurrentUser:
    metadata = getattr(auth_user, "user_metadata", None) or {}
    first = metadata.get("first_name")
    last = metadata.get("last_name")
    full_name = metadata.get("full_name") or " ".join(p for p in (first, last) if p) or None

    return CurrentUser(
        id=str(auth_user.id),
        email=getattr(auth_user, "email", None),
        full_name=full_name,
        first_name=first,
        last_name=last,
        role_hint=metadata.get("role"),
        metadata=dict(metadata),
        access_token=access_token,
    )


# ============================================================
# AUTH DECODING (Supabase validates the JWT)
# ============================================================
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    client: Client = Depends(get_admin_client),
) -> CurrentUser:

    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired authentication token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    result = AuthProvider(client, privileged=True).get_user(token)
    auth_user = user_from_response(result.data) if result.ok else None

    if auth_user is None or not getattr(auth_user, "id", None):
        raise unauthorized

    return current_user_from_auth(auth_user, access_token=token)


# ============================================================
# SESSION CONTEXT (roles + permission matrix, per request)
# ============================================================
def get_session_context(
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
) -> SessionContext:
    """
    Built fresh for every request. Tests override this dependency
    with a hand-made SessionContext.
    """
    from core.permission_helpers import load_session_context
    return load_session_context(client, current_user)

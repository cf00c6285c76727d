# core/auth_provider.py

"""
Thin wrapper over Supabase GoTrue.

Every method returns a SupabaseResult instead of raising, so callers decide
whether a failure is fatal. Admin methods need a service-role client; calling
them on a public (anon key) provider is a programming error and raises
PrivilegeError before any network call is made.
"""

from typing import Optional

from supabase import Client

from core.supabase_helpers import SupabaseResult, call_supabase

SIGN_OUT_SCOPES = ("local", "global", "others")

# verify_otp types accepted from the auth callback
OTP_TYPES = ("signup", "invite", "magiclink", "recovery", "email_change", "email")


class PrivilegeError(RuntimeError):
    pass


class AuthProvider:
    def __init__(self, client: Client, *, privileged: bool = False):
        self._client = client
        self.privileged = privileged

    @property
    def _admin(self):
        if not self.privileged:
            raise PrivilegeError("auth.admin requires the service-role client")
        return self._client.auth.admin

    # ---------------------------------------------------------
    # Self-service
    # ---------------------------------------------------------
    def sign_up(self, email: str, password: str, metadata: dict = None,
                redirect_to: Optional[str] = None) -> SupabaseResult:
        options = {"data": metadata or {}}
        if redirect_to:
            options["email_redirect_to"] = redirect_to
        return call_supabase(
            self._client.auth.sign_up,
            {"email": email, "password": password, "options": options},
        )

    def sign_in(self, email: str, password: str) -> SupabaseResult:
        return call_supabase(
            self._client.auth.sign_in_with_password,
            {"email": email, "password": password},
        )

    def get_user(self, access_token: str) -> SupabaseResult:
        return call_supabase(self._client.auth.get_user, access_token)

    def verify_otp(self, token_hash: str, otp_type: str) -> SupabaseResult:
        return call_supabase(
            self._client.auth.verify_otp,
            {"token_hash": token_hash, "type": otp_type},
        )

    def reset_password(self, email: str, redirect_to: Optional[str] = None) -> SupabaseResult:
        options = {"redirect_to": redirect_to} if redirect_to else {}
        return call_supabase(self._client.auth.reset_password_for_email, email, options)

    # ---------------------------------------------------------
    # Admin (service role only)
    # ---------------------------------------------------------
    def sign_out(self, access_token: str, scope: str = "local") -> SupabaseResult:
        if scope not in SIGN_OUT_SCOPES:
            raise ValueError(f"Invalid sign-out scope: {scope}")
        return call_supabase(self._admin.sign_out, access_token, scope)

    def create_user(self, email: str, metadata: dict = None,
                    password: Optional[str] = None) -> SupabaseResult:
        attributes = {
            "email": email,
            "email_confirm": True,
            "user_metadata": metadata or {},
        }
        # No password: the invitation link lets the user choose one
        if password:
            attributes["password"] = password
        return call_supabase(self._admin.create_user, attributes)

    def update_user(self, user_id: str, attributes: dict) -> SupabaseResult:
        """attributes: any of password / email / user_metadata"""
        return call_supabase(self._admin.update_user_by_id, user_id, attributes)

    def delete_user(self, user_id: str) -> SupabaseResult:
        return call_supabase(self._admin.delete_user, user_id)

    def get_user_by_id(self, user_id: str) -> SupabaseResult:
        return call_supabase(self._admin.get_user_by_id, user_id)

    def list_users(self) -> SupabaseResult:
        result = call_supabase(self._admin.list_users)
        if result.error is not None:
            return result
        return SupabaseResult(data=extract_user_list(result.data))

    def invite_user_by_email(self, email: str, redirect_to: Optional[str] = None,
                             data: dict = None) -> SupabaseResult:
        options = {"data": data or {}}
        if redirect_to:
            options["redirect_to"] = redirect_to
        return call_supabase(self._admin.invite_user_by_email, email, options)


# -----------------------------------------------------
# Normalize Supabase list_users() result
# -----------------------------------------------------
def extract_user_list(result):
    if isinstance(result, list):
        return result
    if isinstance(result, dict) and "users" in result:
        return result["users"]
    users_attr = getattr(result, "users", None)
    if users_attr is not None:
        return users_attr
    return []


def user_from_response(data):
    """AuthResponse / UserResponse → User (or the object itself)."""
    if data is None:
        return None
    return getattr(data, "user", data)


def session_from_response(data):
    return getattr(data, "session", None) if data is not None else None

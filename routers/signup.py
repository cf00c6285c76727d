# routers/signup.py

from fastapi import APIRouter, Depends, Request, Response
from supabase import Client

from core.rate_limiter import SIGNUP_LIMIT, require_rate_limit
from core.supabase_client import get_admin_client, get_public_client
from dependencies.auth import CurrentUser, get_current_user
from models.signup import SignupComplete, SignupRequest
from services import tenant_signup


router = APIRouter(
    prefix="/signup",
    tags=["Signup"],
)


# -----------------------------------------------------
# PUBLIC: account + tenant + first property
# -----------------------------------------------------
@router.post(
    "",
    status_code=201,
    summary="Public: create an account, its tenant and first property",
    responses={
        201: {"description": "Provisioned; follow redirect_to"},
        202: {"description": "Account created, email confirmation required"},
        400: {"description": "Sign-up rejected by the auth provider"},
        500: {"description": "A provisioning step failed; see step / created"},
    },
)
def signup(
    payload: SignupRequest,
    request: Request,
    response: Response,
    public_client: Client = Depends(get_public_client),
    admin_client: Client = Depends(get_admin_client),
):
    require_rate_limit(request, SIGNUP_LIMIT)

    payload.email = payload.email.strip().lower()
    result = tenant_signup.signup(public_client, admin_client, payload)

    if result["status"] == "confirmation_required":
        response.status_code = 202
    return result


# -----------------------------------------------------
# AUTH: finish after the confirmation email
# -----------------------------------------------------
@router.post("/complete", status_code=201, summary="Finish signup after email confirmation")
def complete_signup(
    payload: SignupComplete,
    current_user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_admin_client),
):
    return tenant_signup.complete_signup(client, current_user, payload.property.model_dump())

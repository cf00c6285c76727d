# routers/permissions.py

from fastapi import APIRouter, Depends
from supabase import Client

from core.logging_config import logger
from core.permission_helpers import requires_role
from core.permissions import FEATURES, default_matrix_rows
from core.roles import ROLE_ORDER
from core.session import SessionContext
from core.supabase_client import get_admin_client
from core.supabase_helpers import execute, unwrap
from core.utils import utc_now_iso
from models.permission import PermissionMatrixUpdate


# Editing the matrix can widen anyone's access, so it is owner-only
require_owner = requires_role("owner")

router = APIRouter(
    prefix="/admin/permissions",
    tags=["Permissions"],
    dependencies=[Depends(require_owner)],
)


def build_matrix(rows: list) -> dict:
    """{role: {feature: allowed}}; a missing cell is shown as denied."""
    matrix = {role: {feature: False for feature in FEATURES} for role in ROLE_ORDER}
    for row in rows:
        role, feature = row.get("role"), row.get("feature")
        if role in matrix and feature in FEATURES:
            matrix[role][feature] = row.get("allowed") is True
    return matrix


def upsert_cells(client, cells: list) -> list:
    now = utc_now_iso()
    rows = [{**cell, "updated_at": now} for cell in cells]
    query = client.table("role_permissions").upsert(rows, on_conflict="role,feature")
    return unwrap(execute(query), "Failed to save permissions") or []


@router.get("", summary="Role / feature matrix")
def get_matrix(client: Client = Depends(get_admin_client)):
    rows = unwrap(
        execute(client.table("role_permissions").select("role, feature, allowed")),
        "Failed to load permissions",
    ) or []

    return {
        "roles": ROLE_ORDER,
        "features": FEATURES,
        "matrix": build_matrix(rows),
    }


@router.put("", summary="Set individual cells")
def update_matrix(
    payload: PermissionMatrixUpdate,
    context: SessionContext = Depends(require_owner),
    client: Client = Depends(get_admin_client),
):
    cells = [cell.model_dump(mode="json") for cell in payload.cells]
    upsert_cells(client, cells)

    logger.info(f"{len(cells)} permission cell(s) updated by {context.user.id}")
    return get_matrix(client)


@router.post("/reset", summary="Restore the default matrix")
def reset_matrix(
    context: SessionContext = Depends(require_owner),
    client: Client = Depends(get_admin_client),
):
    upsert_cells(client, default_matrix_rows())

    logger.warning(f"Permission matrix reset to defaults by {context.user.id}")
    return get_matrix(client)

# routers/notes.py

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from core.permission_helpers import check_property_scope, requires_role
from core.session import SessionContext
from core.supabase_client import get_admin_client
from core.supabase_helpers import safe_delete, safe_insert, safe_select, safe_update
from core.utils import utc_now_iso
from models.note import NoteCreate, NoteUpdate


router = APIRouter(
    prefix="/notes",
    tags=["Notes"],
)

# personal notes: any assigned role, and only ever your own rows
can_use_notes = requires_role("friend")


def get_own_note(client, note_id: str, user_id: str) -> dict:
    rows = safe_select(client, "notes", {"id": note_id, "user_id": user_id})
    if not rows:
        raise HTTPException(404, f"Note '{note_id}' not found")
    return rows[0]


@router.get("", summary="My notes")
def list_notes(
    context: SessionContext = Depends(can_use_notes),
    client: Client = Depends(get_admin_client),
):
    return safe_select(client, "notes", {"user_id": context.user.id}, order="updated_at", desc=True)


@router.get("/{note_id}")
def get_note(
    note_id: str,
    context: SessionContext = Depends(can_use_notes),
    client: Client = Depends(get_admin_client),
):
    return get_own_note(client, note_id, context.user.id)


@router.post("", status_code=201)
def create_note(
    payload: NoteCreate,
    context: SessionContext = Depends(can_use_notes),
    client: Client = Depends(get_admin_client),
):
    check_property_scope(client, context.user.id, payload.property_id)

    now = utc_now_iso()
    data = payload.model_dump()
    data.update({"user_id": context.user.id, "created_at": now, "updated_at": now})
    return safe_insert(client, "notes", data)


@router.patch("/{note_id}")
def update_note(
    note_id: str,
    payload: NoteUpdate,
    context: SessionContext = Depends(can_use_notes),
    client: Client = Depends(get_admin_client),
):
    get_own_note(client, note_id, context.user.id)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No fields provided to update.")

    updates["updated_at"] = utc_now_iso()
    return safe_update(client, "notes", {"id": note_id, "user_id": context.user.id}, updates)


@router.delete("/{note_id}")
def delete_note(
    note_id: str,
    context: SessionContext = Depends(can_use_notes),
    client: Client = Depends(get_admin_client),
):
    get_own_note(client, note_id, context.user.id)
    safe_delete(client, "notes", {"id": note_id, "user_id": context.user.id})
    return {"success": True}

# core/supabase_helpers.py

from typing import Any, Callable, NamedTuple, Optional

from core.errors import (
    extract_supabase_error,
    extract_supabase_error_code,
    handle_supabase_error,
)
from core.utils import sanitize


# =================================================================
#  RESULT ENVELOPE
# =================================================================
# supabase-py raises on failure; the provisioning saga and the
# permission engine want { data, error } instead so that every
# remote call is inspected, never allowed to bubble.
# =================================================================

class SupabaseError(Exception):
    """A failed store / auth call, reduced to message + code."""

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status

    @classmethod
    def from_exception(cls, exc: Exception) -> "SupabaseError":
        if isinstance(exc, cls):
            return exc
        status = getattr(exc, "status", None)
        return cls(
            extract_supabase_error(exc),
            extract_supabase_error_code(exc),
            status if isinstance(status, int) else None,
        )

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code}


class SupabaseResult(NamedTuple):
    data: Any = None
    error: Optional[SupabaseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def execute(query) -> SupabaseResult:
    """Run a PostgREST query builder; never raises."""
    try:
        response = query.execute()
    except Exception as e:
        return SupabaseResult(error=SupabaseError.from_exception(e))

    # maybe_single() yields None instead of a response when nothing matched
    return SupabaseResult(data=getattr(response, "data", None) if response is not None else None)


def call_supabase(fn: Callable, *args, **kwargs) -> SupabaseResult:
    """Run a GoTrue call (sign_up, admin.create_user, ...); never raises."""
    try:
        return SupabaseResult(data=fn(*args, **kwargs))
    except Exception as e:
        return SupabaseResult(error=SupabaseError.from_exception(e))


def unwrap(result: SupabaseResult, operation: str):
    """Return data or raise the mapped HTTPException."""
    if result.error is not None:
        raise handle_supabase_error(result.error, operation)
    return result.data


# =================================================================
#  SAFE SELECT / INSERT / UPDATE / DELETE: feature tables
# =================================================================
# Not for auth.users; principals go through core.auth_provider.
# =================================================================

def safe_select(client, table: str, filters: dict = None, *, order: str = None, desc: bool = False):
    query = client.table(table).select("*")
    for key, val in (filters or {}).items():
        query = query.eq(key, val)
    if order:
        query = query.order(order, desc=desc)

    return unwrap(execute(query), f"Failed to fetch from {table}") or []


def safe_get(client, table: str, row_id: str, *, label: str = None):
    """Single row by id or 404."""
    from fastapi import HTTPException

    rows = safe_select(client, table, {"id": row_id})
    if not rows:
        raise HTTPException(404, f"{label or table} '{row_id}' not found")
    return rows[0]


def safe_insert(client, table: str, data: dict):
    query = client.table(table).insert(sanitize(data))
    rows = unwrap(execute(query), f"Failed to insert into {table}")
    return rows[0] if rows else None


def safe_update(client, table: str, filters: dict, data: dict):
    query = client.table(table).update(sanitize(data))
    for key, val in filters.items():
        query = query.eq(key, val)

    rows = unwrap(execute(query), f"Failed to update {table}")
    return rows[0] if rows else None


def safe_delete(client, table: str, filters: dict) -> list:
    query = client.table(table).delete()
    for key, val in filters.items():
        query = query.eq(key, val)

    return unwrap(execute(query), f"Failed to delete from {table}") or []

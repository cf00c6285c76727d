# core/errors.py

from typing import Optional

from fastapi import HTTPException


def extract_supabase_error(error: Exception) -> str:
    """
    Readable details from Supabase Python client errors.
    Handles:
      • PostgREST errors (APIError.message)
      • GoTrue (Auth) errors (AuthApiError.message)
      • Generic Python exceptions
    """
    message = getattr(error, "message", None)
    if message:
        return str(message)

    if getattr(error, "args", None):
        first = error.args[0]
        # postgrest sometimes carries the raw error payload as a dict
        if isinstance(first, dict) and first.get("message"):
            return str(first["message"])
        return str(first)

    text = str(error)
    return text or "Unknown Supabase error"


def extract_supabase_error_code(error: Exception) -> Optional[str]:
    """Store error code (e.g. Postgres "23505") or GoTrue error code, if any."""
    code = getattr(error, "code", None)
    if code:
        return str(code)

    if getattr(error, "args", None) and isinstance(error.args[0], dict):
        code = error.args[0].get("code")
        if code:
            return str(code)

    return None


def is_unique_violation(message: str, code: Optional[str] = None) -> bool:
    lowered = (message or "").lower()
    return code == "23505" or "duplicate" in lowered or "unique" in lowered


def handle_supabase_error(
    error: Exception,
    operation: str = "Database operation",
    status_code: int = 500,
) -> HTTPException:
    """
    Consistent HTTPException for a failed store call.
    Returns (doesn't raise) so the caller can customize or re-raise.
    """
    from core.logging_config import logger

    message = extract_supabase_error(error)
    code = extract_supabase_error_code(error)
    logger.error(f"{operation}: {message} (code={code})")

    lowered = message.lower()
    if is_unique_violation(message, code):
        return HTTPException(400, detail={"error": f"{operation}: Record already exists", "code": code})
    if code == "23503" or "foreign key" in lowered:
        return HTTPException(400, detail={"error": f"{operation}: Invalid reference", "code": code})
    if code == "PGRST116" or "not found" in lowered or "does not exist" in lowered:
        return HTTPException(404, detail={"error": f"{operation}: Resource not found", "code": code})

    return HTTPException(status_code, detail={"error": f"{operation} failed: {message}", "code": code})

# core/utils.py

import re
from datetime import datetime, timezone

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def sanitize(data: dict) -> dict:
    """
    Clean a payload before it goes to the store:
    - Empty / whitespace strings → None
    - Strings are stripped
    - Everything else passes through (phone numbers stay strings)
    """
    clean = {}

    for key, value in data.items():
        if isinstance(value, str):
            stripped = value.strip()
            clean[key] = stripped or None
        else:
            clean[key] = value

    return clean


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def slugify(*parts: str) -> str:
    """"Jane", "O'Doe" -> "jane-o-doe" """
    raw = "-".join(p for p in parts if p)
    return _NON_SLUG.sub("-", raw.lower()).strip("-")


def first_row(data):
    """PostgREST returns a list for insert/update/select; single() returns a dict."""
    if isinstance(data, list):
        return data[0] if data else None
    return data

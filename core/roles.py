# core/roles.py

"""
Coarse, hierarchical application roles.

    friend < family < manager < owner

A principal may hold several roles; its effective rank is the highest one.
Unknown names are rejected when a role is assigned. A stored name that is not
recognised anymore counts as the lowest rank instead of failing the check.
"""

from typing import Iterable, Optional

from models.enums import AppRole

ROLE_ORDER = [r.value for r in AppRole]  # ascending privilege
ROLE_RANK = {name: rank for rank, name in enumerate(ROLE_ORDER)}
LOWEST_ROLE = ROLE_ORDER[0]


def is_valid_role(name) -> bool:
    return isinstance(name, str) and name in ROLE_RANK


def validate_role(name) -> str:
    """Assignment-time validation. Raises ValueError."""
    if not is_valid_role(name):
        raise ValueError(f"Invalid role: {name!r}. Must be one of: {', '.join(ROLE_ORDER)}")
    return name


def normalize_role(name) -> str:
    """Stored role → known role name; anything unrecognised is the lowest role."""
    return name if is_valid_role(name) else LOWEST_ROLE


def role_rank(name) -> int:
    return ROLE_RANK[normalize_role(name)]


def highest_role(roles: Iterable[str]) -> Optional[str]:
    roles = list(roles)
    if not roles:
        return None
    return max((normalize_role(r) for r in roles), key=role_rank)


def role_satisfies(held: Iterable[str], required: str) -> bool:
    """True if any held role ranks at or above `required`. Unknown `required` → False."""
    if not is_valid_role(required):
        return False
    needed = ROLE_RANK[required]
    return any(role_rank(r) >= needed for r in held)

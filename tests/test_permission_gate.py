# tests/test_permission_gate.py

"""
Tests for loading a SessionContext from the store and for the gating wrapper.
"""

import pytest
from fastapi import HTTPException

from core.permission_helpers import (
    filter_gated,
    load_session_context,
    permission_gate,
    require_property_access,
    require_tenant_role,
    requires_feature,
)
from core.session import SessionContext
from models.enums import SessionState
from tests.fakes import FakeSupabase, make_context, make_user


# ---------------------------------------------------------
# load_session_context
# ---------------------------------------------------------
def test_load_reads_roles_then_matrix():
    db = FakeSupabase()
    db.seed("user_roles", {"user_id": "u1", "role": "family"})
    db.seed(
        "role_permissions",
        {"role": "family", "feature": "calendar_view", "allowed": True},
        {"role": "owner", "feature": "tasks_edit", "allowed": True},
    )

    context = load_session_context(db, make_user("u1"))

    assert context.state == SessionState.ready
    assert context.roles == ["family"]
    assert context.has_permission("calendar_view")
    assert not context.has_permission("tasks_edit")
    assert db.log == [("user_roles", "select"), ("role_permissions", "select")]


def test_load_without_roles_skips_matrix():
    db = FakeSupabase()
    context = load_session_context(db, make_user("nobody"))

    assert context.is_ready
    assert context.roles == []
    assert db.calls("role_permissions") == []


def test_load_error_leaves_everything_denied_until_retry():
    db = FakeSupabase()
    db.seed("user_roles", {"user_id": "u1", "role": "owner"})
    db.fail("role_permissions", "select", "connection reset", times=1)

    context = load_session_context(db, make_user("u1"))
    assert context.state == SessionState.error
    assert context.error == "connection reset"
    assert not context.has_role("friend")

    load_session_context(db, make_user("u1"), context)
    assert context.state == SessionState.ready
    assert context.has_role("owner")


# ---------------------------------------------------------
# permission_gate
# ---------------------------------------------------------
def test_gate_owner_required_family_gets_fallback():
    context = make_context(["family"])
    shown = permission_gate(context, "children", required_role="owner", fallback="fallback")
    assert shown == "fallback"


def test_gate_without_requirements_shows_content():
    assert permission_gate(None, "children") == "children"


def test_gate_missing_context_fails_closed():
    assert permission_gate(None, "children", required_role="friend", fallback="no") == "no"


def test_gate_loading_context_fails_closed():
    context = SessionContext(make_user())
    context.begin_loading()
    assert permission_gate(context, "children", required_permission="manual_view") is None


def test_gate_either_requirement_suffices():
    rows = [{"role": "friend", "feature": "tasks_view", "allowed": True}]
    context = make_context(["friend"], permission_rows=rows)

    assert permission_gate(context, "x", required_role="owner", required_permission="tasks_view") == "x"
    assert permission_gate(context, "x", required_role="friend", required_permission="users_manage") == "x"
    assert permission_gate(context, "x", required_role="owner", required_permission="users_manage") is None


def test_gate_custom_check():
    context = make_context(["owner"])

    assert permission_gate(context, "x", custom_check=lambda: True) == "x"
    assert permission_gate(context, "x", custom_check=lambda: False, fallback="f") == "f"


def test_gate_custom_check_that_raises_fails_closed():
    def broken():
        raise RuntimeError("boom")

    assert permission_gate(make_context(["owner"]), "x", custom_check=broken, fallback="f") == "f"


def test_gate_non_callable_check_fails_closed():
    assert permission_gate(make_context(["owner"]), "x", custom_check="yes", fallback="f") == "f"


def test_gate_object_without_checks_fails_closed():
    class Broken:
        can_access = None

    assert permission_gate(Broken(), "x", required_role="friend", fallback="f") == "f"


def test_filter_gated_keeps_visible_items():
    items = [
        {"key": "home"},
        {"key": "calendar", "required_permission": "calendar_view"},
        {"key": "users", "required_role": "owner"},
    ]
    visible = filter_gated(make_context(["family"]), items)
    assert [i["key"] for i in visible] == ["home", "calendar"]


def test_requires_feature_rejects_unknown_feature():
    with pytest.raises(ValueError):
        requires_feature("billing_view")


# ---------------------------------------------------------
# Tenant / property scope
# ---------------------------------------------------------
def _tenant_db():
    db = FakeSupabase()
    db.seed("tenant_users",
            {"tenant_id": "t1", "user_id": "u1", "role": "owner", "status": "active"},
            {"tenant_id": "t1", "user_id": "u2", "role": "member", "status": "invited"})
    db.seed("properties", {"id": "p1", "tenant_id": "t1", "name": "Cabin"})
    return db


def test_require_tenant_role():
    db = _tenant_db()
    assert require_tenant_role(db, "u1", "t1")["role"] == "owner"

    with pytest.raises(HTTPException) as exc:
        require_tenant_role(db, "u2", "t1")
    assert exc.value.status_code == 403


def test_require_property_access():
    db = _tenant_db()
    assert require_property_access(db, "u1", "p1")["name"] == "Cabin"

    with pytest.raises(HTTPException) as exc:
        require_property_access(db, "u1", "missing")
    assert exc.value.status_code == 404

    with pytest.raises(HTTPException) as exc:
        require_property_access(db, "stranger", "p1")
    assert exc.value.status_code == 403

# tests/test_user_provisioning.py

"""
Tests for the administrator-side provisioning workflows.
"""

import pytest
from fastapi import HTTPException

from models.user import AdminCreateUser, AdminUpdateUser
from services import user_provisioning
from services.provisioning import ProvisioningError, ProvisioningSaga, ProvisioningStep
from core.supabase_helpers import SupabaseError, SupabaseResult
from tests.fakes import FakeSupabase


def new_user_payload(**overrides):
    data = {"email": "a@b.com", "full_name": "A B", "role": "manager"}
    data.update(overrides)
    return AdminCreateUser(**data)


# ---------------------------------------------------------
# Saga mechanics
# ---------------------------------------------------------
def test_saga_runs_steps_in_order_and_records_ids():
    seen = []

    def step(name, data):
        def action(state):
            seen.append(name)
            return SupabaseResult(data=data)
        return action

    saga = ProvisioningSaga("demo", [
        ProvisioningStep("one", step("one", {"id": 1}), record=lambda d: {"one_id": d["id"]}),
        ProvisioningStep("two", step("two", None)),
    ])
    outcome = saga.run()

    assert seen == ["one", "two"]
    assert outcome.completed == ["one", "two"]
    assert outcome.created == {"one_id": 1}


def test_saga_compensates_in_reverse_when_enabled():
    undone = []

    def ok(state):
        return SupabaseResult(data={})

    def undo(name):
        def _undo(state):
            undone.append(name)
            return SupabaseResult()
        return _undo

    saga = ProvisioningSaga("demo", [
        ProvisioningStep("a", ok, undo=undo("a")),
        ProvisioningStep("b", ok, undo=undo("b")),
        ProvisioningStep("c", lambda s: SupabaseResult(error=SupabaseError("nope"))),
    ], compensate=True)

    with pytest.raises(ProvisioningError) as exc:
        saga.run()

    assert undone == ["b", "a"]
    assert exc.value.compensated == ["b", "a"]
    assert exc.value.step == "c"


# ---------------------------------------------------------
# provision_user
# ---------------------------------------------------------
def test_provision_user_happy_path():
    db = FakeSupabase()
    result = user_provisioning.provision_user(db, new_user_payload())

    assert result.success is True
    assert result.invite_sent is True
    assert result.role_assigned is True

    profile = db.rows("profiles", id=result.user_id)[0]
    assert profile["email"] == "a@b.com"
    assert profile["role"] == "manager"
    assert db.rows("user_roles", user_id=result.user_id)[0]["role"] == "manager"

    invite = db.auth.invites[0]
    assert invite["options"]["redirect_to"].endswith("/auth/callback")
    assert "property_name" in invite["options"]["data"]

    # no password: set through the invitation link
    assert result.user_id not in db.auth.passwords


def test_provision_user_steps_run_in_order():
    db = FakeSupabase()
    user_provisioning.provision_user(db, new_user_payload())

    assert db.log == [
        ("auth", "create_user"),
        ("profiles", "insert"),
        ("user_roles", "insert"),
        ("auth", "invite_user_by_email"),
    ]


def test_principal_failure_is_fatal_and_creates_nothing():
    db = FakeSupabase()
    db.auth.fail("create_user", "A user with this email address has already been registered")

    with pytest.raises(ProvisioningError) as exc:
        user_provisioning.provision_user(db, new_user_payload())

    err = exc.value
    assert err.step == "create_principal"
    assert err.status_code == 400
    assert "already been registered" in err.message
    assert err.created == {}
    assert err.partial_success is False
    assert db.tables.get("profiles", []) == []


def test_profile_failure_reports_created_principal_and_stops():
    db = FakeSupabase()
    db.fail("profiles", "insert", "permission denied for table profiles", code="42501")

    with pytest.raises(ProvisioningError) as exc:
        user_provisioning.provision_user(db, new_user_payload())

    err = exc.value
    assert err.step == "insert_profile"
    assert err.code == "42501"
    assert err.created["user_id"] in db.auth.users
    assert err.partial_success is True

    # neither the role row nor the invitation is attempted
    assert db.calls("user_roles") == []
    assert "invite_user_by_email" not in db.calls("auth")


def test_profile_failure_with_compensation_removes_principal():
    db = FakeSupabase()
    db.fail("profiles", "insert", "boom")

    with pytest.raises(ProvisioningError) as exc:
        user_provisioning.provision_user(db, new_user_payload(), compensate=True)

    assert exc.value.compensated == ["create_principal"]
    assert db.auth.users == {}


def test_role_failure_is_not_fatal():
    db = FakeSupabase()
    db.fail("user_roles", "insert", "relation does not exist")

    result = user_provisioning.provision_user(db, new_user_payload())

    assert result.success is True
    assert result.role_assigned is False
    assert result.invite_sent is True
    assert "assign_role" in result.warnings


def test_invite_failure_reported_separately():
    db = FakeSupabase()
    db.auth.fail("invite_user_by_email", "Error sending invite email")

    result = user_provisioning.provision_user(db, new_user_payload())

    assert result.success is True
    assert result.invite_sent is False
    assert result.role_assigned is True
    assert result.warnings["send_invitation"]["message"] == "Error sending invite email"


def test_invalid_role_rejected_before_any_call():
    db = FakeSupabase()
    payload = new_user_payload().model_copy(update={"role": "superuser"})

    with pytest.raises(ValueError):
        user_provisioning.provision_user(db, payload)
    assert db.log == []


# ---------------------------------------------------------
# delete_user
# ---------------------------------------------------------
def _existing_user(db, role="family"):
    user = db.auth.add_user("x@y.com", {"full_name": "X"})
    db.seed("profiles", {"id": user.id, "email": "x@y.com", "role": role})
    db.seed("user_roles", {"user_id": user.id, "role": role})
    return user.id


def test_delete_user_removes_all_layers_in_reverse_order():
    db = FakeSupabase()
    user_id = _existing_user(db)

    result = user_provisioning.delete_user(db, user_id)

    assert result.success is True
    assert db.rows("user_roles", user_id=user_id) == []
    assert db.rows("profiles", id=user_id) == []
    assert user_id not in db.auth.users
    assert db.log == [("user_roles", "delete"), ("profiles", "delete"), ("auth", "delete_user")]


def test_delete_user_continues_when_role_delete_fails():
    db = FakeSupabase()
    user_id = _existing_user(db)
    db.fail("user_roles", "delete", "timeout")

    result = user_provisioning.delete_user(db, user_id)

    assert "delete_role_assignments" in result.warnings
    assert ("profiles", "delete") in db.log
    assert user_id not in db.auth.users


def test_delete_user_profile_failure_never_touches_auth():
    db = FakeSupabase()
    user_id = _existing_user(db)
    db.fail("profiles", "delete", "row is locked")

    with pytest.raises(ProvisioningError) as exc:
        user_provisioning.delete_user(db, user_id)

    assert exc.value.step == "delete_profile"
    assert "row is locked" in exc.value.message
    assert "delete_user" not in db.calls("auth")
    assert user_id in db.auth.users


def test_delete_user_auth_failure_is_partial_success():
    db = FakeSupabase()
    user_id = _existing_user(db)
    db.auth.fail("delete_user", "Database error deleting user")

    with pytest.raises(ProvisioningError) as exc:
        user_provisioning.delete_user(db, user_id)

    err = exc.value
    assert err.step == "delete_principal"
    assert err.partial_success is True
    assert err.completed == ["delete_role_assignments", "delete_profile"]


# ---------------------------------------------------------
# Roles + profile cache
# ---------------------------------------------------------
def test_grant_and_revoke_keep_profile_role_in_sync():
    db = FakeSupabase()
    user_id = _existing_user(db, role="family")

    roles = user_provisioning.grant_role(db, user_id, "manager")
    assert sorted(roles) == ["family", "manager"]
    assert db.rows("profiles", id=user_id)[0]["role"] == "manager"

    # granting twice does not duplicate the row
    user_provisioning.grant_role(db, user_id, "manager")
    assert len(db.rows("user_roles", user_id=user_id, role="manager")) == 1

    roles = user_provisioning.revoke_role(db, user_id, "manager")
    assert roles == ["family"]
    assert db.rows("profiles", id=user_id)[0]["role"] == "family"


def test_revoke_last_owner_is_refused():
    db = FakeSupabase()
    user_id = _existing_user(db, role="owner")

    with pytest.raises(HTTPException) as exc:
        user_provisioning.revoke_role(db, user_id, "owner")
    assert exc.value.status_code == 400


def test_update_user_replaces_role_and_profile():
    db = FakeSupabase()
    user_id = _existing_user(db, role="family")

    result = user_provisioning.update_user(
        db, user_id, AdminUpdateUser(role="manager", phone_number="555-0100", full_name="X Y")
    )

    assert result["success"] is True
    assert [r["role"] for r in db.rows("user_roles", user_id=user_id)] == ["manager"]

    profile = db.rows("profiles", id=user_id)[0]
    assert profile["role"] == "manager"
    assert profile["phone_number"] == "555-0100"
    assert db.auth.users[user_id].user_metadata["full_name"] == "X Y"


def test_update_user_names_failing_step():
    db = FakeSupabase()
    user_id = _existing_user(db)
    db.fail("profiles", "update", "check constraint violated")

    with pytest.raises(ProvisioningError) as exc:
        user_provisioning.update_user(db, user_id, AdminUpdateUser(address="1 Lake Rd"))
    assert exc.value.step == "update_profile"


def test_list_users_with_roles():
    db = FakeSupabase()
    user_id = _existing_user(db, role="family")
    db.seed("user_roles", {"user_id": user_id, "role": "manager"})

    users = user_provisioning.list_users_with_roles(db)

    assert len(users) == 1
    assert sorted(users[0]["roles"]) == ["family", "manager"]
    assert users[0]["has_profile"] is True

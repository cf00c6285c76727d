# tests/test_permissions.py

"""
Tests for the role / feature matrix endpoints and route gating.
"""

from fastapi.testclient import TestClient

from core.permissions import FEATURES


def test_matrix_shows_missing_cells_as_denied(client: TestClient, fake_db, login_as):
    login_as("owner")
    fake_db.seed("role_permissions", {"role": "family", "feature": "calendar_view", "allowed": True})

    data = client.get("/admin/permissions").json()

    assert data["roles"] == ["friend", "family", "manager", "owner"]
    assert data["matrix"]["family"]["calendar_view"] is True
    assert data["matrix"]["family"]["tasks_view"] is False
    assert set(data["matrix"]["owner"]) == set(FEATURES)


def test_update_cells_upserts(client: TestClient, fake_db, login_as):
    login_as("owner")
    fake_db.seed("role_permissions", {"role": "family", "feature": "tasks_view", "allowed": True})

    response = client.put("/admin/permissions", json={"cells": [
        {"role": "family", "feature": "tasks_view", "allowed": False},
        {"role": "friend", "feature": "calendar_view", "allowed": True},
    ]})

    assert response.status_code == 200
    assert len(fake_db.rows("role_permissions", role="family", feature="tasks_view")) == 1
    assert response.json()["matrix"]["family"]["tasks_view"] is False
    assert response.json()["matrix"]["friend"]["calendar_view"] is True


def test_update_rejects_unknown_feature_or_role(client: TestClient, login_as):
    login_as("owner")

    bad_feature = client.put("/admin/permissions", json={"cells": [
        {"role": "family", "feature": "billing", "allowed": True},
    ]})
    bad_role = client.put("/admin/permissions", json={"cells": [
        {"role": "admin", "feature": "tasks_view", "allowed": True},
    ]})

    assert bad_feature.status_code == 400
    assert bad_role.status_code == 400


def test_reset_seeds_full_grid(client: TestClient, fake_db, login_as):
    login_as("owner")

    data = client.post("/admin/permissions/reset").json()

    assert len(fake_db.tables["role_permissions"]) == 4 * len(FEATURES)
    assert data["matrix"]["friend"]["manual_view"] is True
    assert data["matrix"]["manager"]["users_manage"] is False


def test_matrix_is_owner_only(client: TestClient, login_as):
    # even with users_manage granted, the matrix stays owner-only
    login_as("manager", permission_rows=[{"role": "manager", "feature": "users_manage", "allowed": True}])
    assert client.get("/admin/permissions").status_code == 403


def test_feature_gate_permission_or_role_floor(client: TestClient, login_as):
    # family has no tasks_edit cell and is below the manager floor
    login_as("family")
    assert client.post("/tasks", json={"title": "Fix gate"}).status_code == 403

    # the matrix alone is enough
    login_as("family", permission_rows=[{"role": "family", "feature": "tasks_edit", "allowed": True}])
    assert client.post("/tasks", json={"title": "Fix gate"}).status_code == 201

    # the role floor alone is enough
    login_as("manager", permission_rows=[])
    assert client.post("/tasks", json={"title": "Fix gate"}).status_code == 201


def test_principal_without_roles_is_denied_everywhere(client: TestClient, login_as):
    login_as([])

    for path in ("/tasks", "/checklists", "/contacts", "/inventory", "/manual/sections", "/reservations", "/notes"):
        assert client.get(path).status_code == 403, path

# tests/test_features.py

"""
Feature routers behind the permission gate: calendar, tasks, inventory,
notes, contacts and the house manual.
"""

from fastapi.testclient import TestClient

from tests.fakes import make_user


STAY = {"title": "Summer week", "start_date": "2026-07-01", "end_date": "2026-07-08"}


# ============================================================================
# RESERVATIONS
# ============================================================================
def test_family_request_starts_pending(client: TestClient, fake_db, login_as):
    login_as("family")

    response = client.post("/reservations", json=STAY)

    assert response.status_code == 201
    assert response.json()["status"] == "pending"
    assert response.json()["user_id"] == "user-admin"


def test_end_before_start_is_400(client: TestClient, login_as):
    login_as("family")
    response = client.post("/reservations", json={**STAY, "end_date": "2026-06-01"})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_decision_requires_calendar_edit(client: TestClient, fake_db, login_as):
    fake_db.seed("reservations", {"id": "r1", **STAY, "status": "pending", "user_id": "user-9"})

    login_as("family")
    assert client.post("/reservations/r1/decision", json={"status": "approved"}).status_code == 403

    login_as("manager")
    response = client.post("/reservations/r1/decision", json={"status": "approved"})
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    # decided once
    again = client.post("/reservations/r1/decision", json={"status": "denied"})
    assert again.status_code == 400


def test_requester_edits_only_while_pending(client: TestClient, fake_db, login_as):
    fake_db.seed(
        "reservations",
        {"id": "r1", **STAY, "status": "pending", "user_id": "user-admin"},
        {"id": "r2", **STAY, "status": "approved", "user_id": "user-admin"},
    )
    login_as("family")

    assert client.patch("/reservations/r1", json={"title": "Long weekend"}).status_code == 200
    assert client.patch("/reservations/r2", json={"title": "Long weekend"}).status_code == 403


def test_cancel_by_requester(client: TestClient, fake_db, login_as):
    fake_db.seed(
        "reservations",
        {"id": "r1", **STAY, "status": "approved", "user_id": "user-admin"},
        {"id": "r2", **STAY, "status": "pending", "user_id": "user-9"},
    )
    login_as("family")

    assert client.post("/reservations/r1/cancel").json()["status"] == "cancelled"
    assert client.post("/reservations/r1/cancel").status_code == 400
    assert client.post("/reservations/r2/cancel").status_code == 403


def test_friend_cannot_see_calendar(client: TestClient, login_as):
    login_as("friend")
    response = client.get("/reservations")
    assert response.status_code == 403
    assert response.json() == {
        "success": False,
        "error": "Insufficient permissions: role 'family' or permission 'calendar_view' required",
    }


# ============================================================================
# TASKS
# ============================================================================
def test_completing_a_task_stamps_completed_at(client: TestClient, fake_db, login_as):
    login_as("manager")
    task = client.post("/tasks", json={"title": "Clean gutters", "priority": "high"}).json()

    done = client.patch(f"/tasks/{task['id']}", json={"status": "completed"}).json()
    assert done["completed_at"] is not None

    reopened = client.patch(f"/tasks/{task['id']}", json={"status": "todo"}).json()
    assert reopened["completed_at"] is None


def test_assignee_may_only_move_status(client: TestClient, fake_db, login_as):
    fake_db.seed("tasks", {"id": "t1", "title": "Stack wood", "status": "todo", "assigned_to": "user-admin"})
    login_as("family")

    assert client.patch("/tasks/t1", json={"status": "in_progress"}).status_code == 200
    assert client.patch("/tasks/t1", json={"title": "Burn wood"}).status_code == 403


def test_task_filters(client: TestClient, fake_db, login_as):
    fake_db.seed(
        "tasks",
        {"title": "a", "status": "todo", "priority": "low"},
        {"title": "b", "status": "completed", "priority": "high"},
    )
    login_as("family")

    titles = [t["title"] for t in client.get("/tasks", params={"status": "completed"}).json()]
    assert titles == ["b"]
    assert client.get("/tasks", params={"status": "someday"}).status_code == 400


# ============================================================================
# INVENTORY
# ============================================================================
def test_low_stock_filter(client: TestClient, fake_db, login_as):
    fake_db.seed(
        "inventory",
        {"name": "Firewood", "quantity": 2, "threshold": 5},
        {"name": "Paper towels", "quantity": 12, "threshold": 4},
        {"name": "Salt", "quantity": 0},
    )
    login_as("family")

    everything = client.get("/inventory").json()
    assert [i["name"] for i in everything] == ["Firewood", "Paper towels", "Salt"]
    assert [i["low_stock"] for i in everything] == [True, False, False]

    low = client.get("/inventory", params={"low_stock": True}).json()
    assert [i["name"] for i in low] == ["Firewood"]


def test_negative_quantity_is_rejected(client: TestClient, login_as):
    login_as("manager")
    response = client.post("/inventory", json={"name": "Firewood", "quantity": -1})
    assert response.status_code == 400
    assert response.json()["fields"][0]["field"] == "quantity"


# ============================================================================
# NOTES
# ============================================================================
def test_notes_are_private(client: TestClient, fake_db, login_as):
    fake_db.seed("notes", {"id": "n-other", "title": "theirs", "user_id": "user-9"})
    login_as("friend")

    mine = client.post("/notes", json={"title": "Wifi password", "content": "hunter2"})
    assert mine.status_code == 201

    assert [n["title"] for n in client.get("/notes").json()] == ["Wifi password"]
    assert client.get("/notes/n-other").status_code == 404
    assert client.delete("/notes/n-other").status_code == 404
    assert fake_db.rows("notes", id="n-other")


# ============================================================================
# CONTACTS
# ============================================================================
def test_contacts_by_priority_then_name(client: TestClient, fake_db, login_as):
    fake_db.seed(
        "contacts",
        {"name": "Zed Plumbing", "priority": 5},
        {"name": "Ace Electric", "priority": 5},
        {"name": "Neighbor Ann", "priority": 1},
    )
    login_as("friend")

    names = [c["name"] for c in client.get("/contacts").json()]
    assert names == ["Ace Electric", "Zed Plumbing", "Neighbor Ann"]


def test_people_lists_opted_in_co_members(client: TestClient, fake_db, login_as):
    fake_db.seed(
        "tenant_users",
        {"tenant_id": "t1", "user_id": "user-admin", "role": "member", "status": "active"},
        {"tenant_id": "t1", "user_id": "u1", "role": "member", "status": "active"},
        {"tenant_id": "t1", "user_id": "u2", "role": "member", "status": "active"},
        {"tenant_id": "t9", "user_id": "u3", "role": "owner", "status": "active"},
    )
    fake_db.seed(
        "profiles",
        {"id": "u1", "full_name": "Ann", "show_in_contacts": True},
        {"id": "u2", "full_name": "Bob", "show_in_contacts": False},
        {"id": "u3", "full_name": "Cy", "show_in_contacts": True},
    )
    login_as("friend")

    assert [p["full_name"] for p in client.get("/contacts/people").json()] == ["Ann"]


def test_friend_cannot_edit_contacts(client: TestClient, login_as):
    login_as("friend")
    assert client.post("/contacts", json={"name": "Ann"}).status_code == 403


# ============================================================================
# MANUAL
# ============================================================================
def test_manual_sections_nest_items_in_order(client: TestClient, login_as):
    login_as("manager")

    kitchen = client.post("/manual/sections", json={"title": "Kitchen"}).json()
    garden = client.post("/manual/sections", json={"title": "Garden"}).json()
    assert (kitchen["order_index"], garden["order_index"]) == (0, 1)

    client.post(f"/manual/sections/{kitchen['id']}/items", json={"title": "Dishwasher"})
    client.post(f"/manual/sections/{kitchen['id']}/items", json={"title": "Trash day", "order_index": 0})
    client.post(f"/manual/sections/{kitchen['id']}/items", json={"title": "Oven"})

    sections = client.get("/manual/sections").json()
    assert [s["title"] for s in sections] == ["Kitchen", "Garden"]
    assert [i["title"] for i in sections[0]["items"]] == ["Dishwasher", "Trash day", "Oven"]
    assert sections[1]["items"] == []


def test_delete_section_removes_items(client: TestClient, fake_db, login_as):
    fake_db.seed("manual_sections", {"id": "s1", "title": "Kitchen", "order_index": 0})
    fake_db.seed("manual_items", {"section_id": "s1", "title": "Oven"})
    login_as("owner", user=make_user())

    assert client.delete("/manual/sections/s1").status_code == 200
    assert fake_db.rows("manual_items", section_id="s1") == []

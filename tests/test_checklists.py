# tests/test_checklists.py

"""
Tests for checklists and their items.
"""

from fastapi.testclient import TestClient


def test_checklist_round_trip_empty(client: TestClient, login_as):
    login_as("manager")

    created = client.post("/checklists", json={"title": "Move-out", "items": []})
    assert created.status_code == 201

    fetched = client.get(f"/checklists/{created.json()['id']}").json()
    assert fetched["title"] == "Move-out"
    assert fetched["items"] == []


def test_checklist_round_trip_counts_inserted_items(client: TestClient, login_as):
    login_as("manager")

    checklist_id = client.post("/checklists", json={"title": "Move-out", "items": []}).json()["id"]
    for title in ("Strip beds", "Empty fridge", "Lock shed"):
        assert client.post(f"/checklists/{checklist_id}/items", json={"title": title}).status_code == 201

    fetched = client.get(f"/checklists/{checklist_id}").json()
    assert fetched["title"] == "Move-out"
    assert len(fetched["items"]) == 3
    assert [i["order_index"] for i in fetched["items"]] == [0, 1, 2]


def test_create_with_items_keeps_order(client: TestClient, fake_db, login_as):
    login_as("manager")

    response = client.post("/checklists", json={
        "title": "Arrival",
        "items": [{"title": "Water on"}, {"title": "Heat on", "category": "utilities"}],
    })

    data = response.json()
    assert [i["title"] for i in data["items"]] == ["Water on", "Heat on"]
    assert len(fake_db.rows("checklist_items", checklist_id=data["id"])) == 2


def test_items_failure_reports_created_checklist(client: TestClient, fake_db, login_as):
    login_as("manager")
    fake_db.fail("checklist_items", "insert", "value too long")

    response = client.post("/checklists", json={"title": "Arrival", "items": [{"title": "Water on"}]})

    assert response.status_code == 500
    body = response.json()
    assert body["partial_success"] is True
    assert body["created"]["checklist_id"] == fake_db.tables["checklists"][0]["id"]


def test_family_can_tick_but_not_edit(client: TestClient, fake_db, login_as):
    fake_db.seed("checklists", {"id": "c1", "title": "Clean"})
    fake_db.seed("checklist_items", {"id": "i1", "checklist_id": "c1", "title": "Mop", "is_completed": False})
    login_as("family")

    response = client.post("/checklists/c1/items/i1/toggle")
    assert response.status_code == 200
    assert response.json()["is_completed"] is True
    assert response.json()["completed_by"] == "user-admin"

    assert client.post("/checklists/c1/items/i1/toggle").json()["is_completed"] is False
    assert client.patch("/checklists/c1", json={"title": "x"}).status_code == 403


def test_delete_checklist_removes_items(client: TestClient, fake_db, login_as):
    fake_db.seed("checklists", {"id": "c1", "title": "Clean"})
    fake_db.seed("checklist_items", {"checklist_id": "c1", "title": "Mop"})
    login_as("manager")

    assert client.delete("/checklists/c1").status_code == 200
    assert fake_db.rows("checklist_items", checklist_id="c1") == []
    assert client.get("/checklists/c1").status_code == 404


def test_missing_title_is_400(client: TestClient, login_as):
    login_as("manager")
    response = client.post("/checklists", json={"items": []})
    assert response.status_code == 400
    assert response.json()["fields"][0]["field"] == "title"

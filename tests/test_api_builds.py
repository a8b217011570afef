"""
装机接口测试 - Build API Tests

路由同时挂在 /builds 和 /api/builds 下。
"""

import pytest


@pytest.fixture
def build(client):
    resp = client.post("/builds", json={"label": "B1"})
    assert resp.status_code == 201
    return resp.json()


def test_create_build_response(build):
    assert build["label"] == "B1"
    assert set(build) == {"id", "label", "createdAt"}


def test_create_build_accepts_user_name(client):
    resp = client.post("/api/builds", json={"userName": "John Doe"})
    assert resp.status_code == 201
    assert resp.json()["label"] == "John Doe"


@pytest.mark.parametrize("body", [{}, {"label": ""}])
def test_create_build_requires_label(client, body):
    resp = client.post("/builds", json=body)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation error"


def test_blank_label_is_rejected(client):
    resp = client.post("/builds", json={"label": "   "})
    assert resp.status_code == 400
    assert resp.json()["details"][0]["field"] == "label"


def test_get_empty_build(client, build):
    body = client.get(f"/builds/{build['id']}").json()
    assert body == {
        "buildId": build["id"],
        "label": "B1",
        "createdAt": build["createdAt"],
        "items": [],
        "totalPrice": 0.0,
    }


def test_get_missing_build(client):
    resp = client.get("/api/builds/999")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Build not found"}


def test_add_items_and_total(client, build, engine_part):
    first = client.post(
        f"/builds/{build['id']}/add",
        json={"partId": engine_part.id, "slotCategory": "engine"},
    )
    assert first.status_code == 201
    assert first.json()["quantity"] == 1
    assert first.json()["part"]["sku"] == "PRED212"

    second = client.post(
        f"/api/builds/{build['id']}/add",
        json={"partId": engine_part.id, "slotCategory": "engine", "quantity": 2},
    )
    assert second.status_code == 201
    assert second.json()["id"] != first.json()["id"]

    view = client.get(f"/builds/{build['id']}").json()
    assert [i["id"] for i in view["items"]] == [first.json()["id"], second.json()["id"]]
    assert view["items"][0]["part"]["compatibilityProfiles"][0]["engineModel"] == "212cc"
    assert view["totalPrice"] == 449.97


def test_add_item_to_missing_build(client, engine_part):
    resp = client.post("/builds/999/add", json={"partId": engine_part.id, "slotCategory": "engine"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Build not found"}


def test_add_missing_part(client, build):
    resp = client.post(f"/builds/{build['id']}/add", json={"partId": 999, "slotCategory": "engine"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Part not found"}
    assert client.get(f"/builds/{build['id']}").json()["items"] == []


@pytest.mark.parametrize("body, field", [
    ({"slotCategory": "engine", "quantity": 0}, "quantity"),
    ({"slotCategory": "turbo"}, "slotCategory"),
])
def test_add_item_validation(client, build, engine_part, body, field):
    resp = client.post(f"/builds/{build['id']}/add", json={"partId": engine_part.id, **body})
    assert resp.status_code == 400
    assert field in {d["field"] for d in resp.json()["details"]}


def test_list_and_delete_builds(client, build, engine_part):
    other = client.post("/builds", json={"label": "B2"}).json()
    assert [b["id"] for b in client.get("/builds").json()] == [other["id"], build["id"]]

    client.post(f"/builds/{build['id']}/add", json={"partId": engine_part.id, "slotCategory": "engine"})
    assert client.delete(f"/builds/{build['id']}").status_code == 204
    assert client.get(f"/builds/{build['id']}").status_code == 404
    assert client.get("/api/build-items", params={"buildId": build["id"]}).json() == []
    assert client.delete(f"/builds/{build['id']}").status_code == 404

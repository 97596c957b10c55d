"""
Test the category endpoints end to end against an in-memory database.
"""
import pytest
from uuid import uuid4
from fastapi.testclient import TestClient

from app.api.web_app import app
from app.db.base import get_db_session


@pytest.fixture
def test_client(db_session):
    """Create FastAPI test client with test database session."""
    # Override the database dependency
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db_session] = override_get_db

    with TestClient(app) as client:
        yield client

    # Clear the override after the test
    app.dependency_overrides.clear()


def test_create_category(test_client, test_category_data):
    response = test_client.post("/api/v1/categories", json=test_category_data)

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "root"
    assert data["created_by"] == "SYSTEM"
    assert [child["name"] for child in data["children"]] == ["a", "b"]
    c = data["children"][1]["children"][0]
    assert c["name"] == "c"
    assert c["color"] == "blue"


def test_create_category_invalid_tree(test_client):
    payload = {"name": "root", "children": [{"name": "ok"}, {"description": "no name"}]}

    response = test_client.post("/api/v1/categories", json=payload)

    assert response.status_code == 422
    assert test_client.get("/api/v1/categories").json()["count"] == 0


def test_create_category_malformed_children(test_client):
    payload = {"name": "root", "children": [{"name": "a", "children": "oops"}]}

    response = test_client.post("/api/v1/categories", json=payload)

    assert response.status_code == 422
    assert "must be a list" in response.json()["detail"]


def test_create_category_missing_name(test_client):
    response = test_client.post("/api/v1/categories", json={"children": []})

    assert response.status_code == 422


def test_get_category(test_client, test_category_data):
    created = test_client.post("/api/v1/categories", json=test_category_data).json()

    response = test_client.get(f"/api/v1/categories/{created['id']}")

    assert response.status_code == 200
    assert response.json()["id"] == created["id"]
    assert response.json()["children"][1]["children"][0]["name"] == "c"


def test_get_category_not_found(test_client):
    response = test_client.get(f"/api/v1/categories/{uuid4()}")

    assert response.status_code == 404
    assert response.json()["detail"] == "Category not found"


def test_list_categories(test_client):
    for name in ["one", "two", "three"]:
        test_client.post("/api/v1/categories", json={"name": name})

    response = test_client.get("/api/v1/categories", params={"limit": 2})

    assert response.status_code == 200
    data = response.json()
    assert len(data["result"]) == 2
    assert data["count"] == 3


def test_update_category(test_client, test_category_data):
    created = test_client.post("/api/v1/categories", json=test_category_data).json()

    response = test_client.put(
        f"/api/v1/categories/{created['id']}",
        json={"name": "renamed", "children": [{"name": "x"}]},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "renamed"
    assert [child["name"] for child in data["children"]] == ["x"]


def test_update_category_not_found(test_client):
    response = test_client.put(f"/api/v1/categories/{uuid4()}", json={"name": "x"})

    assert response.status_code == 404


def test_delete_category(test_client, test_category_data):
    created = test_client.post("/api/v1/categories", json=test_category_data).json()

    response = test_client.delete(f"/api/v1/categories/{created['id']}")

    assert response.status_code == 200
    assert response.json() == {"message": "Category deleted successfully", "id": created["id"]}
    assert test_client.get(f"/api/v1/categories/{created['id']}").status_code == 404
    assert test_client.delete(f"/api/v1/categories/{created['id']}").status_code == 404


def test_query_categories(test_client):
    tax = test_client.post(
        "/api/v1/categories",
        json={"name": "Tax", "children": [{"name": "hidden", "active": False}, {"name": "shown"}]},
    ).json()
    test_client.post("/api/v1/categories", json={"name": "Advisory"})

    response = test_client.post(
        "/api/v1/categories/query",
        json={
            "current_user": {
                "guid": "user-1",
                "roles": [{"name": "Staff"}],
                "lines_of_service": [{"id": tax["id"]}],
            }
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert [child["name"] for child in data["result"][0]["children"]] == ["shown"]

    admin = test_client.post(
        "/api/v1/categories/query",
        json={"current_user": {"roles": [{"name": "System Administrator"}]}},
    ).json()
    assert admin["count"] == 2


def test_sync_and_search(test_client, test_sync_data):
    response = test_client.post("/api/v1/categories/sync/create", json={"categories": test_sync_data})

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    chess = data["result"][0]
    assert chess["create_uuid"] == "chess-uuid"
    assert chess["children"][0]["parent"] == chess["id"]

    response = test_client.post("/api/v1/categories/search", json={"search": "endgame"})

    assert response.status_code == 200
    results = response.json()
    assert len(results) == 1
    assert results[0]["bread_crumb"] == "Chess > Endgames"


def test_sync_invalid_tree(test_client):
    payload = {"categories": [{"name": "Chess", "create_uuid": "chess-uuid", "children": [{"create_uuid": "x"}]}]}

    response = test_client.post("/api/v1/categories/sync/create", json=payload)

    assert response.status_code == 422


def test_health(test_client):
    response = test_client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    detailed = test_client.get("/api/v1/health/detailed").json()
    assert detailed["dependencies"]["database"]["status"] == "healthy"


def test_request_id_header(test_client):
    response = test_client.get("/health")

    assert response.status_code == 200
    assert "X-Request-ID" in response.headers


@pytest.mark.parametrize("children", [["oops"], "oops", [{"name": "a", "children": [42]}]])
def test_sync_malformed_children(test_client, test_sync_data, children):
    test_client.post("/api/v1/categories/sync/create", json={"categories": test_sync_data})
    payload = {"categories": [{"name": "Chess", "create_uuid": "chess-uuid", "children": children}]}

    response = test_client.post("/api/v1/categories/sync/create", json=payload)

    assert response.status_code == 422
    stored = test_client.get("/api/v1/categories").json()["result"][0]
    assert [child["name"] for child in stored["children"]] == ["Chess Openings", "Endgames"]


def test_sync_invalid_merge_keeps_stored_tree(test_client, test_sync_data):
    test_client.post("/api/v1/categories/sync/create", json={"categories": test_sync_data})
    payload = {"categories": [{"name": "Chess", "create_uuid": "chess-uuid", "children": [{"create_uuid": "x"}]}]}

    response = test_client.post("/api/v1/categories/sync/create", json=payload)

    assert response.status_code == 422
    stored = test_client.get("/api/v1/categories").json()["result"][0]
    assert all(child["active"] for child in stored["children"])


def test_find_and_shallow_children(test_client, test_category_data):
    root = test_client.post("/api/v1/categories", json=test_category_data).json()
    b = root["children"][1]

    response = test_client.get(f"/api/v1/categories/find/{b['children'][0]['id']}")
    assert response.status_code == 200
    assert response.json()["name"] == "c"
    assert response.json()["parent"] == b["id"]

    response = test_client.get(f"/api/v1/categories/{root['id']}/shallow-children")
    assert response.status_code == 200
    data = response.json()
    assert data["parent_name"] == "root"
    assert [(c["name"], c["children_count"]) for c in data["result"]] == [("a", 0), ("b", 1)]

    assert test_client.get(f"/api/v1/categories/find/{uuid4()}").status_code == 404
    assert test_client.get(f"/api/v1/categories/{uuid4()}/shallow-children").status_code == 404


def test_update_nested_category(test_client, test_category_data):
    root = test_client.post("/api/v1/categories", json=test_category_data).json()
    a = root["children"][0]

    response = test_client.put(f"/api/v1/categories/{a['id']}", json={"name": "renamed"})

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == root["id"]
    assert data["children"][0]["name"] == "renamed"
    assert data["children"][0]["id"] == a["id"]

    response = test_client.put(f"/api/v1/categories/{a['id']}", json={"name": None})
    assert response.status_code == 422


def test_create_category_with_parent(test_client, test_category_data):
    root = test_client.post("/api/v1/categories", json=test_category_data).json()

    response = test_client.post("/api/v1/categories", json={"name": "d", "parent_id": root["id"]})

    assert response.status_code == 201
    assert response.json()["parent_id"] == root["id"]
    assert test_client.get("/api/v1/categories").json()["count"] == 1
    stored = test_client.get(f"/api/v1/categories/{root['id']}").json()
    assert [child["name"] for child in stored["children"]] == ["a", "b", "d"]


def test_ensure_subcategory(test_client, test_category_data):
    root = test_client.post("/api/v1/categories", json=test_category_data).json()
    body = {"parent_id": root["id"], "name": "e"}

    first = test_client.post("/api/v1/categories/ensure-subcategory", json=body)
    second = test_client.post("/api/v1/categories/ensure-subcategory", json=body)

    assert first.status_code == 200
    assert first.json()["existed"] is False
    assert second.json()["existed"] is True
    assert second.json()["category"]["id"] == first.json()["category"]["id"]

    missing = test_client.post(
        "/api/v1/categories/ensure-subcategory", json={"parent_id": str(uuid4()), "name": "e"}
    )
    assert missing.status_code == 404


def test_import_and_export(test_client):
    payload = {"categories": [{"name": "Chess", "children": [{"name": "Openings"}]}, {"name": "Go"}]}

    response = test_client.post("/api/v1/categories/import", json=payload)

    assert response.status_code == 201
    assert response.json()["imported"] == 2

    exported = test_client.get("/api/v1/categories/export").json()
    assert exported["count"] == 2
    chess = next(c for c in exported["categories"] if c["name"] == "Chess")
    assert chess["children"][0]["parent"] == chess["id"]


def test_import_invalid_tree(test_client):
    payload = {"categories": [{"name": "Good"}, {"name": "Bad", "children": [{"active": True}]}]}

    response = test_client.post("/api/v1/categories/import", json=payload)

    assert response.status_code == 422
    assert test_client.get("/api/v1/categories").json()["count"] == 0


@pytest.mark.parametrize("path", ["/api/v1/categories/grid", "/api/v1/categories/grid-flatten"])
def test_grid(test_client, test_category_data, path):
    test_client.post("/api/v1/categories", json=test_category_data)
    body = {
        "start_row": 0,
        "end_row": 2,
        "sort_model": [{"col_id": "depth", "sort": "desc"}],
        "filter_model": {"name": {"filter_type": "text", "type": "notEqual", "filter": "a"}},
    }

    response = test_client.post(path, json=body)

    assert response.status_code == 200
    data = response.json()
    assert data["last_row"] == 3
    assert [row["name"] for row in data["rows"]] == ["c", "b"]
    assert data["rows"][0]["bread_crumb"] == "root > b > c"

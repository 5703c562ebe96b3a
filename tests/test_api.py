"""Tests for the FastAPI surface."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from minirepo.api import create_app, create_repository_router, register_exception_handlers
from sample_repositories import PostRepository, UserRepository


@pytest.fixture
def client(seeded):
    app = create_app({"posts": PostRepository(seeded), "users": UserRepository(seeded)})
    return TestClient(app)


def test_list_records(client):
    response = client.get("/posts/")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] is True
    assert body["total"] == 4
    assert body["current_page"] == 1
    assert [r["id"] for r in body["data"]] == [1, 2, 3, 4]
    assert body["data"][0]["author"]["name"] == "Ann"


def test_list_records_second_page(client):
    body = client.get("/posts/", params={"page": 2, "per_page": 3}).json()

    assert [r["id"] for r in body["data"]] == [4]
    assert body["last_page"] == 2
    assert body["from"] == 4


def test_list_rejects_bad_page(client):
    assert client.get("/posts/", params={"page": 0}).status_code == 422


def test_get_record(client):
    response = client.get("/users/2")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Bob"
    assert data["country"]["name"] == "Chile"


def test_get_missing_record_is_404(client):
    response = client.get("/posts/999")

    assert response.status_code == 404
    body = response.json()
    assert body["status"] is False
    assert body["error_code"] == "NOT_FOUND"


def test_datatable_endpoint(client):
    response = client.post("/posts/datatable", json={
        "draw": 7,
        "columns": [{"data": "id"}, {"data": "title"}],
        "order": [{"column": 1, "dir": "desc"}],
        "start": 0,
        "length": 2,
        "search": {"value": "o"},
    })

    assert response.status_code == 200
    body = response.json()
    assert body["draw"] == 7
    assert body["recordsTotal"] == 4
    assert body["recordsFiltered"] == 3
    assert [row["title"] for row in body["data"]] == ["Orphan", "Hello"]


def test_datatable_request_validation(client):
    assert client.post("/posts/datatable", json={"columns": []}).status_code == 422


def test_library_errors_map_to_status_codes(seeded):
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(create_repository_router(PostRepository(seeded).use_columns(["missing"]), prefix="/broken"))

    response = TestClient(app).get("/broken/")

    assert response.status_code == 500
    assert response.json()["error_code"] == "EXECUTION_ERROR"


def test_datatable_ordering_by_action_column_is_422(client):
    response = client.post("/posts/datatable", json={
        "columns": [{"data": None, "orderable": False}, {"data": "title"}],
        "order": [{"column": 0, "dir": "asc"}],
        "start": 0,
        "length": 10,
    })

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"

"""End-to-end tests for the blog HTTP API."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest
import yaml
from fastapi.testclient import TestClient

from blogapi import schemas
from blogapi.api import create_app
from blogapi.config import Settings
from blogapi.database import Database
from blogapi.handlers import HANDLERS


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "blog.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(database_path=tmp_path / "blog.sqlite3")


@pytest.fixture()
def client(database: Database, settings: Settings) -> Iterator[TestClient]:
    app = create_app(database=database, settings=settings)
    with TestClient(app) as test_client:
        yield test_client


def _create_user(client: TestClient, email: str = "ada@example.com", name: str = "Ada Lovelace") -> dict:
    response = client.post("/users", json={"email": email, "name": name})
    assert response.status_code == 201, response.text
    return response.json()


def _create_post(client: TestClient, author_id: str, **fields: object) -> dict:
    payload = {"title": "Hello", "content": "World", "authorId": author_id}
    payload.update(fields)
    response = client.post("/posts", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_user_then_post_scenario(client: TestClient) -> None:
    user = _create_user(client)

    assert user["name"] == "Ada Lovelace"
    assert user["email"] == "ada@example.com"
    assert uuid.UUID(user["id"])
    assert user["createdAt"] == user["updatedAt"]

    post = _create_post(client, user["id"])

    assert post["title"] == "Hello"
    assert post["content"] == "World"
    assert post["published"] is False
    assert post["authorId"] == user["id"]
    schemas.POST.validate(post)


def test_created_user_can_be_fetched(client: TestClient) -> None:
    created = _create_user(client)

    response = client.get(f"/users/{created['id']}")

    assert response.status_code == 200
    assert response.json() == created


def test_server_assigns_identity_even_when_client_sends_one(client: TestClient) -> None:
    supplied_id = str(uuid.uuid4())
    response = client.post(
        "/users",
        json={
            "email": "ada@example.com",
            "name": "Ada",
            "id": supplied_id,
            "createdAt": "2000-01-01T00:00:00Z",
            "nickname": "countess",
        },
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["id"] != supplied_id
    assert body["createdAt"] != "2000-01-01T00:00:00Z"
    assert "nickname" not in body


@pytest.mark.parametrize(
    "payload",
    [
        {"email": "not-an-email", "name": "Ada"},
        {"email": "ada@example.com", "name": ""},
        {"email": "ada@example.com", "name": "x" * 101},
        {"email": "ada@example.com"},
    ],
)
def test_invalid_user_is_rejected_without_persisting(client: TestClient, payload: dict) -> None:
    response = client.post("/users", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "validation_error"
    assert set(body) == {"message", "code"}
    assert client.get("/users").json() == []


def test_validation_error_lists_every_field(client: TestClient) -> None:
    response = client.post("/users", json={"email": "not-an-email", "name": ""})

    assert response.status_code == 400
    message = response.json()["message"]
    assert "body.email" in message
    assert "body.name" in message


def test_malformed_json_body_is_a_bad_request(client: TestClient) -> None:
    response = client.post(
        "/users",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Request body must be valid JSON", "code": "validation_error"}


def test_missing_body_is_a_bad_request(client: TestClient) -> None:
    response = client.post("/posts")
    assert response.status_code == 400


@pytest.mark.parametrize("resource, path", [("User", "/users"), ("Post", "/posts")])
def test_unknown_ids_return_not_found(client: TestClient, resource: str, path: str) -> None:
    missing = uuid.uuid4()

    fetched = client.get(f"{path}/{missing}")
    assert fetched.status_code == 404
    assert fetched.json() == {"message": f"{resource} not found", "code": "not_found"}

    updated = client.put(f"{path}/{missing}", json={})
    assert updated.status_code == 404

    deleted = client.delete(f"{path}/{missing}")
    assert deleted.status_code == 404
    assert deleted.json()["message"] == f"{resource} not found"


def test_malformed_path_id_is_a_bad_request(client: TestClient) -> None:
    response = client.get("/users/not-a-uuid")

    assert response.status_code == 400
    assert "path.id" in response.json()["message"]


def test_partial_user_update_leaves_other_fields(client: TestClient) -> None:
    user = _create_user(client)

    response = client.put(f"/users/{user['id']}", json={"name": "Countess Lovelace"})

    assert response.status_code == 200, response.text
    updated = response.json()
    assert updated["name"] == "Countess Lovelace"
    assert updated["email"] == user["email"]
    assert updated["id"] == user["id"]
    assert updated["createdAt"] == user["createdAt"]


def test_update_with_invalid_field_is_rejected(client: TestClient) -> None:
    user = _create_user(client)

    response = client.put(f"/users/{user['id']}", json={"email": "broken", "name": None})

    assert response.status_code == 400
    assert client.get(f"/users/{user['id']}").json() == user


@pytest.mark.parametrize("email", ["Ada Lovelace <ada@example.com>", "  ada@example.com  "])
def test_email_that_would_be_rewritten_is_rejected(client: TestClient, email: str) -> None:
    response = client.post("/users", json={"email": email, "name": "Ada"})

    assert response.status_code == 400
    assert "body.email" in response.json()["message"]
    assert client.get("/users").json() == []


def test_email_round_trips_unchanged(client: TestClient) -> None:
    created = _create_user(client, email="ada@EXAMPLE.com")
    assert created["email"] == "ada@EXAMPLE.com"

    fetched = client.get(f"/users/{created['id']}").json()
    assert fetched["email"] == "ada@EXAMPLE.com"

    updated = client.put(f"/users/{created['id']}", json={"email": "Ada.L@Example.org"})
    assert updated.status_code == 200
    assert updated.json()["email"] == "Ada.L@Example.org"


def test_snake_case_author_id_is_not_accepted(client: TestClient) -> None:
    user = _create_user(client)

    response = client.post("/posts", json={"title": "Hello", "content": "World", "author_id": user["id"]})

    assert response.status_code == 400
    assert "body.authorId" in response.json()["message"]
    assert client.get("/posts").json() == []


def test_duplicate_email_is_a_bad_request(client: TestClient) -> None:
    _create_user(client)

    response = client.post("/users", json={"email": "ada@example.com", "name": "Imposter"})

    assert response.status_code == 400
    assert response.json()["code"] == "conflict"


def test_post_with_unknown_author_is_a_bad_request(client: TestClient) -> None:
    response = client.post(
        "/posts",
        json={"title": "Hello", "content": "World", "authorId": str(uuid.uuid4())},
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Author not found", "code": "invalid_reference"}


def test_partial_post_update(client: TestClient) -> None:
    user = _create_user(client)
    post = _create_post(client, user["id"])

    response = client.put(f"/posts/{post['id']}", json={"published": True})

    assert response.status_code == 200
    updated = response.json()
    assert updated["published"] is True
    assert updated["title"] == post["title"]
    assert updated["content"] == post["content"]


def test_list_posts_filter_and_ordering(client: TestClient) -> None:
    user = _create_user(client)
    first = _create_post(client, user["id"], title="First", published=True)
    second = _create_post(client, user["id"], title="Second")
    third = _create_post(client, user["id"], title="Third", published=True)

    everything = client.get("/posts")
    assert [post["id"] for post in everything.json()] == [third["id"], second["id"], first["id"]]

    published = client.get("/posts", params={"published": "true"})
    assert [post["id"] for post in published.json()] == [third["id"], first["id"]]
    assert all(post["published"] for post in published.json())

    drafts = client.get("/posts", params={"published": "false"})
    assert [post["id"] for post in drafts.json()] == [second["id"]]


@pytest.mark.parametrize("value", ["maybe", "yes", "1", "TRUE"])
def test_invalid_published_filter(client: TestClient, value: str) -> None:
    response = client.get("/posts", params={"published": value})

    assert response.status_code == 400
    assert "query.published" in response.json()["message"]


def test_user_posts_and_cascade_delete(client: TestClient) -> None:
    author = _create_user(client)
    other = _create_user(client, email="grace@example.com", name="Grace Hopper")
    mine = _create_post(client, author["id"], title="Mine")
    theirs = _create_post(client, other["id"], title="Theirs")

    listing = client.get(f"/users/{author['id']}/posts")
    assert [post["id"] for post in listing.json()] == [mine["id"]]

    deleted = client.delete(f"/users/{author['id']}")
    assert deleted.status_code == 204
    assert deleted.content == b""

    assert client.get(f"/users/{author['id']}/posts").json() == []
    assert client.get(f"/posts/{mine['id']}").status_code == 404
    assert [post["id"] for post in client.get("/posts").json()] == [theirs["id"]]


def test_delete_post(client: TestClient) -> None:
    user = _create_user(client)
    post = _create_post(client, user["id"])

    response = client.delete(f"/posts/{post['id']}")

    assert response.status_code == 204
    assert client.get(f"/posts/{post['id']}").status_code == 404


def test_users_are_listed_newest_first(client: TestClient) -> None:
    first = _create_user(client, email="one@example.com", name="One")
    second = _create_user(client, email="two@example.com", name="Two")

    response = client.get("/users")

    assert response.status_code == 200
    assert [user["id"] for user in response.json()] == [second["id"], first["id"]]


def test_unknown_route_and_method_use_error_shape(client: TestClient) -> None:
    missing = client.get("/comments")
    assert missing.status_code == 404
    assert missing.json() == {"message": "Not Found", "code": "not_found"}

    wrong_method = client.patch("/users")
    assert wrong_method.status_code == 405
    assert wrong_method.json() == {"message": "Method Not Allowed"}


def test_health_and_contract_documents(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}

    as_json = client.get("/openapi.json")
    assert as_json.status_code == 200
    assert as_json.json()["paths"]["/posts"]["get"]["operationId"] == "getPosts"

    as_yaml = client.get("/openapi.yaml")
    assert as_yaml.status_code == 200
    assert yaml.safe_load(as_yaml.text) == as_json.json()


def test_unexpected_failures_do_not_leak_details(database: Database, settings: Settings) -> None:
    async def exploding(_database, _call):
        raise RuntimeError("database password is hunter2")

    handlers = dict(HANDLERS, getUsers=exploding)
    app = create_app(database=database, settings=settings, handlers=handlers)

    with TestClient(app) as client:
        response = client.get("/users")

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error", "code": "internal_error"}
    assert "hunter2" not in response.text


def test_response_violating_the_contract_becomes_server_error(database: Database, settings: Settings) -> None:
    async def broken(_database, _call):
        now = datetime.now(timezone.utc)
        return [
            schemas.User.model_construct(
                id=uuid.uuid4(),
                email="ada@example.com",
                name="",
                created_at=now,
                updated_at=now,
            )
        ]

    app = create_app(database=database, settings=settings, handlers=dict(HANDLERS, getUsers=broken))

    with TestClient(app) as client:
        response = client.get("/users")

    assert response.status_code == 500
    assert response.json()["code"] == "internal_error"


def test_missing_handler_is_a_configuration_error(database: Database, settings: Settings) -> None:
    handlers = {alias: handler for alias, handler in HANDLERS.items() if alias != "getUsers"}
    with pytest.raises(ValueError):
        create_app(database=database, settings=settings, handlers=handlers)

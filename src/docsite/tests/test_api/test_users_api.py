import uuid

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from docsite.core.dependencies import get_user_repository
from docsite.database.base import Base
from docsite.exceptions.base import QueryError


async def create_user(client: httpx.AsyncClient, **overrides) -> dict:
    payload = {"email": f"user_{uuid.uuid4().hex[:8]}@example.com", "name": "Test User"}
    payload.update(overrides)
    resp = await client.post("/users", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
class TestUserEndpoints:

    async def test_user_lifecycle(self, client: httpx.AsyncClient):
        """
        Behavior:
          - POST creates (201, camelCase body), a duplicate email conflicts (409),
            GET reads (200), DELETE soft-deletes (200, deletedAt set), GET is then 404.
        """
        resp = await client.post("/users", json={"email": "Ada@Example.com", "name": "Ada"})
        assert resp.status_code == 201
        user = resp.json()
        assert user["email"] == "ada@example.com"
        assert user["createdAt"] == user["updatedAt"]
        assert user["deletedAt"] is None

        resp = await client.post("/users", json={"email": "ada@example.com", "name": "Other"})
        assert resp.status_code == 409
        assert resp.json() == {
            "error": "User with this email already exists",
            "code": "duplicate",
            "field": "email",
        }

        resp = await client.get(f"/users/{user['id']}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Ada"

        resp = await client.delete(f"/users/{user['id']}")
        assert resp.status_code == 200
        assert resp.json()["deletedAt"] is not None

        resp = await client.get(f"/users/{user['id']}")
        assert resp.status_code == 404
        body = resp.json()
        assert body["code"] == "not_found"
        assert body["error"] == f"User with identifier '{user['id']}' not found"

    async def test_create_invalid_payload_is_400(self, client: httpx.AsyncClient):
        resp = await client.post("/users", json={"email": "not-an-email", "name": "X"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "invalid_field"
        assert body["field"] == "email"

    async def test_non_json_body_is_400(self, client: httpx.AsyncClient):
        resp = await client.post("/users", content=b"not json", headers={"content-type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_field"

    async def test_patch_user(self, client: httpx.AsyncClient):
        user = await create_user(client)

        resp = await client.patch(f"/users/{user['id']}", json={"name": "Renamed"})

        assert resp.status_code == 200
        assert resp.json()["name"] == "Renamed"
        assert resp.json()["email"] == user["email"]

        resp = await client.patch(f"/users/{uuid.uuid4()}", json={"name": "Ghost"})
        assert resp.status_code == 404

    async def test_list_users_pagination(self, client: httpx.AsyncClient):
        for i in range(3):
            await create_user(client, name=f"User {i}")

        resp = await client.get("/users", params={"page": 2, "pageSize": 2})

        assert resp.status_code == 200
        body = resp.json()
        assert len(body["users"]) == 1
        assert body["pagination"] == {"page": 2, "pageSize": 2, "total": 3, "totalPages": 2}

    async def test_list_users_defaults(self, client: httpx.AsyncClient):
        resp = await client.get("/users")
        assert resp.status_code == 200
        assert resp.json()["pagination"] == {"page": 1, "pageSize": 10, "total": 0, "totalPages": 0}

    @pytest.mark.parametrize(
        "params, field",
        [
            ({"page": 0}, "page"),
            ({"pageSize": 101}, "pageSize"),
            ({"pageSize": 0}, "pageSize"),
            # offsets past a signed 64-bit integer
            ({"page": "100000000000000000000"}, "page"),
            ({"page": 2**62, "pageSize": 100}, "page"),
        ],
    )
    async def test_invalid_pagination_is_400(self, client: httpx.AsyncClient, params, field):
        resp = await client.get("/users", params=params)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid pagination parameters"
        assert resp.json()["field"] == field

    @pytest.mark.parametrize("params, field", [({"page": "abc"}, "page"), ({"pageSize": "ten"}, "pageSize")])
    async def test_non_numeric_pagination_is_400(self, client: httpx.AsyncClient, params, field):
        resp = await client.get("/users", params=params)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid pagination parameters", "code": "invalid_field", "field": field}

    async def test_malformed_body_keeps_validation_message(self, client: httpx.AsyncClient):
        resp = await client.post("/users", content=b"{not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Invalid request: ")

    async def test_user_posts_for_unknown_user_is_404(self, client: httpx.AsyncClient):
        resp = await client.get(f"/users/{uuid.uuid4()}/posts")
        assert resp.status_code == 404

    async def test_user_posts(self, client: httpx.AsyncClient):
        user = await create_user(client)
        for slug in ("first-post", "second-post"):
            resp = await client.post(
                "/posts",
                json={"userId": user["id"], "title": slug, "content": "Long enough content.", "slug": slug},
            )
            assert resp.status_code == 201

        resp = await client.get(f"/users/{user['id']}/posts")

        assert resp.status_code == 200
        body = resp.json()
        assert [p["slug"] for p in body["posts"]] == ["second-post", "first-post"]
        assert body["pagination"]["total"] == 2


@pytest.mark.asyncio
class TestServerErrors:

    async def test_request_id_header_is_set(self, client: httpx.AsyncClient):
        resp = await client.get("/users")
        assert resp.headers.get("X-Request-ID")

    async def test_database_failure_returns_generic_500(self, client: httpx.AsyncClient, async_engine: AsyncEngine):
        """
        Behavior:
          - A broken schema surfaces as a 500 whose body carries no driver detail.
        """
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        resp = await client.get("/users")

        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}

    async def test_query_error_does_not_leak_details(self, app: FastAPI, client: httpx.AsyncClient):
        class BrokenRepository:
            async def find_all(self, limit=None, offset=None):
                raise QueryError('relation "users" does not exist', sqlstate="42P01")

        app.dependency_overrides[get_user_repository] = lambda: BrokenRepository()

        resp = await client.get("/users")

        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}
        assert "relation" not in resp.text

    async def test_unexpected_exception_returns_generic_500(self, app: FastAPI):
        class ExplodingRepository:
            async def find_all(self, limit=None, offset=None):
                raise RuntimeError("secret internals")

        app.dependency_overrides[get_user_repository] = lambda: ExplodingRepository()
        # Starlette re-raises after the catch-all handler responds
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
            resp = await ac.get("/users")

        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}


@pytest.mark.asyncio
async def test_health_endpoint(client: httpx.AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["healthy"] is True
    assert body["latencyMs"] >= 0
    assert "pool_class" in body["pool"]


@pytest.mark.asyncio
async def test_openapi_documents_error_body(client: httpx.AsyncClient):
    schema = (await client.get("/openapi.json")).json()

    conflict = schema["paths"]["/users"]["post"]["responses"]["409"]
    assert conflict["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
    assert "404" in schema["paths"]["/posts/{post_id}"]["get"]["responses"]
    assert set(schema["components"]["schemas"]["ErrorResponse"]["properties"]) == {"error", "code", "field"}

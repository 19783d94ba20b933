"""Tests for the JSON API, /env.js and the API fallbacks.

Covers list/get/author endpoints, cache headers, error bodies and health.
"""

from httpx import ASGITransport, AsyncClient

from conftest import make_record
from minimalblog.services.repository import SAMPLE_POST_ID, BlogRepository


async def _repository_with(local_store, records) -> BlogRepository:
    await local_store.save_all(records)
    repository = BlogRepository(local_store)
    await repository.initialize()
    return repository


async def test_list_blogs(client):
    """Test blog list endpoint returns normalized posts."""
    response = await client.get("/api/blogs")

    assert response.status_code == 200
    data = response.json()
    assert [p["id"] for p in data] == [SAMPLE_POST_ID]
    assert data[0]["author"]["name"] == "Demo Author"
    assert "createdAt" in data[0]
    assert response.headers["cache-control"] == (
        "public, max-age=60, stale-while-revalidate=120"
    )


async def test_list_blogs_sorted_newest_first(local_store):
    repository = await _repository_with(
        local_store,
        {
            "old": make_record("old", createdAt="2026-01-01T00:00:00Z"),
            "new": make_record("new", createdAt="2026-03-01T00:00:00Z"),
        },
    )
    from minimalblog.dependencies import get_repository
    from minimalblog.main import app

    app.dependency_overrides[get_repository] = lambda: repository

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        response = await client.get("/api/blogs")

    assert [p["id"] for p in response.json()] == ["new", "old"]


async def test_get_blog_by_id(client):
    response = await client.get(f"/api/blogs/{SAMPLE_POST_ID}")

    assert response.status_code == 200
    assert response.json()["id"] == SAMPLE_POST_ID
    assert "max-age=60" in response.headers["cache-control"]


async def test_get_blog_not_found(client):
    """Test getting a non-existent blog post returns 404."""
    response = await client.get("/api/blogs/nonexistent")

    assert response.status_code == 404
    assert response.json() == {"error": "Blog not found."}


async def test_get_blog_with_unsafe_key_is_not_found(client):
    response = await client.get("/api/blogs/bad.key")
    assert response.status_code == 404


async def test_blogs_by_author(local_store):
    repository = await _repository_with(
        local_store,
        {
            "1": make_record("1", author={"name": "John Doe"}),
            "2": make_record("2", author={"name": "doe"}),
            "3": make_record("3", author={"name": "Ann"}),
        },
    )
    from minimalblog.dependencies import get_repository
    from minimalblog.main import app

    app.dependency_overrides[get_repository] = lambda: repository

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        response = await client.get("/api/blogs/author/DOE")
        empty = await client.get("/api/blogs/author/zzz")

    assert response.status_code == 200
    assert sorted(p["id"] for p in response.json()) == ["1", "2"]
    assert empty.status_code == 200
    assert empty.json() == []


async def test_list_blogs_unexpected_error_is_500(client, local_repository, mocker):
    mocker.patch.object(local_repository, "list_all", side_effect=RuntimeError("boom"))

    response = await client.get("/api/blogs")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch blogs."}


async def test_get_blog_unexpected_error_is_500(client, local_repository, mocker):
    mocker.patch.object(local_repository, "get_by_id", side_effect=RuntimeError("boom"))

    response = await client.get("/api/blogs/anything")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch blog."}


async def test_unknown_api_route_is_json_404(client):
    for method, path in [
        ("GET", "/api/does-not-exist"),
        ("POST", "/api/blogs"),
        ("GET", "/api/blogs/a/b/c"),
    ]:
        response = await client.request(method, path)
        assert response.status_code == 404
        assert response.json() == {"error": "API route not found."}


async def test_env_js(mock_settings, client):
    response = await client.get("/env.js")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/javascript")
    assert response.text.startswith("window.env = {")
    assert '"FIREBASE_DATABASE_URL": "https://test-default-rtdb.firebaseio.com"' in (
        response.text
    )
    assert '"SECRET_CODE": "CODE"' in response.text


async def test_health_reports_backend(client, local_repository):
    from minimalblog.main import app

    app.state.repository = local_repository
    try:
        response = await client.get("/api/health")
    finally:
        del app.state.repository

    assert response.status_code == 200
    assert response.json()["backend"] == "local"


async def test_request_id_and_security_headers(client):
    response = await client.get("/api/blogs", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"
    assert response.headers["X-Content-Type-Options"] == "nosniff"

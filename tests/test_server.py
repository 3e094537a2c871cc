"""
Tests for the loopback HTTP transport.

Tests cover:
- POST /api request/response and HTTP status mapping
- Origin allow-list and CORS preflight
- Session lock on application cleanup
"""
import pytest
from aiohttp import test_utils

from navigator_opvault.host.server import API_PATH, create_app, is_allowed_origin
from navigator_opvault.vault.config import VaultConfig
from navigator_opvault.vault.session_vault import VaultSession


def _client(session: VaultSession = None) -> test_utils.TestClient:
    config = VaultConfig(auto_lock_ms=0)
    app = create_app(session=session, config=config)
    return test_utils.TestClient(test_utils.TestServer(app))


class TestOrigin:

    @pytest.mark.parametrize("origin", [
        None,
        "",
        "null",
        "moz-extension://abc-123",
        "chrome-extension://abcdef",
        "http://localhost:3000",
        "http://127.0.0.1:8080",
    ])
    def test_allowed(self, origin):
        assert is_allowed_origin(origin, VaultConfig().allowed_origin_prefixes)

    @pytest.mark.parametrize("origin", [
        "https://evil.example.com",
        "http://localhost.evil.com",
        "http://127.0.0.1.evil.com",
    ])
    def test_rejected(self, origin):
        assert not is_allowed_origin(origin, VaultConfig().allowed_origin_prefixes)


class TestApi:
    """Tests for POST /api."""

    @pytest.mark.asyncio
    async def test_status(self):
        async with _client() as client:
            resp = await client.post(API_PATH, json={"action": "status"})
            assert resp.status == 200
            assert await resp.json() == {
                "ok": True, "locked": True, "itemCount": 0, "vaultPath": None,
            }

    @pytest.mark.asyncio
    async def test_unlock_and_fill(self, vault_path, builder):
        async with _client() as client:
            resp = await client.post(
                API_PATH,
                json={"action": "unlock", "path": str(vault_path), "password": "test"},
            )
            assert await resp.json() == {"ok": True, "itemCount": 7}
            resp = await client.post(
                API_PATH, json={"action": "fill", "uuid": builder.ids["login"]},
            )
            assert await resp.json() == {
                "ok": True, "username": "alice@example.com", "password": "field-secret",
            }

    @pytest.mark.asyncio
    async def test_vault_errors_are_200(self):
        async with _client() as client:
            resp = await client.post(API_PATH, json={"action": "list"})
            assert resp.status == 200
            assert await resp.json() == {"ok": False, "error": "Vault is locked"}

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with _client() as client:
            resp = await client.post(
                API_PATH, data=b"{not json", headers={"Content-Type": "application/json"},
            )
            assert resp.status == 400
            assert await resp.json() == {"ok": False, "error": "Invalid JSON"}

    @pytest.mark.asyncio
    async def test_forbidden_origin(self):
        async with _client() as client:
            resp = await client.post(
                API_PATH, json={"action": "status"},
                headers={"Origin": "https://evil.example.com"},
            )
            assert resp.status == 403
            assert await resp.json() == {"ok": False, "error": "Forbidden origin"}

    @pytest.mark.asyncio
    async def test_allowed_origin_echoed(self):
        origin = "moz-extension://abc-123"
        async with _client() as client:
            resp = await client.post(
                API_PATH, json={"action": "status"}, headers={"Origin": origin},
            )
            assert resp.status == 200
            assert resp.headers["Access-Control-Allow-Origin"] == origin

    @pytest.mark.asyncio
    async def test_not_found(self):
        async with _client() as client:
            resp = await client.get("/other")
            assert resp.status == 404
            assert await resp.json() == {"ok": False, "error": "Not found"}

    @pytest.mark.asyncio
    async def test_get_on_api_is_not_served(self):
        async with _client() as client:
            resp = await client.get(API_PATH)
            assert resp.status in (404, 405)


class TestPreflight:

    @pytest.mark.asyncio
    async def test_allowed(self):
        origin = "chrome-extension://abcdef"
        async with _client() as client:
            resp = await client.options(API_PATH, headers={"Origin": origin})
            assert resp.status == 204
            assert resp.headers["Access-Control-Allow-Origin"] == origin
            assert "POST" in resp.headers["Access-Control-Allow-Methods"]

    @pytest.mark.asyncio
    async def test_forbidden(self):
        async with _client() as client:
            resp = await client.options(
                API_PATH, headers={"Origin": "https://evil.example.com"},
            )
            assert resp.status == 403


class TestCleanup:

    @pytest.mark.asyncio
    async def test_session_locked_on_shutdown(self, vault_path):
        session = VaultSession(VaultConfig(auto_lock_ms=0))
        async with _client(session) as client:
            await client.post(
                API_PATH,
                json={"action": "unlock", "path": str(vault_path), "password": "test"},
            )
            assert session.is_unlocked
        assert not session.is_unlocked

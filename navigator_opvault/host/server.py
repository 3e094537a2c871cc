"""
HTTP Host — Local aiohttp server exposing the request handler.

Single endpoint ``POST /api`` taking the same JSON request objects as the
native-messaging host. Listens on loopback only; browser origins are
checked against the configured prefix allow-list.
"""
import logging
from typing import Optional

import orjson
from aiohttp import web

from ..vault.config import VaultConfig
from ..vault.session_vault import VaultSession
from .handlers import VaultRequestHandler

logger = logging.getLogger("navigator.opvault.host")

API_PATH = "/api"
SESSION_KEY = web.AppKey("vault_session", VaultSession)
HANDLER_KEY = web.AppKey("vault_handler", VaultRequestHandler)
CONFIG_KEY = web.AppKey("vault_config", VaultConfig)


def is_allowed_origin(origin: Optional[str], prefixes: tuple[str, ...]) -> bool:
    """No origin (or ``null``) is allowed, as are the configured prefixes."""
    if not origin or origin == "null":
        return True
    return origin.startswith(prefixes)


def _json(data: dict, status: int = 200, headers: Optional[dict] = None) -> web.Response:
    return web.Response(
        body=orjson.dumps(data),
        status=status,
        content_type="application/json",
        headers=headers,
    )


def _cors_headers(origin: Optional[str]) -> dict:
    return {"Access-Control-Allow-Origin": origin} if origin else {}


async def preflight(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    origin = request.headers.get("Origin")
    if not is_allowed_origin(origin, config.allowed_origin_prefixes):
        return web.Response(status=403)
    headers = {
        **_cors_headers(origin),
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Max-Age": "86400",
    }
    return web.Response(status=204, headers=headers)


async def api(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    origin = request.headers.get("Origin")
    if not is_allowed_origin(origin, config.allowed_origin_prefixes):
        logger.warning("Rejected request from disallowed origin")
        return _json({"ok": False, "error": "Forbidden origin"}, status=403)
    body = await request.read()
    try:
        message = orjson.loads(body)
    except orjson.JSONDecodeError:
        return _json({"ok": False, "error": "Invalid JSON"}, status=400)
    result = await request.app[HANDLER_KEY].handle(message)
    return _json(result, headers=_cors_headers(origin))


async def not_found(request: web.Request) -> web.Response:
    return _json({"ok": False, "error": "Not found"}, status=404)


async def _lock_on_cleanup(app: web.Application) -> None:
    app[SESSION_KEY].lock()


def create_app(
    session: Optional[VaultSession] = None,
    config: Optional[VaultConfig] = None,
) -> web.Application:
    """Build the aiohttp application around a session.

    The session is locked when the application shuts down.
    """
    config = config or VaultConfig()
    session = session or VaultSession(config)
    app = web.Application(client_max_size=config.max_message_size)
    app[CONFIG_KEY] = config
    app[SESSION_KEY] = session
    app[HANDLER_KEY] = VaultRequestHandler(session)
    app.router.add_route("OPTIONS", API_PATH, preflight)
    app.router.add_post(API_PATH, api)
    app.router.add_route("*", "/{tail:.*}", not_found)
    app.on_cleanup.append(_lock_on_cleanup)
    return app


def run_server(config: Optional[VaultConfig] = None) -> None:
    """Run the HTTP host until interrupted."""
    config = config or VaultConfig()
    logger.info("OPVault server listening on http://%s:%d", config.host, config.port)
    web.run_app(create_app(config=config), host=config.host, port=config.port, print=None)

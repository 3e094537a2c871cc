"""
Request Handler — Maps named actions onto a VaultSession.

A request is a flat JSON object with an ``action`` plus parameters:

    unlock {path, password, idleTimeoutMs?}  → {ok, itemCount}
    lock {}                                  → {ok}
    status {}                                → {ok, locked, itemCount, vaultPath}
    list {}                                  → {ok, items}
    get_logins {url}                         → {ok, items}
    fill {uuid}                              → {ok, username, password}
    copy {uuid, field?}                      → {ok, value}
    get_item {uuid}                          → {ok, item}

Every failure is ``{ok: false, error: <message>}``. Messages come from
``VaultError.public_message`` only; anything else becomes "Internal error"
and is logged server-side.
"""
import logging
from typing import Any, Awaitable, Callable

from ..vault.exceptions import InvalidRequestError, UnknownActionError, VaultError
from ..vault.session_vault import VaultSession

logger = logging.getLogger("navigator.opvault.host")

COPY_FIELDS = ("username", "password")
INTERNAL_ERROR = "Internal error"

Response = dict[str, Any]


def _require(message: dict, *names: str) -> Any:
    """First non-empty parameter among ``names``."""
    for name in names:
        value = message.get(name)
        if value:
            return value
    raise InvalidRequestError(f"Missing {names[0]}")


def _require_str(message: dict, *names: str) -> str:
    value = _require(message, *names)
    if not isinstance(value, str):
        raise InvalidRequestError(f"Invalid {names[0]}")
    return value


class VaultRequestHandler:
    """Dispatches request objects to a session and shapes the replies."""

    def __init__(self, session: VaultSession):
        self.session = session
        self._actions: dict[str, Callable[[dict], Awaitable[Response]]] = {
            "unlock": self.unlock,
            "lock": self.lock,
            "status": self.status,
            "list": self.list_items,
            "get_logins": self.get_logins,
            "fill": self.fill,
            "copy": self.copy,
            "get_item": self.get_item,
        }

    async def handle(self, message: Any) -> Response:
        """Handle one request and always return a response object."""
        try:
            if not isinstance(message, dict):
                raise InvalidRequestError("Request must be a JSON object")
            action = message.get("action")
            handler = self._actions.get(action) if isinstance(action, str) else None
            if handler is None:
                raise UnknownActionError()
            logger.debug("Handling action=%s", action)
            return await handler(message)
        except VaultError as err:
            logger.info("Request failed: %s", type(err).__name__)
            return {"ok": False, "error": err.public_message}
        except Exception:
            logger.exception("Unexpected error while handling request")
            return {"ok": False, "error": INTERNAL_ERROR}

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def unlock(self, message: dict) -> Response:
        vault_path = _require_str(message, "path", "vaultPath")
        password = _require_str(message, "password")
        idle_timeout_ms = message.get("idleTimeoutMs")
        if idle_timeout_ms is not None and (
            isinstance(idle_timeout_ms, bool) or not isinstance(idle_timeout_ms, int)
        ):
            raise InvalidRequestError("Invalid idleTimeoutMs")
        count = await self.session.unlock(vault_path, password, idle_timeout_ms)
        return {"ok": True, "itemCount": count}

    async def lock(self, message: dict) -> Response:
        self.session.lock()
        return {"ok": True}

    async def status(self, message: dict) -> Response:
        return {
            "ok": True,
            "locked": not self.session.is_unlocked,
            "itemCount": self.session.item_count,
            "vaultPath": self.session.vault_path,
        }

    async def list_items(self, message: dict) -> Response:
        return {"ok": True, "items": self.session.list_all()}

    async def get_logins(self, message: dict) -> Response:
        url = _require_str(message, "url")
        return {"ok": True, "items": self.session.find_by_url(url)}

    async def fill(self, message: dict) -> Response:
        uuid = _require_str(message, "uuid")
        creds = self.session.get_credentials(uuid)
        return {"ok": True, "username": creds["username"], "password": creds["password"]}

    async def copy(self, message: dict) -> Response:
        uuid = _require_str(message, "uuid")
        field = message.get("field") or "password"
        if field not in COPY_FIELDS:
            raise InvalidRequestError("Invalid field")
        creds = self.session.get_credentials(uuid)
        return {"ok": True, "value": creds[field]}

    async def get_item(self, message: dict) -> Response:
        uuid = _require_str(message, "uuid")
        return {"ok": True, "item": self.session.get_item(uuid)}

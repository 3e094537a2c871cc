"""
VaultSession — Unlock/lock state machine and query façade over one vault.

Provides the public API used by the transports:
- ``unlock(path, password, idle_timeout_ms)`` — derive keys, index overviews
- ``lock()`` — wipe keys, drop the index, cancel the idle timer
- ``list_all()`` / ``find_by_url(url)`` / ``get_overview(uuid)`` — overview reads
- ``get_credentials(uuid)`` / ``get_item(uuid)`` — on-demand detail decryption

The session is either Locked (``_state is None``) or Unlocked (``_state``
holds every key and the whole index); transitions replace ``_state`` as a
unit so no partial state is observable. Every read re-arms the idle timer.

Concurrency:
    One session is not safe for overlapping ``unlock()`` calls; callers must
    serialize them. If they overlap anyway, the last one to finish wins and
    the earlier keys are wiped.

Security Note:
    Never log passwords, key bytes or decrypted values. Only log vault UUIDs,
    item UUIDs, counts and lock reasons. Item details are never cached.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from .config import VaultConfig
from .container import PathLike, load_band_items
from .crypto import KeyPair
from .exceptions import (
    ContainerError,
    InvalidRequestError,
    ItemNotFoundError,
    VaultError,
    VaultLockedError,
)
from .keys import decrypt_item_details, decrypt_item_overview, unlock_vault
from .matching import url_matches
from .models import ItemDetail, ItemOverview, RawItem, VaultProfile

logger = logging.getLogger("navigator.opvault")


@dataclass
class UnlockedState:
    """Everything an unlocked session owns. Wiped as a unit on lock."""

    vault_path: str
    profile: VaultProfile
    master_keys: KeyPair
    overview_keys: KeyPair
    items: dict[str, RawItem] = field(default_factory=dict)
    overviews: dict[str, ItemOverview] = field(default_factory=dict)

    def wipe(self) -> None:
        self.master_keys.wipe()
        self.overview_keys.wipe()
        self.items.clear()
        self.overviews.clear()


class VaultSession:
    """Decrypted view of one OPVault container, with idle auto-lock.

    Args:
        config: Vault configuration; ``auto_lock_ms`` is the default idle
            timeout for ``unlock()``.
    """

    def __init__(self, config: Optional[VaultConfig] = None):
        self._config = config or VaultConfig()
        self._state: Optional[UnlockedState] = None
        self._idle_timeout_ms: int = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock_timer: Optional[asyncio.TimerHandle] = None

    def __repr__(self) -> str:
        return (
            f"<VaultSession unlocked={self.is_unlocked} "
            f"items={self.item_count}>"
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def is_unlocked(self) -> bool:
        return self._state is not None

    @property
    def vault_path(self) -> Optional[str]:
        return self._state.vault_path if self._state else None

    @property
    def item_count(self) -> int:
        return len(self._state.items) if self._state else 0

    @property
    def idle_timeout_ms(self) -> int:
        return self._idle_timeout_ms

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def unlock(
        self,
        vault_path: PathLike,
        password: str,
        idle_timeout_ms: Optional[int] = None,
    ) -> int:
        """Unlock a vault and index its item overviews.

        Any existing session is locked first. On failure the session stays
        locked and every partially unwrapped key is wiped.

        Args:
            vault_path: Path to the ``.opvault`` directory.
            password: Master password.
            idle_timeout_ms: Auto-lock after this many idle milliseconds;
                ``0`` disables auto-lock, ``None`` uses the configured default.

        Returns:
            Number of items loaded.

        Raises:
            ContainerError: Vault missing or malformed.
            AuthenticationError: Wrong password or tampered vault keys.
        """
        self.lock()
        timeout = self._config.auto_lock_ms if idle_timeout_ms is None else idle_timeout_ms
        if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout < 0:
            raise InvalidRequestError("idleTimeoutMs must be a non-negative integer")

        keys = await unlock_vault(vault_path, password)
        try:
            items = {item.uuid: item for item in load_band_items(vault_path)}
            overviews = self._index_overviews(items.values(), keys.overview_keys)
        except BaseException:
            keys.wipe()
            raise

        # an overlapping unlock may have finished while we were deriving
        self.lock()
        self._state = UnlockedState(
            vault_path=str(vault_path),
            profile=keys.profile,
            master_keys=keys.master_keys,
            overview_keys=keys.overview_keys,
            items=items,
            overviews=overviews,
        )
        self._idle_timeout_ms = timeout
        self._loop = asyncio.get_running_loop()
        self._reset_lock_timer()
        logger.info(
            "Vault unlocked: uuid=%s items=%d auto_lock_ms=%d",
            keys.profile.uuid, len(items), timeout,
        )
        return len(items)

    def lock(self) -> None:
        """Wipe all key material and forget the index. Idempotent."""
        if self._lock_timer is not None:
            self._lock_timer.cancel()
            self._lock_timer = None
        state, self._state = self._state, None
        if state is not None:
            state.wipe()
            logger.info("Vault locked")

    def _on_idle_timeout(self) -> None:
        self._lock_timer = None
        logger.info("Vault idle for %d ms, auto-locking", self._idle_timeout_ms)
        self.lock()

    def _reset_lock_timer(self) -> None:
        if self._lock_timer is not None:
            self._lock_timer.cancel()
            self._lock_timer = None
        if self._idle_timeout_ms <= 0 or self._loop is None or self._loop.is_closed():
            return
        self._lock_timer = self._loop.call_later(
            self._idle_timeout_ms / 1000, self._on_idle_timeout,
        )

    def _require_unlocked(self) -> UnlockedState:
        """Return the unlocked state and postpone auto-lock."""
        state = self._state
        if state is None:
            raise VaultLockedError()
        self._reset_lock_timer()
        return state

    @staticmethod
    def _index_overviews(items, overview_keys: KeyPair) -> dict[str, ItemOverview]:
        overviews: dict[str, ItemOverview] = {}
        for item in items:
            try:
                overview = ItemOverview.model_validate(
                    decrypt_item_overview(item, overview_keys)
                )
            except (VaultError, ValidationError):
                # tombstones and corrupt records must not abort the unlock
                logger.warning("Overview unavailable for item uuid=%s", item.uuid)
                overview = ItemOverview()
            overviews[item.uuid] = overview
        return overviews

    # ------------------------------------------------------------------
    # Overview queries
    # ------------------------------------------------------------------

    @staticmethod
    def _summary(item: RawItem, overview: ItemOverview) -> dict[str, str]:
        return {
            "uuid": item.uuid,
            "title": overview.display_title,
            "categoryName": item.category_name,
            "url": overview.url or "",
            "username": overview.username,
        }

    def list_all(self) -> list[dict[str, str]]:
        """Summaries of every item, from the cached overviews only."""
        state = self._require_unlocked()
        return [
            self._summary(item, state.overviews.get(uuid, ItemOverview()))
            for uuid, item in state.items.items()
        ]

    def find_by_url(self, url: str) -> list[dict[str, str]]:
        """Summaries of the items whose overview URL matches ``url``."""
        state = self._require_unlocked()
        results = []
        for uuid, item in state.items.items():
            overview = state.overviews.get(uuid, ItemOverview())
            if overview.url and url_matches(overview.url, url):
                results.append(self._summary(item, overview))
        return results

    def get_overview(self, uuid: str) -> dict[str, Any]:
        """Cached overview of one item."""
        state = self._require_unlocked()
        if uuid not in state.items:
            raise ItemNotFoundError(f"Item not found: {uuid}")
        return state.overviews.get(uuid, ItemOverview()).model_dump()

    # ------------------------------------------------------------------
    # Detail queries
    # ------------------------------------------------------------------

    def _decrypt_detail(self, uuid: str) -> tuple[RawItem, ItemOverview, ItemDetail]:
        state = self._require_unlocked()
        item = state.items.get(uuid)
        if item is None:
            raise ItemNotFoundError(f"Item not found: {uuid}")
        payload = decrypt_item_details(item, state.master_keys)
        try:
            detail = ItemDetail.model_validate(payload)
        except ValidationError as err:
            raise ContainerError(f"details of item {uuid} are malformed") from err
        return item, state.overviews.get(uuid, ItemOverview()), detail

    def get_credentials(self, uuid: str) -> dict[str, str]:
        """Decrypt one item and return its effective username and password."""
        _, overview, detail = self._decrypt_detail(uuid)
        username, password = detail.credentials(overview.username)
        return {
            "username": username,
            "password": password,
            "title": overview.title or "",
        }

    def get_item(self, uuid: str) -> dict[str, Any]:
        """Decrypt one item and return its overview and detail fields."""
        item, overview, detail = self._decrypt_detail(uuid)
        username, password = detail.credentials(overview.username)
        return {
            "uuid": item.uuid,
            "title": overview.display_title,
            "category": item.category,
            "categoryName": item.category_name,
            "url": overview.url or "",
            "username": username,
            "password": password,
            "notes": detail.notes_plain or "",
            "tags": list(overview.tags),
            "fields": [f.as_dict() for f in detail.fields],
            "created": item.created,
            "updated": item.updated,
        }

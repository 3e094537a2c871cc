"""
Vault Reader — One-shot decryption of a whole vault without a session.

Unlocks, decrypts what was asked for and wipes the vault keys before
returning. Useful for exports and scripts; long-lived clients should use
``VaultSession`` instead.
"""
import logging
from collections.abc import Iterable
from typing import Any, Optional

from .container import PathLike, load_band_items
from .exceptions import VaultError
from .keys import decrypt_item_details, decrypt_item_overview, unlock_vault
from .models import LOGIN_CATEGORY, RawItem

logger = logging.getLogger("navigator.opvault")


def _overview(raw: RawItem, overview_keys) -> dict[str, Any]:
    try:
        return decrypt_item_overview(raw, overview_keys)
    except VaultError:
        logger.warning("Overview unavailable for item uuid=%s", raw.uuid)
        return {}


async def get_items(
    vault_path: PathLike,
    password: str,
    include_details: bool = False,
    categories: Optional[Iterable[str]] = None,
) -> list[dict[str, Any]]:
    """Decrypt every item of a vault.

    An overview that fails to decrypt is reported as empty; failing details
    abort the read.

    Args:
        vault_path: Path to the ``.opvault`` directory.
        password: Master password.
        include_details: Also decrypt each item's details.
        categories: Only include these category codes (e.g. ``["001"]``).

    Returns:
        List of dicts with uuid, category, categoryName, overview, created,
        updated and, when requested, details.
    """
    wanted = set(categories) if categories is not None else None
    keys = await unlock_vault(vault_path, password)
    try:
        items = []
        for raw in load_band_items(vault_path):
            if wanted is not None and raw.category not in wanted:
                continue
            item = {
                "uuid": raw.uuid,
                "category": raw.category,
                "categoryName": raw.category_name,
                "overview": _overview(raw, keys.overview_keys),
                "created": raw.created,
                "updated": raw.updated,
            }
            if include_details:
                item["details"] = decrypt_item_details(raw, keys.master_keys)
            items.append(item)
    finally:
        keys.wipe()
    logger.debug("Read %d item(s) from vault uuid=%s", len(items), keys.profile.uuid)
    return items


async def get_logins(vault_path: PathLike, password: str) -> list[dict[str, Any]]:
    """All Login items with their details."""
    return await get_items(
        vault_path, password, include_details=True, categories=[LOGIN_CATEGORY],
    )

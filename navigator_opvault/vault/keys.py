"""
Vault Key Hierarchy — Unwrapping from password down to item payloads.

    password ──PBKDF2──▶ derived keys
    derived keys ──opdata01──▶ seed ──SHA-512──▶ master keys / overview keys
    master keys ──[IV|AES-CBC(64B)|HMAC]──▶ item keys
    item keys ──opdata01──▶ item details (JSON)
    overview keys ──opdata01──▶ item overview (JSON)

Every failure below the session is reported as ``AuthenticationError``:
callers cannot tell a wrong password from tampered data, nor which layer
rejected it.
"""
import asyncio
import base64
import logging
from typing import Any, NamedTuple

import orjson
from cryptography.hazmat.primitives import hashes

from .container import PathLike, parse_profile
from .crypto import (
    HMAC_SIZE,
    IV_SIZE,
    DERIVED_KEY_LENGTH,
    KeyPair,
    decrypt_cbc_raw,
    decrypt_opdata,
    derive_keys,
    verify_hmac,
    zero_buffer,
)
from .exceptions import AuthenticationError, EnvelopeError
from .models import RawItem, VaultProfile

logger = logging.getLogger("navigator.opvault")

ITEM_KEY_BLOB_SIZE = IV_SIZE + DERIVED_KEY_LENGTH + HMAC_SIZE


class UnlockedKeys(NamedTuple):
    profile: VaultProfile
    master_keys: KeyPair
    overview_keys: KeyPair

    def wipe(self) -> None:
        self.master_keys.wipe()
        self.overview_keys.wipe()


def _b64decode(blob: str) -> bytes:
    try:
        return base64.b64decode(blob, validate=True)
    except (TypeError, ValueError) as err:
        raise AuthenticationError("encrypted blob is not valid base64") from err


def unwrap_vault_key(blob: str, derived: KeyPair) -> KeyPair:
    """Decrypt a vault-level key (``masterKey`` or ``overviewKey``).

    The opdata01 plaintext is a seed; the final key pair is the SHA-512
    digest of that seed split in two. The seed is zeroed after hashing; the
    digest itself comes back from cryptography as immutable ``bytes``.

    Args:
        blob: Base64 opdata01 envelope from the profile.
        derived: Password-derived key pair.

    Returns:
        KeyPair for the vault level.
    """
    data = _b64decode(blob)
    try:
        seed = decrypt_opdata(data, derived.enc_key, derived.mac_key)
    except AuthenticationError:
        raise
    except EnvelopeError as err:
        raise AuthenticationError("vault key envelope rejected") from err
    try:
        digest = hashes.Hash(hashes.SHA512())
        digest.update(seed)
        return KeyPair(digest.finalize())
    finally:
        zero_buffer(seed)


def unwrap_item_key(blob: str, master_keys: KeyPair) -> KeyPair:
    """Decrypt an item key (the ``k`` field of a band record).

    Layout: [IV 16B][AES-256-CBC ciphertext 64B][HMAC-SHA256 32B], HMAC over
    IV + ciphertext with the vault master HMAC key. The 64 decrypted bytes are
    the item key pair, no hashing at this level.
    """
    data = _b64decode(blob)
    if len(data) != ITEM_KEY_BLOB_SIZE:
        raise AuthenticationError(f"item key blob has {len(data)} bytes")
    body_end = len(data) - HMAC_SIZE
    verify_hmac(master_keys.mac_key, data[:body_end], data[body_end:])
    decrypted = decrypt_cbc_raw(master_keys.enc_key, data[:IV_SIZE], data[IV_SIZE:body_end])
    try:
        return KeyPair(decrypted)
    finally:
        zero_buffer(decrypted)


def unwrap_item_payload(blob: str, item_keys: KeyPair) -> dict[str, Any]:
    """Decrypt an opdata01 payload and parse it as a UTF-8 JSON object."""
    data = _b64decode(blob)
    try:
        plaintext = decrypt_opdata(data, item_keys.enc_key, item_keys.mac_key)
    except AuthenticationError:
        raise
    except EnvelopeError as err:
        raise AuthenticationError("item payload envelope rejected") from err
    try:
        payload = orjson.loads(plaintext)
    except orjson.JSONDecodeError as err:
        raise AuthenticationError("item payload is not JSON") from err
    finally:
        zero_buffer(plaintext)
    if not isinstance(payload, dict):
        raise AuthenticationError("item payload is not a JSON object")
    return payload


def decrypt_item_overview(item: RawItem, overview_keys: KeyPair) -> dict[str, Any]:
    """Decrypt an item overview; items without one have an empty overview."""
    if not item.overview:
        return {}
    return unwrap_item_payload(item.overview, overview_keys)


def decrypt_item_details(item: RawItem, master_keys: KeyPair) -> dict[str, Any]:
    """Decrypt an item's details with its own key, wiped right after use."""
    if not item.details or not item.key:
        return {}
    with unwrap_item_key(item.key, master_keys) as item_keys:
        return unwrap_item_payload(item.details, item_keys)


async def unlock_vault(vault_path: PathLike, password: str) -> UnlockedKeys:
    """Derive the password keys and unwrap the master and overview keys.

    Key derivation runs in the default executor. The derived keys are wiped
    as soon as both vault keys are unwrapped, and on any failure.

    Raises:
        ContainerError: Profile is missing or malformed.
        AuthenticationError: Wrong password or tampered profile.
    """
    profile = parse_profile(vault_path)
    loop = asyncio.get_running_loop()
    derived = await loop.run_in_executor(
        None, derive_keys, password, profile.salt, profile.iterations,
    )
    with derived:
        master_keys = unwrap_vault_key(profile.master_key, derived)
        try:
            overview_keys = unwrap_vault_key(profile.overview_key, derived)
        except BaseException:
            master_keys.wipe()
            raise
    return UnlockedKeys(profile, master_keys, overview_keys)

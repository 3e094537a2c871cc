"""OPVault Vault — Decryption engine and auto-locking session.

Security Note (Threat Model):
    Vault keys are held in process memory while a session is unlocked.
    They are kept in mutable buffers and zeroed on lock, on idle timeout
    and after every per-item use, but a memory dump taken while unlocked
    can still expose them, as can copies made by the crypto backend.
    This is an accepted limitation; mitigation requires HSM/secure
    enclave integration which is out of scope.
"""

from .config import VaultConfig, get_auto_lock_ms
from .container import load_band_items, parse_js_wrapper, parse_profile
from .crypto import DerivedKeyPair, KeyPair, decrypt_opdata, derive_keys, zero_buffer
from .exceptions import (
    AuthenticationError,
    BadMagicError,
    ContainerError,
    EnvelopeError,
    EnvelopeTooShortError,
    InvalidRequestError,
    ItemNotFoundError,
    PlaintextLengthError,
    ProfileFormatError,
    UnknownActionError,
    VaultError,
    VaultLockedError,
    VaultNotFoundError,
    WrapperFormatError,
)
from .keys import (
    decrypt_item_details,
    decrypt_item_overview,
    unlock_vault,
    unwrap_item_key,
    unwrap_item_payload,
    unwrap_vault_key,
)
from .matching import normalize_url, url_matches
from .models import CATEGORY, ItemDetail, ItemField, ItemOverview, RawItem, VaultProfile
from .reader import get_items, get_logins
from .session_vault import VaultSession

__all__ = [
    "VaultSession",
    "VaultConfig",
    "get_auto_lock_ms",
    "parse_js_wrapper",
    "parse_profile",
    "load_band_items",
    "KeyPair",
    "DerivedKeyPair",
    "derive_keys",
    "decrypt_opdata",
    "zero_buffer",
    "unwrap_vault_key",
    "unwrap_item_key",
    "unwrap_item_payload",
    "unlock_vault",
    "decrypt_item_overview",
    "decrypt_item_details",
    "normalize_url",
    "url_matches",
    "get_items",
    "get_logins",
    "CATEGORY",
    "VaultProfile",
    "RawItem",
    "ItemOverview",
    "ItemDetail",
    "ItemField",
    "VaultError",
    "ContainerError",
    "VaultNotFoundError",
    "WrapperFormatError",
    "ProfileFormatError",
    "EnvelopeError",
    "EnvelopeTooShortError",
    "BadMagicError",
    "AuthenticationError",
    "PlaintextLengthError",
    "VaultLockedError",
    "ItemNotFoundError",
    "UnknownActionError",
    "InvalidRequestError",
]

"""
Shared fixtures: a real OPVault container generated at test time.

The builder encrypts with the same primitives the format uses (PBKDF2-SHA512,
AES-256-CBC with prepended random filler, HMAC-SHA256) and writes
``default/profile.js`` plus ``band_X.js`` shards under ``tmp_path``.
"""
import os
import base64
import struct
import uuid as uuid_mod
from pathlib import Path
from typing import Optional

import orjson
import pytest
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

MASTER_PASSWORD = "test"
ITERATIONS = 1000


def _hmac(key: bytes, data: bytes) -> bytes:
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(data)
    return h.finalize()


def _cbc_encrypt(key: bytes, iv: bytes, data: bytes) -> bytes:
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(data) + encryptor.finalize()


def _sha512(data: bytes) -> bytes:
    digest = hashes.Hash(hashes.SHA512())
    digest.update(data)
    return digest.finalize()


def make_opdata(plaintext: bytes, enc_key: bytes, mac_key: bytes) -> bytes:
    """Build an opdata01 envelope: random filler is prepended, never appended."""
    filler = os.urandom(16 - (len(plaintext) % 16))
    iv = os.urandom(16)
    header = b"opdata01" + struct.pack("<Q", len(plaintext)) + iv
    body = header + _cbc_encrypt(enc_key, iv, filler + plaintext)
    return body + _hmac(mac_key, body)


def make_item_key_blob(item_key: bytes, enc_key: bytes, mac_key: bytes) -> bytes:
    iv = os.urandom(16)
    body = iv + _cbc_encrypt(enc_key, iv, item_key)
    return body + _hmac(mac_key, body)


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def new_uuid() -> str:
    return uuid_mod.uuid4().hex.upper()


class VaultBuilder:
    """Builds an encrypted vault in memory and writes it to disk."""

    def __init__(self, password: str = MASTER_PASSWORD, iterations: int = ITERATIONS):
        self.uuid = new_uuid()
        self.iterations = iterations
        self.salt = os.urandom(16)
        derived = PBKDF2HMAC(
            algorithm=hashes.SHA512(), length=64, salt=self.salt, iterations=iterations,
        ).derive(password.encode("utf-8"))
        self.derived = (derived[:32], derived[32:])
        master_seed = os.urandom(256)
        overview_seed = os.urandom(256)
        master = _sha512(master_seed)
        overview = _sha512(overview_seed)
        self.master_keys = (master[:32], master[32:])
        self.overview_keys = (overview[:32], overview[32:])
        self.master_key_blob = b64(make_opdata(master_seed, *self.derived))
        self.overview_key_blob = b64(make_opdata(overview_seed, *self.derived))
        self.item_keys: dict[str, bytes] = {}
        self.ids: dict[str, str] = {}
        self.bands: dict[str, dict] = {}

    def add_item(
        self,
        overview: Optional[dict] = None,
        details: Optional[dict] = None,
        category: str = "001",
        uuid: Optional[str] = None,
        band: Optional[str] = None,
        **extra,
    ) -> str:
        uuid = uuid or new_uuid()
        record = {
            "category": category,
            "created": 1700000000,
            "updated": 1700000100,
            "tx": 1700000100,
            **extra,
        }
        if overview is not None:
            record["o"] = b64(make_opdata(orjson.dumps(overview), *self.overview_keys))
        if details is not None:
            item_key = os.urandom(64)
            self.item_keys[uuid] = item_key
            record["k"] = b64(make_item_key_blob(item_key, *self.master_keys))
            record["d"] = b64(make_opdata(orjson.dumps(details), item_key[:32], item_key[32:]))
        band = band or uuid[0]
        self.bands.setdefault(band, {})[uuid] = record
        return uuid

    def profile(self) -> dict:
        return {
            "uuid": self.uuid,
            "profileName": "Test Vault",
            "salt": b64(self.salt),
            "iterations": self.iterations,
            "masterKey": self.master_key_blob,
            "overviewKey": self.overview_key_blob,
            "createdAt": 1700000000,
            "updatedAt": 1700000000,
            "lastUpdatedBy": "Dropbox",
        }

    def write(self, root: Path, profile: Optional[dict] = None) -> Path:
        vault = root / "Test Vault.opvault"
        default = vault / "default"
        default.mkdir(parents=True, exist_ok=True)
        profile_json = orjson.dumps(profile or self.profile()).decode()
        (default / "profile.js").write_text(f"var profile={profile_json};")
        for band, records in self.bands.items():
            band_json = orjson.dumps(records).decode()
            (default / f"band_{band}.js").write_text(f"ld({band_json});")
        return vault


@pytest.fixture
def builder():
    """A vault with a representative set of items; UUIDs in ``builder.ids``."""
    vault = VaultBuilder()
    ids = vault.ids
    ids["login"] = vault.add_item(
        overview={
            "title": "Example Login",
            "url": "https://www.example.com/login",
            "ainfo": "alice",
            "tags": ["work"],
        },
        details={
            "password": "top-level-secret",
            "notesPlain": "example notes",
            "fields": [
                {"name": "email", "value": "alice@example.com", "designation": "username", "type": "T"},
                {"name": "pass", "value": "field-secret", "designation": "password", "type": "P"},
                {"name": "remember", "value": "✓", "type": "C"},
            ],
        },
    )
    ids["bare"] = vault.add_item(
        overview={"title": "Bare Domain", "url": "example.com", "ainfo": "bob"},
        details={"password": "bare-secret"},
    )
    ids["sub"] = vault.add_item(
        overview={"title": "Subdomain", "url": "https://sub.example.com", "ainfo": "carol"},
        details={
            "password": "sub-secret",
            "fields": [{"name": "password", "value": "", "designation": "password"}],
        },
    )
    ids["other"] = vault.add_item(
        overview={"title": "Not Example", "url": "https://notexample.com", "ainfo": "dave"},
        details={"password": "other-secret"},
    )
    ids["note"] = vault.add_item(
        overview={"title": "Secret Note"},
        details={"notesPlain": "hello"},
        category="003",
    )
    ids["tombstone"] = vault.add_item(category="099", trashed=True)
    ids["corrupt"] = vault.add_item(overview={"title": "Corrupt"}, details={"password": "x"})
    # overview encrypted with keys the vault does not know
    vault.bands[ids["corrupt"][0]][ids["corrupt"]]["o"] = b64(
        make_opdata(b'{"title": "Corrupt"}', os.urandom(32), os.urandom(32))
    )
    return vault


@pytest.fixture
def vault_path(tmp_path, builder) -> Path:
    return builder.write(tmp_path)


@pytest.fixture
def opdata():
    """Envelope factory: ``opdata(plaintext, enc_key, mac_key)``."""
    return make_opdata


@pytest.fixture
def item_key_blob():
    """Item-key blob factory: ``item_key_blob(key64, enc_key, mac_key)``."""
    return make_item_key_blob


@pytest.fixture
def master_password() -> str:
    return MASTER_PASSWORD

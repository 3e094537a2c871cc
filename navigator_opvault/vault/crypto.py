"""
Vault Crypto Core — Password key derivation and the opdata01 envelope.

- Key derivation: PBKDF2-HMAC-SHA512(password, salt, iterations) → 64 bytes,
  split into a 32-byte AES key and a 32-byte HMAC key.
- opdata01: [magic 8B]["plaintext length" 8B LE][IV 16B][AES-256-CBC ct][HMAC-SHA256 32B]
  The HMAC covers every byte before it and is verified BEFORE decryption.
  Plaintext is the LAST ``length`` bytes of the decrypted buffer (the format
  prepends random filler instead of PKCS#7 padding).

Security Note:
    Never log plaintext, ciphertext or key bytes.
    Key material lives in ``KeyPair`` buffers which are zeroed on wipe,
    on context exit and on garbage collection.
"""
import struct
import logging
from typing import Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .exceptions import (
    AuthenticationError,
    BadMagicError,
    EnvelopeTooShortError,
    PlaintextLengthError,
)

logger = logging.getLogger("navigator.opvault")

OPDATA01_MAGIC = b"opdata01"
MAGIC_SIZE = 8
LENGTH_SIZE = 8  # uint64 little-endian, only the low 32 bits are used
IV_SIZE = 16
HEADER_SIZE = MAGIC_SIZE + LENGTH_SIZE + IV_SIZE
HMAC_SIZE = 32
BLOCK_SIZE = 16
KEY_LENGTH = 32  # AES-256 and HMAC-SHA256 keys
DERIVED_KEY_LENGTH = KEY_LENGTH * 2

BytesLike = Union[bytes, bytearray, memoryview]


def zero_buffer(buf: object) -> None:
    """Overwrite a mutable buffer with zeros in place.

    Immutable or non-buffer values are ignored.
    """
    if isinstance(buf, bytearray):
        buf[:] = bytes(len(buf))
    elif isinstance(buf, memoryview) and not buf.readonly:
        buf[:] = bytes(buf.nbytes)


class KeyPair:
    """A 32-byte cipher key plus a 32-byte auth key.

    Used at every level of the key hierarchy. The only way the buffers are
    released is through ``wipe()``, which zeroes them first; ``with`` blocks
    and garbage collection both go through it.
    """

    __slots__ = ("_enc_key", "_mac_key")

    def __init__(self, material: BytesLike):
        if len(material) != DERIVED_KEY_LENGTH:
            raise ValueError(
                f"key material must be {DERIVED_KEY_LENGTH} bytes, got {len(material)}"
            )
        with memoryview(material) as view:
            self._enc_key = bytearray(view[:KEY_LENGTH])
            self._mac_key = bytearray(view[KEY_LENGTH:])

    @property
    def enc_key(self) -> bytearray:
        return self._enc_key

    @property
    def mac_key(self) -> bytearray:
        return self._mac_key

    @property
    def wiped(self) -> bool:
        return not any(self._enc_key) and not any(self._mac_key)

    def wipe(self) -> None:
        """Zero both keys in place."""
        zero_buffer(self._enc_key)
        zero_buffer(self._mac_key)

    def __enter__(self) -> "KeyPair":
        return self

    def __exit__(self, *exc) -> None:
        self.wipe()

    def __del__(self) -> None:
        # __init__ may have failed before the buffers existed
        zero_buffer(getattr(self, "_enc_key", None))
        zero_buffer(getattr(self, "_mac_key", None))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} wiped={self.wiped}>"


class DerivedKeyPair(KeyPair):
    """Password-derived keys. Only used to unwrap the vault keys."""

    __slots__ = ()


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_keys(
    password: Union[str, BytesLike],
    salt: bytes,
    iterations: int,
) -> DerivedKeyPair:
    """Derive the password key pair with PBKDF2-HMAC-SHA512.

    This is the expensive step of an unlock; async callers should run it in
    an executor.

    Args:
        password: Master password.
        salt: Raw profile salt.
        iterations: Profile iteration count.

    Returns:
        DerivedKeyPair (first 32 bytes = AES key, last 32 = HMAC key).

    Known limit: on cryptography releases without ``PBKDF2HMAC.derive_into``
    the derived bytes come back as an immutable ``bytes`` object that cannot
    be zeroed; the same holds for the UTF-8 encoding of a ``str`` password.
    """
    secret = bytearray(
        password.encode("utf-8") if isinstance(password, str) else password
    )
    derived = bytearray(DERIVED_KEY_LENGTH)
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=DERIVED_KEY_LENGTH,
            salt=bytes(salt),
            iterations=iterations,
        )
        if hasattr(kdf, "derive_into"):
            kdf.derive_into(secret, derived)
            return DerivedKeyPair(derived)
        return DerivedKeyPair(kdf.derive(secret))
    finally:
        zero_buffer(derived)
        zero_buffer(secret)


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

def verify_hmac(mac_key: BytesLike, data: BytesLike, tag: BytesLike) -> None:
    """Constant-time HMAC-SHA256 check.

    Raises:
        AuthenticationError: If ``tag`` does not authenticate ``data``.
    """
    h = hmac.HMAC(mac_key, hashes.SHA256())
    h.update(bytes(data))
    try:
        h.verify(bytes(tag))
    except InvalidSignature as err:
        raise AuthenticationError(
            "HMAC verification failed: wrong password or corrupted data"
        ) from err


def decrypt_cbc_raw(enc_key: BytesLike, iv: BytesLike, ciphertext: BytesLike) -> bytearray:
    """AES-256-CBC decryption without any padding removal.

    The plaintext is written into a fresh ``bytearray`` owned by the caller,
    who must zero it once done with it.
    """
    if len(ciphertext) % BLOCK_SIZE:
        raise PlaintextLengthError(
            f"ciphertext length {len(ciphertext)} is not block aligned"
        )
    decryptor = Cipher(algorithms.AES(enc_key), modes.CBC(bytes(iv))).decryptor()
    # update_into needs room for one extra block minus a byte
    buf = bytearray(len(ciphertext) + BLOCK_SIZE - 1)
    try:
        written = decryptor.update_into(bytes(ciphertext), buf)
        decryptor.finalize()
        return buf[:written]
    finally:
        zero_buffer(buf)


# ---------------------------------------------------------------------------
# opdata01
# ---------------------------------------------------------------------------

def decrypt_opdata(data: BytesLike, enc_key: BytesLike, mac_key: BytesLike) -> bytearray:
    """Verify and decrypt an opdata01 envelope.

    Checks run in a fixed order: size, magic, HMAC, then decryption.
    Ciphertext is never decrypted before it is authenticated.

    Args:
        data: Raw envelope bytes.
        enc_key: 32-byte AES key.
        mac_key: 32-byte HMAC key.

    Returns:
        Plaintext in a fresh ``bytearray`` the caller should zero.

    Raises:
        EnvelopeTooShortError: Shorter than header + HMAC.
        BadMagicError: Magic tag is not ``opdata01``.
        AuthenticationError: HMAC mismatch.
        PlaintextLengthError: Declared length exceeds the decrypted buffer.
    """
    data = memoryview(bytes(data))
    if len(data) < HEADER_SIZE + HMAC_SIZE:
        raise EnvelopeTooShortError(f"opdata01 too short: {len(data)} bytes")

    if data[:MAGIC_SIZE] != OPDATA01_MAGIC:
        raise BadMagicError("opdata01: invalid magic")

    body_end = len(data) - HMAC_SIZE
    verify_hmac(mac_key, data[:body_end], data[body_end:])

    (declared,) = struct.unpack_from("<Q", data, MAGIC_SIZE)
    plaintext_len = declared & 0xFFFFFFFF
    iv = data[MAGIC_SIZE + LENGTH_SIZE:HEADER_SIZE]
    decrypted = decrypt_cbc_raw(enc_key, iv, data[HEADER_SIZE:body_end])
    try:
        if plaintext_len > len(decrypted):
            raise PlaintextLengthError(
                f"opdata01: plaintext length {plaintext_len} > decrypted length {len(decrypted)}"
            )
        return decrypted[len(decrypted) - plaintext_len:]
    finally:
        zero_buffer(decrypted)

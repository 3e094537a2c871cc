"""
Vault Exceptions — Typed failures raised by the container reader, the
crypto layers and the vault session.

Every exception exposes ``public_message``: a fixed string that is safe to
return to a client. The instance message (``str(err)``) may carry extra
detail for logs and must never be sent over the wire.
"""


class VaultError(Exception):
    """Base class for every vault failure."""

    public_message = "Vault error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)


# ---------------------------------------------------------------------------
# Container (on-disk format) errors
# ---------------------------------------------------------------------------

class ContainerError(VaultError):
    """The on-disk container could not be read or parsed."""

    public_message = "Vault container is malformed"


class VaultNotFoundError(ContainerError):
    """Profile or band directory is missing or unreadable."""

    public_message = "Vault could not be opened"


class WrapperFormatError(ContainerError):
    """File content is not wrapped in a recognized JS envelope."""

    public_message = "Unrecognized vault file wrapper"


class ProfileFormatError(ContainerError):
    """Profile is missing a required field or has an invalid one."""

    public_message = "Vault profile is malformed"


# ---------------------------------------------------------------------------
# opdata01 envelope errors
# ---------------------------------------------------------------------------

class EnvelopeError(VaultError):
    """An opdata01 envelope was rejected."""

    public_message = "Encrypted data is malformed"


class EnvelopeTooShortError(EnvelopeError):
    public_message = "Encrypted data is too short"


class BadMagicError(EnvelopeError):
    public_message = "Encrypted data has an unknown format"


class AuthenticationError(EnvelopeError):
    """HMAC mismatch: wrong password or tampered data (deliberately merged)."""

    public_message = "Authentication failed: wrong password or corrupted vault"


class PlaintextLengthError(EnvelopeError):
    """Declared plaintext length does not fit the decrypted buffer."""

    public_message = "Encrypted data has an invalid length"


# ---------------------------------------------------------------------------
# Session / request errors
# ---------------------------------------------------------------------------

class VaultLockedError(VaultError):
    public_message = "Vault is locked"


class ItemNotFoundError(VaultError):
    public_message = "Item not found"


class UnknownActionError(VaultError):
    public_message = "Unknown action"


class InvalidRequestError(VaultError):
    """A request is missing a parameter or carries an invalid one.

    The message names the parameter only, so it is returned as-is.
    """

    public_message = "Invalid request"

    def __init__(self, message: str | None = None):
        super().__init__(message)
        if message:
            self.public_message = message

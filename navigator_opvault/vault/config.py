"""
Vault Configuration — Validated settings for the session and its transports.

Reads overrides from environment variables:
    OPVAULT_AUTO_LOCK_MS = <idle milliseconds before auto-lock, 0 disables>
    OPVAULT_HOST = <loopback address for the HTTP transport>
    OPVAULT_PORT = <TCP port for the HTTP transport>
    OPVAULT_MAX_MESSAGE_SIZE = <max native-messaging payload in bytes>

Security Note:
    Configuration never carries passwords or key material.
"""
import os
import ipaddress
import logging

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("navigator.opvault")

DEFAULT_AUTO_LOCK_MS = 5 * 60 * 1000
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8737
DEFAULT_MAX_MESSAGE_SIZE = 1024 * 1024
DEFAULT_ALLOWED_ORIGIN_PREFIXES = (
    "moz-extension://",
    "chrome-extension://",
    "http://localhost:",
    "http://127.0.0.1:",
)


def get_auto_lock_ms() -> int:
    """Read the idle auto-lock timeout from OPVAULT_AUTO_LOCK_MS.

    Returns:
        Timeout in milliseconds (default 5 minutes).

    Raises:
        ValueError: If the value is not a non-negative integer.
    """
    raw = os.environ.get("OPVAULT_AUTO_LOCK_MS")
    if raw is None:
        return DEFAULT_AUTO_LOCK_MS
    value = int(raw)
    if value < 0:
        raise ValueError("OPVAULT_AUTO_LOCK_MS must be >= 0")
    return value


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    auto_lock_ms: int = Field(default=DEFAULT_AUTO_LOCK_MS, ge=0)
    host: str = Field(default=DEFAULT_HOST)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    max_message_size: int = Field(default=DEFAULT_MAX_MESSAGE_SIZE, ge=1)
    allowed_origin_prefixes: tuple[str, ...] = DEFAULT_ALLOWED_ORIGIN_PREFIXES

    @field_validator("host")
    @classmethod
    def validate_loopback(cls, v: str) -> str:
        """Only loopback addresses; the vault must never face the network."""
        if v == "localhost":
            return v
        try:
            address = ipaddress.ip_address(v)
        except ValueError as err:
            raise ValueError(f"Invalid host address: {v}") from err
        if not address.is_loopback:
            raise ValueError(f"Host must be a loopback address, got {v}")
        return v

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig from environment overrides.

        Returns:
            Populated VaultConfig instance.
        """
        values: dict = {"auto_lock_ms": get_auto_lock_ms()}
        if "OPVAULT_HOST" in os.environ:
            values["host"] = os.environ["OPVAULT_HOST"]
        if "OPVAULT_PORT" in os.environ:
            values["port"] = os.environ["OPVAULT_PORT"]
        if "OPVAULT_MAX_MESSAGE_SIZE" in os.environ:
            values["max_message_size"] = os.environ["OPVAULT_MAX_MESSAGE_SIZE"]
        config = cls(**values)
        logger.debug(
            "Vault config: auto_lock_ms=%d host=%s port=%d",
            config.auto_lock_ms, config.host, config.port,
        )
        return config

"""
Native Messaging Host — Browser native-messaging transport over stdio.

Framing: 4-byte little-endian length prefix followed by a UTF-8 JSON payload,
in both directions. A zero-length message decodes to ``{}``. EOF on stdin
ends the loop and locks the session.

stdout carries protocol frames only; logging must go to stderr.
"""
import sys
import struct
import asyncio
import logging
from typing import Any, BinaryIO, Optional

import orjson

from ..vault.config import DEFAULT_MAX_MESSAGE_SIZE, VaultConfig
from ..vault.session_vault import VaultSession
from .handlers import VaultRequestHandler

logger = logging.getLogger("navigator.opvault.host")

HEADER = struct.Struct("<I")


class MessageTooLargeError(ValueError):
    """A frame declares a payload above the configured limit."""


async def read_message(
    reader: asyncio.StreamReader,
    max_size: int = DEFAULT_MAX_MESSAGE_SIZE,
) -> Optional[Any]:
    """Read one framed message.

    Returns:
        The decoded JSON value, or None on EOF (including a truncated frame).

    Raises:
        MessageTooLargeError: Declared length exceeds ``max_size``.
        orjson.JSONDecodeError: Payload is not valid JSON.
    """
    try:
        header = await reader.readexactly(HEADER.size)
    except asyncio.IncompleteReadError:
        return None
    (length,) = HEADER.unpack(header)
    if length == 0:
        return {}
    if length > max_size:
        raise MessageTooLargeError(f"Message too large: {length} bytes")
    try:
        payload = await reader.readexactly(length)
    except asyncio.IncompleteReadError:
        return None
    return orjson.loads(payload)


def encode_message(obj: Any) -> bytes:
    payload = orjson.dumps(obj)
    return HEADER.pack(len(payload)) + payload


def write_message(stream: BinaryIO, obj: Any) -> None:
    """Write one framed message and flush."""
    stream.write(encode_message(obj))
    stream.flush()


async def _stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)
    return reader


async def run_native_host(
    session: Optional[VaultSession] = None,
    config: Optional[VaultConfig] = None,
    reader: Optional[asyncio.StreamReader] = None,
    writer: Optional[BinaryIO] = None,
) -> None:
    """Serve framed requests until EOF, then lock the session.

    Args:
        session: Session to serve; a new one is created if omitted.
        config: Vault configuration (message size limit, auto-lock).
        reader: Input stream; defaults to stdin.
        writer: Binary output stream; defaults to stdout.
    """
    config = config or VaultConfig()
    session = session or VaultSession(config)
    handler = VaultRequestHandler(session)
    if reader is None:
        reader = await _stdin_reader()
    if writer is None:
        writer = sys.stdout.buffer
    logger.info("Native messaging host started")
    try:
        while True:
            try:
                message = await read_message(reader, config.max_message_size)
            except MessageTooLargeError:
                # the rest of the frame cannot be skipped safely
                logger.error("Oversized native message, closing")
                break
            except orjson.JSONDecodeError:
                write_message(writer, {"ok": False, "error": "Invalid JSON"})
                continue
            if message is None:
                break
            write_message(writer, await handler.handle(message))
    finally:
        session.lock()
        logger.info("Native messaging host stopped")

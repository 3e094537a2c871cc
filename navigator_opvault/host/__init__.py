"""Transports in front of a VaultSession: stdio native messaging and local HTTP."""

from .handlers import VaultRequestHandler

__all__ = ["VaultRequestHandler"]

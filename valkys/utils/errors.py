"""Custom exceptions used across valkys."""
from __future__ import annotations


class ValkysError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(ValkysError):
    """Raised when configuration loading or validation fails."""


class StartupError(ValkysError):
    """Raised when the dashboard cannot start (store unreachable, bad TLS files)."""


class StoreError(ValkysError):
    """Base class for failures reported while talking to the data store."""


class StoreTransportError(StoreError):
    """Raised for connection level failures; callers treat these as transient."""


class StoreTimeoutError(StoreTransportError):
    """Raised when a store call exceeds its time budget."""


class StoreCommandError(StoreError):
    """Raised when the server rejects a command; surfaced to the user."""


class KeyNotFoundError(StoreCommandError):
    """Raised when a key disappeared between listing and inspection."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Key does not exist: {name}")
        self.name = name


__all__ = [
    "ValkysError",
    "ConfigurationError",
    "StartupError",
    "StoreError",
    "StoreTransportError",
    "StoreTimeoutError",
    "StoreCommandError",
    "KeyNotFoundError",
]

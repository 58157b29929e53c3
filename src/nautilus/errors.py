"""Exception types raised by Nautilus."""

from __future__ import annotations


class NautilusError(Exception):
    """Base class for Nautilus errors."""


class ConfigError(NautilusError):
    """Raised when required configuration is missing or malformed."""


class ReconcileError(NautilusError):
    """Raised when a reconciliation cycle could not be persisted.

    The transaction has already been rolled back when this is raised.
    """

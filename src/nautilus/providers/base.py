"""Provider client protocol.

A provider client lists the clusters visible to one cloud account and
returns a connection credential for each. Any object with
``is_configured()``, ``discover()`` and ``test_connection()`` satisfies
the protocol; no inheritance required.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from nautilus.models import CloudCredentials, Provider, ProviderResult


class ConnectionTestResult(BaseModel):
    """Outcome of a credentials check against one provider."""

    success: bool
    message: str


@runtime_checkable
class ProviderClient(Protocol):
    """Protocol for cloud provider clients."""

    provider: Provider

    def is_configured(self, creds: CloudCredentials) -> bool:
        """True when the provider is enabled and its required fields are set."""
        ...

    def discover(self, creds: CloudCredentials) -> ProviderResult:
        """List clusters with provider-only fields and their credentials.

        Errors propagate; the caller records them per provider.
        """
        ...

    def test_connection(self, creds: CloudCredentials) -> ConnectionTestResult:
        """Check that the credentials can list clusters."""
        ...

"""Cloud provider clients.

Clients: GkeClient, AksClient, EksClient.
"""

from nautilus.providers.aks import AksClient
from nautilus.providers.base import ConnectionTestResult, ProviderClient
from nautilus.providers.eks import EksClient
from nautilus.providers.gke import GkeClient


def default_clients() -> list[ProviderClient]:
    """One client per supported provider, in discovery order."""
    return [GkeClient(), AksClient(), EksClient()]


__all__ = [
    "AksClient",
    "ConnectionTestResult",
    "default_clients",
    "EksClient",
    "GkeClient",
    "ProviderClient",
]

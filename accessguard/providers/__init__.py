"""
Reputation providers for VPN/proxy detection.

Each module wraps one external IP reputation API behind the
ReputationProvider interface.
"""

from typing import List, Optional

from .base import ReputationProvider
from .ip_api import IpApiProvider
from .freeipapi import FreeipApiProvider
from .proxycheck import ProxyCheckProvider
from .ip_api_paid import IpApiPaidProvider
from .ipgeolocation import IpGeolocationProvider
from .ipinfo import IpInfoProvider
from ..storage import KeyValueStore, MemoryStore

# Registration order: "first paid provider" in paid mode follows it
PROVIDER_CLASSES = (
    IpApiProvider,
    FreeipApiProvider,
    ProxyCheckProvider,
    IpApiPaidProvider,
    IpGeolocationProvider,
    IpInfoProvider,
)


def default_providers(store: Optional[KeyValueStore] = None, **kwargs) -> List[ReputationProvider]:
    """Instantiate every built-in provider against a shared store."""
    store = store if store is not None else MemoryStore()
    return [provider_class(store=store, **kwargs) for provider_class in PROVIDER_CLASSES]


__all__ = [
    'ReputationProvider',
    'IpApiProvider',
    'FreeipApiProvider',
    'ProxyCheckProvider',
    'IpApiPaidProvider',
    'IpGeolocationProvider',
    'IpInfoProvider',
    'PROVIDER_CLASSES',
    'default_providers',
]

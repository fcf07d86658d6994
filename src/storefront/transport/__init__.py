"""
Transport package for the storefront REST backend.

Provides ApiTransport (bearer auth, error mapping) and TokenRefresher
(single-flight credential renewal on 401).
"""

from storefront.transport.client import ApiTransport
from storefront.transport.refresh import TokenRefresher

__all__ = ["ApiTransport", "TokenRefresher"]

"""
Resilient data-access layer for an e-commerce storefront.

Transport with bearer auth and single-flight renewal, a retry/backoff
executor, a TTL result cache with per-call-site cancellation, and a domain
facade over catalog, navigation and content resources.
"""

__version__ = "0.1.0"

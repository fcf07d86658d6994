"""
Data package: REST endpoint wrappers, the domain facade and observable queries.
"""

from storefront.data.endpoints import (
    AuthAPI,
    CategoriesAPI,
    CmsAPI,
    ProductsAPI,
    UploadAPI,
    UsersAPI,
)
from storefront.data.query import LiveQuery, QueryState
from storefront.data.service import StorefrontDataService

__all__ = [
    "AuthAPI",
    "CategoriesAPI",
    "CmsAPI",
    "LiveQuery",
    "ProductsAPI",
    "QueryState",
    "StorefrontDataService",
    "UploadAPI",
    "UsersAPI",
]

"""Shopify integration modules."""
from .admin_client import ShopifyAdminClient
from .exceptions import (
    ShopifyAdminApiError,
    ShopifyAdminClientError,
    ShopifyGraphQLError,
    ShopifyRunLockedError,
)
from .fetcher import PagedResourceFetcher
from .resources import RESOURCE_SPECS, get_resource_spec

__all__ = [
    "ShopifyAdminClient",
    "PagedResourceFetcher",
    "RESOURCE_SPECS",
    "get_resource_spec",
    "ShopifyAdminClientError",
    "ShopifyAdminApiError",
    "ShopifyGraphQLError",
    "ShopifyRunLockedError",
]

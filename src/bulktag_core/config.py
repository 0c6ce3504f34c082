"""Environment configuration shared by the API and the scripts."""
import os
from typing import NamedTuple, Optional


DEFAULT_API_VERSION = "2024-10"
DEFAULT_REDIS_URL = "redis://localhost:6379"
DEFAULT_AUDIT_DB_PATH = "data/audit.db"
DEFAULT_PAGE_DELAY_SECONDS = 0.2


class ShopifySettings(NamedTuple):
    shop_domain: str
    access_token: str
    api_version: str


def shopify_settings() -> ShopifySettings:
    """Read Shopify credentials.

    Raises:
        RuntimeError: If the store domain or access token is not set
    """
    shop_domain = os.getenv("SHOPIFY_STORE_DOMAIN")
    access_token = os.getenv("SHOPIFY_ADMIN_ACCESS_TOKEN")
    api_version = os.getenv("SHOPIFY_API_VERSION", DEFAULT_API_VERSION)

    if not shop_domain or not access_token:
        raise RuntimeError(
            "SHOPIFY_STORE_DOMAIN and SHOPIFY_ADMIN_ACCESS_TOKEN must be set"
        )

    return ShopifySettings(shop_domain, access_token, api_version)


def redis_url() -> str:
    return os.getenv("REDIS_URL", DEFAULT_REDIS_URL)


def audit_db_path() -> str:
    return os.getenv("BULKTAG_AUDIT_DB_PATH", DEFAULT_AUDIT_DB_PATH)


def page_delay_seconds() -> float:
    return float(os.getenv("BULKTAG_PAGE_DELAY_SECONDS", DEFAULT_PAGE_DELAY_SECONDS))


def max_pages() -> Optional[int]:
    """Page cap for one traversal; unset or 0 means unbounded."""
    value = os.getenv("BULKTAG_MAX_PAGES")
    if not value:
        return None
    pages = int(value)
    return pages if pages > 0 else None


def api_key() -> str:
    """Key API callers must send in the X-BULKTAG-API-KEY header.

    Raises:
        RuntimeError: If BULKTAG_API_KEY is not set
    """
    key = os.getenv("BULKTAG_API_KEY")
    if not key:
        raise RuntimeError("BULKTAG_API_KEY environment variable not configured")
    return key


def log_level() -> str:
    return os.getenv("BULKTAG_LOG_LEVEL", "INFO").upper()

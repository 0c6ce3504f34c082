"""Identifier lookups against the Admin API."""
import logging
from typing import Optional

from .admin_client import ShopifyAdminClient
from .graphql_strings import QUERY_SHOP_EMAIL
from .resources import get_resource_spec


logger = logging.getLogger(__name__)

GID_PREFIX = "gid://"
UNKNOWN_USER = "unknown@shop.com"


async def fetch_resource_id(
    client: ShopifyAdminClient, kind: str, value: str
) -> Optional[str]:
    """Resolve a handle, email, sku or name to a resource GID.

    Returns:
        The GID of the first match, or None when nothing matches
    """
    spec = get_resource_spec(kind)
    query = spec.lookup_query()

    data = await client.query(query, {"value": f"{spec.lookup.search_prefix}{value}"})
    root = spec.lookup.connection or spec.connection
    nodes = (data.get(root) or {}).get("nodes") or []

    if not nodes:
        logger.info("No %s found for '%s'", kind, value)
        return None
    return nodes[0]["id"]


async def resolve_owner_id(
    client: ShopifyAdminClient, kind: str, value: str
) -> Optional[str]:
    """Pass GIDs through untouched, look up anything else."""
    value = value.strip()
    if value.startswith(GID_PREFIX):
        return value
    return await fetch_resource_id(client, kind, value)


async def fetch_shop_email(client: ShopifyAdminClient) -> str:
    """Shop email recorded as the audit user name."""
    data = await client.query(QUERY_SHOP_EMAIL)
    return (data.get("shop") or {}).get("email") or UNKNOWN_USER

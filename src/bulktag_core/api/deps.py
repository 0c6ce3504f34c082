"""Request-scoped dependencies built from environment configuration.

Tests replace these through `app.dependency_overrides`.
"""
from typing import AsyncIterator, Iterator

import aiohttp

from .. import config
from ..audit.logger import AuditLogger
from ..audit.schema import connect
from ..metafields.runner import MetafieldBatchRunner
from ..shopify.admin_client import ShopifyAdminClient
from ..shopify.fetcher import PagedResourceFetcher
from ..tagging.runner import TagBatchRunner


async def get_admin_client() -> AsyncIterator[ShopifyAdminClient]:
    """Admin client over a session that lives for one request."""
    settings = config.shopify_settings()
    timeout = aiohttp.ClientTimeout(total=300, connect=30)

    async with aiohttp.ClientSession(timeout=timeout) as session:
        yield ShopifyAdminClient(
            shop_domain=settings.shop_domain,
            admin_access_token=settings.access_token,
            api_version=settings.api_version,
            session=session,
        )


def get_audit_logger() -> Iterator[AuditLogger]:
    conn = connect(config.audit_db_path())
    try:
        yield AuditLogger(conn)
    finally:
        conn.close()


def build_fetcher(client: ShopifyAdminClient) -> PagedResourceFetcher:
    return PagedResourceFetcher(client, max_pages=config.max_pages())


def build_tag_runner(client: ShopifyAdminClient) -> TagBatchRunner:
    return TagBatchRunner(client, fetcher=build_fetcher(client))


def build_metafield_runner(client: ShopifyAdminClient) -> MetafieldBatchRunner:
    return MetafieldBatchRunner(client, fetcher=build_fetcher(client))

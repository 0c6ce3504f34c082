"""Cursor-based paging over Admin API connections.

Both native pagination shapes (edges with a per-edge cursor, node lists with
pageInfo.endCursor) are normalized to `(nodes, next_cursor, has_more)`.
"""
import logging
from typing import AsyncIterator, Optional

from ..schemas.bulk_ops import ResourceItem, ResourcePage
from .admin_client import ShopifyAdminClient
from .exceptions import ShopifyAdminApiError, ShopifyAdminClientError
from .resources import PageShape, get_resource_spec


logger = logging.getLogger(__name__)


def normalize_connection(
    connection: dict, shape: PageShape
) -> tuple[list, Optional[str], bool]:
    """Flatten one connection payload to (nodes, next_cursor, has_more)."""
    page_info = connection.get("pageInfo") or {}
    has_more = bool(page_info.get("hasNextPage"))

    if shape == PageShape.EDGES:
        edges = connection.get("edges") or []
        nodes = [edge["node"] for edge in edges]
        last_cursor = edges[-1].get("cursor") if edges else None
        next_cursor = (last_cursor or page_info.get("endCursor")) if has_more else None
    else:
        nodes = connection.get("nodes") or []
        next_cursor = page_info.get("endCursor") if has_more else None

    if has_more and not next_cursor:
        raise ShopifyAdminApiError("hasNextPage is true but no cursor was returned")

    return nodes, next_cursor, has_more


class PagedResourceFetcher:
    """Reads store resources one page per round trip."""

    DEFAULT_PAGE_SIZE = 50

    def __init__(
        self,
        client: ShopifyAdminClient,
        max_pages: Optional[int] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize fetcher.

        Args:
            client: Admin API client
            max_pages: Optional cap on pages walked by one traversal
                (None walks until hasNextPage is false)
            logger_instance: Optional logger
        """
        self.client = client
        self.max_pages = max_pages
        self.logger = logger_instance or logger

    async def iter_connection(
        self,
        query: str,
        root: str,
        shape: PageShape,
        variables: Optional[dict] = None,
    ) -> AsyncIterator[list]:
        """Yield the nodes of every page until hasNextPage is false."""
        cursor: Optional[str] = None
        page_number = 0

        while True:
            page_number += 1
            if self.max_pages is not None and page_number > self.max_pages:
                raise ShopifyAdminApiError(
                    f"Pagination of '{root}' exceeded max_pages={self.max_pages}"
                )

            nodes, cursor, has_more = await self._request_page(
                query, root, shape, {**(variables or {}), "after": cursor}
            )
            self.logger.debug(
                "Fetched %s page %s: %s nodes, has_more=%s",
                root,
                page_number,
                len(nodes),
                has_more,
            )
            yield nodes

            if not has_more:
                return

    async def fetch_all_tags(self, kind: str) -> set[str]:
        """Collect every distinct tag used by a resource kind."""
        spec = get_resource_spec(kind, taggable=True)
        all_tags: set[str] = set()

        if spec.tag_connection:
            pages = self.iter_connection(
                spec.tag_strings_query(),
                spec.tag_connection,
                PageShape.NODES,
                {"first": spec.tag_page_size},
            )
            async for tag_strings in pages:
                all_tags.update(tag_strings)
        else:
            pages = self.iter_connection(
                spec.page_query(with_tags=True),
                spec.connection,
                spec.page_shape,
                {"first": spec.tag_page_size},
            )
            async for nodes in pages:
                for node in nodes:
                    all_tags.update(node.get("tags") or [])

        self.logger.info("Collected %s unique %s tags", len(all_tags), kind)
        return all_tags

    async def fetch_page(
        self,
        kind: str,
        cursor: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
        with_tags: bool = False,
    ) -> ResourcePage:
        """Fetch exactly one page of items.

        Args:
            kind: Resource kind from the capability table
            cursor: Cursor returned by the previous page (None for the first)
            page_size: Items per page
            search: Optional Shopify search syntax filter
            with_tags: Include each item's current tags

        Returns:
            ResourcePage with items, next_cursor and has_more
        """
        spec = get_resource_spec(kind)
        variables = {"first": page_size, "after": cursor}
        if search is not None:
            variables["query"] = search

        nodes, next_cursor, has_more = await self._request_page(
            spec.page_query(with_tags=with_tags, with_search=search is not None),
            spec.connection,
            spec.page_shape,
            variables,
        )

        return ResourcePage(
            items=[
                ResourceItem(id=node["id"], tags=node.get("tags") or [])
                for node in nodes
            ],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def fetch_count(self, kind: str) -> Optional[int]:
        """Return the resource count, or None when unavailable."""
        spec = get_resource_spec(kind)
        count_query = spec.count_query()
        if count_query is None:
            return None

        try:
            data = await self.client.query(count_query)
        except ShopifyAdminClientError as exc:
            self.logger.warning("Count query for %s failed: %s", kind, exc)
            return None

        count = (data.get(spec.count_field) or {}).get("count")
        return int(count) if count is not None else None

    async def _request_page(
        self, query: str, root: str, shape: PageShape, variables: dict
    ) -> tuple[list, Optional[str], bool]:
        data = await self.client.query(query, variables)
        connection = data.get(root)
        if connection is None:
            raise ShopifyAdminApiError(f"No '{root}' returned from Shopify")
        return normalize_connection(connection, shape)

"""Tag add/remove runs, one page or one id per call."""
import logging
from typing import Iterable, Optional

from ..errors import InputError, RemoteError
from ..schemas.bulk_ops import BatchPage, BatchResult, TagRow
from ..shopify.admin_client import ShopifyAdminClient, user_error_message
from ..shopify.fetcher import PagedResourceFetcher
from ..shopify.graphql_strings import (
    MUTATION_TAGS_ADD,
    MUTATION_TAGS_REMOVE,
    QUERY_NODE_TAGS,
)
from ..shopify.resources import get_resource_spec


logger = logging.getLogger(__name__)


def dedupe_tags(tags: Iterable[str]) -> list[str]:
    """Strip tags, drop blanks and duplicates, keep first-seen order."""
    seen: dict[str, None] = {}
    for tag in tags:
        tag = tag.strip()
        if tag:
            seen.setdefault(tag, None)
    return list(seen)


def build_tag_search(tags: Iterable[str]) -> str:
    """Shopify search string matching items carrying any of the tags."""
    terms = []
    for tag in tags:
        escaped = tag.replace("\\", "\\\\").replace('"', '\\"')
        terms.append(f'tag:"{escaped}"')
    return " OR ".join(terms)


class TagBatchRunner:
    """Removes or adds tags through tagsRemove/tagsAdd.

    The runner never loops across pages; the caller re-invokes
    `remove_from_all` with the returned cursor until `has_more` is false.
    """

    GLOBAL_PAGE_SIZE = 20

    def __init__(
        self,
        client: ShopifyAdminClient,
        fetcher: Optional[PagedResourceFetcher] = None,
        page_size: int = GLOBAL_PAGE_SIZE,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.fetcher = fetcher or PagedResourceFetcher(client)
        self.page_size = page_size
        self.logger = logger_instance or logger

    async def remove_from_all(
        self,
        kind: str,
        tags: Iterable[str],
        cursor: Optional[str] = None,
    ) -> BatchPage:
        """Remove tags from one page of items that carry any of them.

        Args:
            kind: Taggable resource kind
            tags: Tags to remove
            cursor: Cursor from the previous page (None for the first)

        Returns:
            BatchPage with one result per item and the next cursor

        Raises:
            InputError: If no tags are given or the kind is not taggable
            RemoteError: If the page itself cannot be fetched
        """
        get_resource_spec(kind, taggable=True)
        requested = dedupe_tags(tags)
        if not requested:
            raise InputError("No tags provided")

        page = await self.fetcher.fetch_page(
            kind,
            cursor=cursor,
            page_size=self.page_size,
            search=build_tag_search(requested),
            with_tags=True,
        )

        results: list[BatchResult] = []
        for item in page.items:
            results.append(await self._remove_from_item(item.id, item.tags, requested))

        self.logger.info(
            "Processed %s %s items (has_more=%s)",
            len(results),
            kind,
            page.has_more,
        )

        return BatchPage(
            results=results,
            next_cursor=page.next_cursor,
            has_more=page.has_more,
            total_processed=len(results),
        )

    async def remove_from_id(
        self, kind: str, tags: Iterable[str], item_id: str
    ) -> BatchResult:
        """Remove tags from a single item, reading its current tags first."""
        get_resource_spec(kind, taggable=True)
        requested = dedupe_tags(tags)
        if not requested:
            raise InputError("No tags provided")

        try:
            data = await self.client.query(QUERY_NODE_TAGS, {"id": item_id})
        except RemoteError as exc:
            self.logger.warning("Failed to read tags of %s: %s", item_id, exc)
            return BatchResult(id=item_id, success=False, error=str(exc))

        node = data.get("node")
        if node is None:
            return BatchResult(id=item_id, success=False, error="Resource not found")

        return await self._remove_from_item(item_id, node.get("tags") or [], requested)

    async def add_tags(self, rows: Iterable[TagRow]) -> list[BatchResult]:
        """Add each row's tags to its item, sequentially."""
        results: list[BatchResult] = []
        for row in rows:
            item_id = row.id.strip()
            if not item_id:
                results.append(
                    BatchResult(id="N/A", success=False, error="Missing ID")
                )
                continue
            results.append(await self.add_tags_to_item(item_id, row.tags))
        return results

    async def add_tags_to_item(self, item_id: str, tags: Iterable[str]) -> BatchResult:
        tags = dedupe_tags(tags)
        if not tags:
            return BatchResult(id=item_id, success=False, error="No tags provided")

        error = await self._run_tag_mutation(MUTATION_TAGS_ADD, "tagsAdd", item_id, tags)
        if error:
            return BatchResult(id=item_id, success=False, error=error)
        return BatchResult(id=item_id, success=True)

    async def _remove_from_item(
        self, item_id: str, existing: Iterable[str], requested: list[str]
    ) -> BatchResult:
        existing = set(existing)
        to_remove = [tag for tag in requested if tag in existing]
        missing = [tag for tag in requested if tag not in existing]

        # Nothing to remove: never send a no-op mutation
        if not to_remove:
            return BatchResult(
                id=item_id,
                success=False,
                error=f"Tags not present: {', '.join(missing)}",
            )

        error = await self._run_tag_mutation(
            MUTATION_TAGS_REMOVE, "tagsRemove", item_id, to_remove
        )
        if error:
            return BatchResult(id=item_id, success=False, error=error)

        return BatchResult(
            id=item_id,
            success=True,
            removed_tags=to_remove,
            error=f"Missing tags: {', '.join(missing)}" if missing else None,
        )

    async def _run_tag_mutation(
        self, mutation: str, root: str, item_id: str, tags: list[str]
    ) -> Optional[str]:
        """Run tagsAdd/tagsRemove; return an error message or None."""
        try:
            data = await self.client.mutate(mutation, {"id": item_id, "tags": tags})
        except RemoteError as exc:
            self.logger.warning("%s failed for %s: %s", root, item_id, exc)
            return str(exc)

        return user_error_message((data.get(root) or {}).get("userErrors"))

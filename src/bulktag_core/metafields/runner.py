"""Metafield delete/update runs with value capture for later restore."""
import logging
from typing import Iterable, Optional

from ..errors import InputError, RemoteError
from ..schemas.bulk_ops import (
    BatchPage,
    BatchResult,
    MetafieldSnapshot,
    MetafieldTarget,
)
from ..shopify.admin_client import ShopifyAdminClient, user_error_message
from ..shopify.fetcher import PagedResourceFetcher
from ..shopify.graphql_strings import (
    MUTATION_METAFIELDS_DELETE,
    MUTATION_METAFIELDS_SET,
    QUERY_METAFIELD_DEFINITIONS,
    QUERY_OWNER_METAFIELD,
)
from ..shopify.resources import PageShape, get_resource_spec


logger = logging.getLogger(__name__)

NOT_PRESENT = "Metafield is not present"


def _require_identifier(namespace: str, key: str) -> None:
    if not namespace or not namespace.strip() or not key or not key.strip():
        raise InputError("Metafield namespace and key are required")


class MetafieldBatchRunner:
    """Deletes and sets metafields one owner per round trip."""

    GLOBAL_PAGE_SIZE = 50

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

    async def read_metafield(self, target: MetafieldTarget) -> Optional[MetafieldSnapshot]:
        """Return the current metafield value, or None when absent."""
        data = await self.client.query(
            QUERY_OWNER_METAFIELD,
            {
                "ownerId": target.owner_id,
                "namespace": target.namespace,
                "key": target.key,
            },
        )
        found = (data.get("node") or {}).get("metafield")
        if not found:
            return None

        return MetafieldSnapshot(
            owner_id=target.owner_id,
            namespace=found.get("namespace") or target.namespace,
            key=found.get("key") or target.key,
            metafield_id=found.get("id"),
            type=found["type"],
            value=found["value"],
        )

    async def delete_metafields(
        self, targets: Iterable[MetafieldTarget]
    ) -> list[BatchResult]:
        """Delete each metafield after capturing its value.

        Absent metafields are reported as failures without a delete call.
        """
        results: list[BatchResult] = []

        for target in targets:
            try:
                snapshot = await self.read_metafield(target)
            except RemoteError as exc:
                results.append(
                    BatchResult(id=target.owner_id, success=False, error=str(exc))
                )
                continue

            if snapshot is None:
                results.append(
                    BatchResult(id=target.owner_id, success=False, error=NOT_PRESENT)
                )
                continue

            error = await self._delete_one(target)
            results.append(
                BatchResult(
                    id=target.owner_id,
                    success=error is None,
                    data=snapshot,
                    error=error,
                )
            )

        self.logger.info(
            "Metafield delete batch: %s processed, %s deleted",
            len(results),
            sum(1 for result in results if result.success),
        )
        return results

    async def remove_all_metafields(
        self,
        kind: str,
        namespace: str,
        key: str,
        cursor: Optional[str] = None,
    ) -> BatchPage:
        """Delete `namespace.key` from one page of owners of a kind.

        The resource count is only queried for the first page.
        """
        _require_identifier(namespace, key)
        get_resource_spec(kind)

        resource_count = None
        if cursor is None:
            resource_count = await self.fetcher.fetch_count(kind)

        page = await self.fetcher.fetch_page(kind, cursor=cursor, page_size=self.page_size)
        results = await self.delete_metafields(
            MetafieldTarget(owner_id=item.id, namespace=namespace, key=key)
            for item in page.items
        )

        return BatchPage(
            results=results,
            next_cursor=page.next_cursor,
            has_more=page.has_more,
            total_processed=len(results),
            resource_count=resource_count,
        )

    async def remove_specific_metafield(
        self, owner_id: str, namespace: str, key: str
    ) -> BatchResult:
        _require_identifier(namespace, key)
        results = await self.delete_metafields(
            [MetafieldTarget(owner_id=owner_id, namespace=namespace, key=key)]
        )
        return results[0]

    async def update_specific_metafield(
        self,
        owner_id: str,
        namespace: str,
        key: str,
        value: str,
        type: str,
    ) -> BatchResult:
        """Create or overwrite a metafield; `data` holds the previous value."""
        _require_identifier(namespace, key)
        target = MetafieldTarget(owner_id=owner_id, namespace=namespace, key=key)

        try:
            previous = await self.read_metafield(target)
        except RemoteError as exc:
            return BatchResult(id=owner_id, success=False, error=str(exc))

        result = await self.set_metafield(
            MetafieldSnapshot(
                owner_id=owner_id,
                namespace=namespace,
                key=key,
                type=type,
                value=value,
            )
        )
        return result.model_copy(update={"data": previous})

    async def set_metafield(self, snapshot: MetafieldSnapshot) -> BatchResult:
        """Write a snapshot back with metafieldsSet."""
        metafield_input = {
            "ownerId": snapshot.owner_id,
            "namespace": snapshot.namespace,
            "key": snapshot.key,
            "type": snapshot.type,
            "value": snapshot.value,
        }

        try:
            data = await self.client.mutate(
                MUTATION_METAFIELDS_SET, {"metafields": [metafield_input]}
            )
        except RemoteError as exc:
            self.logger.warning("metafieldsSet failed for %s: %s", snapshot.owner_id, exc)
            return BatchResult(
                id=snapshot.owner_id, success=False, data=snapshot, error=str(exc)
            )

        error = user_error_message((data.get("metafieldsSet") or {}).get("userErrors"))
        return BatchResult(
            id=snapshot.owner_id,
            success=error is None,
            data=snapshot,
            error=error,
        )

    async def fetch_definitions(self, kind: str) -> list[dict]:
        """All metafield definitions for the owner type of a kind."""
        spec = get_resource_spec(kind)
        definitions: list[dict] = []

        pages = self.fetcher.iter_connection(
            QUERY_METAFIELD_DEFINITIONS,
            "metafieldDefinitions",
            PageShape.NODES,
            {"ownerType": spec.owner_type},
        )
        async for nodes in pages:
            definitions.extend(nodes)

        return definitions

    async def _delete_one(self, target: MetafieldTarget) -> Optional[str]:
        try:
            data = await self.client.mutate(
                MUTATION_METAFIELDS_DELETE,
                {
                    "metafields": [
                        {
                            "ownerId": target.owner_id,
                            "namespace": target.namespace,
                            "key": target.key,
                        }
                    ]
                },
            )
        except RemoteError as exc:
            self.logger.warning("metafieldsDelete failed for %s: %s", target.owner_id, exc)
            return str(exc)

        payload = data.get("metafieldsDelete") or {}
        error = user_error_message(payload.get("userErrors"))
        if error:
            return error

        deleted = payload.get("deletedMetafields") or []
        if not deleted or deleted[0] is None:
            return "Failed"
        return None

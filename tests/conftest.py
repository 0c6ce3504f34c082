"""Shared fixtures: an in-memory stand-in for the Shopify Admin client."""
from unittest.mock import AsyncMock

import pytest

from bulktag_core.shopify.graphql_strings import (
    MUTATION_METAFIELDS_DELETE,
    MUTATION_METAFIELDS_SET,
    MUTATION_TAGS_ADD,
    MUTATION_TAGS_REMOVE,
    QUERY_NODE_TAGS,
    QUERY_OWNER_METAFIELD,
    QUERY_SHOP_EMAIL,
)


class FakeShop:
    """Answers the per-item queries and mutations the runners send.

    `tags` maps item id -> tag list; `metafields` maps
    (owner_id, namespace, key) -> {"type": ..., "value": ...}.
    `query` and `mutate` are AsyncMocks so calls can be asserted.
    """

    def __init__(self, tags=None, metafields=None, email="owner@shop.com"):
        self.tags = {item_id: list(values) for item_id, values in (tags or {}).items()}
        self.metafields = dict(metafields or {})
        self.email = email
        self.query = AsyncMock(side_effect=self._query)
        self.mutate = AsyncMock(side_effect=self._mutate)

    def mutation_calls(self, mutation):
        return [call.args[1] for call in self.mutate.call_args_list if call.args[0] == mutation]

    async def _query(self, query, variables=None):
        variables = variables or {}

        if query == QUERY_NODE_TAGS:
            item_id = variables["id"]
            if item_id not in self.tags:
                return {"node": None}
            return {"node": {"id": item_id, "tags": list(self.tags[item_id])}}

        if query == QUERY_OWNER_METAFIELD:
            key = (variables["ownerId"], variables["namespace"], variables["key"])
            found = self.metafields.get(key)
            if found is None:
                return {"node": {"metafield": None}}
            return {
                "node": {
                    "metafield": {
                        "id": f"gid://shopify/Metafield/{key[0].rsplit('/', 1)[-1]}",
                        "namespace": key[1],
                        "key": key[2],
                        "type": found["type"],
                        "value": found["value"],
                    }
                }
            }

        if query == QUERY_SHOP_EMAIL:
            return {"shop": {"email": self.email}}

        raise AssertionError(f"Unexpected query: {query}")

    async def _mutate(self, mutation, variables=None):
        variables = variables or {}

        if mutation == MUTATION_TAGS_REMOVE:
            current = self.tags.setdefault(variables["id"], [])
            self.tags[variables["id"]] = [t for t in current if t not in variables["tags"]]
            return {"tagsRemove": {"node": {"id": variables["id"]}, "userErrors": []}}

        if mutation == MUTATION_TAGS_ADD:
            current = self.tags.setdefault(variables["id"], [])
            current.extend(t for t in variables["tags"] if t not in current)
            return {"tagsAdd": {"node": {"id": variables["id"]}, "userErrors": []}}

        if mutation == MUTATION_METAFIELDS_DELETE:
            deleted = []
            for ident in variables["metafields"]:
                key = (ident["ownerId"], ident["namespace"], ident["key"])
                deleted.append(dict(ident) if self.metafields.pop(key, None) else None)
            return {"metafieldsDelete": {"deletedMetafields": deleted, "userErrors": []}}

        if mutation == MUTATION_METAFIELDS_SET:
            written = []
            for field in variables["metafields"]:
                key = (field["ownerId"], field["namespace"], field["key"])
                self.metafields[key] = {"type": field["type"], "value": field["value"]}
                written.append(field)
            return {"metafieldsSet": {"metafields": written, "userErrors": []}}

        raise AssertionError(f"Unexpected mutation: {mutation}")


@pytest.fixture
def fake_shop():
    return FakeShop(
        tags={
            "gid://shopify/Product/1": ["summer", "sale", "new"],
            "gid://shopify/Product/2": ["sale"],
            "gid://shopify/Product/3": ["winter"],
        },
        metafields={
            ("gid://shopify/Product/1", "custom", "note"): {
                "type": "single_line_text_field",
                "value": "fragile",
            },
        },
    )

"""Capability table for the store resource kinds the runners support.

Each kind maps to one `ResourceSpec` holding the GraphQL names and shapes
needed to list, count, look up and tag it. Queries are rendered once per
kind and cached.
"""
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Optional

from ..errors import InputError
from .graphql_strings import (
    TEMPLATE_COUNT,
    TEMPLATE_EDGES_PAGE,
    TEMPLATE_LOOKUP,
    TEMPLATE_NODES_PAGE,
    TEMPLATE_TAG_STRINGS_PAGE,
)


class PageShape(str, Enum):
    """Native pagination shape of a connection."""

    EDGES = "edges"  # edges { cursor node } + pageInfo
    NODES = "nodes"  # nodes + pageInfo.endCursor


@dataclass(frozen=True)
class LookupSpec:
    """How to resolve a human identifier (handle, email, sku...) to an id."""

    search_prefix: str
    connection: Optional[str] = None
    extra_args: str = ""


@dataclass(frozen=True)
class ResourceSpec:
    """GraphQL capabilities of one resource kind."""

    kind: str
    connection: Optional[str]
    page_shape: PageShape
    count_field: Optional[str]
    owner_type: str
    taggable: bool = False
    tag_page_size: int = 0
    # Dedicated connection listing tag strings (e.g. productTags); when unset,
    # tags are collected from the items' `tags` field instead.
    tag_connection: Optional[str] = None
    lookup: Optional[LookupSpec] = None

    @property
    def alias(self) -> str:
        return "".join(part.capitalize() for part in self.kind.split("_"))

    def tag_strings_query(self) -> str:
        if not self.tag_connection:
            raise InputError(f"Resource kind '{self.kind}' has no tag listing")
        return TEMPLATE_TAG_STRINGS_PAGE.format(
            alias=self.alias, tag_connection=self.tag_connection
        )

    def page_query(self, with_tags: bool = False, with_search: bool = False) -> str:
        """Render the listing query; the `query` argument only when searching."""
        if not self.connection:
            raise InputError(f"Resource kind '{self.kind}' cannot be listed")
        return _render_page_query(self.kind, with_tags, with_search)

    def count_query(self) -> Optional[str]:
        if not self.count_field:
            return None
        return TEMPLATE_COUNT.format(alias=self.alias, count_field=self.count_field)

    def lookup_query(self) -> str:
        if not self.lookup:
            raise InputError(f"Resource kind '{self.kind}' does not support lookup")
        return TEMPLATE_LOOKUP.format(
            alias=self.alias,
            connection=self.lookup.connection or self.connection,
            extra_args=self.lookup.extra_args,
        )


@lru_cache(maxsize=None)
def _render_page_query(kind: str, with_tags: bool, with_search: bool) -> str:
    spec = RESOURCE_SPECS[kind]
    fields = "id tags" if with_tags else "id"
    template = (
        TEMPLATE_EDGES_PAGE if spec.page_shape == PageShape.EDGES else TEMPLATE_NODES_PAGE
    )
    return template.format(
        alias=spec.alias,
        connection=spec.connection,
        fields=fields,
        search_var=", $query: String" if with_search else "",
        search_arg=", query: $query" if with_search else "",
    )


RESOURCE_SPECS: dict[str, ResourceSpec] = {
    spec.kind: spec
    for spec in (
        ResourceSpec(
            kind="product",
            connection="products",
            page_shape=PageShape.EDGES,
            count_field="productsCount",
            owner_type="PRODUCT",
            taggable=True,
            tag_page_size=5000,
            tag_connection="productTags",
            lookup=LookupSpec(search_prefix="handle:"),
        ),
        ResourceSpec(
            kind="variant",
            connection="productVariants",
            page_shape=PageShape.EDGES,
            count_field="productVariantsCount",
            owner_type="PRODUCTVARIANT",
            lookup=LookupSpec(search_prefix="sku:"),
        ),
        ResourceSpec(
            kind="collection",
            connection="collections",
            page_shape=PageShape.EDGES,
            count_field="collectionsCount",
            owner_type="COLLECTION",
            lookup=LookupSpec(search_prefix="handle:"),
        ),
        ResourceSpec(
            kind="customer",
            connection="customers",
            page_shape=PageShape.EDGES,
            count_field="customersCount",
            owner_type="CUSTOMER",
            taggable=True,
            tag_page_size=200,
            lookup=LookupSpec(search_prefix="email:"),
        ),
        ResourceSpec(
            kind="order",
            connection="orders",
            page_shape=PageShape.NODES,
            count_field="ordersCount",
            owner_type="ORDER",
            taggable=True,
            tag_page_size=100,
            lookup=LookupSpec(search_prefix="name:"),
        ),
        ResourceSpec(
            kind="draft_order",
            connection="draftOrders",
            page_shape=PageShape.EDGES,
            count_field="draftOrdersCount",
            owner_type="DRAFTORDER",
        ),
        ResourceSpec(
            kind="company",
            connection="companies",
            page_shape=PageShape.EDGES,
            count_field="companiesCount",
            owner_type="COMPANY",
            lookup=LookupSpec(search_prefix="external_id:"),
        ),
        ResourceSpec(
            kind="company_location",
            connection="companyLocations",
            page_shape=PageShape.EDGES,
            count_field="companyLocationsCount",
            owner_type="COMPANY_LOCATION",
            lookup=LookupSpec(search_prefix="external_id:"),
        ),
        ResourceSpec(
            kind="location",
            connection="locations",
            page_shape=PageShape.EDGES,
            count_field="locationsCount",
            owner_type="LOCATION",
            lookup=LookupSpec(search_prefix="name:"),
        ),
        ResourceSpec(
            kind="page",
            connection="pages",
            page_shape=PageShape.EDGES,
            count_field="pagesCount",
            owner_type="PAGE",
            lookup=LookupSpec(search_prefix="handle:"),
        ),
        ResourceSpec(
            kind="blog",
            connection="blogs",
            page_shape=PageShape.EDGES,
            count_field="blogsCount",
            owner_type="BLOG",
        ),
        ResourceSpec(
            kind="article",
            connection="articles",
            page_shape=PageShape.NODES,
            count_field="articlesCount",
            owner_type="ARTICLE",
            taggable=True,
            tag_page_size=50,
            lookup=LookupSpec(search_prefix="handle:"),
        ),
        ResourceSpec(
            kind="market",
            connection="markets",
            page_shape=PageShape.EDGES,
            count_field="marketsCount",
            owner_type="MARKET",
            lookup=LookupSpec(
                search_prefix="title:",
                connection="catalogs",
                extra_args="type: MARKET, ",
            ),
        ),
        ResourceSpec(
            kind="shop",
            connection=None,
            page_shape=PageShape.NODES,
            count_field=None,
            owner_type="SHOP",
        ),
    )
}


def get_resource_spec(kind: str, taggable: bool = False) -> ResourceSpec:
    """Look up the capability record for a resource kind.

    Raises:
        InputError: If the kind is unknown, or not taggable when required
    """
    spec = RESOURCE_SPECS.get(kind)
    if spec is None:
        raise InputError(f"Unsupported resource type: {kind}")
    if taggable and not spec.taggable:
        raise InputError(f"Resource type '{kind}' does not support tags")
    return spec

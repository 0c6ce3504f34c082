"""Canonical GraphQL query/mutation strings for Shopify Admin API.

Connection-specific listing queries are rendered from the templates at the
bottom using the names in `resources.RESOURCE_SPECS`.
"""

# Tags
QUERY_NODE_TAGS = """
query NodeTags($id: ID!) {
  node(id: $id) {
    id
    ... on Product { tags }
    ... on Customer { tags }
    ... on Order { tags }
    ... on Article { tags }
  }
}
"""

MUTATION_TAGS_REMOVE = """
mutation TagsRemove($id: ID!, $tags: [String!]!) {
  tagsRemove(id: $id, tags: $tags) {
    node { id }
    userErrors { field message }
  }
}
"""

MUTATION_TAGS_ADD = """
mutation TagsAdd($id: ID!, $tags: [String!]!) {
  tagsAdd(id: $id, tags: $tags) {
    node { id }
    userErrors { field message }
  }
}
"""

# Metafields
QUERY_OWNER_METAFIELD = """
query OwnerMetafield($ownerId: ID!, $namespace: String!, $key: String!) {
  node(id: $ownerId) {
    ... on HasMetafields {
      metafield(namespace: $namespace, key: $key) {
        id
        namespace
        key
        type
        value
      }
    }
  }
}
"""

MUTATION_METAFIELDS_DELETE = """
mutation MetafieldsDelete($metafields: [MetafieldIdentifierInput!]!) {
  metafieldsDelete(metafields: $metafields) {
    deletedMetafields { ownerId namespace key }
    userErrors { field message }
  }
}
"""

MUTATION_METAFIELDS_SET = """
mutation MetafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id namespace key value type }
    userErrors { field message code }
  }
}
"""

QUERY_METAFIELD_DEFINITIONS = """
query MetafieldDefinitions($ownerType: MetafieldOwnerType!, $after: String) {
  metafieldDefinitions(first: 250, ownerType: $ownerType, after: $after) {
    nodes {
      id
      namespace
      key
      name
      description
      type { name }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

# Shop
QUERY_SHOP_EMAIL = """
query ShopEmail {
  shop { email }
}
"""

# Templates (connection names come from the resource table, never from input)
TEMPLATE_EDGES_PAGE = """
query {alias}Page($first: Int!, $after: String{search_var}) {{
  {connection}(first: $first, after: $after{search_arg}) {{
    edges {{
      cursor
      node {{ {fields} }}
    }}
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""

TEMPLATE_NODES_PAGE = """
query {alias}Page($first: Int!, $after: String{search_var}) {{
  {connection}(first: $first, after: $after{search_arg}) {{
    nodes {{ {fields} }}
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""

TEMPLATE_TAG_STRINGS_PAGE = """
query {alias}Tags($first: Int!, $after: String) {{
  {tag_connection}(first: $first, after: $after) {{
    nodes
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""

TEMPLATE_COUNT = """
query {alias}Count {{
  {count_field} {{ count }}
}}
"""

TEMPLATE_LOOKUP = """
query {alias}Lookup($value: String!) {{
  {connection}(first: 1, {extra_args}query: $value) {{
    nodes {{ id }}
  }}
}}
"""

"""Paginated bulk tag and metafield runs for Shopify stores."""

__version__ = "0.1.0"

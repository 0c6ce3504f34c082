"""Metafield delete/update runs."""

"""Audit log of completed runs and restore."""

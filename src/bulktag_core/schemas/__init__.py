"""Pydantic models shared by runners, audit log and API."""

"""Pydantic models for the audit log."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .bulk_ops import BatchResult


class AuditOperation(str, Enum):
    """Kind of run an audit record describes."""

    TAGS_REMOVED = "Tags-removed"
    TAGS_ADDED = "Tags-added"
    METAFIELD_REMOVED = "Metafield-removed"
    METAFIELD_UPDATED = "Metafield-updated"

    @property
    def is_restorable(self) -> bool:
        return self is not AuditOperation.TAGS_ADDED


class AuditRecord(BaseModel):
    """A persisted, immutable record of one completed run."""

    id: int
    user_name: str
    operation: AuditOperation
    value: list[BatchResult] = Field(default_factory=list)
    time: datetime

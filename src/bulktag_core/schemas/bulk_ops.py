"""Pydantic models for bulk tag and metafield runs."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class MatchMode(str, Enum):
    """How a condition keyword is compared against a tag."""

    CONTAIN = "contain"
    EXACT = "exact"
    START = "start"
    END = "end"


class TagOperator(str, Enum):
    """Operator joining a condition to the ones before it."""

    AND = "AND"
    OR = "OR"


class TagCondition(BaseModel):
    """One keyword of a tag search."""

    tag: str = Field(..., description="Keyword, compared case-insensitively")
    operator: TagOperator = Field(
        TagOperator.OR, description="Ignored for the first condition"
    )

    @field_validator("tag")
    @classmethod
    def _strip_tag(cls, value: str) -> str:
        return value.strip()


class ResourceItem(BaseModel):
    """A store resource as seen by the runners (id + current tags)."""

    id: str
    tags: list[str] = Field(default_factory=list)


class ResourcePage(BaseModel):
    """One normalized page of a paged listing."""

    items: list[ResourceItem] = Field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False


class MetafieldTarget(BaseModel):
    """Identifies one metafield on one owner."""

    owner_id: str
    namespace: str
    key: str


class MetafieldSnapshot(BaseModel):
    """Metafield value captured before it was deleted or overwritten."""

    owner_id: str
    namespace: str
    key: str
    metafield_id: Optional[str] = None
    type: str
    value: str


class BatchResult(BaseModel):
    """Outcome of processing one item."""

    id: str
    success: bool
    removed_tags: list[str] = Field(default_factory=list)
    data: Optional[MetafieldSnapshot] = Field(
        None, description="Captured metafield value (metafield runs only)"
    )
    error: Optional[str] = None


class BatchPage(BaseModel):
    """Outcome of one global-mode round trip."""

    results: list[BatchResult] = Field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False
    total_processed: int = 0
    resource_count: Optional[int] = None


class TagRow(BaseModel):
    """A parsed `{id, tags}` input row."""

    id: str
    tags: list[str] = Field(default_factory=list)

"""FastAPI routes for bulk tag and metafield runs.

Every endpoint performs one round trip of a run (one page or one id); the
caller re-submits with the returned cursor while `has_more` is true.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ..audit.logger import AuditLogger
from ..errors import BulkTagError, InputError, NotFoundError, RemoteError, StorageError
from ..schemas.audit import AuditOperation, AuditRecord
from ..schemas.bulk_ops import (
    BatchPage,
    BatchResult,
    MatchMode,
    TagCondition,
    TagRow,
)
from ..shopify.admin_client import ShopifyAdminClient
from ..shopify.exceptions import ShopifyRunLockedError
from ..shopify.lookup import fetch_resource_id, fetch_shop_email, resolve_owner_id
from ..tagging.matcher import match_tags, normalize_conditions
from .auth import require_api_key
from .deps import (
    build_fetcher,
    build_metafield_runner,
    build_tag_runner,
    get_admin_client,
    get_audit_logger,
)


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1",
    tags=["bulk"],
    dependencies=[Depends(require_api_key)],
)


def _http_error(exc: BulkTagError) -> HTTPException:
    """Map a domain error to its HTTP status."""
    if isinstance(exc, InputError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ShopifyRunLockedError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, RemoteError):
        code = status.HTTP_502_BAD_GATEWAY
    elif isinstance(exc, StorageError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if code >= 500:
        logger.error("Request failed: %s", exc)
    return HTTPException(status_code=code, detail=str(exc))


# --- Tags -------------------------------------------------------------------


class TagFetchRequest(BaseModel):
    """Fetch a kind's tags and filter them with conditions."""

    resource_type: str = Field(..., description="Taggable resource kind, e.g. 'product'")
    conditions: list[TagCondition] = Field(..., description="Keyword chain")
    match_mode: MatchMode = Field(MatchMode.CONTAIN, description="Comparison mode")


class TagFetchResponse(BaseModel):
    tags: list[str]
    total_tags: int = Field(..., description="Distinct tags before filtering")


class TagRemoveGlobalRequest(BaseModel):
    resource_type: str
    tags: list[str] = Field(..., description="Tags to remove")
    cursor: Optional[str] = Field(None, description="Cursor of the previous page")


class TagRemoveSpecificRequest(BaseModel):
    resource_type: str
    tags: list[str]
    ids: list[str] = Field(
        ..., description="Ids (GIDs or lookup values); only the first is processed"
    )


class TagAddRequest(BaseModel):
    rows: list[TagRow] = Field(..., description="Parsed id,tags rows")


class BatchResultsResponse(BaseModel):
    results: list[BatchResult]


@router.post("/tags/fetch", response_model=TagFetchResponse)
async def fetch_tags(
    payload: TagFetchRequest,
    client: ShopifyAdminClient = Depends(get_admin_client),
) -> TagFetchResponse:
    """Return the kind's tags matching the conditions, sorted."""
    try:
        conditions = normalize_conditions(payload.conditions)
        all_tags = await build_fetcher(client).fetch_all_tags(payload.resource_type)
        matched = match_tags(all_tags, conditions, payload.match_mode)
    except BulkTagError as exc:
        raise _http_error(exc) from exc

    return TagFetchResponse(tags=sorted(matched), total_tags=len(all_tags))


@router.post("/tags/remove-global", response_model=BatchPage)
async def remove_tags_global(
    payload: TagRemoveGlobalRequest,
    client: ShopifyAdminClient = Depends(get_admin_client),
) -> BatchPage:
    """Remove tags from one page of items; re-submit with next_cursor."""
    try:
        return await build_tag_runner(client).remove_from_all(
            payload.resource_type, payload.tags, payload.cursor
        )
    except BulkTagError as exc:
        raise _http_error(exc) from exc


@router.post("/tags/remove-specific", response_model=BatchResultsResponse)
async def remove_tags_specific(
    payload: TagRemoveSpecificRequest,
    client: ShopifyAdminClient = Depends(get_admin_client),
) -> BatchResultsResponse:
    """Remove tags from the first id of the list."""
    ids = [item_id.strip() for item_id in payload.ids if item_id.strip()]
    if not ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No IDs provided",
        )

    try:
        item_id = await resolve_owner_id(client, payload.resource_type, ids[0])
        if item_id is None:
            result = BatchResult(id=ids[0], success=False, error="Resource not found")
        else:
            result = await build_tag_runner(client).remove_from_id(
                payload.resource_type, payload.tags, item_id
            )
    except BulkTagError as exc:
        raise _http_error(exc) from exc

    return BatchResultsResponse(results=[result])


@router.post("/tags/add", response_model=BatchResultsResponse)
async def add_tags(
    payload: TagAddRequest,
    client: ShopifyAdminClient = Depends(get_admin_client),
) -> BatchResultsResponse:
    if not payload.rows:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="rows must be non-empty",
        )

    results = await build_tag_runner(client).add_tags(payload.rows)
    return BatchResultsResponse(results=results)


# --- Metafields -------------------------------------------------------------


class MetafieldRemoveGlobalRequest(BaseModel):
    resource_type: str
    namespace: str
    key: str
    cursor: Optional[str] = None


class MetafieldRemoveSpecificRequest(BaseModel):
    resource_type: str
    id: str = Field(..., description="Owner GID or lookup value (handle, email...)")
    namespace: str
    key: str


class MetafieldUpdateRequest(MetafieldRemoveSpecificRequest):
    value: str
    type: str = Field(..., description="Metafield type, e.g. 'single_line_text_field'")


class MetafieldDefinitionsResponse(BaseModel):
    definitions: list[dict]


@router.get("/metafields/definitions", response_model=MetafieldDefinitionsResponse)
async def metafield_definitions(
    resource_type: str = Query(..., description="Resource kind"),
    client: ShopifyAdminClient = Depends(get_admin_client),
) -> MetafieldDefinitionsResponse:
    try:
        definitions = await build_metafield_runner(client).fetch_definitions(
            resource_type
        )
    except BulkTagError as exc:
        raise _http_error(exc) from exc

    return MetafieldDefinitionsResponse(definitions=definitions)


@router.post("/metafields/remove-global", response_model=BatchPage)
async def remove_metafields_global(
    payload: MetafieldRemoveGlobalRequest,
    client: ShopifyAdminClient = Depends(get_admin_client),
) -> BatchPage:
    """Delete the metafield from one page of owners.

    resource_count is only set on the first page.
    """
    try:
        return await build_metafield_runner(client).remove_all_metafields(
            payload.resource_type, payload.namespace, payload.key, payload.cursor
        )
    except BulkTagError as exc:
        raise _http_error(exc) from exc


async def _resolve_owner(client: ShopifyAdminClient, kind: str, value: str) -> str:
    owner_id = await resolve_owner_id(client, kind, value)
    if owner_id is None:
        raise NotFoundError(f"No {kind} found for '{value}'")
    return owner_id


@router.post("/metafields/remove-specific", response_model=BatchResult)
async def remove_metafield_specific(
    payload: MetafieldRemoveSpecificRequest,
    client: ShopifyAdminClient = Depends(get_admin_client),
) -> BatchResult:
    try:
        owner_id = await _resolve_owner(client, payload.resource_type, payload.id)
        return await build_metafield_runner(client).remove_specific_metafield(
            owner_id, payload.namespace, payload.key
        )
    except BulkTagError as exc:
        raise _http_error(exc) from exc


@router.post("/metafields/update", response_model=BatchResult)
async def update_metafield(
    payload: MetafieldUpdateRequest,
    client: ShopifyAdminClient = Depends(get_admin_client),
) -> BatchResult:
    """Create or overwrite a metafield; `data` carries the previous value."""
    try:
        owner_id = await _resolve_owner(client, payload.resource_type, payload.id)
        return await build_metafield_runner(client).update_specific_metafield(
            owner_id, payload.namespace, payload.key, payload.value, payload.type
        )
    except BulkTagError as exc:
        raise _http_error(exc) from exc


# --- Resources --------------------------------------------------------------


class LookupResponse(BaseModel):
    id: str


class CountResponse(BaseModel):
    count: Optional[int]


@router.get("/resources/{kind}/lookup", response_model=LookupResponse)
async def lookup_resource(
    kind: str,
    value: str = Query(..., min_length=1),
    client: ShopifyAdminClient = Depends(get_admin_client),
) -> LookupResponse:
    try:
        resource_id = await fetch_resource_id(client, kind, value)
        if resource_id is None:
            raise NotFoundError(f"No {kind} found for '{value}'")
    except BulkTagError as exc:
        raise _http_error(exc) from exc

    return LookupResponse(id=resource_id)


@router.get("/resources/{kind}/count", response_model=CountResponse)
async def count_resources(
    kind: str,
    client: ShopifyAdminClient = Depends(get_admin_client),
) -> CountResponse:
    try:
        count = await build_fetcher(client).fetch_count(kind)
    except BulkTagError as exc:
        raise _http_error(exc) from exc

    return CountResponse(count=count)


# --- Audit ------------------------------------------------------------------


class AuditAppendRequest(BaseModel):
    operation: AuditOperation
    value: list[BatchResult]


class AuditAppendResponse(BaseModel):
    id: int
    user_name: str


class AuditRestoreRequest(BaseModel):
    ids: Optional[list[str]] = Field(
        None, description="Restore only these entries (all when omitted)"
    )


@router.post(
    "/audit",
    response_model=AuditAppendResponse,
    status_code=status.HTTP_201_CREATED,
)
async def append_audit_record(
    payload: AuditAppendRequest,
    client: ShopifyAdminClient = Depends(get_admin_client),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> AuditAppendResponse:
    """Record a completed run under the shop's email."""
    try:
        user_name = await fetch_shop_email(client)
        record_id = audit_logger.append(user_name, payload.operation, payload.value)
    except BulkTagError as exc:
        raise _http_error(exc) from exc

    return AuditAppendResponse(id=record_id, user_name=user_name)


@router.get("/audit", response_model=list[AuditRecord])
async def list_audit_records(
    limit: Optional[int] = Query(None, ge=1),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> list[AuditRecord]:
    """Audit records, newest first."""
    try:
        return audit_logger.list(limit=limit)
    except BulkTagError as exc:
        raise _http_error(exc) from exc


@router.post("/audit/{record_id}/restore", response_model=BatchResultsResponse)
async def restore_audit_record(
    record_id: int,
    payload: Optional[AuditRestoreRequest] = None,
    client: ShopifyAdminClient = Depends(get_admin_client),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> BatchResultsResponse:
    """Re-apply the values captured in a record."""
    entry_ids = payload.ids if payload else None

    try:
        results = await audit_logger.restore(
            record_id,
            build_tag_runner(client),
            build_metafield_runner(client),
            entry_ids,
        )
    except BulkTagError as exc:
        raise _http_error(exc) from exc

    return BatchResultsResponse(results=results)

"""Client-driven bulk runs.

A run walks a paged source one round trip at a time:

    IDLE -> FETCHING -> AWAITING_SELECTION -> REMOVING -> COMPLETE
                                                 |
                                                 +-> CANCELLED

The cancellation flag is checked before every re-submission. Completed
global runs append one audit record; specific runs append one record per
successful row.
"""
import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from redis.asyncio import Redis
from redis.asyncio.lock import Lock as AsyncRedisLock

from .audit.logger import AuditLogger
from .errors import BulkTagError, InputError, StorageError
from .metafields.runner import MetafieldBatchRunner
from .schemas.audit import AuditOperation
from .schemas.bulk_ops import BatchPage, BatchResult, MatchMode, TagCondition
from .shopify.exceptions import ShopifyAdminApiError, ShopifyRunLockedError
from .shopify.resources import get_resource_spec
from .tagging.matcher import match_tags, normalize_conditions
from .tagging.runner import TagBatchRunner, dedupe_tags


logger = logging.getLogger(__name__)

DEFAULT_PAGE_DELAY_SECONDS = 0.2
RUN_LOCK_TTL_SECONDS = 3600


class RunPhase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    AWAITING_SELECTION = "awaiting_selection"
    REMOVING = "removing"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RunState:
    """Results accumulated across the round trips of one run.

    Never mutated; every page produces a new state.
    """

    results: tuple[BatchResult, ...] = ()
    total_processed: int = 0
    complete: bool = False
    next_cursor: Optional[str] = None
    success: bool = False

    @classmethod
    def empty(cls) -> "RunState":
        return cls()

    def merge_page(self, page: BatchPage) -> "RunState":
        return replace(
            self,
            results=self.results + tuple(page.results),
            total_processed=self.total_processed + page.total_processed,
            next_cursor=page.next_cursor,
        )

    def merge_result(self, result: BatchResult) -> "RunState":
        return replace(
            self,
            results=self.results + (result,),
            total_processed=self.total_processed + 1,
        )

    def finish(self) -> "RunState":
        return replace(self, complete=True, success=True, next_cursor=None)


@dataclass(frozen=True)
class TagScope:
    """What a tag run applies to; changing it discards accumulated state."""

    kind: str
    conditions: tuple[TagCondition, ...]
    mode: MatchMode


class BulkRunDriver:
    """Shared loop, lock and cancellation handling for bulk runs."""

    def __init__(
        self,
        audit_logger: AuditLogger,
        user_name: str,
        redis: Optional[Redis] = None,
        shop_domain: Optional[str] = None,
        page_delay: float = DEFAULT_PAGE_DELAY_SECONDS,
        max_pages: Optional[int] = None,
        lock_ttl_seconds: int = RUN_LOCK_TTL_SECONDS,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize driver.

        Args:
            audit_logger: Store that receives completed runs
            user_name: Recorded on every audit record (shop email)
            redis: Optional Redis client; when set, one run per shop and
                resource kind may hold the lock at a time
            shop_domain: Shop the lock key is scoped to
            page_delay: Seconds to wait between round trips
            max_pages: Optional cap on round trips of a global run
            lock_ttl_seconds: Redis lock TTL
            logger_instance: Optional logger
        """
        self.audit_logger = audit_logger
        self.user_name = user_name
        self.redis = redis
        self.shop_domain = shop_domain or "default"
        self.page_delay = page_delay
        self.max_pages = max_pages
        self.lock_ttl_seconds = lock_ttl_seconds
        self.logger = logger_instance or logger

        self.phase = RunPhase.IDLE
        self.state = RunState.empty()
        self._cancelled = False
        self._current_lock: Optional[AsyncRedisLock] = None

    def cancel(self) -> None:
        """Stop the current run before its next round trip."""
        self._cancelled = True
        self.logger.info("Cancellation requested")

    def reset(self) -> None:
        self.phase = RunPhase.IDLE
        self.state = RunState.empty()
        self._cancelled = False

    async def _drive_pages(
        self,
        kind: str,
        submit: Callable[[Optional[str]], Awaitable[BatchPage]],
        operation: AuditOperation,
    ) -> RunState:
        """Re-submit with the returned cursor until the source is exhausted."""
        await self._acquire_lock(kind)
        self._cancelled = False
        self.phase = RunPhase.REMOVING
        self.state = RunState.empty()

        try:
            cursor: Optional[str] = None
            pages = 0

            while True:
                if self._cancelled:
                    self.phase = RunPhase.CANCELLED
                    self.logger.info(
                        "Run cancelled after %s pages (%s items)",
                        pages,
                        self.state.total_processed,
                    )
                    return self.state

                pages += 1
                if self.max_pages is not None and pages > self.max_pages:
                    raise ShopifyAdminApiError(
                        f"Run over '{kind}' exceeded max_pages={self.max_pages}"
                    )

                page = await submit(cursor)
                self.state = self.state.merge_page(page)
                self.logger.info(
                    "Page %s done: %s processed so far (has_more=%s)",
                    pages,
                    self.state.total_processed,
                    page.has_more,
                )

                if not page.has_more:
                    break

                cursor = page.next_cursor
                await asyncio.sleep(self.page_delay)

            self.state = self.state.finish()
            self.phase = RunPhase.COMPLETE
        finally:
            if self.phase == RunPhase.REMOVING:
                self.phase = RunPhase.AWAITING_SELECTION
            await self._release_lock_best_effort()

        if self.state.results:
            self.audit_logger.append(self.user_name, operation, self.state.results)

        return self.state

    async def _drive_items(
        self,
        kind: str,
        item_ids: Sequence[str],
        submit: Callable[[str], Awaitable[BatchResult]],
        operation: AuditOperation,
    ) -> RunState:
        """Submit one id per round trip, logging each successful row."""
        await self._acquire_lock(kind)
        self._cancelled = False
        self.phase = RunPhase.REMOVING
        self.state = RunState.empty()
        storage_error: Optional[StorageError] = None

        try:
            for index, item_id in enumerate(item_ids):
                if self._cancelled:
                    self.phase = RunPhase.CANCELLED
                    self.logger.info(
                        "Run cancelled after %s of %s ids", index, len(item_ids)
                    )
                    return self.state

                if index:
                    await asyncio.sleep(self.page_delay)

                result = await submit(item_id)
                self.state = self.state.merge_result(result)

                if result.success:
                    try:
                        self.audit_logger.append(self.user_name, operation, [result])
                    except StorageError as exc:
                        storage_error = storage_error or exc

            self.state = self.state.finish()
            self.phase = RunPhase.COMPLETE
        finally:
            if self.phase == RunPhase.REMOVING:
                self.phase = RunPhase.AWAITING_SELECTION
            await self._release_lock_best_effort()

        if storage_error is not None:
            raise storage_error
        return self.state

    async def _acquire_lock(self, kind: str) -> None:
        if self.redis is None:
            return

        lock_key = f"bulktag:run_lock:{self.shop_domain}:{kind}"
        lock = AsyncRedisLock(
            self.redis,
            name=lock_key,
            timeout=self.lock_ttl_seconds,
            blocking=False,
        )

        acquired = await lock.acquire(blocking=False)
        if not acquired:
            raise ShopifyRunLockedError(self.shop_domain, lock_key)

        self._current_lock = lock
        self.logger.info("Acquired run lock: %s", lock_key)

    async def _release_lock_best_effort(self) -> None:
        """Release run lock with error suppression."""
        if self._current_lock:
            try:
                await self._current_lock.release()
                self.logger.info("Released run lock")
            except Exception as e:
                self.logger.error("Failed to release lock: %s", e)
            finally:
                self._current_lock = None


def _ids(item_ids: Iterable[str]) -> list[str]:
    ids = [item_id.strip() for item_id in item_ids if item_id and item_id.strip()]
    if not ids:
        raise InputError("No ids provided")
    return ids


class TagRemovalDriver(BulkRunDriver):
    """Fetch, match, confirm and remove tags across a resource kind."""

    def __init__(
        self,
        tag_runner: TagBatchRunner,
        audit_logger: AuditLogger,
        user_name: str,
        **kwargs,
    ):
        super().__init__(audit_logger, user_name, **kwargs)
        self.tag_runner = tag_runner
        self.scope: Optional[TagScope] = None
        self.matched_tags: list[str] = []
        self.selected_tags: list[str] = []

    def set_scope(
        self,
        kind: str,
        conditions: Iterable[TagCondition],
        mode: MatchMode = MatchMode.CONTAIN,
    ) -> None:
        """Set kind, conditions and mode; a different scope starts over."""
        get_resource_spec(kind, taggable=True)
        scope = TagScope(kind=kind, conditions=tuple(conditions), mode=MatchMode(mode))

        if scope != self.scope:
            self.scope = scope
            self.matched_tags = []
            self.selected_tags = []
            self.reset()

    async def fetch_tags(self) -> list[str]:
        """Collect the kind's tags and filter them with the scope's conditions."""
        scope = self._require_scope()
        conditions = normalize_conditions(scope.conditions)

        self.phase = RunPhase.FETCHING
        try:
            all_tags = await self.tag_runner.fetcher.fetch_all_tags(scope.kind)
        except BulkTagError:
            self.phase = RunPhase.IDLE
            raise

        self.matched_tags = sorted(match_tags(all_tags, conditions, scope.mode))
        self.phase = RunPhase.AWAITING_SELECTION
        self.logger.info(
            "Matched %s of %s %s tags", len(self.matched_tags), len(all_tags), scope.kind
        )
        return self.matched_tags

    def select_tags(self, tags: Iterable[str]) -> list[str]:
        """Confirm which tags the removal applies to."""
        self._require_scope()
        selected = dedupe_tags(tags)
        if not selected:
            raise InputError("No tags selected")

        self.selected_tags = selected
        self.phase = RunPhase.AWAITING_SELECTION
        return selected

    async def remove_global(self) -> RunState:
        """Remove the selected tags from every item carrying them."""
        scope = self._require_scope()
        tags = self._require_selection()

        return await self._drive_pages(
            scope.kind,
            lambda cursor: self.tag_runner.remove_from_all(scope.kind, tags, cursor),
            AuditOperation.TAGS_REMOVED,
        )

    async def remove_specific(self, item_ids: Iterable[str]) -> RunState:
        """Remove the selected tags from the given ids, one per round trip."""
        scope = self._require_scope()
        tags = self._require_selection()
        ids = _ids(item_ids)

        return await self._drive_items(
            scope.kind,
            ids,
            lambda item_id: self.tag_runner.remove_from_id(scope.kind, tags, item_id),
            AuditOperation.TAGS_REMOVED,
        )

    def _require_scope(self) -> TagScope:
        if self.scope is None:
            raise InputError("Resource type and conditions must be set first")
        return self.scope

    def _require_selection(self) -> list[str]:
        if not self.selected_tags:
            raise InputError("No tags selected")
        return self.selected_tags


class MetafieldClearDriver(BulkRunDriver):
    """Delete one metafield across a resource kind or a list of owners."""

    def __init__(
        self,
        metafield_runner: MetafieldBatchRunner,
        audit_logger: AuditLogger,
        user_name: str,
        **kwargs,
    ):
        super().__init__(audit_logger, user_name, **kwargs)
        self.metafield_runner = metafield_runner

    async def clear_global(self, kind: str, namespace: str, key: str) -> RunState:
        get_resource_spec(kind)
        return await self._drive_pages(
            kind,
            lambda cursor: self.metafield_runner.remove_all_metafields(
                kind, namespace, key, cursor
            ),
            AuditOperation.METAFIELD_REMOVED,
        )

    async def clear_specific(
        self, kind: str, owner_ids: Iterable[str], namespace: str, key: str
    ) -> RunState:
        get_resource_spec(kind)
        return await self._drive_items(
            kind,
            _ids(owner_ids),
            lambda owner_id: self.metafield_runner.remove_specific_metafield(
                owner_id, namespace, key
            ),
            AuditOperation.METAFIELD_REMOVED,
        )

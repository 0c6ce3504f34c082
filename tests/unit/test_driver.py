"""Unit tests for the bulk run drivers."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bulktag_core.driver import (
    MetafieldClearDriver,
    RunPhase,
    RunState,
    TagRemovalDriver,
)
from bulktag_core.errors import InputError, StorageError
from bulktag_core.metafields.runner import MetafieldBatchRunner
from bulktag_core.schemas.audit import AuditOperation
from bulktag_core.schemas.bulk_ops import BatchPage, BatchResult, MatchMode, TagCondition
from bulktag_core.shopify.exceptions import ShopifyAdminApiError, ShopifyRunLockedError


def batch_page(ids, next_cursor=None, success=True):
    return BatchPage(
        results=[BatchResult(id=item_id, success=success, removed_tags=["sale"]) for item_id in ids],
        next_cursor=next_cursor,
        has_more=next_cursor is not None,
        total_processed=len(ids),
    )


@pytest.fixture
def tag_runner():
    runner = MagicMock()
    runner.remove_from_all = AsyncMock()
    runner.remove_from_id = AsyncMock()
    runner.fetcher = MagicMock()
    runner.fetcher.fetch_all_tags = AsyncMock(
        return_value={"summer", "Summer Sale", "winter", "sale"}
    )
    return runner


@pytest.fixture
def audit_logger():
    logger = MagicMock()
    logger.append = MagicMock(return_value=1)
    return logger


@pytest.fixture
def driver(tag_runner, audit_logger):
    driver = TagRemovalDriver(tag_runner, audit_logger, "owner@shop.com", page_delay=0)
    driver.set_scope("product", [TagCondition(tag="sale")])
    return driver


def test_run_state_merge_is_immutable():
    state = RunState.empty()
    merged = state.merge_page(batch_page(["a", "b"], next_cursor="c"))

    assert state.results == ()
    assert merged.total_processed == 2
    assert merged.next_cursor == "c"
    assert merged.finish().complete is True


@pytest.mark.asyncio
async def test_fetch_tags_applies_conditions(driver):
    tags = await driver.fetch_tags()

    assert tags == ["Summer Sale", "sale"]
    assert driver.phase == RunPhase.AWAITING_SELECTION


@pytest.mark.asyncio
async def test_fetch_tags_rejects_short_keyword(tag_runner, audit_logger):
    driver = TagRemovalDriver(tag_runner, audit_logger, "owner@shop.com")
    driver.set_scope("product", [TagCondition(tag="s")])

    with pytest.raises(InputError):
        await driver.fetch_tags()

    tag_runner.fetcher.fetch_all_tags.assert_not_called()


@pytest.mark.asyncio
async def test_remove_global_loops_until_exhausted(driver, tag_runner, audit_logger):
    tag_runner.remove_from_all.side_effect = [
        batch_page(["p1", "p2"], next_cursor="c1"),
        batch_page(["p3"], next_cursor="c2"),
        batch_page(["p4"]),
    ]
    driver.select_tags(["sale"])

    with patch("bulktag_core.driver.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        state = await driver.remove_global()

    assert tag_runner.remove_from_all.await_count == 3
    cursors = [call.args[2] for call in tag_runner.remove_from_all.call_args_list]
    assert cursors == [None, "c1", "c2"]
    assert mock_sleep.await_count == 2

    assert state.complete is True
    assert state.total_processed == 4
    assert [r.id for r in state.results] == ["p1", "p2", "p3", "p4"]
    assert driver.phase == RunPhase.COMPLETE

    audit_logger.append.assert_called_once()
    user_name, operation, value = audit_logger.append.call_args.args
    assert user_name == "owner@shop.com"
    assert operation == AuditOperation.TAGS_REMOVED
    assert len(value) == 4


@pytest.mark.asyncio
async def test_remove_global_without_results_is_not_logged(driver, tag_runner, audit_logger):
    tag_runner.remove_from_all.return_value = batch_page([])
    driver.select_tags(["sale"])

    state = await driver.remove_global()

    assert state.complete is True
    audit_logger.append.assert_not_called()


@pytest.mark.asyncio
async def test_cancel_stops_before_next_page(driver, tag_runner, audit_logger):
    async def first_page_then_cancel(kind, tags, cursor):
        driver.cancel()
        return batch_page(["p1"], next_cursor="c1")

    tag_runner.remove_from_all.side_effect = first_page_then_cancel
    driver.select_tags(["sale"])

    state = await driver.remove_global()

    assert tag_runner.remove_from_all.await_count == 1
    assert driver.phase == RunPhase.CANCELLED
    assert state.complete is False
    assert state.total_processed == 1
    audit_logger.append.assert_not_called()


@pytest.mark.asyncio
async def test_page_failure_propagates(driver, tag_runner, audit_logger):
    tag_runner.remove_from_all.side_effect = ShopifyAdminApiError("HTTP 500")
    driver.select_tags(["sale"])

    with pytest.raises(ShopifyAdminApiError):
        await driver.remove_global()

    assert driver.phase == RunPhase.AWAITING_SELECTION
    audit_logger.append.assert_not_called()


@pytest.mark.asyncio
async def test_max_pages_guard(tag_runner, audit_logger):
    driver = TagRemovalDriver(
        tag_runner, audit_logger, "owner@shop.com", page_delay=0, max_pages=2
    )
    driver.set_scope("product", [TagCondition(tag="sale")])
    driver.select_tags(["sale"])
    tag_runner.remove_from_all.return_value = batch_page(["p1"], next_cursor="again")

    with pytest.raises(ShopifyAdminApiError):
        await driver.remove_global()

    assert tag_runner.remove_from_all.await_count == 2


@pytest.mark.asyncio
async def test_storage_error_surfaces_after_completion(driver, tag_runner, audit_logger):
    tag_runner.remove_from_all.return_value = batch_page(["p1"])
    audit_logger.append.side_effect = StorageError("disk full")
    driver.select_tags(["sale"])

    with pytest.raises(StorageError):
        await driver.remove_global()

    assert driver.phase == RunPhase.COMPLETE
    assert driver.state.complete is True


@pytest.mark.asyncio
async def test_remove_specific_logs_each_successful_row(driver, tag_runner, audit_logger):
    tag_runner.remove_from_id.side_effect = [
        BatchResult(id="p1", success=True, removed_tags=["sale"]),
        BatchResult(id="p2", success=False, error="Tags not present: sale"),
        BatchResult(id="p3", success=True, removed_tags=["sale"]),
    ]
    driver.select_tags(["sale"])

    state = await driver.remove_specific(["p1", " ", "p2", "p3"])

    assert [call.args[2] for call in tag_runner.remove_from_id.call_args_list] == ["p1", "p2", "p3"]
    assert state.total_processed == 3
    assert driver.phase == RunPhase.COMPLETE
    logged = [call.args[2][0].id for call in audit_logger.append.call_args_list]
    assert logged == ["p1", "p3"]


@pytest.mark.asyncio
async def test_remove_specific_requires_ids(driver):
    driver.select_tags(["sale"])

    with pytest.raises(InputError):
        await driver.remove_specific(["", "  "])


@pytest.mark.asyncio
async def test_remove_requires_selection(driver):
    with pytest.raises(InputError):
        await driver.remove_global()


def test_scope_change_resets_state(driver):
    driver.select_tags(["sale"])
    driver.state = RunState.empty().merge_page(batch_page(["p1"]))

    driver.set_scope("product", [TagCondition(tag="sale")])
    assert driver.selected_tags == ["sale"]

    driver.set_scope("product", [TagCondition(tag="sale")], MatchMode.EXACT)
    assert driver.selected_tags == []
    assert driver.state == RunState.empty()
    assert driver.phase == RunPhase.IDLE


def test_reset(driver):
    driver.phase = RunPhase.COMPLETE
    driver.state = RunState.empty().merge_page(batch_page(["p1"]))

    driver.reset()

    assert driver.phase == RunPhase.IDLE
    assert driver.state == RunState.empty()


@pytest.mark.asyncio
async def test_run_lock_held_elsewhere(tag_runner, audit_logger):
    mock_lock = AsyncMock()
    mock_lock.acquire.return_value = False
    driver = TagRemovalDriver(
        tag_runner,
        audit_logger,
        "owner@shop.com",
        redis=AsyncMock(),
        shop_domain="test-shop.myshopify.com",
    )
    driver.set_scope("product", [TagCondition(tag="sale")])
    driver.select_tags(["sale"])

    with patch("bulktag_core.driver.AsyncRedisLock", return_value=mock_lock):
        with pytest.raises(ShopifyRunLockedError) as exc_info:
            await driver.remove_global()

    assert "test-shop.myshopify.com" in str(exc_info.value)
    tag_runner.remove_from_all.assert_not_called()


@pytest.mark.asyncio
async def test_run_lock_released_after_run(tag_runner, audit_logger):
    mock_lock = AsyncMock()
    mock_lock.acquire.return_value = True
    tag_runner.remove_from_all.return_value = batch_page(["p1"])
    driver = TagRemovalDriver(
        tag_runner,
        audit_logger,
        "owner@shop.com",
        redis=AsyncMock(),
        shop_domain="test-shop.myshopify.com",
    )
    driver.set_scope("customer", [TagCondition(tag="vip")])
    driver.select_tags(["vip"])

    with patch("bulktag_core.driver.AsyncRedisLock", return_value=mock_lock) as lock_cls:
        await driver.remove_global()

    assert lock_cls.call_args.kwargs["name"] == (
        "bulktag:run_lock:test-shop.myshopify.com:customer"
    )
    assert mock_lock.release.called


@pytest.mark.asyncio
async def test_metafield_clear_global(audit_logger):
    runner = MagicMock()
    runner.remove_all_metafields = AsyncMock(
        side_effect=[batch_page(["p1"], next_cursor="c1"), batch_page(["p2"])]
    )
    driver = MetafieldClearDriver(runner, audit_logger, "owner@shop.com", page_delay=0)

    state = await driver.clear_global("product", "custom", "note")

    assert state.total_processed == 2
    assert runner.remove_all_metafields.call_args_list[1].args == ("product", "custom", "note", "c1")
    assert audit_logger.append.call_args.args[1] == AuditOperation.METAFIELD_REMOVED


@pytest.mark.asyncio
async def test_metafield_clear_specific_logs_successful_owners(fake_shop, audit_logger):
    driver = MetafieldClearDriver(
        MetafieldBatchRunner(fake_shop), audit_logger, "owner@shop.com", page_delay=0
    )

    state = await driver.clear_specific(
        "product", ["gid://shopify/Product/1", "gid://shopify/Product/2"], "custom", "note"
    )

    assert state.total_processed == 2
    assert [result.success for result in state.results] == [True, False]
    assert driver.phase == RunPhase.COMPLETE
    assert audit_logger.append.call_count == 1
    _, operation, value = audit_logger.append.call_args.args
    assert operation == AuditOperation.METAFIELD_REMOVED
    assert [result.id for result in value] == ["gid://shopify/Product/1"]
    assert value[0].data.value == "fragile"


@pytest.mark.asyncio
async def test_unexpected_error_returns_to_awaiting_selection(driver, tag_runner, audit_logger):
    tag_runner.remove_from_all.side_effect = KeyError("edges")
    driver.select_tags(["sale"])

    with pytest.raises(KeyError):
        await driver.remove_global()

    assert driver.phase == RunPhase.AWAITING_SELECTION
    audit_logger.append.assert_not_called()

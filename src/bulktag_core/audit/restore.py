"""Re-apply the values captured in an audit record.

Restore is a forward operation: removed tags are added back with tagsAdd,
captured metafields are written back with metafieldsSet. Items are
processed one at a time and failures are reported per item.
"""
import logging
from typing import Iterable, Optional

from ..errors import InputError
from ..metafields.runner import MetafieldBatchRunner
from ..schemas.audit import AuditOperation, AuditRecord
from ..schemas.bulk_ops import BatchResult
from ..tagging.runner import TagBatchRunner


logger = logging.getLogger(__name__)


async def restore_record(
    record: AuditRecord,
    tag_runner: TagBatchRunner,
    metafield_runner: MetafieldBatchRunner,
    entry_ids: Optional[Iterable[str]] = None,
) -> list[BatchResult]:
    """Restore a record's captured values.

    Args:
        record: Record to restore
        tag_runner: Runner used for tag records
        metafield_runner: Runner used for metafield records
        entry_ids: Optional subset of item ids to restore

    Returns:
        One result per restored entry

    Raises:
        InputError: If the record's operation cannot be restored
    """
    if not record.operation.is_restorable:
        raise InputError(f"Operation '{record.operation.value}' cannot be restored")

    wanted = set(entry_ids) if entry_ids is not None else None
    results: list[BatchResult] = []

    for entry in record.value:
        if wanted is not None and entry.id not in wanted:
            continue

        if record.operation == AuditOperation.TAGS_REMOVED:
            if not entry.success or not entry.removed_tags:
                continue
            result = await tag_runner.add_tags_to_item(entry.id, entry.removed_tags)
            results.append(result.model_copy(update={"removed_tags": entry.removed_tags}))
        else:
            if not entry.success:
                logger.debug("Metafield change on %s did not apply, skipping", entry.id)
                continue
            if entry.data is None:
                logger.debug("No captured metafield for %s, skipping", entry.id)
                continue
            results.append(await metafield_runner.set_metafield(entry.data))

    logger.info(
        "Restored audit record %s: %s of %s entries succeeded",
        record.id,
        sum(1 for result in results if result.success),
        len(results),
    )
    return results

"""Audit log of completed bulk runs.

Each record stores the per-item results of one run so that captured values
can be re-applied later.
"""
import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..errors import NotFoundError, StorageError
from ..metafields.runner import MetafieldBatchRunner
from ..schemas.audit import AuditOperation, AuditRecord
from ..schemas.bulk_ops import BatchResult
from ..tagging.runner import TagBatchRunner
from .restore import restore_record


logger = logging.getLogger(__name__)


class AuditLogger:
    """Append-only store of AuditRecords."""

    def __init__(self, db_conn: sqlite3.Connection) -> None:
        """Initialize audit logger.

        Args:
            db_conn: SQLite connection with the audit schema applied
        """
        self.db_conn = db_conn

    def append(
        self,
        user_name: str,
        operation: AuditOperation,
        value: Iterable[BatchResult],
    ) -> int:
        """Persist one completed run.

        Args:
            user_name: Who ran the operation (shop email)
            operation: Kind of run
            value: Per-item results of the run

        Returns:
            record id

        Raises:
            StorageError: If the record cannot be written
        """
        operation = AuditOperation(operation)
        entries = [result.model_dump(mode="json") for result in value]
        created_at = datetime.now(timezone.utc).isoformat()

        try:
            cursor = self.db_conn.execute(
                """
                INSERT INTO audit_log (user_name, operation, value_json, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    user_name,
                    operation.value,
                    json.dumps(entries, separators=(",", ":")),
                    created_at,
                ),
            )
            self.db_conn.commit()
        except sqlite3.Error as exc:
            logger.error("Audit append failed: %s", exc)
            raise StorageError(f"Failed to append audit record: {exc}") from exc

        record_id = cursor.lastrowid
        logger.info(
            "Appended audit record %s: %s (%s entries)",
            record_id,
            operation.value,
            len(entries),
        )
        return record_id

    async def restore(
        self,
        record: AuditRecord | int,
        tag_runner: TagBatchRunner,
        metafield_runner: MetafieldBatchRunner,
        entry_ids: Optional[Iterable[str]] = None,
    ) -> list[BatchResult]:
        """Re-apply a record (or record id) through the given runners."""
        if isinstance(record, int):
            record = self.get(record)
        return await restore_record(record, tag_runner, metafield_runner, entry_ids)

    def list(self, limit: Optional[int] = None) -> list[AuditRecord]:
        """Return records newest first."""
        sql = """
            SELECT id, user_name, operation, value_json, created_at
            FROM audit_log
            ORDER BY created_at DESC, id DESC
        """
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)

        try:
            rows = self.db_conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            logger.error("Audit list failed: %s", exc)
            raise StorageError(f"Failed to load audit records: {exc}") from exc

        return [self._to_record(row) for row in rows]

    def get(self, record_id: int) -> AuditRecord:
        """Return one record.

        Raises:
            NotFoundError: If no record has this id
        """
        try:
            row = self.db_conn.execute(
                """
                SELECT id, user_name, operation, value_json, created_at
                FROM audit_log
                WHERE id=?
                """,
                (record_id,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to load audit record {record_id}: {exc}") from exc

        if row is None:
            raise NotFoundError(f"Audit record not found: {record_id}")
        return self._to_record(row)

    @staticmethod
    def _to_record(row: tuple) -> AuditRecord:
        record_id, user_name, operation, value_json, created_at = row
        return AuditRecord(
            id=record_id,
            user_name=user_name,
            operation=AuditOperation(operation),
            value=[BatchResult.model_validate(entry) for entry in json.loads(value_json)],
            time=datetime.fromisoformat(created_at),
        )

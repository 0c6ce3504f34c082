"""CSV input/output for bulk runs."""
import csv
import io
import logging
from pathlib import Path
from typing import Iterable

import aiofiles

from .errors import InputError
from .schemas.bulk_ops import BatchResult, TagRow


logger = logging.getLogger(__name__)

RESULT_COLUMNS = ["ID", "Tags", "Success", "Error"]


async def _read_text(path: str | Path) -> str:
    try:
        async with aiofiles.open(path, mode="r", encoding="utf-8-sig") as f:
            return await f.read()
    except FileNotFoundError as exc:
        raise InputError(f"CSV file not found: {path}") from exc


async def read_id_list(path: str | Path) -> list[str]:
    """Read one id per line (first column), skipping blanks and an `id` header."""
    text = await _read_text(path)
    ids: list[str] = []

    for row in csv.reader(io.StringIO(text)):
        if not row:
            continue
        value = row[0].strip()
        if not value:
            continue
        if not ids and value.lower() == "id":
            continue
        ids.append(value)

    logger.info("Loaded %s ids from %s", len(ids), path)
    return ids


async def read_tag_rows(path: str | Path) -> list[TagRow]:
    """Read `id,tags` rows; tags are comma-separated inside the cell.

    Rows without an id are dropped.

    Raises:
        InputError: If the file is missing or has no `id` column
    """
    text = await _read_text(path)
    reader = csv.DictReader(io.StringIO(text))

    fieldnames = [name.strip().lower() for name in reader.fieldnames or []]
    if "id" not in fieldnames:
        raise InputError(f"CSV file {path} must have an 'id' column")
    reader.fieldnames = fieldnames

    rows: list[TagRow] = []
    for record in reader:
        item_id = (record.get("id") or "").strip()
        if not item_id:
            continue
        tags = [tag.strip() for tag in (record.get("tags") or "").split(",")]
        rows.append(TagRow(id=item_id, tags=[tag for tag in tags if tag]))

    logger.info("Loaded %s tag rows from %s", len(rows), path)
    return rows


async def write_results_csv(path: str | Path, results: Iterable[BatchResult]) -> int:
    """Write results with ID, Tags, Success and Error columns.

    Returns:
        Number of rows written
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(RESULT_COLUMNS)

    count = 0
    for result in results:
        writer.writerow(
            [
                result.id,
                "; ".join(result.removed_tags),
                "true" if result.success else "false",
                result.error or "",
            ]
        )
        count += 1

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, mode="w", encoding="utf-8") as f:
        await f.write(buffer.getvalue())

    logger.info("Wrote %s results to %s", count, path)
    return count

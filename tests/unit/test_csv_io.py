"""Unit tests for CSV input/output."""
import pytest

from bulktag_core.csv_io import read_id_list, read_tag_rows, write_results_csv
from bulktag_core.errors import InputError
from bulktag_core.schemas.bulk_ops import BatchResult


@pytest.mark.asyncio
async def test_read_id_list(tmp_path):
    path = tmp_path / "ids.csv"
    path.write_text("id\r\ngid://shopify/Product/1\n\n  gid://shopify/Product/2  \n", encoding="utf-8")

    assert await read_id_list(path) == ["gid://shopify/Product/1", "gid://shopify/Product/2"]


@pytest.mark.asyncio
async def test_read_tag_rows(tmp_path):
    path = tmp_path / "rows.csv"
    path.write_text(
        'ID,Tags\ngid://shopify/Product/1,"sale, new ,"\n,orphan\ngid://shopify/Product/2,\n',
        encoding="utf-8",
    )

    rows = await read_tag_rows(path)

    assert [row.id for row in rows] == ["gid://shopify/Product/1", "gid://shopify/Product/2"]
    assert rows[0].tags == ["sale", "new"]
    assert rows[1].tags == []


@pytest.mark.asyncio
async def test_read_tag_rows_requires_id_column(tmp_path):
    path = tmp_path / "rows.csv"
    path.write_text("handle,tags\nshirt,sale\n", encoding="utf-8")

    with pytest.raises(InputError):
        await read_tag_rows(path)


@pytest.mark.asyncio
async def test_missing_file(tmp_path):
    with pytest.raises(InputError):
        await read_id_list(tmp_path / "nope.csv")


@pytest.mark.asyncio
async def test_write_results_csv(tmp_path):
    path = tmp_path / "out" / "results.csv"
    results = [
        BatchResult(id="gid://shopify/Product/1", success=True, removed_tags=["sale", "new"]),
        BatchResult(id="gid://shopify/Product/2", success=False, error='Tags not present: "sale"'),
    ]

    count = await write_results_csv(path, results)

    assert count == 2
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == '"ID","Tags","Success","Error"'
    assert lines[1] == '"gid://shopify/Product/1","sale; new","true",""'
    assert lines[2] == '"gid://shopify/Product/2","","false","Tags not present: ""sale"""'

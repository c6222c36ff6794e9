import io
import os
from decimal import Decimal

import pyarrow as pa
import pyarrow.parquet as pq
import pytest
from botocore.exceptions import BotoCoreError

from lakemeta.exceptions import BucketNotFound, ObjectNotFound, ParseError, StoreError
from lakemeta.models import LogicalType
from lakemeta.services import SchemaProber


@pytest.fixture
def prober(gateway, scratch_dir):
    return SchemaProber(gateway, scratch_dir=str(scratch_dir), chunk_size=4096)


class ExplodingStream:
    """Yields one chunk, then fails the way a dropped connection does."""

    def __init__(self, first_chunk):
        self.first_chunk = first_chunk
        self.reads = 0

    def read(self, size=-1):
        self.reads += 1
        if self.reads == 1:
            return self.first_chunk
        raise BotoCoreError()


def test_probe_reads_schema_and_row_count(prober, parquet_bytes, scratch_dir):
    probed = prober.probe("data", "sales.parquet")

    assert [c.name for c in probed.columns] == ["id", "amount", "region"]
    assert [c.logical_type for c in probed.columns] == [LogicalType.INT64, LogicalType.DOUBLE, LogicalType.STRING]
    assert probed.row_count == 1000
    assert probed.byte_size == len(parquet_bytes)
    assert probed.num_row_groups >= 1
    assert probed.columns[0].source_description == "int64 (INT64)"
    assert os.listdir(scratch_dir) == []


def test_probe_to_dict_uses_api_field_names(prober):
    data = prober.probe("data", "sales.parquet").to_dict()
    assert data["bucketName"] == "data"
    assert data["fileKey"] == "sales.parquet"
    assert data["rowCount"] == 1000
    assert data["schema"][2] == {
        "name": "region",
        "type": "STRING",
        "nullable": True,
        "sourceDescription": "string (BYTE_ARRAY)",
    }


def test_probe_maps_decimal_date_and_required_columns(fake_s3, prober):
    schema = pa.schema([
        pa.field("order_id", pa.int32(), nullable=False),
        pa.field("price", pa.decimal128(10, 2)),
        pa.field("ordered_on", pa.date32()),
        pa.field("tags", pa.list_(pa.string())),
    ])
    table = pa.table({
        "order_id": [1, 2],
        "price": [Decimal("1.50"), Decimal("20.00")],
        "ordered_on": pa.array([19000, 19001], type=pa.date32()),
        "tags": [["a"], []],
    }, schema=schema)
    buffer = io.BytesIO()
    pq.write_table(table, buffer)
    fake_s3.add_object("data", "orders.parquet", buffer.getvalue())

    probed = prober.probe("data", "orders.parquet")
    by_name = {c.name: c for c in probed.columns}

    assert by_name["order_id"].logical_type == LogicalType.INT32
    assert by_name["order_id"].nullable is False
    assert by_name["price"].logical_type == LogicalType.DECIMAL
    assert (by_name["price"].precision, by_name["price"].scale) == (10, 2)
    assert by_name["ordered_on"].logical_type == LogicalType.DATE
    assert by_name["tags"].logical_type == LogicalType.LIST
    assert probed.row_count == 2


def test_zero_row_file_is_valid(fake_s3, prober):
    table = pa.table({"id": pa.array([], type=pa.int64())})
    buffer = io.BytesIO()
    pq.write_table(table, buffer)
    fake_s3.add_object("data", "empty.parquet", buffer.getvalue())

    probed = prober.probe("data", "empty.parquet")
    assert probed.row_count == 0
    assert [c.name for c in probed.columns] == ["id"]


def test_garbage_payload_raises_parse_error_and_cleans_up(fake_s3, prober, scratch_dir):
    fake_s3.add_object("data", "notes.parquet", b"this is plainly not a parquet file")
    with pytest.raises(ParseError):
        prober.probe("data", "notes.parquet")
    assert os.listdir(scratch_dir) == []


def test_truncated_payload_raises_parse_error(fake_s3, prober, parquet_bytes, scratch_dir):
    fake_s3.add_object("data", "cut.parquet", parquet_bytes[:-10])
    with pytest.raises(ParseError):
        prober.probe("data", "cut.parquet")
    assert os.listdir(scratch_dir) == []


def test_tiny_payload_raises_parse_error(fake_s3, prober):
    fake_s3.add_object("data", "tiny.parquet", b"PAR1")
    with pytest.raises(ParseError, match="too small"):
        prober.probe("data", "tiny.parquet")


def test_corrupt_footer_length_raises_parse_error(fake_s3, prober, parquet_bytes):
    corrupted = parquet_bytes[:-8] + (10 ** 8).to_bytes(4, "little") + b"PAR1"
    fake_s3.add_object("data", "corrupt.parquet", corrupted)
    with pytest.raises(ParseError, match="footer length"):
        prober.probe("data", "corrupt.parquet")


def test_stream_failure_becomes_store_error(prober, parquet_bytes, scratch_dir):
    stream = ExplodingStream(parquet_bytes[:100])
    with pytest.raises(StoreError):
        prober.probe_stream(stream, "data", "sales.parquet")
    assert os.listdir(scratch_dir) == []


def test_missing_object_and_bucket(prober):
    with pytest.raises(ObjectNotFound):
        prober.probe("data", "missing.parquet")
    with pytest.raises(BucketNotFound):
        prober.probe("missing-bucket", "sales.parquet")

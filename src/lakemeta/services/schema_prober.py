# src/lakemeta/services/schema_prober.py
import logging
import os
import struct

import pyarrow as pa
import pyarrow.parquet as pq
from botocore.exceptions import BotoCoreError

from ..exceptions import ParseError, StoreError
from ..models import ColumnSchema, LogicalType, ProbedFile
from ..utils.scratch import scratch_file

logger = logging.getLogger(__name__)

PARQUET_MAGIC = b"PAR1"
# 4-byte footer length followed by the trailing magic
_TAIL_SIZE = 8


def _logical_type_of(arrow_type):
    """Maps an arrow type to (LogicalType, precision, scale)."""
    if pa.types.is_dictionary(arrow_type):
        return _logical_type_of(arrow_type.value_type)
    if pa.types.is_string(arrow_type) or pa.types.is_large_string(arrow_type):
        return LogicalType.STRING, None, None
    if pa.types.is_boolean(arrow_type):
        return LogicalType.BOOLEAN, None, None
    if pa.types.is_int8(arrow_type):
        return LogicalType.INT8, None, None
    if pa.types.is_int16(arrow_type) or pa.types.is_uint8(arrow_type):
        return LogicalType.INT16, None, None
    if pa.types.is_int32(arrow_type) or pa.types.is_uint16(arrow_type):
        return LogicalType.INT32, None, None
    if pa.types.is_integer(arrow_type):
        # int64, uint32, uint64 (uint64 may overflow a signed long; noted in the description)
        return LogicalType.INT64, None, None
    if pa.types.is_float16(arrow_type) or pa.types.is_float32(arrow_type):
        return LogicalType.FLOAT, None, None
    if pa.types.is_float64(arrow_type):
        return LogicalType.DOUBLE, None, None
    if pa.types.is_decimal(arrow_type):
        return LogicalType.DECIMAL, arrow_type.precision, arrow_type.scale
    if pa.types.is_date(arrow_type):
        return LogicalType.DATE, None, None
    if pa.types.is_timestamp(arrow_type):
        return LogicalType.TIMESTAMP, None, None
    if pa.types.is_binary(arrow_type) or pa.types.is_large_binary(arrow_type) or pa.types.is_fixed_size_binary(arrow_type):
        return LogicalType.BINARY, None, None
    if pa.types.is_list(arrow_type) or pa.types.is_large_list(arrow_type):
        return LogicalType.LIST, None, None
    if pa.types.is_struct(arrow_type):
        return LogicalType.STRUCT, None, None
    if pa.types.is_map(arrow_type):
        return LogicalType.MAP, None, None
    if pa.types.is_null(arrow_type):
        return LogicalType.NULL, None, None
    return LogicalType.UNKNOWN, None, None


def _check_envelope(local_path):
    """Validates the leading/trailing magic and footer length before handing the file to pyarrow."""
    file_size = os.path.getsize(local_path)
    if file_size < len(PARQUET_MAGIC) + _TAIL_SIZE:
        raise ParseError(f"Payload too small to be a Parquet file ({file_size} bytes)")

    with open(local_path, 'rb') as f:
        head = f.read(len(PARQUET_MAGIC))
        f.seek(-_TAIL_SIZE, os.SEEK_END)
        tail = f.read(_TAIL_SIZE)

    if head != PARQUET_MAGIC:
        raise ParseError("Missing Parquet magic header (PAR1)")
    if tail[4:] != PARQUET_MAGIC:
        raise ParseError("Missing Parquet footer magic; file is truncated or not Parquet")
    footer_length = struct.unpack('<i', tail[:4])[0]
    if footer_length <= 0 or footer_length + len(PARQUET_MAGIC) + _TAIL_SIZE > file_size:
        raise ParseError(f"Invalid Parquet footer length {footer_length} for a {file_size}-byte file")


class SchemaProber:
    """
    Extracts the logical schema and row count of a Parquet object.

    The payload is spooled to a scratch file first: the footer sits at the
    end of the file and may be larger than what we want to hold in memory.
    """

    def __init__(self, gateway, scratch_dir=None, chunk_size=1024 * 1024):
        self.gateway = gateway
        self.scratch_dir = scratch_dir
        self.chunk_size = chunk_size

    def probe(self, bucket, key):
        """
        Fetches s3://bucket/key and probes it.

        Returns:
            ProbedFile

        Raises:
            ObjectNotFound / BucketNotFound: The object or bucket is missing.
            ParseError: The payload is not a readable Parquet file.
            StoreError: Any other store failure, including mid-stream errors.
        """
        logger.info("Probing Parquet schema for s3://%s/%s", bucket, key)
        body = self.gateway.get(bucket, key)
        try:
            return self.probe_stream(body, bucket, key)
        finally:
            close = getattr(body, 'close', None)
            if close is not None:
                close()

    def probe_stream(self, stream, bucket="", key=""):
        with scratch_file(directory=self.scratch_dir) as local_path:
            byte_size = self._spool(stream, local_path, bucket, key)
            probed = self._parse(local_path, bucket, key, byte_size)
        logger.info("Probed s3://%s/%s: %d columns, %d rows, %d bytes",
                    bucket, key, len(probed.columns), probed.row_count, probed.byte_size)
        return probed

    def _spool(self, stream, local_path, bucket, key):
        written = 0
        try:
            with open(local_path, 'wb') as out:
                while True:
                    chunk = stream.read(self.chunk_size)
                    if not chunk:
                        break
                    out.write(chunk)
                    written += len(chunk)
        except BotoCoreError as e:
            raise StoreError(f"Failed while downloading s3://{bucket}/{key}: {e}", cause=e,
                             details={"bucket": bucket, "key": key}) from e
        logger.debug("Spooled %d bytes of s3://%s/%s to %s", written, bucket, key, local_path)
        return written

    def _parse(self, local_path, bucket, key, byte_size):
        _check_envelope(local_path)
        try:
            with open(local_path, 'rb') as fh:
                parquet_file = pq.ParquetFile(fh)
                metadata = parquet_file.metadata
                arrow_schema = parquet_file.schema_arrow
                physical_types = {
                    parquet_file.schema.column(i).path: parquet_file.schema.column(i).physical_type
                    for i in range(len(parquet_file.schema))
                }
                row_count = metadata.num_rows
                num_row_groups = metadata.num_row_groups
                created_by = metadata.created_by
        except (pa.ArrowException, OSError, ValueError) as e:
            raise ParseError(f"Error processing parquet file s3://{bucket}/{key}: {e}",
                             details={"bucket": bucket, "key": key}) from e

        columns = []
        for arrow_field in arrow_schema:
            logical_type, precision, scale = _logical_type_of(arrow_field.type)
            description = str(arrow_field.type)
            physical = physical_types.get(arrow_field.name)
            if physical:
                description = f"{description} ({physical})"
            columns.append(ColumnSchema(
                name=arrow_field.name,
                logical_type=logical_type,
                # arrow reports OPTIONAL columns as nullable; default to True otherwise unspecified
                nullable=bool(getattr(arrow_field, 'nullable', True)),
                source_description=description,
                precision=precision,
                scale=scale,
            ))

        return ProbedFile(
            bucket=bucket,
            key=key,
            byte_size=byte_size,
            row_count=row_count,
            columns=columns,
            num_row_groups=num_row_groups,
            created_by=created_by,
        )

# src/lakemeta/services/indexer.py
import logging
import time

from ..models import FileRef, TableFormat, TableMetadata, TableStatistics
from ..utils.formatters import format_bytes
from ..utils.s3_gateway import build_s3_uri
from . import _delta_log as delta_log
from . import _iceberg_metadata as iceberg_meta

logger = logging.getLogger(__name__)


class TableDirectoryIndexer:
    """
    Best-effort reconstruction of a table summary from a directory listing.

    No log replay happens here: listed data files are not checked against
    any log entry, the row count is unknown (reported as 0), and an empty or
    missing log yields version 0 with no files rather than an error.
    """

    def __init__(self, gateway, clock=None):
        self.gateway = gateway
        self.clock = clock or (lambda: int(time.time() * 1000))

    def summarize(self, bucket, table_prefix, table_format):
        """
        Args:
            bucket (str): Bucket holding the table.
            table_prefix (str): Table root, e.g. `sales_delta`.
            table_format (TableFormat | str): DELTA or ICEBERG.

        Returns:
            TableMetadata
        """
        table_format = TableFormat(str(getattr(table_format, 'value', table_format)).upper())
        table_prefix = table_prefix.strip('/')
        logger.info("Summarizing %s table at s3://%s/%s", table_format.value, bucket, table_prefix)

        # --- 1. Everything under the table root ---
        all_objects = self.gateway.list(bucket, f"{table_prefix}/", paginate=True)

        if table_format == TableFormat.DELTA:
            return self._summarize_delta(bucket, table_prefix, all_objects)
        return self._summarize_iceberg(bucket, table_prefix, all_objects)

    def _summarize_delta(self, bucket, table_prefix, all_objects):
        log_prefix = delta_log.log_prefix(table_prefix)
        log_objects = self.gateway.list(bucket, log_prefix, paginate=True)
        commit_count = sum(1 for obj in log_objects if delta_log.commit_version(obj.key) is not None)
        version = max(commit_count - 1, 0)
        if not commit_count:
            logger.info("No Delta commits under s3://%s/%s; reporting version 0", bucket, log_prefix)

        files = [
            self._file_ref(obj) for obj in all_objects
            if not obj.key.startswith(log_prefix)
        ]
        log_size = sum(obj.size or 0 for obj in log_objects)
        return TableMetadata(
            table_name=table_prefix,
            location_uri=build_s3_uri(bucket, table_prefix),
            format=TableFormat.DELTA,
            schema={},
            current_version=version,
            files=files,
            statistics=self._statistics(files),
            properties=dict(delta_log.DEFAULT_CONFIGURATION),
            timestamp_ms=self.clock(),
            extras={
                "protocol": dict(delta_log.PROTOCOL),
                "metadataLog": {
                    "path": build_s3_uri(bucket, log_prefix),
                    "version": version,
                    "size": log_size,
                    "sizeHuman": format_bytes(log_size),
                },
            },
        )

    def _summarize_iceberg(self, bucket, table_prefix, all_objects):
        meta_prefix = iceberg_meta.metadata_prefix(table_prefix)
        metadata_objects = self.gateway.list(bucket, meta_prefix, paginate=True)

        # Newest snapshot by sequence, from file names only
        snapshots = []
        for obj in metadata_objects:
            snapshot_id = iceberg_meta.snapshot_id_of(obj.key)
            if snapshot_id is not None:
                snapshots.append((iceberg_meta.sequence_of(obj.key), snapshot_id, obj))
        snapshots.sort(key=lambda s: s[0])
        snapshot_overview = [{
            "snapshotId": snapshot_id,
            "sequenceNumber": sequence,
            "timestamp": obj.last_modified_ms,
            "manifestList": build_s3_uri(bucket, obj.key),
        } for sequence, snapshot_id, obj in snapshots]
        current_version = snapshots[-1][0] if snapshots else 0

        files = [
            self._file_ref(obj) for obj in all_objects
            if not obj.key.startswith(meta_prefix)
        ]
        return TableMetadata(
            table_name=table_prefix,
            location_uri=build_s3_uri(bucket, table_prefix),
            format=TableFormat.ICEBERG,
            # No manifest parsing, so no schema
            schema={},
            current_version=current_version,
            files=files,
            statistics=self._statistics(files),
            properties={'write.format.default': 'PARQUET'},
            timestamp_ms=self.clock(),
            extras={
                "currentSnapshot": snapshot_overview[-1] if snapshot_overview else None,
                "snapshots": snapshot_overview,
                "partitionSpec": [],
                "manifestFiles": [{
                    "path": build_s3_uri(bucket, obj.key),
                    "length": obj.size or 0,
                    "partitionSpecId": 0,
                } for obj in metadata_objects if not iceberg_meta.is_claim(obj.key)],
            },
        )

    @staticmethod
    def _file_ref(obj):
        return FileRef(
            path=obj.key,
            size_bytes=obj.size or 0,
            modified_at_ms=obj.last_modified_ms,
            row_count=None,
        )

    @staticmethod
    def _statistics(files):
        return TableStatistics(
            file_count=len(files),
            total_size=sum(f.size_bytes for f in files),
            num_records=0,
        )

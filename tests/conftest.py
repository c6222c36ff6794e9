import hashlib
import io
from datetime import datetime, timezone

import pyarrow as pa
import pyarrow.parquet as pq
import pytest
from botocore.exceptions import ClientError

from lakemeta import create_app
from lakemeta.config import TestConfig
from lakemeta.models import ColumnSchema, LogicalType, ProbedFile
from lakemeta.utils.s3_gateway import S3Gateway


def _client_error(code, operation, message=None):
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


class FakeS3Client:
    """
    In-memory stand-in for the boto3 S3 client calls lakemeta makes.

    Raises the same botocore ClientError codes as S3/MinIO so the gateway's
    error translation is exercised for real.
    """

    def __init__(self, page_size=1000):
        self.buckets = {}
        self.page_size = page_size
        self.fail_puts = set()
        self.put_calls = []

    def create_bucket(self, Bucket):
        self.buckets.setdefault(Bucket, {})

    def add_object(self, bucket, key, data, last_modified=None):
        self.buckets.setdefault(bucket, {})[key] = {
            "Body": data,
            "ETag": f'"{hashlib.md5(data).hexdigest()}"',
            "LastModified": last_modified or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            "ContentType": "application/octet-stream",
        }

    def _bucket(self, bucket, operation):
        if bucket not in self.buckets:
            raise _client_error("NoSuchBucket", operation, "The specified bucket does not exist")
        return self.buckets[bucket]

    def get_object(self, Bucket, Key):
        objects = self._bucket(Bucket, "GetObject")
        if Key not in objects:
            raise _client_error("NoSuchKey", "GetObject", "The specified key does not exist.")
        obj = objects[Key]
        return {"Body": io.BytesIO(obj["Body"]), "ContentLength": len(obj["Body"]), "ContentType": obj["ContentType"]}

    def head_object(self, Bucket, Key):
        objects = self._bucket(Bucket, "HeadObject")
        if Key not in objects:
            raise _client_error("404", "HeadObject", "Not Found")
        obj = objects[Key]
        return {"ContentLength": len(obj["Body"]), "LastModified": obj["LastModified"], "ETag": obj["ETag"]}

    def put_object(self, Bucket, Key, Body, ContentType=None, IfNoneMatch=None):
        objects = self._bucket(Bucket, "PutObject")
        self.put_calls.append({"Key": Key, "ContentType": ContentType, "IfNoneMatch": IfNoneMatch})
        if Key in self.fail_puts:
            raise _client_error("InternalError", "PutObject", "We encountered an internal error.")
        if IfNoneMatch == "*" and Key in objects:
            raise _client_error("PreconditionFailed", "PutObject", "At least one of the pre-conditions you specified did not hold")
        etag = f'"{hashlib.md5(bytes(Body)).hexdigest()}"'
        objects[Key] = {
            "Body": bytes(Body),
            "ETag": etag,
            "LastModified": datetime.now(timezone.utc),
            "ContentType": ContentType,
        }
        return {"ETag": etag}

    def list_objects_v2(self, Bucket, Prefix="", ContinuationToken=None):
        objects = self._bucket(Bucket, "ListObjectsV2")
        keys = sorted(k for k in objects if k.startswith(Prefix))
        start = int(ContinuationToken or 0)
        page = keys[start:start + self.page_size]
        response = {"KeyCount": len(page), "IsTruncated": start + self.page_size < len(keys)}
        if page:
            response["Contents"] = [
                {"Key": k, "Size": len(objects[k]["Body"]), "LastModified": objects[k]["LastModified"]}
                for k in page
            ]
        if response["IsTruncated"]:
            response["NextContinuationToken"] = str(start + self.page_size)
        return response

    def list_buckets(self):
        return {"Buckets": [{"Name": name} for name in sorted(self.buckets)]}

    def read(self, bucket, key):
        return self.buckets[bucket][key]["Body"]


def make_parquet_bytes(num_rows=1000):
    table = pa.table({
        "id": pa.array(range(num_rows), type=pa.int64()),
        "amount": pa.array([i * 1.5 for i in range(num_rows)], type=pa.float64()),
        "region": pa.array([["north", "south", "east", "west"][i % 4] for i in range(num_rows)], type=pa.string()),
    })
    buffer = io.BytesIO()
    pq.write_table(table, buffer)
    return buffer.getvalue()


@pytest.fixture
def parquet_bytes():
    return make_parquet_bytes()


@pytest.fixture
def fake_s3(parquet_bytes):
    client = FakeS3Client()
    client.create_bucket("data")
    client.add_object("data", "sales.parquet", parquet_bytes)
    return client


@pytest.fixture
def gateway(fake_s3):
    return S3Gateway(fake_s3)


@pytest.fixture
def sales_probe():
    return ProbedFile(
        bucket="data",
        key="sales.parquet",
        byte_size=50000,
        row_count=1000,
        columns=[
            ColumnSchema("id", LogicalType.INT64, source_description="int64 (INT64)"),
            ColumnSchema("amount", LogicalType.DOUBLE, source_description="double (DOUBLE)"),
            ColumnSchema("region", LogicalType.STRING, source_description="string (BYTE_ARRAY)"),
        ],
    )


@pytest.fixture
def scratch_dir(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def app(fake_s3, scratch_dir):
    config_class = type("ScratchTestConfig", (TestConfig,), {"SCRATCH_DIR": str(scratch_dir)})
    return create_app(config_class, s3_client=fake_s3)


@pytest.fixture
def client(app):
    return app.test_client()

import pytest

from lakemeta.exceptions import BucketNotFound, ConcurrentModification, ObjectNotFound, StoreError
from lakemeta.utils.s3_gateway import S3Gateway, build_s3_uri


def test_get_missing_key_raises_object_not_found(gateway):
    with pytest.raises(ObjectNotFound) as excinfo:
        gateway.get("data", "missing.parquet")
    assert excinfo.value.details == {"bucket": "data", "key": "missing.parquet"}


def test_get_missing_bucket_raises_bucket_not_found(gateway):
    with pytest.raises(BucketNotFound):
        gateway.get("nope", "sales.parquet")


def test_head_returns_size_and_timestamp(gateway, parquet_bytes):
    info = gateway.head("data", "sales.parquet")
    assert info.size == len(parquet_bytes)
    assert info.last_modified_ms == 1714564800000


def test_conditional_put_refuses_existing_key(gateway, fake_s3):
    gateway.put("data", "t/_delta_log/00000000000000000000.json", b'{"writer":"a"}', if_none_match=True)
    with pytest.raises(ConcurrentModification):
        gateway.put("data", "t/_delta_log/00000000000000000000.json", b'{"writer":"b"}', if_none_match=True)
    assert fake_s3.put_calls[-1]["IfNoneMatch"] == "*"
    assert fake_s3.read("data", "t/_delta_log/00000000000000000000.json") == b'{"writer":"a"}'


def test_replayed_conditional_put_of_same_body_succeeds(gateway, fake_s3):
    # The first attempt landed but its response was lost; the retry sees 412
    key = "t/metadata/00000.lock"
    first = gateway.put("data", key, b'{"tableUuid":"x"}', if_none_match=True)
    replay = gateway.put("data", key, b'{"tableUuid":"x"}', if_none_match=True)

    assert replay["etag"] == first["etag"]
    assert len(fake_s3.put_calls) == 2


def test_conditional_put_disabled_overwrites(fake_s3):
    gateway = S3Gateway(fake_s3, conditional_writes=False)
    gateway.put("data", "k.json", b"1", if_none_match=True)
    gateway.put("data", "k.json", b"2", if_none_match=True)
    assert fake_s3.read("data", "k.json") == b"2"
    assert fake_s3.put_calls[-1]["IfNoneMatch"] is None


def test_other_client_errors_become_store_error(gateway, fake_s3):
    fake_s3.fail_puts.add("broken.json")
    with pytest.raises(StoreError) as excinfo:
        gateway.put("data", "broken.json", b"{}")
    assert excinfo.value.details["code"] == "InternalError"
    assert excinfo.value.cause is not None


def test_list_single_page_versus_paginated(fake_s3):
    fake_s3.page_size = 2
    for i in range(5):
        fake_s3.add_object("data", f"tbl/part-{i}.parquet", b"x" * i)
    gateway = S3Gateway(fake_s3)

    first_page = gateway.list("data", "tbl/")
    everything = gateway.list("data", "tbl/", paginate=True)

    assert [o.key for o in first_page] == ["tbl/part-0.parquet", "tbl/part-1.parquet"]
    assert [o.key for o in everything] == [f"tbl/part-{i}.parquet" for i in range(5)]
    assert [o.size for o in everything] == [0, 1, 2, 3, 4]


def test_list_empty_prefix_returns_empty_list(gateway):
    assert gateway.list("data", "nothing-here/") == []


def test_build_s3_uri():
    assert build_s3_uri("data", "sales_delta/") == "s3://data/sales_delta"
    assert build_s3_uri("data") == "s3://data"

# src/lakemeta/utils/s3_gateway.py
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import BucketNotFound, ConcurrentModification, ObjectNotFound, StoreError

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = {'404', 'NoSuchKey', 'NotFound'}
_MISSING_BUCKET_CODES = {'NoSuchBucket'}
# 412 for If-None-Match on an existing key, 409 when another conditional write is in flight
_PRECONDITION_CODES = {'412', 'PreconditionFailed', 'ConditionalRequestConflict'}


def _content_etag(body):
    """ETag S3/MinIO assign to a single-part upload: the quoted MD5 of the body."""
    return f'"{hashlib.md5(body).hexdigest()}"'


def build_s3_uri(bucket, key=""):
    """Builds an s3:// URI, tolerating leading/trailing slashes on the key."""
    key = key.strip('/')
    return f"s3://{bucket}/{key}" if key else f"s3://{bucket}"


def create_s3_client(config):
    """
    Creates the boto3 S3 client for the configured MinIO/S3 endpoint.

    Args:
        config (Mapping): Flask app config (or any mapping with the same keys).

    Returns:
        botocore S3 client. Path-style addressing is forced since MinIO
        does not serve virtual-host buckets by default.
    """
    boto_config = BotoConfig(
        s3={'addressing_style': 'path'},
        retries={'max_attempts': config.get('S3_MAX_ATTEMPTS', 3), 'mode': 'standard'},
        connect_timeout=config.get('S3_CONNECT_TIMEOUT', 10),
        read_timeout=config.get('S3_READ_TIMEOUT', 60),
    )
    endpoint_url = config.get('MINIO_ENDPOINT') or None
    logger.info("Configuring S3 client (endpoint=%s, region=%s)", endpoint_url or "<aws default>", config.get('AWS_REGION'))
    if not config.get('MINIO_ACCESS_KEY') or not config.get('MINIO_SECRET_KEY'):
        # boto3 falls back to its own credential chain (env, profile, IAM role)
        logger.warning("MinIO/AWS access key or secret key is missing from configuration.")

    return boto3.client(
        's3',
        endpoint_url=endpoint_url,
        use_ssl=config.get('MINIO_USE_SSL', False) if endpoint_url else True,
        aws_access_key_id=config.get('MINIO_ACCESS_KEY'),
        aws_secret_access_key=config.get('MINIO_SECRET_KEY'),
        region_name=config.get('AWS_REGION', 'us-east-1'),
        config=boto_config,
    )


@dataclass
class ObjectInfo:
    key: str
    size: int
    last_modified: Optional[datetime] = None

    @property
    def last_modified_ms(self):
        if self.last_modified is None:
            return None
        return int(self.last_modified.timestamp() * 1000)


class S3Gateway:
    """
    Thin wrapper over an injected boto3 S3 client.

    Translates botocore failures into the lakemeta error taxonomy so callers
    can tell a missing key or bucket apart from any other store failure. It
    holds no state besides the client itself.
    """

    def __init__(self, s3_client, conditional_writes=True):
        self.client = s3_client
        self.conditional_writes = conditional_writes

    def get(self, bucket, key):
        """Returns the streaming body of s3://bucket/key."""
        logger.debug("GET s3://%s/%s", bucket, key)
        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, bucket, key) from e
        return response['Body']

    def head(self, bucket, key):
        """Returns ObjectInfo for a single key."""
        try:
            response = self.client.head_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, bucket, key) from e
        return ObjectInfo(key=key, size=response.get('ContentLength', 0), last_modified=response.get('LastModified'))

    def put(self, bucket, key, body, content_type='application/json', if_none_match=False):
        """
        Writes one object.

        Args:
            if_none_match (bool): Refuse to overwrite an existing key. Only
                honoured when the gateway was built with conditional writes
                enabled; the store must support `If-None-Match: *`.

        Raises:
            ConcurrentModification: The key already exists (conditional write)
                and holds different content.

        botocore's standard retry mode replays a PUT whose response was lost.
        The replay of a conditional PUT then gets 412 for our own object, so a
        precondition failure is checked against the stored ETag first: when
        it equals the MD5 of `body` the earlier attempt landed and the write
        counts as done.
        """
        put_kwargs = {'Bucket': bucket, 'Key': key, 'Body': body, 'ContentType': content_type}
        if if_none_match and self.conditional_writes:
            put_kwargs['IfNoneMatch'] = '*'
        logger.debug("PUT s3://%s/%s (%d bytes, conditional=%s)", bucket, key, len(body), 'IfNoneMatch' in put_kwargs)
        try:
            response = self.client.put_object(**put_kwargs)
        except ClientError as e:
            if self._error_code(e) in _PRECONDITION_CODES:
                existing_etag = self._stored_etag(bucket, key)
                if existing_etag is not None and existing_etag == _content_etag(body):
                    logger.info("Conditional PUT of s3://%s/%s already holds this content; earlier attempt landed", bucket, key)
                    return {"bucket": bucket, "key": key, "etag": existing_etag}
                raise ConcurrentModification(
                    f"Object already exists: s3://{bucket}/{key}",
                    details={"bucket": bucket, "key": key},
                ) from e
            raise self._translate(e, bucket, key) from e
        except BotoCoreError as e:
            raise self._translate(e, bucket, key) from e
        return {"bucket": bucket, "key": key, "etag": response.get('ETag')}

    def list(self, bucket, prefix="", paginate=False):
        """
        Lists objects under a prefix, in key order.

        Only the store's first page is returned unless `paginate` is set, in
        which case continuation tokens are followed until the listing ends.
        """
        objects = []
        continuation_token = None
        while True:
            list_kwargs = {'Bucket': bucket, 'Prefix': prefix or ''}
            if continuation_token: list_kwargs['ContinuationToken'] = continuation_token
            try:
                list_response = self.client.list_objects_v2(**list_kwargs)
            except (ClientError, BotoCoreError) as e:
                raise self._translate(e, bucket, prefix) from e

            for obj in list_response.get('Contents', []):
                objects.append(ObjectInfo(key=obj['Key'], size=obj.get('Size', 0), last_modified=obj.get('LastModified')))

            if paginate and list_response.get('IsTruncated'):
                continuation_token = list_response.get('NextContinuationToken')
            else:
                if list_response.get('IsTruncated'):
                    logger.debug("Listing of s3://%s/%s truncated at one page", bucket, prefix)
                break # No more pages (or single-page listing)

        logger.debug("Listed %d objects under s3://%s/%s", len(objects), bucket, prefix)
        return objects

    def list_buckets(self):
        try:
            response = self.client.list_buckets()
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e) from e
        return [b['Name'] for b in response.get('Buckets', [])]

    def _stored_etag(self, bucket, key):
        try:
            response = self.client.head_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.warning("Could not read ETag of s3://%s/%s: %s", bucket, key, e)
            return None
        return response.get('ETag')

    @staticmethod
    def _error_code(error):
        return str(error.response.get('Error', {}).get('Code', ''))

    def _translate(self, error, bucket=None, key=None):
        if isinstance(error, ClientError):
            code = self._error_code(error)
            message = error.response.get('Error', {}).get('Message', str(error))
            if code in _MISSING_BUCKET_CODES:
                return BucketNotFound(f"Bucket not found: {bucket}", details={"bucket": bucket})
            if code in _MISSING_KEY_CODES:
                return ObjectNotFound(f"File not found: s3://{bucket}/{key}", details={"bucket": bucket, "key": key})
            logger.error("S3 ClientError (%s) for s3://%s/%s: %s", code, bucket, key or '', message)
            return StoreError(f"S3 ClientError ({code}): {message}", cause=error, details={"bucket": bucket, "key": key, "code": code})
        logger.error("S3 client failure for s3://%s/%s: %s", bucket, key or '', error)
        return StoreError(f"Object store unavailable: {error}", cause=error, details={"bucket": bucket, "key": key})

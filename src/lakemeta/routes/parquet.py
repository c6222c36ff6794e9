# src/lakemeta/routes/parquet.py
import logging

from flask import Blueprint, jsonify

from ..exceptions import BucketNotFound, ObjectNotFound
from ..utils.serializers import convert_bytes
from ._helpers import get_services, require_params

logger = logging.getLogger(__name__)

parquet_bp = Blueprint('parquet', __name__)


def _probe():
    bucket_name, file_key = require_params('bucketName', 'fileKey')
    probed = get_services().prober.probe(bucket_name, file_key)
    return convert_bytes(probed.to_dict())


@parquet_bp.route('/metadata/parquet/bucket', methods=['GET'])
def parquet_metadata():
    """Schema and row count of a Parquet object, no synthesis."""
    return jsonify(_probe())


@parquet_bp.route('/view-parquet-metadata', methods=['GET'])
def view_parquet_metadata():
    """
    Same as /metadata/parquet/bucket, with not-found messages that tell a
    missing file apart from a missing bucket.
    """
    try:
        return jsonify(_probe())
    except ObjectNotFound as e:
        logger.info("Parquet file not found: %s", e.details)
        raise ObjectNotFound("Parquet file not found in the specified bucket", details=e.details) from e
    except BucketNotFound as e:
        logger.info("Bucket not found: %s", e.details)
        raise BucketNotFound("Specified bucket not found", details=e.details) from e

# src/lakemeta/routes/storage.py
from flask import Blueprint, jsonify, request

from ..services._delta_log import DELTA_LOG_DIR
from ._helpers import get_services, require_params

storage_bp = Blueprint('storage', __name__)

PARQUET_EXTENSION = '.parquet'
# '.dlt' is what the first version of the UI uploaded as "delta files"
LEGACY_DELTA_EXTENSION = '.dlt'


def _is_delta_log_file(key):
    return key.endswith(LEGACY_DELTA_EXTENSION) or (f"{DELTA_LOG_DIR}/" in key and key.endswith('.json'))


def _list_objects():
    bucket_name = require_params('bucketName')
    prefix = request.args.get('prefix', '')
    return get_services().gateway.list(bucket_name, prefix)


@storage_bp.route('/list-files', methods=['GET'])
def list_files():
    """Keys under a prefix (first page of the listing)."""
    return jsonify([obj.key for obj in _list_objects()])


@storage_bp.route('/list-parquet-files', methods=['GET'])
def list_parquet_files():
    objects = _list_objects()
    return jsonify([
        {"key": obj.key, "size": obj.size}
        for obj in objects if obj.key.lower().endswith(PARQUET_EXTENSION)
    ])


@storage_bp.route('/list-delta-files', methods=['GET'])
def list_delta_files():
    objects = _list_objects()
    return jsonify([
        {"key": obj.key, "size": obj.size}
        for obj in objects if _is_delta_log_file(obj.key)
    ])

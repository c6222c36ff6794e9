# src/lakemeta/routes/main.py
import logging

from flask import Blueprint, jsonify

from ..exceptions import StoreError
from ._helpers import get_services

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)


@main_bp.route('/', methods=['GET'])
def hello():
    """Provides basic API information."""
    return jsonify({
        "message": "Backend is working!",
        "endpoints": {
            "list_files": "/list-files?bucketName=<bucket>&prefix=<prefix>",
            "list_parquet_files": "/list-parquet-files?bucketName=<bucket>&prefix=<prefix>",
            "list_delta_files": "/list-delta-files?bucketName=<bucket>&prefix=<prefix>",
            "parquet_metadata": "/view-parquet-metadata?bucketName=<bucket>&fileKey=<key.parquet>",
            "convert_to_delta": "/convert-to-delta?bucketName=<bucket>&fileKey=<key.parquet>",
            "convert_to_iceberg": "/convert-to-iceberg?bucketName=<bucket>&fileKey=<key.parquet>",
            "delta_metadata": "/delta-metadata?bucketName=<bucket>&tableName=<table>",
            "iceberg_metadata": "/iceberg-metadata?bucketName=<bucket>&tableName=<table>",
        }
    })


@main_bp.route('/health', methods=['GET'])
def health():
    """Reports whether the object store answers."""
    try:
        buckets = get_services().gateway.list_buckets()
    except StoreError as e:
        logger.warning("Health check failed: %s", e.message)
        return jsonify({"status": "unhealthy", "error": e.message}), 503
    return jsonify({"status": "healthy", "bucketCount": len(buckets)})

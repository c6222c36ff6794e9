# src/lakemeta/routes/tables.py
from flask import Blueprint, jsonify

from ..models import TableFormat
from ..utils.serializers import convert_bytes
from ._helpers import get_services, require_params

tables_bp = Blueprint('tables', __name__)


def _summarize(table_format):
    bucket_name, table_name = require_params('bucketName', 'tableName')
    summary = get_services().indexer.summarize(bucket_name, table_name, table_format)
    return jsonify(convert_bytes(summary.to_dict()))


@tables_bp.route('/delta-metadata', methods=['GET'])
def delta_metadata():
    return _summarize(TableFormat.DELTA)


@tables_bp.route('/iceberg-metadata', methods=['GET'])
def iceberg_metadata():
    return _summarize(TableFormat.ICEBERG)

# src/lakemeta/routes/conversion.py
import logging
import time

from flask import Blueprint, jsonify

from ..models import TableFormat
from ..utils.serializers import convert_bytes
from ._helpers import get_services, require_params

logger = logging.getLogger(__name__)

conversion_bp = Blueprint('conversion', __name__)


def _convert(table_format):
    bucket_name, file_key = require_params('bucketName', 'fileKey')
    logger.info("--- Received %s conversion request for s3://%s/%s ---", table_format.value, bucket_name, file_key)
    request_start_time = time.time()

    services = get_services()
    probed = services.prober.probe(bucket_name, file_key)
    result = services.synthesizer.synthesize(probed, table_format)

    logger.info("--- %s conversion successful (s3://%s/%s) - Total Time: %.2f seconds ---",
                table_format.value, bucket_name, file_key, time.time() - request_start_time)
    return jsonify(convert_bytes(result.summary.to_dict()))


@conversion_bp.route('/convert-to-delta', methods=['GET'])
def convert_to_delta():
    """Writes a Delta log next to the Parquet file and returns the table description."""
    return _convert(TableFormat.DELTA)


@conversion_bp.route('/convert-to-iceberg', methods=['GET'])
def convert_to_iceberg():
    """Writes Iceberg metadata next to the Parquet file and returns the table description."""
    return _convert(TableFormat.ICEBERG)

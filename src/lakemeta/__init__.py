# src/lakemeta/__init__.py
import logging
from dataclasses import dataclass

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .config import Config
from .exceptions import LakeMetaError
from .logging_setup import configure_logging
from .routes import BLUEPRINTS
from .routes._helpers import EXTENSION_KEY
from .services import SchemaProber, TableDirectoryIndexer, TableMetadataSynthesizer
from .utils.s3_gateway import S3Gateway, create_s3_client

__version__ = "0.2.0"

logger = logging.getLogger(__name__)


@dataclass
class LakeMetaServices:
    gateway: S3Gateway
    prober: SchemaProber
    synthesizer: TableMetadataSynthesizer
    indexer: TableDirectoryIndexer


def build_services(config, s3_client=None):
    """Wires the components around one S3 client. Nothing here is module-level state."""
    if s3_client is None:
        s3_client = create_s3_client(config)
    gateway = S3Gateway(s3_client, conditional_writes=config.get('S3_CONDITIONAL_WRITES', True))
    return LakeMetaServices(
        gateway=gateway,
        prober=SchemaProber(
            gateway,
            scratch_dir=config.get('SCRATCH_DIR'),
            chunk_size=config.get('SCRATCH_CHUNK_SIZE', 1024 * 1024),
        ),
        synthesizer=TableMetadataSynthesizer(
            gateway,
            snapshot_format=config.get('ICEBERG_SNAPSHOT_FORMAT', 'json'),
            preserve_nullability=config.get('PRESERVE_NULLABILITY', False),
        ),
        indexer=TableDirectoryIndexer(gateway),
    )


def create_app(config_class=Config, s3_client=None):
    """
    Application factory function to create and configure the Flask app.

    Args:
        config_class: Configuration object loaded with `from_object`.
        s3_client: Optional pre-built boto3 S3 client (tests inject a fake).
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)

    configure_logging(app.config.get('LOG_LEVEL', 'INFO'))
    logger.info("--- Application Configuration ---")
    logger.info("S3 endpoint: %s (region %s)", app.config.get('MINIO_ENDPOINT'), app.config.get('AWS_REGION'))
    logger.info("Conditional log writes: %s", app.config.get('S3_CONDITIONAL_WRITES'))
    logger.info("Iceberg snapshot format: %s", app.config.get('ICEBERG_SNAPSHOT_FORMAT'))

    # --- Initialize Extensions ---
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})
    app.extensions[EXTENSION_KEY] = build_services(app.config, s3_client=s3_client)

    # --- Register Blueprints (Routes) ---
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
    logger.info("Registered blueprints: %s", ", ".join(bp.name for bp in BLUEPRINTS))

    # --- Error Handlers ---
    @app.errorhandler(LakeMetaError)
    def handle_lakemeta_error(error):
        if error.status_code >= 500:
            logger.error("%s: %s", type(error).__name__, error.message)
        else:
            logger.info("%s: %s", type(error).__name__, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return error
        logger.exception("An unexpected server error occurred")
        return jsonify({"error": f"An unexpected server error occurred: {error}"}), 500

    return app

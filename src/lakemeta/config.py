# src/lakemeta/config.py
import os
import tempfile
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in ['true', '1', 't', 'yes']


class Config:
    """Base configuration class."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'a-default-secret-key-for-dev'

    # MinIO / S3 connection. MinIO keys win over the plain AWS ones when both are set.
    MINIO_ENDPOINT = os.environ.get("MINIO_ENDPOINT", "http://127.0.0.1:9000")
    MINIO_ACCESS_KEY = os.environ.get("MINIO_ACCESS_KEY") or os.environ.get("AWS_ACCESS_KEY_ID")
    MINIO_SECRET_KEY = os.environ.get("MINIO_SECRET_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY")
    MINIO_USE_SSL = _env_flag("MINIO_USE_SSL", "false")
    AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")

    # botocore client behaviour; the timeouts double as the request deadline
    S3_MAX_ATTEMPTS = int(os.environ.get("S3_MAX_ATTEMPTS", 3))
    S3_CONNECT_TIMEOUT = int(os.environ.get("S3_CONNECT_TIMEOUT", 10))
    S3_READ_TIMEOUT = int(os.environ.get("S3_READ_TIMEOUT", 60))
    S3_CONDITIONAL_WRITES = _env_flag("S3_CONDITIONAL_WRITES", "true")

    # Scratch area used to spool Parquet payloads before footer parsing
    SCRATCH_DIR = os.environ.get("SCRATCH_DIR") or tempfile.gettempdir()
    SCRATCH_CHUNK_SIZE = int(os.environ.get("SCRATCH_CHUNK_SIZE", 1024 * 1024))

    # Metadata synthesis
    ICEBERG_SNAPSHOT_FORMAT = os.environ.get("ICEBERG_SNAPSHOT_FORMAT", "json")
    PRESERVE_NULLABILITY = _env_flag("PRESERVE_NULLABILITY", "false")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # CORS Configuration (Allow all origins for simplicity, adjust for production)
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")


class TestConfig(Config):
    """Configuration used by the test suite."""
    TESTING = True
    MINIO_ENDPOINT = "http://minio.test:9000"
    MINIO_ACCESS_KEY = "test-access-key"
    MINIO_SECRET_KEY = "test-secret-key"
    S3_CONDITIONAL_WRITES = True
    ICEBERG_SNAPSHOT_FORMAT = "json"
    PRESERVE_NULLABILITY = False
    LOG_LEVEL = "DEBUG"

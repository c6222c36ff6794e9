from .s3_gateway import S3Gateway, ObjectInfo, build_s3_uri, create_s3_client
from .scratch import scratch_file

__all__ = [
    "S3Gateway",
    "ObjectInfo",
    "build_s3_uri",
    "create_s3_client",
    "scratch_file",
]

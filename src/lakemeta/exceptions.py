# src/lakemeta/exceptions.py
"""Error taxonomy shared by the gateway, the services and the routes."""


class LakeMetaError(Exception):
    """Base class for every error surfaced to the API boundary."""

    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self):
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LakeMetaError):
    """A required request parameter is missing or malformed."""
    status_code = 400


class ObjectNotFound(LakeMetaError):
    """The requested key does not exist in the bucket."""
    status_code = 404


class BucketNotFound(LakeMetaError):
    """The requested bucket does not exist."""
    status_code = 404


class ParseError(LakeMetaError):
    """The payload is not a readable Parquet file."""
    status_code = 500


class StoreError(LakeMetaError):
    """Network, auth or otherwise unclassified object store failure."""
    status_code = 500

    def __init__(self, message, cause=None, details=None):
        super().__init__(message, details)
        self.cause = cause


class ConcurrentModification(LakeMetaError):
    """The next log slot for a table is already occupied."""
    status_code = 409

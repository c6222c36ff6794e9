# src/lakemeta/utils/serializers.py
import datetime
import enum
import json


def convert_bytes(obj):
    """
    Recursively converts various types within a nested structure for JSON serialization.
    Handles bytes, datetimes, enums and numpy/arrow scalars exposing `.item()`.
    """
    if isinstance(obj, bytes):
        # Decode as UTF-8, replacing invalid sequences
        return obj.decode('utf-8', errors='replace')
    elif isinstance(obj, dict):
        return {convert_bytes(k): convert_bytes(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_bytes(item) for item in obj]
    elif isinstance(obj, enum.Enum):
        return obj.value
    elif isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()
    elif isinstance(obj, (str, int, float, bool, type(None))):
        return obj
    elif hasattr(obj, 'item'):
        # numpy scalar types (like np.int64) to standard Python types
        return obj.item()
    elif hasattr(obj, 'isoformat'):
        return obj.isoformat()
    return str(obj)


def dumps_compact(obj):
    """JSON text with no insignificant whitespace, as stored in table logs."""
    return json.dumps(convert_bytes(obj), separators=(',', ':'))

# src/lakemeta/utils/formatters.py
import os


def format_bytes(size_bytes):
    """Converts bytes to a human-readable string (KB, MB, GB)."""
    if size_bytes is None:
        return "N/A"
    try:
        size_bytes = int(size_bytes)
        if size_bytes < 1024:
            return f"{size_bytes} B"
        elif size_bytes < 1024**2:
            return f"{size_bytes/1024:.2f} KB"
        elif size_bytes < 1024**3:
            return f"{size_bytes/(1024**2):.2f} MB"
        else:
            return f"{size_bytes/(1024**3):.2f} GB"
    except (ValueError, TypeError):
        return "Invalid Size"


def strip_extension(key, extension=".parquet"):
    """Drops the columnar file extension from an object key (any extension as a fallback)."""
    if key.lower().endswith(extension.lower()):
        return key[:-len(extension)]
    return os.path.splitext(key)[0]

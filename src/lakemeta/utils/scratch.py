# src/lakemeta/utils/scratch.py
import logging
import os
import tempfile
from contextlib import contextmanager

logger = logging.getLogger(__name__)


@contextmanager
def scratch_file(directory=None, suffix=".parquet", prefix="lakemeta_"):
    """
    Yields the path of a fresh local scratch file owned by the caller.

    The file is removed on every exit path. A failure while removing it is
    logged and swallowed so it never masks the primary result or exception.
    """
    fd, local_path = tempfile.mkstemp(suffix=suffix, prefix=prefix, dir=directory)
    os.close(fd)
    logger.debug("Created scratch file: %s", local_path)
    try:
        yield local_path
    finally:
        if os.path.exists(local_path):
            try:
                os.remove(local_path)
                logger.debug("Cleaned up scratch file: %s", local_path)
            except OSError as rm_err:
                logger.warning("Could not remove scratch file %s: %s", local_path, rm_err)

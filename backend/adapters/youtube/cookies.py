"""Short-lived cookie files for tools that only accept cookies on disk."""

import os
import uuid
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


@contextmanager
def cookie_file(cookies: Optional[str], temp_dir: str) -> Iterator[Optional[str]]:
    """Materialise cookies to a Netscape cookie file for the duration of the block.

    Yields None when no cookies are configured. The file is removed on exit,
    whether the block succeeds or raises.
    """
    if not cookies:
        yield None
        return

    os.makedirs(temp_dir, exist_ok=True)
    path = os.path.join(temp_dir, f"cookies_{uuid.uuid4().hex}.txt")
    with open(path, "w") as f:
        f.write(cookies)
    os.chmod(path, 0o600)
    logger.debug(f"Created temporary cookie file: {path}")
    try:
        yield path
    finally:
        try:
            if os.path.exists(path):
                os.unlink(path)
                logger.debug(f"Deleted temporary cookie file: {path}")
        except OSError as e:
            logger.warning(f"Failed to delete cookie file {path}: {e}")

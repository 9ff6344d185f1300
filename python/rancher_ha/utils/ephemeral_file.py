"""
rancher_ha/utils/ephemeral_file.py

Provides an async context manager for ephemeral files in `/dev/shm`, used to hold
SSH private keys and terraform variable files for the lifetime of one command.
Falls back to the system temp directory when `/dev/shm` is unavailable.
"""

import logging
import os
import shutil
import tempfile
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

logger = logging.getLogger(__name__)


def default_parent_dir() -> str:
    """Return `/dev/shm` when present, otherwise the system temp directory."""
    return "/dev/shm" if os.path.isdir("/dev/shm") else tempfile.gettempdir()


@asynccontextmanager
async def ephemeral_manager(
    *,
    single_file_name: str,
    prefix: str = "ephemeral-",
    parent_dir: Optional[str] = None,
) -> AsyncGenerator[str, None]:
    """
    Create a private ephemeral directory and yield a file path inside it.

    The file itself is not created; the caller writes it. Everything is removed on
    exit, whether the body succeeded or raised. A cleanup failure is logged rather
    than raised so it never masks the body's own outcome.

    Args:
        single_file_name: The ephemeral filename.
        prefix: Prefix for the ephemeral directory name.
        parent_dir: Where to place the ephemeral directory, default `/dev/shm`.

    Yields:
        str: The ephemeral file path.
    """
    ephemeral_dir = tempfile.mkdtemp(
        dir=parent_dir or default_parent_dir(), prefix=prefix
    )
    try:
        yield os.path.join(ephemeral_dir, single_file_name)
    finally:
        try:
            shutil.rmtree(ephemeral_dir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove ephemeral dir %s: %s", ephemeral_dir, exc)

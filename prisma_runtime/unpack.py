"""Writing a bundled query engine into the global unpack directory."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path

from prisma_runtime.binaries import global_unpack_dir
from prisma_runtime.platform import check_for_extension, name as platform_name

logger = logging.getLogger(__name__)


def unpack(data: bytes, name: str, version: str) -> str:
    """Write an engine binary unless it already exists; return its path."""
    started = time.monotonic()

    filename = f"prisma-query-engine-{name}"
    temp_dir = global_unpack_dir(version)
    file = check_for_extension(platform_name(), os.path.join(temp_dir, filename))

    Path(temp_dir).mkdir(mode=0o750, parents=True, exist_ok=True)

    if os.path.exists(file):
        logger.debug("query engine exists, not unpacking. %.3fs", time.monotonic() - started)
        return file

    Path(file).write_bytes(data)
    os.chmod(file, 0o777)

    logger.debug("unpacked at %s in %.3fs", file, time.monotonic() - started)
    return file
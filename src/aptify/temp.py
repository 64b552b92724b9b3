"""Temporary files and directories used during a build.

Implements:
- `temporary_directory`: A throwaway directory, kept when `APTIFY_KEEP_TMP` is set.
- `spool_to_disk`: Copy a stream into an anonymous, seekable temporary file.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, TYPE_CHECKING

from aptify.utils import FOUR_MB

if TYPE_CHECKING:
    from collections.abc import Generator

    from aptify.utils import StrPath

logger = logging.getLogger("aptify")

KEEP_ENV = "APTIFY_KEEP_TMP"


@contextmanager
def temporary_directory(
    prefix: str, dir: StrPath | None = None  # noqa: A002
) -> Generator[Path]:
    """Create a temporary directory and remove it on exit.

    With `APTIFY_KEEP_TMP` set, the directory is left behind for inspection.
    """
    path = Path(tempfile.mkdtemp(prefix=prefix, dir=dir))
    try:
        yield path
    finally:
        if os.getenv(KEEP_ENV):
            logger.warning("Temporary directory %s not removed.", path)
        else:
            shutil.rmtree(path, ignore_errors=True)


@contextmanager
def spool_to_disk(
    stream: IO[bytes], dir: StrPath | None = None  # noqa: A002
) -> Generator[IO[bytes]]:
    """Copy `stream` into a temporary file and yield it rewound.

    The file has no name on disk and is removed when the context exits.
    """
    with tempfile.TemporaryFile(prefix="aptify_", dir=dir) as f:
        shutil.copyfileobj(stream, f, FOUR_MB)
        logger.debug("Spooled %d bytes to disk", f.tell())
        f.seek(0)
        yield f


__all__ = ["KEEP_ENV", "spool_to_disk", "temporary_directory"]

"""Utilities for the aptify package."""

from __future__ import annotations

import hashlib
import logging
import os
from os import PathLike
from pathlib import Path
from typing import NamedTuple, TypeAlias

logger = logging.getLogger("aptify")

StrPath: TypeAlias = str | PathLike[str]

FOUR_MB = 4 * 1024 * 1024


class FileHash(NamedTuple):
    """SHA256 digest and size of a file relative to a directory."""

    filename: str
    sha256: str
    size: int


def checksum(file: StrPath) -> str:
    """Returns the SHA256 hash for the full file."""
    hash_func = hashlib.sha256()
    with Path(file).open("rb") as f:
        for chunk in iter(lambda: f.read(FOUR_MB), b""):
            hash_func.update(chunk)
    return hash_func.hexdigest()


def directory_checksums(directory: StrPath) -> list[FileHash]:
    """Hash every regular file below `directory`.

    Returns:
        The hashes, sorted by their POSIX path relative to `directory`.
    """
    directory = Path(directory)
    hashes: list[FileHash] = []
    for root, _, files in os.walk(directory):
        for name in files:
            path = Path(root) / name
            if not path.is_file():
                continue
            rel_path = path.relative_to(directory).as_posix()
            hashes.append(FileHash(rel_path, checksum(path), path.stat().st_size))

    hashes.sort(key=lambda h: h.filename)
    return hashes


__all__ = [
    "FOUR_MB",
    "FileHash",
    "StrPath",
    "checksum",
    "directory_checksums",
]

"""Read metadata and file lists out of Debian binary packages.

Implements:
- `get_metadata`: The control stanza of a `.deb`.
- `get_package_contents`: The regular files installed by a `.deb`.
"""

from __future__ import annotations

import io
import logging
import tarfile
from contextlib import contextmanager, nullcontext
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from debian.arfile import ArError, ArFile
from debian.deb822 import Packages

from aptify.ext import (
    DECOMPRESSION_ERRORS,
    CompressionError,
    detect_codec,
    open_decompressed,
)
from aptify.temp import spool_to_disk

if TYPE_CHECKING:
    from collections.abc import Generator

    from debian.arfile import ArMember

    from aptify.utils import StrPath

logger = logging.getLogger("aptify")

INFO_MEMBER = "debian-binary"
CONTROL_PREFIX = "control.tar"
DATA_PREFIX = "data.tar"
CONTROL_FILE = "control"
SUPPORTED_FORMAT = b"2.0\n"


class DebFormatError(Exception):
    """The file is not a supported Debian binary package."""


def _normalize(name: str) -> str:
    """Strip the leading `./` tar writers put in front of member names."""
    parts = [part for part in PurePosixPath(name).parts if part not in {".", "/"}]
    return "/".join(parts)


def _find_member(
    members: list[ArMember], prefix: str, exact: bool = False
) -> ArMember | None:
    """Return the first member named `prefix` (or starting with it)."""
    for member in members:
        name = member.name.rstrip("/")
        if name == prefix or (not exact and name.startswith(prefix)):
            return member
    return None


@contextmanager
def _open_deb(path: StrPath) -> Generator[list[ArMember]]:
    """Open the `ar` container of a `.deb` and check its format version.

    Yields:
        The members of the container, in archive order.

    Raises:
        DebFormatError: If the container is unreadable, lacks `debian-binary`
            or is not format 2.0.
    """
    path = Path(path)
    with path.open("rb") as f:
        try:
            members = list(ArFile(fileobj=f).getmembers())
        except (ArError, ValueError, EOFError) as err:
            raise DebFormatError(f"Failed to open archive {path}: {err}") from err

        info = _find_member(members, INFO_MEMBER, exact=True)
        if info is None:
            raise DebFormatError(f"Failed to open {INFO_MEMBER} file in {path}")

        version = info.read()
        if version != SUPPORTED_FORMAT:
            raise DebFormatError(
                f"Unsupported debian package version in {path}: {version!r}"
            )

        yield members


def _require_member(members: list[ArMember], prefix: str, path: StrPath) -> ArMember:
    member = _find_member(members, prefix)
    if member is None:
        raise DebFormatError(f"Failed to find {prefix}* archive in {path}")
    logger.debug("Using %s from %s", member.name, path)
    return member


def get_metadata(path: StrPath) -> Packages:
    """Return the control stanza of the package at `path`.

    The control archive is small, so it is decompressed in memory.

    Raises:
        DebFormatError: If the package is malformed.
    """
    with _open_deb(path) as members:
        member = _require_member(members, CONTROL_PREFIX, path)
        raw = member.read()

    try:
        codec = detect_codec(member.name.rstrip("/"), raw[:8])
        with open_decompressed(io.BytesIO(raw), codec) as stream:
            data = stream.read()
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tar:
            control = None
            for tarinfo in tar:
                if tarinfo.isfile() and _normalize(tarinfo.name) == CONTROL_FILE:
                    control = tar.extractfile(tarinfo)
                    break
            if control is None:
                raise DebFormatError(f"Failed to open control file in {path}")
            content = control.read()
    except (CompressionError, tarfile.TarError, *DECOMPRESSION_ERRORS) as err:
        raise DebFormatError(f"Failed to read control archive of {path}: {err}") from err

    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as err:
        raise DebFormatError(f"Control file of {path} is not valid UTF-8") from err

    pkg = Packages(text)
    for field in ("Package", "Version", "Architecture"):
        if not pkg.get(field):
            raise DebFormatError(f"Control file of {path} has no {field} field")
    return pkg


def get_package_contents(path: StrPath) -> list[str]:
    """Return the paths of the regular files installed by the package.

    The data archive can be large, so it is decompressed into a temporary
    file before being walked.

    Raises:
        DebFormatError: If the package is malformed.
        FileNotFoundError: If `path` does not exist.
    """
    contents: list[str] = []
    with _open_deb(path) as members:
        member = _require_member(members, DATA_PREFIX, path)
        try:
            head = member.read(8)
            member.seek(0)
            codec = detect_codec(member.name.rstrip("/"), head)
            if codec == "none":
                decoder = nullcontext(member)
            else:
                decoder = open_decompressed(member, codec)
            with (
                decoder as stream,
                spool_to_disk(stream) as spooled,
                tarfile.open(fileobj=spooled, mode="r:") as tar,
            ):
                for tarinfo in tar:
                    if not tarinfo.isfile():
                        continue
                    name = _normalize(tarinfo.name)
                    if name:
                        contents.append(name)
        except (CompressionError, tarfile.TarError, *DECOMPRESSION_ERRORS) as err:
            raise DebFormatError(
                f"Failed to read data archive of {path}: {err}"
            ) from err

    logger.debug("Found %d files in %s", len(contents), path)
    return contents


__all__ = ["DebFormatError", "get_metadata", "get_package_contents"]

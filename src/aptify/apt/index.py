"""Write the per-architecture indices of a release component.

Implements:
- `select_packages`: The packages of one architecture, in index order.
- `write_packages_index`: The `Packages` file and its compressed variants.
- `write_contents_index`: The `Contents-<arch>` file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from aptify.ext import CODEC_EXTENSIONS, compress
from aptify.extract import get_package_contents

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from aptify.apt.package import Package
    from aptify.ext import Codec
    from aptify.utils import StrPath

logger = logging.getLogger("aptify")

PACKAGES_COMPRESSIONS: tuple[Codec, ...] = ("xz",)
CONTENTS_COMPRESSION: Codec = "gzip"


def select_packages(packages: Iterable[Package], arch: str) -> list[Package]:
    """Filter `packages` to `arch` and sort them by name, version and arch."""
    selected = [pkg for pkg in packages if pkg.architecture == arch]
    selected.sort(key=lambda pkg: pkg.sort_key())
    return selected


def render_packages(packages: Sequence[Package]) -> bytes:
    """Serialize the stanzas of `packages`, separated by blank lines."""
    return "\n".join(pkg.to_stanza().dump() for pkg in packages).encode("utf-8")


def write_packages_index(
    arch_dir: StrPath,
    packages: Sequence[Package],
    compressions: Sequence[Codec] = PACKAGES_COMPRESSIONS,
) -> list[Path]:
    """Write `Packages` and one compressed copy per codec into `arch_dir`.

    Every file decodes to the same bytes.

    Returns:
        The written files.
    """
    arch_dir = Path(arch_dir)
    arch_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Writing Packages index in %s (%d packages)", arch_dir, len(packages))

    data = render_packages(packages)
    packages_file = arch_dir / "Packages"
    packages_file.write_bytes(data)
    written = [packages_file]

    for codec in compressions:
        compressed_file = arch_dir / f"Packages{CODEC_EXTENSIONS[codec]}"
        compressed_file.write_bytes(compress(data, codec))
        written.append(compressed_file)

    return written


def collect_contents(repo: StrPath, packages: Iterable[Package]) -> dict[str, list[str]]:
    """Map each installed path to the qualified names of the packages owning it.

    Each package is re-read from its pool file.

    Raises:
        FileNotFoundError: If a pool file is gone.
        DebFormatError: If a pool file cannot be read.
    """
    contents: dict[str, list[str]] = {}
    for pkg in packages:
        owner = pkg.qualified_name
        for path in get_package_contents(Path(repo) / pkg.filename):
            owners = contents.setdefault(path, [])
            if owner not in owners:
                owners.append(owner)
    return contents


def render_contents(contents: dict[str, list[str]]) -> bytes:
    """One `<path> <pkg>[,<pkg>...]` line per path, sorted by path."""
    lines = [f"{path} {','.join(contents[path])}\n" for path in sorted(contents)]
    return "".join(lines).encode("utf-8")


def write_contents_index(
    repo: StrPath,
    component_dir: StrPath,
    packages: Sequence[Package],
    arch: str,
    codec: Codec = CONTENTS_COMPRESSION,
) -> Path:
    """Write `Contents-<arch>` for `packages` into `component_dir`.

    Returns:
        The written file.
    """
    component_dir = Path(component_dir)
    component_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Collecting package contents for %s", component_dir)
    contents = collect_contents(repo, packages)

    contents_file = component_dir / f"Contents-{arch}{CODEC_EXTENSIONS[codec]}"
    logger.info("Writing Contents index %s (%d paths)", contents_file, len(contents))
    contents_file.write_bytes(compress(render_contents(contents), codec))
    return contents_file


__all__ = [
    "collect_contents",
    "render_contents",
    "render_packages",
    "select_packages",
    "write_contents_index",
    "write_packages_index",
]

"""Binary package entries and their place in the pool.

Implements:
- `Package`: One binary package instance routed into a release component.
- `pool_path_for`: The pool-relative filename of a package.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from debian.deb822 import Packages
from debian.debian_support import Version

if TYPE_CHECKING:
    from pathlib import Path

LIB_PREFIX = "lib"


@dataclass
class Package:
    """A binary package and the fields assigned while building the repository.

    Attributes:
        control: The control stanza read from the package.
        source_path: The `.deb` file the package was read from.
        filename: Path of the package relative to the repository root.
        size: Size in bytes of the file in the pool.
        sha256: SHA256 digest of the file.
    """

    control: Packages
    source_path: Path
    filename: str = ""
    size: int = 0
    sha256: str = ""

    @property
    def name(self) -> str:
        return str(self.control["Package"]).strip()

    @property
    def version(self) -> str:
        return str(self.control["Version"]).strip()

    @property
    def architecture(self) -> str:
        return str(self.control["Architecture"]).strip()

    @property
    def section(self) -> str:
        return str(self.control.get("Section", "")).strip()

    @property
    def source(self) -> str:
        """Name of the source package, without any version annotation."""
        source = str(self.control.get("Source", "")).strip() or self.name
        return source.split("(", 1)[0].strip()

    @property
    def qualified_name(self) -> str:
        """`section/name` as listed in Contents indices."""
        return f"{self.section}/{self.name}" if self.section else self.name

    def sort_key(self) -> tuple[str, Version, str]:
        """Order by name, Debian version, then architecture."""
        return self.name, Version(self.version), self.architecture

    def to_stanza(self) -> Packages:
        """Return the `Packages` index stanza of this package."""
        stanza = Packages()
        for key, value in self.control.items():
            if key in {"Filename", "Size", "SHA256"}:
                continue
            stanza[key] = value
        stanza["Filename"] = self.filename
        stanza["Size"] = str(self.size)
        stanza["SHA256"] = self.sha256
        return stanza


def pool_path_for(component: str, pkg: Package) -> str:
    """Return `pool/<component>/<prefix>/<source>/<name>_<version>_<arch>.deb`.

    The prefix is the first letter of the source package, or its first four
    letters for `lib*` sources. The epoch is not part of the file name.
    """
    source = pkg.source
    prefix = source[:4] if source.startswith(LIB_PREFIX) else source[:1]
    version = pkg.version.split(":", 1)[-1]
    filename = f"{pkg.name}_{version}_{pkg.architecture}.deb"
    return PurePosixPath("pool", component, prefix, source, filename).as_posix()


__all__ = ["Package", "pool_path_for"]

"""Place package files into the repository pool.

Every distinct source file is copied once. Later references to the same
file, from any release or component, reuse the first assigned filename.
A second source file with identical bytes shares the pooled copy.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from aptify.apt.package import pool_path_for
from aptify.utils import checksum

if TYPE_CHECKING:
    from aptify.apt.package import Package
    from aptify.utils import StrPath

logger = logging.getLogger("aptify")


class PoolError(Exception):
    """Two different files claim the same pool filename."""


class PoolManager:
    """Owns the `pool/` directory of a repository during a build.

    Attributes:
        repo: The repository root.
        paths: Absolute source path to assigned pool filename.
    """

    def __init__(self, repo: StrPath) -> None:
        self.repo = Path(repo)
        self.paths: dict[Path, str] = {}
        self._claimed: dict[str, Path] = {}

    def _copy(self, source: Path, filename: str) -> None:
        target = self.repo / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Copying %s to %s", source, target)
        shutil.copyfile(source, target)

    def place(self, pkg: Package, component: str) -> str:
        """Copy `pkg` into the pool and set its `filename` and `size`.

        Args:
            pkg: The package, read from `pkg.source_path`.
            component: The component the package is first seen in.

        Returns:
            The pool filename relative to the repository root.

        Raises:
            PoolError: If a different file already holds the pool filename.
        """
        source = pkg.source_path.resolve()
        filename = self.paths.get(source)
        if filename is not None:
            logger.debug("Reusing %s for %s", filename, source)
        else:
            filename = pool_path_for(component, pkg)
            owner = self._claimed.get(filename)
            if owner is None:
                self._copy(source, filename)
                self._claimed[filename] = source
            elif checksum(source) == checksum(self.repo / filename):
                logger.debug("%s is identical to %s, sharing it", source, owner)
            else:
                raise PoolError(
                    f"{source} maps to {filename}, already taken by {owner} "
                    "with different content"
                )
            self.paths[source] = filename

        pkg.filename = filename
        pkg.size = (self.repo / filename).stat().st_size
        return filename


__all__ = ["PoolError", "PoolManager"]

"""Build a signed apt repository from a configuration file."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from aptify.apt.index import (
    select_packages,
    write_contents_index,
    write_packages_index,
)
from aptify.apt.package import Package
from aptify.apt.pool import PoolManager
from aptify.apt.release import write_release
from aptify.config import load_config, validate_architecture
from aptify.extract import get_metadata
from aptify.gpg import load_signing_key
from aptify.utils import checksum

if TYPE_CHECKING:
    from datetime import datetime

    from aptify.config import ReleaseConfig, Repository
    from aptify.gpg import SigningKey
    from aptify.utils import StrPath

logger = logging.getLogger("aptify")

DEFAULT_ARCHITECTURES = ("amd64",)
SIGNING_KEY_NAME = "signing_key.asc"


@dataclass
class ReleaseComponentBucket:
    """The packages routed into one component of one release."""

    release: str
    component: str
    packages: list[Package] = field(default_factory=list)
    architectures: set[str] = field(default_factory=set)


def collect_packages(
    conf: Repository, pool: PoolManager
) -> dict[tuple[str, str], ReleaseComponentBucket]:
    """Read every configured package and place it into the pool.

    Returns:
        The buckets keyed by `(release, component)`.
    """
    buckets: dict[tuple[str, str], ReleaseComponentBucket] = {}
    for release in conf.releases:
        for component in release.components:
            key = (release.name, component.name)
            bucket = buckets.setdefault(
                key, ReleaseComponentBucket(release.name, component.name)
            )
            for path in conf.package_paths(component):
                logger.debug("Reading %s", path)
                pkg = Package(get_metadata(path), path)
                validate_architecture(pkg.architecture)
                pkg.sha256 = checksum(path)
                pool.place(pkg, component.name)

                bucket.packages.append(pkg)
                bucket.architectures.add(pkg.architecture)
            logger.info(
                "Collected %d packages for %s/%s",
                len(bucket.packages),
                release.name,
                component.name,
            )
    return buckets


def index_architectures(
    release: ReleaseConfig, buckets: dict[tuple[str, str], ReleaseComponentBucket]
) -> list[str]:
    """Architectures to index: observed and configured ones, sorted."""
    archs = set(release.architectures)
    for component in release.components:
        archs |= buckets[release.name, component.name].architectures
    return sorted(archs) or list(DEFAULT_ARCHITECTURES)


def write_release_indices(
    repo: Path,
    release: ReleaseConfig,
    buckets: dict[tuple[str, str], ReleaseComponentBucket],
    architectures: list[str],
) -> Path:
    """Write `Packages` and `Contents` for every component and architecture.

    Returns:
        The release directory, rebuilt from scratch.
    """
    release_dir = repo / "dists" / release.name
    if release_dir.exists():
        logger.debug("Removing previous %s", release_dir)
        shutil.rmtree(release_dir)

    for component in release.components:
        bucket = buckets[release.name, component.name]
        component_dir = release_dir / component.name
        for arch in architectures:
            packages = select_packages(bucket.packages, arch)
            write_packages_index(component_dir / f"binary-{arch}", packages)
            write_contents_index(repo, component_dir, packages, arch)

    release_dir.mkdir(parents=True, exist_ok=True)
    return release_dir


def assemble(
    repo: StrPath,
    conf: Repository,
    signing_key: SigningKey,
    now: datetime | None = None,
) -> list[Path]:
    """Assemble the repository tree at `repo` and sign every release.

    Returns:
        The `InRelease` file of every release.
    """
    repo = Path(repo)
    repo.mkdir(parents=True, exist_ok=True)

    pool = PoolManager(repo)
    buckets = collect_packages(conf, pool)

    inreleases: list[Path] = []
    for release in conf.releases:
        architectures = index_architectures(release, buckets)
        release_dir = write_release_indices(repo, release, buckets, architectures)
        inreleases.append(
            write_release(release_dir, release, architectures, signing_key, now)
        )

    key_file = repo / SIGNING_KEY_NAME
    key_file.write_text(signing_key.export_public(), "utf-8")
    logger.info("Wrote signing key to %s", key_file)
    return inreleases


def build_repo(
    repo: StrPath,
    config: StrPath,
    key: StrPath,
    now: datetime | None = None,
) -> list[Path]:
    """Build the repository for apt packages.

    Args:
        repo: The repository directory.
        config: The configuration file.
        key: The private key file for signing the repository.
        now: The date written into the release files. Defaults to now.

    Returns:
        The `InRelease` file of every release.

    Raises:
        MissingKeyError: If `key` does not exist.
        ConfigError: If the configuration is invalid.
        DebFormatError: If a package is malformed.
    """
    logger.info("Building repository in %s", repo)
    conf = load_config(config)
    with load_signing_key(key) as signing_key:
        return assemble(repo, conf, signing_key, now)


__all__ = [
    "DEFAULT_ARCHITECTURES",
    "SIGNING_KEY_NAME",
    "ReleaseComponentBucket",
    "assemble",
    "build_repo",
    "collect_packages",
    "index_architectures",
    "write_release_indices",
]

"""Release manifests.

The manifest of a release lists the SHA256 digest and size of every file
below `dists/<release>/`. It is computed only once all indices of the
release are written and is then signed into `InRelease`.

Implements:
- `build_release`: The `Release` stanza of a release directory.
- `write_release`: Sign and write `InRelease`, `Release` and `Release.gpg`.
- `verify_release`: Check a written release like an APT client does.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from debian.deb822 import Deb822, Release

from aptify.config import ConfigError, validate_architecture
from aptify.gpg import verify_signed
from aptify.utils import FileHash, checksum, directory_checksums

if TYPE_CHECKING:
    from collections.abc import Iterable

    from aptify.config import ReleaseConfig
    from aptify.gpg import SigningKey
    from aptify.utils import StrPath

logger = logging.getLogger("aptify")

DATE_FORMAT = "%a, %d %b %Y %H:%M:%S %z"
RELEASE_FILES = frozenset({"InRelease", "Release", "Release.gpg"})


class ReleaseError(Exception):
    """The release cannot be built or does not verify."""


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


def release_architectures(architectures: Iterable[str]) -> list[str]:
    """De-duplicate and validate architecture names, keeping their order."""
    archs = _unique(architectures)
    for arch in archs:
        try:
            validate_architecture(arch)
        except ConfigError as err:
            raise ReleaseError(str(err)) from err
    return archs


def hash_release_dir(release_dir: StrPath) -> list[FileHash]:
    """Hash the files of a release, leaving out the release files themselves."""
    return [
        h for h in directory_checksums(release_dir) if h.filename not in RELEASE_FILES
    ]


def format_hashes(hashes: Iterable[FileHash]) -> str:
    """Format hashes as the multi-line value of a `SHA256` field."""
    hashes = list(hashes)
    width = max((len(str(h.size)) for h in hashes), default=0)
    lines = [f" {h.sha256} {h.size: >{width}} {h.filename}" for h in hashes]
    return "\n" + "\n".join(lines)


def build_release(
    release_dir: StrPath,
    conf: ReleaseConfig,
    architectures: Iterable[str],
    now: datetime | None = None,
) -> Deb822:
    """Assemble the `Release` stanza for the files under `release_dir`.

    Args:
        release_dir: The finished `dists/<release>` directory.
        conf: The release configuration.
        architectures: Architectures indexed in the release.
        now: The release date. Defaults to the current time.

    Raises:
        ReleaseError: If an architecture name is invalid.
    """
    now = now or datetime.now(timezone.utc)
    entry = Deb822()

    for key, value in (
        ("Origin", conf.origin),
        ("Label", conf.label),
        ("Suite", conf.suite),
        ("Version", conf.version),
    ):
        if value:
            entry[key] = value
    entry["Codename"] = conf.name
    entry["Changelogs"] = "no"
    entry["Date"] = now.astimezone(timezone.utc).strftime(DATE_FORMAT)
    entry["Architectures"] = " ".join(release_architectures(architectures))
    entry["Components"] = " ".join(_unique(c.name for c in conf.components))
    if conf.description:
        entry["Description"] = conf.description

    hashes = hash_release_dir(release_dir)
    if hashes:
        entry["SHA256"] = format_hashes(hashes)
    return entry


def write_release(
    release_dir: StrPath,
    conf: ReleaseConfig,
    architectures: Iterable[str],
    signing_key: SigningKey,
    now: datetime | None = None,
) -> Path:
    """Hash, sign and write the release files. Nothing is written afterwards.

    Returns:
        The `InRelease` file.
    """
    release_dir = Path(release_dir)
    release_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Writing Release file in %s", release_dir)

    body = build_release(release_dir, conf, architectures, now).dump().encode("utf-8")
    signed = signing_key.clearsign(body)
    detached = signing_key.detach_sign(body)

    inrelease = release_dir / "InRelease"
    inrelease.write_bytes(signed)
    (release_dir / "Release").write_bytes(body)
    (release_dir / "Release.gpg").write_bytes(detached)
    return inrelease


def verify_release(release_dir: StrPath, public_key: str) -> list[FileHash]:
    """Verify `InRelease` and every file it lists.

    Returns:
        The hashes listed in the manifest.

    Raises:
        ReleaseError: If the signature or any listed file does not match.
    """
    release_dir = Path(release_dir)
    data = (release_dir / "InRelease").read_bytes()
    if not verify_signed(data, public_key):
        raise ReleaseError(f"Bad signature on {release_dir / 'InRelease'}")

    release = Release(data.decode("utf-8"))
    listed = [
        FileHash(str(item["name"]), str(item["sha256"]), int(item["size"]))
        for item in release.get("SHA256", [])
    ]
    for entry in listed:
        path = release_dir / entry.filename
        if not path.is_file():
            raise ReleaseError(f"{path} is listed but missing")
        if path.stat().st_size != entry.size or checksum(path) != entry.sha256:
            raise ReleaseError(f"{path} does not match its listed hash")
    logger.info("Verified %s (%d files)", release_dir, len(listed))
    return listed


__all__ = [
    "ReleaseError",
    "build_release",
    "format_hashes",
    "hash_release_dir",
    "release_architectures",
    "verify_release",
    "write_release",
]

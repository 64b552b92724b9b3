# %%
"""Fixtures building Debian packages and signing keys for the tests."""

from __future__ import annotations

import io
import shutil
import tarfile
from typing import TYPE_CHECKING, Any

import pytest

from aptify.ext import CODEC_EXTENSIONS, compress
from aptify.gpg import create_priv_key, load_signing_key

if TYPE_CHECKING:
    from collections.abc import Callable, Generator, Iterable
    from pathlib import Path

    from aptify.ext import Codec
    from aptify.gpg import SigningKey

AR_MAGIC = b"!<arch>\n"


def ar_archive(members: Iterable[tuple[str, bytes]]) -> bytes:
    """Build a common-format `ar` archive as written by `dpkg-deb`."""
    out = [AR_MAGIC]
    for name, data in members:
        header = f"{name:<16}{0:<12}{0:<6}{0:<6}{100644:<8}{len(data):<10}`\n"
        out.append(header.encode("ascii"))
        out.append(data)
        if len(data) % 2:
            out.append(b"\n")
    return b"".join(out)


def tar_archive(
    files: dict[str, bytes],
    dirs: Iterable[str] = (),
    symlinks: dict[str, str] | None = None,
) -> bytes:
    """Build an uncompressed tar archive."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.GNU_FORMAT) as tar:
        for name in dirs:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, target in (symlinks or {}).items():
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def control_text(
    name: str,
    version: str,
    arch: str,
    section: str | None = None,
    source: str | None = None,
) -> str:
    lines = [f"Package: {name}"]
    if source:
        lines.append(f"Source: {source}")
    lines += [f"Version: {version}", f"Architecture: {arch}"]
    if section:
        lines.append(f"Section: {section}")
    lines += [
        "Maintainer: Test Maintainer <test@example.com>",
        "Installed-Size: 12",
        f"Description: the {name} test package",
        " A package built by the test suite.",
    ]
    return "\n".join(lines) + "\n"


def build_deb(  # noqa: PLR0913
    path: Path,
    name: str = "hello",
    version: str = "1.0-1",
    arch: str = "amd64",
    *,
    section: str | None = "utils",
    source: str | None = None,
    files: dict[str, bytes] | None = None,
    compression: Codec = "gzip",
    control_compression: Codec = "gzip",
    format_version: bytes = b"2.0\n",
    control: str | bytes | None = None,
    omit: Iterable[str] = (),
) -> Path:
    """Write a `.deb` to `path`.

    Args:
        path: The file to write.
        name: The `Package` field.
        version: The `Version` field.
        arch: The `Architecture` field.
        section: The `Section` field, left out when None.
        source: The `Source` field, left out when None.
        files: Installed files. Defaults to a binary and a copyright file.
        compression: Codec of the data archive.
        control_compression: Codec of the control archive.
        format_version: Content of the `debian-binary` member.
        control: Raw control file, replacing the generated one.
        omit: Members to leave out (`debian-binary`, `control`, `data`).
    """
    if files is None:
        files = {
            f"./usr/bin/{name}": b"#!/bin/sh\necho hello\n",
            f"./usr/share/doc/{name}/copyright": b"Public domain\n",
        }
    dirs = sorted({"./"} | {f"{p.rsplit('/', 1)[0]}/" for p in files})
    data_tar = tar_archive(files, dirs=dirs)

    if control is None:
        control = control_text(name, version, arch, section, source)
    if isinstance(control, str):
        control = control.encode("utf-8")
    control_tar = tar_archive({"./control": control, "./md5sums": b""}, dirs=["./"])

    members: list[tuple[str, bytes]] = []
    if "debian-binary" not in omit:
        members.append(("debian-binary", format_version))
    if "control" not in omit:
        members.append(
            (
                f"control.tar{CODEC_EXTENSIONS[control_compression]}",
                compress(control_tar, control_compression),
            )
        )
    if "data" not in omit:
        members.append(
            (
                f"data.tar{CODEC_EXTENSIONS[compression]}",
                compress(data_tar, compression),
            )
        )

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(ar_archive(members))
    return path


@pytest.fixture
def make_deb(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing `.deb` files below `tmp_path/debs`."""

    def _make(
        name: str = "hello",
        version: str = "1.0-1",
        arch: str = "amd64",
        filename: str | None = None,
        **kwargs: Any,
    ) -> Path:
        filename = filename or f"{name}_{version.split(':')[-1]}_{arch}.deb"
        return build_deb(tmp_path / "debs" / filename, name, version, arch, **kwargs)

    return _make


@pytest.fixture(scope="session")
def gpg_available() -> None:
    """Skip the test when the `gpg` binary is missing."""
    if shutil.which("gpg") is None:
        pytest.skip("gpg is not installed")


@pytest.fixture(scope="session")
def key_dir(gpg_available: None, tmp_path_factory: pytest.TempPathFactory) -> Path:
    """A config directory holding a freshly generated key pair."""
    config_dir = tmp_path_factory.mktemp("aptify_config")
    create_priv_key(
        config_dir,
        name="aptify test",
        email="test@example.com",
        key_length=2048,
    )
    return config_dir


@pytest.fixture(scope="session")
def private_key(key_dir: Path) -> Path:
    return key_dir / "aptify_private.asc"


@pytest.fixture(scope="session")
def public_key(key_dir: Path) -> str:
    return (key_dir / "aptify_public.asc").read_text("utf-8")


@pytest.fixture
def signing_key(private_key: Path) -> Generator[SigningKey]:
    with load_signing_key(private_key) as key:
        yield key

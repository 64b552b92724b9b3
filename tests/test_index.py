# %%
"""Test for the Packages and Contents indices."""

from __future__ import annotations

import gzip
import lzma
from typing import TYPE_CHECKING

import pytest
from debian.deb822 import Packages

from aptify.apt.index import (
    render_contents,
    select_packages,
    write_contents_index,
    write_packages_index,
)
from aptify.apt.package import Package
from aptify.apt.pool import PoolManager
from aptify.extract import get_metadata
from aptify.utils import checksum

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


@pytest.fixture
def placed(
    tmp_path: Path, make_deb: Callable[..., Path]
) -> Callable[..., Package]:
    """Factory building a package and placing it into `tmp_path/repo`."""
    pool = PoolManager(tmp_path / "repo")

    def _placed(*args: str, component: str = "main", **kwargs: object) -> Package:
        deb = make_deb(*args, **kwargs)
        pkg = Package(get_metadata(deb), deb)
        pkg.sha256 = checksum(deb)
        pool.place(pkg, component)
        return pkg

    return _placed


def test_select_packages_order(placed: Callable[..., Package]) -> None:
    """Filtered to one architecture and sorted by Debian version order."""
    packages = [
        placed("hello", "2:1.0-1", component="extra", filename="hello_epoch.deb"),
        placed("hello", "1.1-1"),
        placed("hello", "1.0-2"),
        placed("hello", "1.0-1", "arm64"),
        placed("hello", "1.0-1"),
        placed("abc", "9.0"),
    ]
    selected = select_packages(packages, "amd64")
    assert [(p.name, p.version) for p in selected] == [
        ("abc", "9.0"),
        ("hello", "1.0-1"),
        ("hello", "1.0-2"),
        ("hello", "1.1-1"),
        ("hello", "2:1.0-1"),
    ]
    assert [p.version for p in select_packages(packages, "arm64")] == ["1.0-1"]


def test_write_packages_index(tmp_path: Path, placed: Callable[..., Package]) -> None:
    """`Packages` and `Packages.xz` decode to the same stanzas."""
    packages = select_packages(
        [placed("hello", "1.0-1"), placed("world", "0.1-1", section=None)], "amd64"
    )
    arch_dir = tmp_path / "repo" / "dists" / "stable" / "main" / "binary-amd64"
    written = write_packages_index(arch_dir, packages)

    assert [p.name for p in written] == ["Packages", "Packages.xz"]
    plain = (arch_dir / "Packages").read_bytes()
    assert lzma.decompress((arch_dir / "Packages.xz").read_bytes()) == plain

    stanzas = [Packages(chunk) for chunk in plain.decode("utf-8").split("\n\n")]
    assert [s["Package"] for s in stanzas] == ["hello", "world"]
    hello = stanzas[0]
    assert hello["Filename"] == "pool/main/h/hello/hello_1.0-1_amd64.deb"
    assert int(hello["Size"]) == (tmp_path / "repo" / hello["Filename"]).stat().st_size
    assert hello["SHA256"] == checksum(tmp_path / "repo" / hello["Filename"])
    assert hello["Maintainer"] == "Test Maintainer <test@example.com>"
    assert b"\n\nPackage: world\n" in plain


def test_write_empty_packages_index(tmp_path: Path) -> None:
    written = write_packages_index(tmp_path / "binary-amd64", [])
    assert written[0].read_bytes() == b""
    assert lzma.decompress(written[1].read_bytes()) == b""


def test_render_contents() -> None:
    contents = {
        "usr/share/doc/b/copyright": ["doc/b"],
        "usr/bin/a": ["utils/a", "utils/a-ng"],
    }
    assert render_contents(contents) == (
        b"usr/bin/a utils/a,utils/a-ng\nusr/share/doc/b/copyright doc/b\n"
    )


def test_write_contents_index(tmp_path: Path, placed: Callable[..., Package]) -> None:
    """Shared paths list every owner, once."""
    shared = {"./etc/shared.conf": b"x=1\n"}
    packages = select_packages(
        [
            placed("hello", files={"./usr/bin/hello": b"1", **shared}),
            placed("world", section="net", files={"./usr/bin/world": b"2", **shared}),
        ],
        "amd64",
    )
    repo = tmp_path / "repo"
    component_dir = repo / "dists" / "stable" / "main"
    contents_file = write_contents_index(repo, component_dir, packages, "amd64")

    assert contents_file == component_dir / "Contents-amd64.gz"
    assert gzip.decompress(contents_file.read_bytes()).decode().splitlines() == [
        "etc/shared.conf utils/hello,net/world",
        "usr/bin/hello utils/hello",
        "usr/bin/world net/world",
    ]


def test_contents_missing_pool_file(
    tmp_path: Path, placed: Callable[..., Package]
) -> None:
    """A pool file removed before indexing fails the whole index."""
    pkg = placed("hello")
    (tmp_path / "repo" / pkg.filename).unlink()
    component_dir = tmp_path / "repo" / "dists" / "stable" / "main"
    with pytest.raises(FileNotFoundError):
        write_contents_index(tmp_path / "repo", component_dir, [pkg], "amd64")
    assert not (component_dir / "Contents-amd64.gz").exists()

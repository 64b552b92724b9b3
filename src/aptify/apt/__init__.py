"""Assemble and sign apt repositories."""

from __future__ import annotations

from aptify.apt.build_repo import assemble, build_repo
from aptify.apt.package import Package, pool_path_for
from aptify.apt.pool import PoolError, PoolManager
from aptify.apt.release import ReleaseError, verify_release, write_release

__all__ = [
    "Package",
    "PoolError",
    "PoolManager",
    "ReleaseError",
    "assemble",
    "build_repo",
    "pool_path_for",
    "verify_release",
    "write_release",
]

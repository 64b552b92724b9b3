"""Create signed apt repositories from Debian packages."""

from __future__ import annotations

from aptify.config import ConfigError, Repository, load_config
from aptify.ext import COMPRESSION_EXTENSIONS, CompressionError
from aptify.extract import DebFormatError, get_metadata, get_package_contents
from aptify.gpg import (
    KeyCreationError,
    MissingKeyError,
    SigningError,
    SigningKey,
    create_priv_key,
    load_signing_key,
)
from aptify.utils import FOUR_MB, checksum, directory_checksums

__all__ = [
    "COMPRESSION_EXTENSIONS",
    "FOUR_MB",
    "CompressionError",
    "ConfigError",
    "DebFormatError",
    "KeyCreationError",
    "MissingKeyError",
    "Repository",
    "SigningError",
    "SigningKey",
    "checksum",
    "create_priv_key",
    "directory_checksums",
    "get_metadata",
    "get_package_contents",
    "load_config",
    "load_signing_key",
]

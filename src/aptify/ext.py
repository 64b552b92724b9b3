"""Module to handle compressed members and index files.

Implements:
- `COMPRESSION_EXTENSIONS`: The supported compression file extensions.
- `detect_codec`: Pick a codec from a file name or its leading bytes.
- `open_decompressed`: Wrap a binary stream in a streaming decoder.
- `compress`: Compress a buffer deterministically.
"""

from __future__ import annotations

import bz2
import gzip
import lzma
from pathlib import PurePosixPath
from typing import IO, Literal, TypeAlias

import lz4.frame
import zstandard


class CompressionError(Exception):
    """Compression codec not supported."""


Codec: TypeAlias = Literal["none", "gzip", "xz", "lzma", "bzip2", "zstd", "lz4"]

COMPRESSION_EXTENSIONS: dict[str, Codec] = {
    ".tar": "none",
    ".gz": "gzip",
    ".xz": "xz",
    ".lzma": "lzma",
    ".bz2": "bzip2",
    ".zst": "zstd",
    ".lz4": "lz4",
}

CODEC_EXTENSIONS: dict[Codec, str] = {
    "none": "",
    "gzip": ".gz",
    "xz": ".xz",
    "lzma": ".lzma",
    "bzip2": ".bz2",
    "zstd": ".zst",
    "lz4": ".lz4",
}

MAGIC_NUMBERS: tuple[tuple[bytes, Codec], ...] = (
    (b"\x1f\x8b", "gzip"),
    (b"\xfd7zXZ\x00", "xz"),
    (b"BZh", "bzip2"),
    (b"\x28\xb5\x2f\xfd", "zstd"),
    (b"\x04\x22\x4d\x18", "lz4"),
    (b"\x5d\x00\x00", "lzma"),
)

# Errors raised by the decoders on corrupt input.
DECOMPRESSION_ERRORS: tuple[type[Exception], ...] = (
    OSError,
    EOFError,
    lzma.LZMAError,
    zstandard.ZstdError,
    RuntimeError,
)


def detect_codec(name: str, head: bytes = b"") -> Codec:
    """Return the codec of a member named `name`.

    The trailing extension decides. Names without a known extension fall
    back to the magic number found in `head`; anything else is plain.

    Raises:
        CompressionError: If the extension names an unsupported codec.
    """
    suffix = PurePosixPath(name).suffix
    if suffix in COMPRESSION_EXTENSIONS:
        return COMPRESSION_EXTENSIONS[suffix]

    for magic, codec in MAGIC_NUMBERS:
        if head.startswith(magic):
            return codec

    if suffix:
        raise CompressionError(f"Unsupported compression for {name}")
    return "none"


def open_decompressed(stream: IO[bytes], codec: Codec) -> IO[bytes]:
    """Wrap `stream` in a streaming decoder for `codec`."""
    if codec == "none":
        return stream
    if codec == "gzip":
        return gzip.GzipFile(fileobj=stream, mode="rb")
    if codec == "xz":
        return lzma.LZMAFile(stream)
    if codec == "lzma":
        return lzma.LZMAFile(stream, format=lzma.FORMAT_ALONE)
    if codec == "bzip2":
        return bz2.BZ2File(stream)
    if codec == "zstd":
        return zstandard.ZstdDecompressor().stream_reader(stream)  # type: ignore[return-value]
    if codec == "lz4":
        return lz4.frame.open(stream, mode="rb")  # type: ignore[return-value]
    raise CompressionError(f"Unknown codec: {codec}")


def compress(data: bytes, codec: Codec) -> bytes:
    """Compress `data` so that equal input gives equal output."""
    if codec == "none":
        return data
    if codec == "gzip":
        return gzip.compress(data, compresslevel=9, mtime=0)
    if codec == "xz":
        return lzma.compress(data, format=lzma.FORMAT_XZ)
    if codec == "lzma":
        return lzma.compress(data, format=lzma.FORMAT_ALONE)
    if codec == "bzip2":
        return bz2.compress(data)
    if codec == "zstd":
        return zstandard.ZstdCompressor().compress(data)
    if codec == "lz4":
        return lz4.frame.compress(data)
    raise CompressionError(f"Unknown codec: {codec}")


__all__ = [
    "CODEC_EXTENSIONS",
    "COMPRESSION_EXTENSIONS",
    "DECOMPRESSION_ERRORS",
    "Codec",
    "CompressionError",
    "compress",
    "detect_codec",
    "open_decompressed",
]

"""Transparent gzip compression for large bodies."""

import gzip
import zlib

from constants import GZIP_MAGIC
from core.errors import CompressionError


def compress(data: bytes) -> bytes:
    """Gzip ``data`` at best compression."""
    try:
        return gzip.compress(data, compresslevel=9)
    except (OSError, ValueError) as e:
        raise CompressionError(f"failed to compress: {e}") from e


def decompress(data: bytes, limit: int) -> bytes:
    """Gunzip ``data``, refusing to inflate beyond ``limit`` bytes."""
    decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
    try:
        result = decompressor.decompress(data, limit)
        if decompressor.unconsumed_tail:
            raise CompressionError(f"decompressed body exceeds {limit} bytes")
        result += decompressor.flush()
    except zlib.error as e:
        raise CompressionError(f"failed to decompress: {e}") from e
    if not decompressor.eof:
        raise CompressionError("truncated gzip stream")
    return result


def is_compressed(data: bytes) -> bool:
    return data[:2] == GZIP_MAGIC

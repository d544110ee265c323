"""
hybridstore.infrastructure.codec - Compression Codecs
======================================================

A codec is a reversible byte transform with an explicit failure signal:
both directions raise CodecError instead of leaking zlib/OSError types.
The Blob Store catches CodecError on compress (falls back to storing
uncompressed) and turns it into DecompressionError on load.
"""

from __future__ import annotations

import gzip
import zlib
from abc import ABC, abstractmethod


class CodecError(Exception):
    """Raised by a codec that cannot transform its input."""


class CompressionCodec(ABC):
    """Reversible byte transform."""

    name: str = "identity"

    @abstractmethod
    def compress(self, data: bytes) -> bytes:
        ...

    @abstractmethod
    def decompress(self, data: bytes) -> bytes:
        ...


class GzipCodec(CompressionCodec):
    """gzip codec. ``mtime=0`` keeps output deterministic for equal input."""

    name = "gzip"

    def __init__(self, level: int = 6) -> None:
        self.level = level

    def compress(self, data: bytes) -> bytes:
        try:
            return gzip.compress(data, compresslevel=self.level, mtime=0)
        except (OSError, zlib.error, ValueError) as exc:
            raise CodecError(f"gzip compression failed: {exc}") from exc

    def decompress(self, data: bytes) -> bytes:
        try:
            return gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as exc:
            raise CodecError(f"gzip decompression failed: {exc}") from exc

# ==================================================
# ziso/compression.py
# ==================================================
"""Per-block transform: compress one block or fall back to raw storage."""
from __future__ import annotations

import zlib

import zstandard as zstd

from .const import DEFAULT_CODEC, DEFAULT_THRESHOLD
from .errors import CorruptStream

# -------- codec wrappers --------------------------------------------------

class DeflateCodec:
    """Raw deflate stream (no zlib header / checksum)."""
    name = "deflate"
    default_level = 9

    def __init__(self, level: int | None = None):
        self.level = self.default_level if level is None else level
        if not -1 <= self.level <= 9:
            raise ValueError(f"Deflate level must be within -1..9, got {self.level}")

    def compress(self, data: bytes) -> bytes:
        cobj = zlib.compressobj(self.level, zlib.DEFLATED, -15)
        return cobj.compress(data) + cobj.flush()

    def decompress(self, payload: bytes, expected_len: int) -> bytes:
        dobj = zlib.decompressobj(-15)
        try:
            out = dobj.decompress(payload, expected_len + 1)
        except zlib.error as e:
            raise CorruptStream(f"Invalid deflate data: {e}") from e
        if len(out) != expected_len or not dobj.eof:
            raise CorruptStream(
                f"Deflate stream inflated to {len(out)} bytes, expected {expected_len}")
        return out


class ZstdCodec:
    name = "zstd"
    default_level = 3

    def __init__(self, level: int | None = None):
        self.level = self.default_level if level is None else level
        if not 1 <= self.level <= zstd.MAX_COMPRESSION_LEVEL:
            raise ValueError(
                f"Zstd level must be within 1..{zstd.MAX_COMPRESSION_LEVEL}, got {self.level}")
        self.cctx = zstd.ZstdCompressor(level=self.level)
        self.dctx = zstd.ZstdDecompressor()

    def compress(self, data: bytes) -> bytes:
        return self.cctx.compress(data)

    def decompress(self, payload: bytes, expected_len: int) -> bytes:
        # the frame header carries the content size; check it before inflating
        try:
            size = zstd.frame_content_size(payload)
        except zstd.ZstdError as e:
            raise CorruptStream(f"Invalid zstd frame header: {e}") from e
        if size != expected_len:
            raise CorruptStream(
                f"Zstd frame declares {size} bytes, expected {expected_len}")
        dobj = self.dctx.decompressobj()
        try:
            out = dobj.decompress(payload)
        except zstd.ZstdError as e:
            raise CorruptStream(f"Invalid zstd data: {e}") from e
        if len(out) != expected_len or not dobj.eof:
            raise CorruptStream(
                f"Zstd frame decoded to {len(out)} bytes, expected {expected_len}")
        return out


CODECS = {
    DeflateCodec.name: DeflateCodec,
    ZstdCodec.name: ZstdCodec,
}


def get_codec(name: str = DEFAULT_CODEC, level: int | None = None):
    """Return a codec instance; an out-of-range *level* fails here, before any I/O."""
    try:
        cls = CODECS[name]
    except KeyError:
        raise ValueError(f"Unknown codec {name!r}; choose from {sorted(CODECS)}") from None
    return cls(level)


# -------- block transform -------------------------------------------------

def check_threshold(threshold: int):
    if not 1 <= threshold <= 100:
        raise ValueError(f"Threshold must be within 1..100, got {threshold}")


def compress_block(raw: bytes, codec=None,
                   threshold: int = DEFAULT_THRESHOLD) -> tuple[bytes, bool]:
    """
    Compress one block. Returns ``(payload, used_compression)``.

    The raw bytes are kept whenever the compressed form is not below
    ``threshold`` percent of the input, so the payload is never longer
    than *raw*.
    """
    check_threshold(threshold)
    if not raw:
        return raw, False
    codec = codec or get_codec()
    packed = codec.compress(raw)
    if 100 * len(packed) // len(raw) >= threshold:
        return raw, False
    return packed, True


def decompress_block(payload: bytes, compressed: bool, expected_len: int,
                     codec=None) -> bytes:
    if not compressed:
        if len(payload) != expected_len:
            raise CorruptStream(
                f"Raw block holds {len(payload)} bytes, expected {expected_len}")
        return payload
    codec = codec or get_codec()
    return codec.decompress(payload, expected_len)

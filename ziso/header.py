# ==================================================
# ziso/header.py
# ==================================================
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO

from .const import (CODEC_IDS, DEFAULT_BLOCK_SIZE, DEFAULT_CODEC, FORMAT_VERSION,
                    HEADER_FMT, HEADER_SIZE, INDEX_ENTRY_SIZE, MAGIC,
                    MAX_ALIGNMENT_SHIFT, MAX_BLOCK_SIZE, MAX_TOTAL_SIZE)
from .errors import (BadHeaderSize, BadMagic, InvalidBlockSize, TruncatedHeader,
                     UnsupportedAlignment, UnsupportedCodec, UnsupportedVersion)

_CODEC_NAMES = {v: k for k, v in CODEC_IDS.items()}


def align_up(offset: int, shift: int) -> int:
    """Round *offset* up to the next multiple of ``2 ** shift``."""
    mask = (1 << shift) - 1
    return (offset + mask) & ~mask


def _check_block_size(block_size: int):
    if block_size <= 0 or block_size & (block_size - 1):
        raise InvalidBlockSize(f"Block size must be a power of two, got {block_size}")
    if block_size > MAX_BLOCK_SIZE:
        raise InvalidBlockSize(f"Block size {block_size} does not fit the header")


def _check_alignment(shift: int):
    if not 0 <= shift <= MAX_ALIGNMENT_SHIFT:
        raise UnsupportedAlignment(
            f"Alignment shift must be within 0..{MAX_ALIGNMENT_SHIFT}, got {shift}")


def _check_codec(codec: str):
    if codec not in CODEC_IDS:
        raise UnsupportedCodec(f"Unknown codec {codec!r}; choose from {sorted(CODEC_IDS)}")


@dataclass(frozen=True)
class ContainerHeader:
    """Fixed 24-byte header at the start of every ZSO file."""
    total_size: int
    block_size: int = DEFAULT_BLOCK_SIZE
    alignment_shift: int = 0
    version: int = FORMAT_VERSION
    header_size: int = HEADER_SIZE
    codec: str = DEFAULT_CODEC

    # ------------------------------------------------------------------
    @classmethod
    def build(cls, total_size: int, block_size: int = DEFAULT_BLOCK_SIZE,
              alignment_shift: int = 0, codec: str = DEFAULT_CODEC) -> ContainerHeader:
        if not 0 <= total_size <= MAX_TOTAL_SIZE:
            raise ValueError(f"Total size out of range: {total_size}")
        _check_block_size(block_size)
        _check_alignment(alignment_shift)
        _check_codec(codec)
        return cls(total_size, block_size, alignment_shift, codec=codec)

    def serialize(self) -> bytes:
        return struct.pack(HEADER_FMT, MAGIC, self.header_size, self.total_size,
                           self.block_size, self.version, self.alignment_shift,
                           CODEC_IDS[self.codec], 0)

    @classmethod
    def parse(cls, data: bytes) -> ContainerHeader:
        if len(data) < HEADER_SIZE:
            raise TruncatedHeader(f"Need {HEADER_SIZE} header bytes, got {len(data)}")
        magic, hdr_size, total, block_size, version, align, codec_id, _reserved = \
            struct.unpack_from(HEADER_FMT, data, 0)
        if magic != MAGIC:
            raise BadMagic(f"Not a ZSO file (magic {magic!r})")
        if hdr_size != HEADER_SIZE:
            raise BadHeaderSize(f"Unexpected header size {hdr_size}")
        if version > FORMAT_VERSION:
            raise UnsupportedVersion(f"Format version {version} is newer than {FORMAT_VERSION}")
        _check_block_size(block_size)
        _check_alignment(align)
        if codec_id not in _CODEC_NAMES:
            raise UnsupportedCodec(f"Unknown codec id {codec_id}")
        return cls(total, block_size, align, version, hdr_size, _CODEC_NAMES[codec_id])

    # -- derived geometry ------------------------------------------------
    @property
    def block_count(self) -> int:
        return -(-self.total_size // self.block_size)

    def block_length(self, i: int) -> int:
        """True length of block *i*; only the last block may be short."""
        return min(self.block_size, self.total_size - i * self.block_size)

    @property
    def index_size(self) -> int:
        return (self.block_count + 1) * INDEX_ENTRY_SIZE

    @property
    def data_start(self) -> int:
        return align_up(self.header_size + self.index_size, self.alignment_shift)


# -------- probes ----------------------------------------------------------

def is_zso(data: bytes) -> bool:
    """Fast check on the first bytes of a file."""
    return data[:len(MAGIC)] == MAGIC


def read_header(stream: BinaryIO) -> ContainerHeader:
    """Read and parse the header at the current position of *stream*."""
    return ContainerHeader.parse(stream.read(HEADER_SIZE))

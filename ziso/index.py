# ==================================================
# ziso/index.py
# ==================================================
"""Block index table.

One little-endian u32 word per block plus a trailing sentinel. Bit 31 flags
a compressed payload; bits 30..0 hold the byte offset shifted right by the
alignment shift. Block *i* occupies ``[offset(i), offset(i+1))`` on disk.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .const import INDEX_ENTRY_SIZE, INDEX_FLAG, INDEX_FMT, INDEX_MASK
from .errors import (CorruptIndex, MisalignedOffset, OffsetTooLarge, OutOfRange,
                     TruncatedIndex)


@dataclass(frozen=True)
class IndexEntry:
    offset: int          # stored offset, already shifted right
    compressed: bool = False

    def pack(self) -> int:
        if not 0 <= self.offset <= INDEX_MASK:
            raise OffsetTooLarge(f"Stored offset {self.offset:#x} exceeds {INDEX_MASK:#x}")
        return self.offset | (INDEX_FLAG if self.compressed else 0)

    @classmethod
    def unpack(cls, word: int) -> IndexEntry:
        word = int(word)
        return cls(word & INDEX_MASK, bool(word & INDEX_FLAG))

    @classmethod
    def from_actual(cls, actual_offset: int, shift: int,
                    compressed: bool = False) -> IndexEntry:
        if actual_offset < 0:
            raise OffsetTooLarge(f"Negative offset {actual_offset}")
        if actual_offset & ((1 << shift) - 1):
            raise MisalignedOffset(
                f"Offset {actual_offset:#x} is not aligned to {1 << shift} bytes")
        stored = actual_offset >> shift
        if stored > INDEX_MASK:
            raise OffsetTooLarge(
                f"Offset {actual_offset:#x} does not fit the index with shift {shift}")
        return cls(stored, compressed)

    def actual(self, shift: int) -> int:
        return self.offset << shift


class IndexTable:
    def __init__(self, words: np.ndarray, alignment_shift: int = 0):
        self.words = words
        self.alignment_shift = alignment_shift

    @classmethod
    def build(cls, block_count: int, alignment_shift: int = 0) -> IndexTable:
        return cls(np.zeros(block_count + 1, dtype=INDEX_FMT), alignment_shift)

    @property
    def block_count(self) -> int:
        return len(self.words) - 1

    # ------------------------------------------------------------------
    def record(self, i: int, actual_offset: int, compressed: bool):
        if not 0 <= i <= self.block_count:
            raise OutOfRange(f"Block {i} outside 0..{self.block_count}")
        entry = IndexEntry.from_actual(actual_offset, self.alignment_shift, compressed)
        self.words[i] = entry.pack()

    def finalize(self, end_offset: int):
        self.record(self.block_count, end_offset, False)

    def entry(self, i: int) -> IndexEntry:
        if not 0 <= i <= self.block_count:
            raise OutOfRange(f"Entry {i} outside 0..{self.block_count}")
        return IndexEntry.unpack(self.words[i])

    def lookup(self, i: int) -> tuple[int, int, bool]:
        """Return ``(start, end, compressed)`` for data block *i*."""
        if not 0 <= i < self.block_count:
            raise OutOfRange(f"Block {i} outside 0..{self.block_count - 1}")
        head = IndexEntry.unpack(self.words[i])
        tail = IndexEntry.unpack(self.words[i + 1])
        return (head.actual(self.alignment_shift), tail.actual(self.alignment_shift),
                head.compressed)

    # ------------------------------------------------------------------
    def offsets(self) -> np.ndarray:
        return (self.words & INDEX_MASK).astype(np.uint64) << np.uint64(self.alignment_shift)

    def is_monotonic(self) -> bool:
        return bool(np.all(np.diff(self.offsets().astype(np.int64)) >= 0))

    def to_bytes(self) -> bytes:
        return self.words.astype(INDEX_FMT).tobytes()

    @classmethod
    def from_bytes(cls, data: bytes, block_count: int,
                   alignment_shift: int = 0) -> IndexTable:
        need = (block_count + 1) * INDEX_ENTRY_SIZE
        if len(data) < need:
            raise TruncatedIndex(f"Index needs {need} bytes, got {len(data)}")
        words = np.frombuffer(data, dtype=INDEX_FMT, count=block_count + 1).copy()
        table = cls(words, alignment_shift)
        if not table.is_monotonic():
            raise CorruptIndex("Index offsets are not monotonically non-decreasing")
        return table

    def __len__(self):
        return len(self.words)

    def __repr__(self):
        return f"IndexTable(blocks={self.block_count}, align={self.alignment_shift})"

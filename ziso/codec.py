# ==================================================
# ziso/codec.py
# ==================================================
"""
Whole-file conversion between raw ISO images and ZSO containers.

Layout written by :func:`encode`::

    header (24 bytes) | index ((blocks + 1) * 4 bytes) | pad | block payloads

Blocks are processed strictly in order: the offset of block *i* depends on
the stored size of every block before it.
"""
from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .compression import check_threshold, compress_block, decompress_block, get_codec
from .const import (DEFAULT_BLOCK_SIZE, DEFAULT_CODEC, DEFAULT_PAD_BYTE,
                    DEFAULT_THRESHOLD, HEADER_SIZE, INDEX_MASK, MAX_ALIGNMENT_SHIFT)
from .errors import CorruptStream, OffsetTooLarge, TruncatedIndex
from .header import ContainerHeader, align_up
from .index import IndexTable

log = logging.getLogger(__name__)


class State(enum.Enum):
    INIT = "init"
    HEADER_DONE = "header-done"
    TABLE_DONE = "table-done"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


_NEXT = {
    State.INIT: State.HEADER_DONE,
    State.HEADER_DONE: State.TABLE_DONE,
    State.TABLE_DONE: State.STREAMING,
    State.STREAMING: State.DONE,
}


@dataclass
class ConversionStats:
    blocks: int = 0
    raw_size: int = 0
    container_size: int = 0
    compressed_blocks: int = 0

    @property
    def ratio(self) -> float:
        """Container size as a fraction of the raw image size."""
        return self.container_size / self.raw_size if self.raw_size else 0.0


# -------- capacity --------------------------------------------------------

def worst_case_end(total_size: int, block_size: int, alignment_shift: int) -> int:
    """End offset if every block were stored raw and padded."""
    header = ContainerHeader.build(total_size, block_size, alignment_shift)
    full, tail = divmod(total_size, block_size)
    end = header.data_start + full * align_up(block_size, alignment_shift)
    if tail:
        end += align_up(tail, alignment_shift)
    return end


def check_capacity(total_size: int, block_size: int, alignment_shift: int):
    end = worst_case_end(total_size, block_size, alignment_shift)
    if end >> alignment_shift > INDEX_MASK:
        raise OffsetTooLarge(
            f"{total_size} bytes may need offsets up to {end:#x}, which alignment "
            f"shift {alignment_shift} cannot address; increase the alignment")


def choose_alignment(total_size: int, block_size: int = DEFAULT_BLOCK_SIZE) -> int:
    """Smallest alignment shift whose index can address the whole image."""
    for shift in range(MAX_ALIGNMENT_SHIFT + 1):
        try:
            check_capacity(total_size, block_size, shift)
        except OffsetTooLarge:
            continue
        return shift
    raise OffsetTooLarge(f"{total_size} bytes exceed every supported alignment")


# -------- engine ----------------------------------------------------------

class _Conversion:
    """Tracks the forward-only state of one encode or decode run."""

    def __init__(self, direction: str):
        self.direction = direction
        self.state = State.INIT

    def advance(self, to: State):
        if _NEXT.get(self.state) is not to:
            raise RuntimeError(f"{self.direction}: illegal transition {self.state.name} -> {to.name}")
        self.state = to

    def fail(self):
        self.state = State.FAILED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            log.debug("%s failed in state %s: %s", self.direction, self.state.name, exc)
            self.fail()
        return False


def _source_size(source: BinaryIO) -> int:
    total = source.seek(0, os.SEEK_END)
    source.seek(0)
    return total


def _progress_period(blocks: int) -> int:
    return max(blocks // 100, 1)


def encode(source: BinaryIO, dest: BinaryIO,
           block_size: int = DEFAULT_BLOCK_SIZE,
           alignment_shift: int | None = 0, *,
           codec: str = DEFAULT_CODEC,
           level: int | None = None,
           threshold: int = DEFAULT_THRESHOLD,
           pad_byte: bytes = DEFAULT_PAD_BYTE) -> ConversionStats:
    """
    Compress the raw image in *source* into a ZSO container on *dest*.

    *dest* must be seekable: the index is rewritten once every block offset
    is known. ``alignment_shift=None`` picks the smallest shift that can
    address the image.
    """
    if len(pad_byte) != 1:
        raise ValueError(f"Padding must be a single byte, got {pad_byte!r}")
    check_threshold(threshold)
    transform = get_codec(codec, level)

    with _Conversion("encode") as conv:
        total = _source_size(source)
        if alignment_shift is None:
            alignment_shift = choose_alignment(total, block_size)
        header = ContainerHeader.build(total, block_size, alignment_shift, transform.name)
        check_capacity(total, block_size, alignment_shift)
        conv.advance(State.HEADER_DONE)

        blocks = header.block_count
        table = IndexTable.build(blocks, alignment_shift)
        base = dest.tell()
        dest.write(header.serialize())
        dest.write(table.to_bytes())
        cursor = header.header_size + header.index_size
        dest.write(pad_byte * (header.data_start - cursor))
        cursor = header.data_start
        conv.advance(State.TABLE_DONE)

        log.info("Compress %d bytes: block size %d, %d blocks, align %d, codec %s",
                 total, block_size, blocks, 1 << alignment_shift, transform.name)
        conv.advance(State.STREAMING)
        stats = ConversionStats(blocks=blocks, raw_size=total)
        period = _progress_period(blocks)
        for i in range(blocks):
            want = header.block_length(i)
            raw = source.read(want)
            if len(raw) != want:
                raise OSError(f"Short read on block {i}: {len(raw)} of {want} bytes")
            payload, used = compress_block(raw, transform, threshold)
            table.record(i, cursor, used)
            dest.write(payload)
            cursor += len(payload)
            padded = align_up(cursor, alignment_shift)
            dest.write(pad_byte * (padded - cursor))
            cursor = padded
            stats.compressed_blocks += used
            if (i + 1) % period == 0:
                log.debug("compress %d%% (block %d/%d, rate %d%%)",
                          100 * (i + 1) // blocks, i + 1, blocks,
                          100 * cursor // ((i + 1) * block_size))

        table.finalize(cursor)
        end = dest.tell()
        dest.seek(base + HEADER_SIZE)
        dest.write(table.to_bytes())
        dest.seek(end)
        conv.advance(State.DONE)

    stats.container_size = cursor
    log.info("Compress completed: %d bytes, rate %d%%", cursor,
             100 * cursor // total if total else 0)
    return stats


def decode(source: BinaryIO, dest: BinaryIO) -> ConversionStats:
    """
    Expand the ZSO container in *source* back into the raw image on *dest*.

    The block codec is taken from the header.
    """
    with _Conversion("decode") as conv:
        base = source.tell()
        header = ContainerHeader.parse(source.read(HEADER_SIZE))
        transform = get_codec(header.codec)
        conv.advance(State.HEADER_DONE)

        blocks = header.block_count
        index_end = base + header.header_size + header.index_size
        stream_end = source.seek(0, os.SEEK_END)
        if index_end > stream_end:
            raise TruncatedIndex(
                f"Header claims {blocks} blocks; the index would end at {index_end} "
                f"but the file is {stream_end} bytes")
        source.seek(base + header.header_size)
        table = IndexTable.from_bytes(source.read(header.index_size), blocks,
                                      header.alignment_shift)
        conv.advance(State.TABLE_DONE)

        log.info("Decompress %d bytes: block size %d, %d blocks, align %d, codec %s",
                 header.total_size, header.block_size, blocks,
                 1 << header.alignment_shift, header.codec)
        conv.advance(State.STREAMING)
        stats = ConversionStats(blocks=blocks, raw_size=header.total_size)
        period = _progress_period(blocks)
        for i in range(blocks):
            start, end, compressed = table.lookup(i)
            want = header.block_length(i)
            span = end - start if compressed else min(end - start, want)
            if base + start + span > stream_end:
                raise CorruptStream(f"Block {i} runs past the end of the file")
            source.seek(base + start)
            payload = source.read(span)
            if len(payload) != span:
                raise CorruptStream(f"Block {i} truncated: {len(payload)} of {span} bytes")
            dest.write(decompress_block(payload, compressed, want, transform))
            stats.compressed_blocks += compressed
            if (i + 1) % period == 0:
                log.debug("decompress %d%% (block %d/%d)", 100 * (i + 1) // blocks, i + 1, blocks)
        stats.container_size = table.entry(blocks).actual(header.alignment_shift)
        conv.advance(State.DONE)

    log.info("Decompress completed: %d bytes", header.total_size)
    return stats


# -------- path helpers ----------------------------------------------------

def _convert_file(func, in_path, out_path, **kw) -> ConversionStats:
    out_path = Path(out_path)
    with open(in_path, "rb") as fin:
        try:
            with open(out_path, "wb") as fout:
                return func(fin, fout, **kw)
        except BaseException:
            # a partially written container is never valid
            out_path.unlink(missing_ok=True)
            raise


def compress_file(in_path: str | os.PathLike, out_path: str | os.PathLike,
                  **kw) -> ConversionStats:
    return _convert_file(encode, in_path, out_path, **kw)


def decompress_file(in_path: str | os.PathLike, out_path: str | os.PathLike,
                    **kw) -> ConversionStats:
    return _convert_file(decode, in_path, out_path, **kw)

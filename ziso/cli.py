# ==================================================
# ziso/cli.py
# ==================================================
"""Command line front end: ``ziso [options] infile outfile``."""
from __future__ import annotations

import argparse
import logging
import os
import sys

from .codec import compress_file, decompress_file
from .compression import CODECS
from .const import DEFAULT_BLOCK_SIZE, DEFAULT_CODEC, DEFAULT_PAD_BYTE, DEFAULT_THRESHOLD
from .errors import ZisoError
from .header import read_header

# ───────────────────────── configuration ──────────────────────
ENV_CODEC      = os.getenv("ZISO_CODEC",      DEFAULT_CODEC)
ENV_BLOCK_SIZE = int(os.getenv("ZISO_BLOCK_SIZE", str(DEFAULT_BLOCK_SIZE)))
ENV_ALIGN      = os.getenv("ZISO_ALIGN",      "auto")

log = logging.getLogger("ziso")


def _align(value: str) -> int | None:
    if value == "auto":
        return None
    return int(value)


def _pad(value: str) -> bytes:
    data = value.encode("latin-1")
    if len(data) != 1:
        raise argparse.ArgumentTypeError(f"padding must be one character, got {value!r}")
    return data


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ziso",
                                description="Convert between ISO images and ZSO containers")
    p.add_argument("-c", "--level", type=int, default=None,
                   help="compression level; 0 decompresses")
    p.add_argument("-d", "--decompress", action="store_true",
                   help="decompress ZSO to ISO")
    p.add_argument("-t", "--threshold", type=int, default=DEFAULT_THRESHOLD,
                   help="store a block raw when compressed >= threshold%% of it (1-100)")
    p.add_argument("-a", "--align", type=_align, default=_align(ENV_ALIGN),
                   help="padding alignment 0..6 or 'auto' (0=small/slow 6=fast/large)")
    p.add_argument("-p", "--pad", type=_pad, default=DEFAULT_PAD_BYTE,
                   help="padding byte")
    p.add_argument("-b", "--block-size", type=int, default=ENV_BLOCK_SIZE,
                   help="block size in bytes (power of two)")
    p.add_argument("--codec", choices=sorted(CODECS), default=ENV_CODEC,
                   help="block compressor for new files; decode reads it from the header")
    p.add_argument("--info", action="store_true",
                   help="print the header of a ZSO file and exit")
    p.add_argument("-v", "--verbose", action="store_true")
    p.add_argument("infile", help="input file")
    p.add_argument("outfile", nargs="?", help="output file")
    return p


def _print_info(path):
    with open(path, "rb") as f:
        hdr = read_header(f)
    print(f"total size   {hdr.total_size} bytes")
    print(f"block size   {hdr.block_size} bytes")
    print(f"total blocks {hdr.block_count}")
    print(f"version      {hdr.version}")
    print(f"index align  {1 << hdr.alignment_shift}")
    print(f"codec        {hdr.codec}")


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    try:
        if args.info:
            _print_info(args.infile)
            return 0
        if args.outfile is None:
            p.error("outfile is required")
        if args.decompress or args.level == 0:
            log.info("Decompress '%s' to '%s'", args.infile, args.outfile)
            decompress_file(args.infile, args.outfile)
        else:
            log.info("Compress '%s' to '%s'", args.infile, args.outfile)
            stats = compress_file(args.infile, args.outfile,
                                  block_size=args.block_size,
                                  alignment_shift=args.align,
                                  codec=args.codec,
                                  level=args.level,
                                  threshold=args.threshold,
                                  pad_byte=args.pad)
            log.info("%d of %d blocks compressed", stats.compressed_blocks, stats.blocks)
    except (ZisoError, OSError, ValueError) as e:
        log.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

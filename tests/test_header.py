"""
Container header - build, serialize, parse and derived geometry.
"""

import io
import struct

import pytest

from ziso.const import HEADER_SIZE, MAGIC
from ziso.errors import (BadHeaderSize, BadMagic, FormatError, InvalidBlockSize,
                         TruncatedHeader, UnsupportedAlignment, UnsupportedCodec,
                         UnsupportedVersion)
from ziso.header import ContainerHeader, align_up, is_zso, read_header


def _raw_header(magic=MAGIC, hdr_size=24, total=4096, block=2048, ver=1, align=0, codec=0):
    return struct.pack("<4sIQIBBBB", magic, hdr_size, total, block, ver, align, codec, 0)


class TestBuild:

    def test_defaults(self):
        hdr = ContainerHeader.build(4096)
        assert hdr.block_size == 2048
        assert hdr.alignment_shift == 0
        assert hdr.version == 1
        assert hdr.header_size == HEADER_SIZE

    @pytest.mark.parametrize("block_size", [0, 3, 2047, 3000, -2048])
    def test_rejects_bad_block_size(self, block_size):
        with pytest.raises(InvalidBlockSize):
            ContainerHeader.build(4096, block_size)

    @pytest.mark.parametrize("shift", [-1, 7, 31])
    def test_rejects_bad_alignment(self, shift):
        with pytest.raises(UnsupportedAlignment):
            ContainerHeader.build(4096, 2048, shift)

    def test_rejects_negative_size(self):
        with pytest.raises(ValueError):
            ContainerHeader.build(-1)

    def test_immutable(self):
        hdr = ContainerHeader.build(4096)
        with pytest.raises(AttributeError):
            hdr.total_size = 1


class TestSerialize:

    def test_layout(self):
        data = ContainerHeader.build(5000, 2048, 3).serialize()
        assert len(data) == 24
        assert struct.unpack("<IIQIBBH", data) == (0x4F53495A, 24, 5000, 2048, 1, 3, 0)
        assert data[:4] == b"ZISO"

    def test_parse_matches_build(self):
        hdr = ContainerHeader.build(123456789, 4096, 2)
        assert ContainerHeader.parse(hdr.serialize()) == hdr

    def test_parse_ignores_trailing_bytes(self):
        hdr = ContainerHeader.build(4096)
        assert ContainerHeader.parse(hdr.serialize() + b"\0" * 100) == hdr


class TestParseErrors:

    def test_bad_magic(self):
        data = bytearray(_raw_header())
        data[0] ^= 0xFF
        with pytest.raises(BadMagic):
            ContainerHeader.parse(bytes(data))

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            ContainerHeader.parse(_raw_header(magic=b"CISO"))
        assert issubclass(BadMagic, FormatError)

    def test_unsupported_version(self):
        with pytest.raises(UnsupportedVersion):
            ContainerHeader.parse(_raw_header(ver=2))

    def test_older_version_accepted(self):
        assert ContainerHeader.parse(_raw_header(ver=0)).version == 0

    @pytest.mark.parametrize("block", [0, 3000])
    def test_invalid_block_size(self, block):
        with pytest.raises(InvalidBlockSize):
            ContainerHeader.parse(_raw_header(block=block))

    def test_bad_header_size(self):
        with pytest.raises(BadHeaderSize):
            ContainerHeader.parse(_raw_header(hdr_size=32))

    def test_bad_alignment(self):
        with pytest.raises(UnsupportedAlignment):
            ContainerHeader.parse(_raw_header(align=9))

    def test_unknown_codec_id(self):
        with pytest.raises(UnsupportedCodec):
            ContainerHeader.parse(_raw_header(codec=2))
        assert issubclass(UnsupportedCodec, FormatError)

    def test_truncated(self):
        with pytest.raises(TruncatedHeader):
            ContainerHeader.parse(_raw_header()[:20])


class TestGeometry:

    def test_block_count_rounds_up(self):
        hdr = ContainerHeader.build(2048 * 2 + 500, 2048)
        assert hdr.block_count == 3
        assert hdr.block_length(0) == 2048
        assert hdr.block_length(2) == 500

    def test_exact_multiple(self):
        hdr = ContainerHeader.build(4096, 2048)
        assert hdr.block_count == 2
        assert hdr.block_length(1) == 2048

    def test_empty_image(self):
        hdr = ContainerHeader.build(0)
        assert hdr.block_count == 0
        assert hdr.index_size == 4

    def test_index_and_data_start(self):
        hdr = ContainerHeader.build(4096, 2048, 4)
        assert hdr.index_size == 12
        assert hdr.data_start == 48   # 24 + 12 rounded to 16

    def test_data_start_unaligned(self):
        assert ContainerHeader.build(4096, 2048, 0).data_start == 36

    def test_align_up(self):
        assert align_up(0, 4) == 0
        assert align_up(1, 4) == 16
        assert align_up(16, 4) == 16
        assert align_up(17, 0) == 17


class TestProbes:

    def test_is_zso(self):
        assert is_zso(_raw_header())
        assert not is_zso(b"CISO" + b"\0" * 20)
        assert not is_zso(b"")

    def test_read_header(self):
        hdr = ContainerHeader.build(10000, 2048, 1)
        assert read_header(io.BytesIO(hdr.serialize() + b"rest")) == hdr


class TestCodecField:

    def test_default_is_deflate(self):
        hdr = ContainerHeader.parse(_raw_header())
        assert hdr.codec == "deflate"

    def test_zstd_id(self):
        hdr = ContainerHeader.build(4096, codec="zstd")
        data = hdr.serialize()
        assert data[22] == 1
        assert ContainerHeader.parse(data).codec == "zstd"

    def test_build_rejects_unknown_codec(self):
        with pytest.raises(UnsupportedCodec):
            ContainerHeader.build(4096, codec="lz4")

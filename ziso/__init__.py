from .codec import ConversionStats, compress_file, decode, decompress_file, encode
from .header import ContainerHeader, is_zso, read_header
from .index import IndexEntry, IndexTable

__all__ = [
    "ContainerHeader", "ConversionStats", "IndexEntry", "IndexTable",
    "compress_file", "decode", "decompress_file", "encode", "is_zso", "read_header",
]

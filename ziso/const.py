# ==================================================
# ziso/const.py
# ==================================================
MAGIC = b"ZISO"           # u32 LE 0x4F53495A
HEADER_FMT = "<4sLQLBBBB"  # magic, header_size (L), total_bytes (Q), block_size (L), version (B), align (B), codec (B), reserved (B)
HEADER_SIZE = 24          # bytes (4+4+8+4+1+1+1+1)
FORMAT_VERSION = 1

INDEX_FMT = "<u4"         # numpy dtype of one index word
INDEX_ENTRY_SIZE = 4
INDEX_FLAG = 0x80000000   # bit 31: block payload is compressed
INDEX_MASK = 0x7FFFFFFF   # bits 30..0: offset >> align

DEFAULT_BLOCK_SIZE = 0x800
MAX_BLOCK_SIZE = 0x80000000
MAX_TOTAL_SIZE = (1 << 64) - 1
MAX_ALIGNMENT_SHIFT = 6   # 2**31 << 6 == 128 GiB addressable

DEFAULT_CODEC = "deflate"
CODEC_IDS = {"deflate": 0, "zstd": 1}   # header byte 22; deflate stays 0
DEFAULT_THRESHOLD = 100   # percent; store raw when compressed >= threshold% of raw
DEFAULT_PAD_BYTE = b"X"

EXTENSION = ".zso"

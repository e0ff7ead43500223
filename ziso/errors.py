# ==================================================
# ziso/errors.py
# ==================================================
"""Exceptions raised while building, reading or converting ZSO containers.

Every error is fatal to the conversion that raised it.
"""


class ZisoError(Exception):
    """Base class for all ziso failures."""


# -------- header ----------------------------------------------------------

class FormatError(ZisoError, ValueError):
    """The container header cannot be trusted."""


class BadMagic(FormatError):
    pass


class BadHeaderSize(FormatError):
    pass


class UnsupportedVersion(FormatError):
    pass


class InvalidBlockSize(FormatError):
    pass


class UnsupportedAlignment(FormatError):
    pass


class UnsupportedCodec(FormatError):
    pass


class TruncatedHeader(FormatError):
    pass


# -------- index table -----------------------------------------------------

class IndexTableError(ZisoError):
    """Index table cannot represent or does not contain the requested entry."""


class OffsetTooLarge(IndexTableError, OverflowError):
    pass


class MisalignedOffset(OffsetTooLarge):
    """Offset has bits set below the alignment shift."""


class OutOfRange(IndexTableError, IndexError):
    pass


class TruncatedIndex(IndexTableError):
    pass


class CorruptIndex(IndexTableError):
    pass


# -------- block transform -------------------------------------------------

class TransformError(ZisoError):
    pass


class CorruptStream(TransformError):
    pass

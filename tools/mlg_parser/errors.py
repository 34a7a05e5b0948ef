"""
Errors and Warnings

Fatal conditions are raised as MlgError subclasses. Non-fatal conditions
found while streaming records are reported as ConversionWarning records
and the conversion carries on.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    INVALID_SIGNATURE = 'InvalidSignature'
    UNSUPPORTED_VERSION = 'UnsupportedVersion'
    INVALID_HEADER = 'InvalidHeader'
    EMPTY_FIELD_NAME = 'EmptyFieldName'
    DUPLICATE_FIELD = 'DuplicateField'
    FIELD_OUT_OF_BOUNDS = 'FieldOutOfBounds'
    UNKNOWN_FIELD_TYPE = 'UnknownFieldType'
    UNEXPECTED_EOF = 'UnexpectedEof'
    TRUNCATED_LOG = 'TruncatedLog'
    UNKNOWN_BLOCK_TYPE = 'UnknownBlockType'
    IO_ERROR = 'IoError'
    CANCELLED = 'Cancelled'


class WarningKind(Enum):
    TRAILING_BYTES = 'TrailingBytes'
    NON_MONOTONIC_TIMESTAMP = 'NonMonotonicTimestamp'
    CHECKSUM_MISMATCH = 'ChecksumMismatch'


class MlgError(Exception):
    """Base class for every fatal conversion error"""
    kind: ErrorKind = ErrorKind.IO_ERROR


class FormatError(MlgError):
    """The input is not a well-formed MLG log"""


class InvalidSignature(FormatError):
    kind = ErrorKind.INVALID_SIGNATURE

    def __init__(self, found: bytes):
        self.found = found
        super().__init__(f"Invalid file signature: {found!r}")


class UnsupportedVersion(FormatError):
    kind = ErrorKind.UNSUPPORTED_VERSION

    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Unsupported format version: {version}")


class InvalidHeader(FormatError):
    kind = ErrorKind.INVALID_HEADER


class EmptyFieldName(FormatError):
    kind = ErrorKind.EMPTY_FIELD_NAME

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"Field #{index} has an empty name")


class DuplicateField(FormatError):
    kind = ErrorKind.DUPLICATE_FIELD

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate field name: {name!r}")


class FieldOutOfBounds(FormatError):
    kind = ErrorKind.FIELD_OUT_OF_BOUNDS

    def __init__(self, name: str, offset: int, width: int, record_size: int):
        self.name = name
        self.offset = offset
        self.width = width
        self.record_size = record_size
        super().__init__(f"Field {name!r} at offset {offset} (width {width}) "
                         f"does not fit in a {record_size}-byte record")


class UnknownFieldType(FormatError):
    kind = ErrorKind.UNKNOWN_FIELD_TYPE

    def __init__(self, name: str, tag: int):
        self.name = name
        self.tag = tag
        super().__init__(f"Field {name!r} has unknown type tag {tag}")


class UnexpectedEof(FormatError):
    kind = ErrorKind.UNEXPECTED_EOF

    def __init__(self, requested: int, remaining: int, offset: int):
        self.requested = requested
        self.remaining = remaining
        self.offset = offset
        super().__init__(f"Unexpected end of data at offset {offset}: "
                         f"needed {requested} bytes, {remaining} left")


class TruncatedLog(FormatError):
    kind = ErrorKind.TRUNCATED_LOG

    def __init__(self, declared: int, found: int):
        self.declared = declared
        self.found = found
        super().__init__(f"Log declares {declared} records but only "
                         f"{found} complete records are present")


class UnknownBlockType(FormatError):
    kind = ErrorKind.UNKNOWN_BLOCK_TYPE

    def __init__(self, block_type: int, offset: int):
        self.block_type = block_type
        self.offset = offset
        super().__init__(f"Unknown block type {block_type} at offset {offset}")


class InputOutputError(MlgError):
    kind = ErrorKind.IO_ERROR


class ConversionCancelled(MlgError):
    kind = ErrorKind.CANCELLED

    def __init__(self, samples_written: int = 0):
        self.samples_written = samples_written
        super().__init__(f"Conversion cancelled after {samples_written} samples")


@dataclass(frozen=True)
class ConversionWarning:
    """A non-fatal condition found while decoding"""
    kind: WarningKind
    message: str
    record_index: Optional[int] = None

    def __str__(self) -> str:
        if self.record_index is None:
            return f"{self.kind.value}: {self.message}"
        return f"{self.kind.value} (record {self.record_index}): {self.message}"

"""
File Header Parser

Decodes the fixed-layout header of an MLG log. The signature and version
prefix are shared by every layout; the version selects the rest.

Layouts:
    1  MegaLogViewer v1: framed data blocks, 55-byte field entries
    2  MegaLogViewer v2: framed data blocks, 89-byte field entries
    3  Packed: bare fixed-size records, explicit offsets, explicit
       record count and sample interval
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from .cursor import BIG_ENDIAN, ByteCursor
from .errors import InvalidHeader, InvalidSignature, UnsupportedVersion

SIGNATURE = b'MLVLG\x00'
UNTIL_EOF = 0xFFFFFFFF

# Framed block layout
BLOCK_HEADER_SIZE = 4
BLOCK_TYPE_FIELD = 0
BLOCK_TYPE_MARKER = 1
MARKER_MESSAGE_LENGTH = 50
CLOCK_RESOLUTION_S = 1e-5   # block clock ticks are 10 us


@dataclass(frozen=True)
class FormatLayout:
    """On-disk layout selected by the format version"""
    version: int
    header_size: int
    descriptor_size: int
    framed: bool
    byte_order: str = BIG_ENDIAN
    has_category: bool = False

    @property
    def explicit_offsets(self) -> bool:
        return not self.framed


LAYOUTS: Dict[int, FormatLayout] = {
    1: FormatLayout(version=1, header_size=22, descriptor_size=55, framed=True),
    2: FormatLayout(version=2, header_size=24, descriptor_size=89, framed=True,
                    has_category=True),
    3: FormatLayout(version=3, header_size=32, descriptor_size=56, framed=False),
}

SUPPORTED_VERSIONS = tuple(sorted(LAYOUTS))


@dataclass
class Header:
    """Decoded file header"""
    signature: bytes
    version: int
    layout: FormatLayout
    timestamp: int
    record_size: int
    field_count: int
    data_begin: int
    record_count: Optional[int] = None     # None means "until EOF"
    sample_interval: float = 0.0
    info_data_start: Optional[int] = None

    @property
    def byte_order(self) -> str:
        return self.layout.byte_order

    @property
    def framed(self) -> bool:
        return self.layout.framed

    @property
    def until_eof(self) -> bool:
        return self.record_count is None

    @property
    def record_stride(self) -> int:
        """Bytes taken by one data record in the stream"""
        if self.framed:
            return BLOCK_HEADER_SIZE + self.record_size + 1
        return self.record_size

    @property
    def descriptor_table_end(self) -> int:
        return self.layout.header_size + self.field_count * self.layout.descriptor_size

    @property
    def start_datetime(self) -> Optional[datetime]:
        """Log creation time (None when the logger did not record one)"""
        if not self.timestamp:
            return None
        return datetime.fromtimestamp(self.timestamp)


def parse_header(cursor: ByteCursor) -> Header:
    """
    Parse the header at the cursor position.

    Fixes the cursor's byte order from the version and leaves the cursor
    at the start of the field descriptor table.

    Raises:
        InvalidSignature: the file is not an MLG log
        UnsupportedVersion: the version is not one of SUPPORTED_VERSIONS
        InvalidHeader: header values are inconsistent
        UnexpectedEof: the file ends inside the header
    """
    signature = cursor.read_bytes(min(len(SIGNATURE), cursor.remaining()))
    if signature != SIGNATURE:
        raise InvalidSignature(signature)

    cursor.byte_order = BIG_ENDIAN
    version = cursor.read_u16()
    layout = LAYOUTS.get(version)
    if layout is None:
        raise UnsupportedVersion(version)
    cursor.byte_order = layout.byte_order

    if layout.framed:
        timestamp = cursor.read_u32()
        if version == 1:
            info_start = cursor.read_u16()
        else:
            info_start = cursor.read_u32()
        data_begin = cursor.read_u32()
        record_size = cursor.read_u16()
        field_count = cursor.read_u16()
        header = Header(
            signature=signature,
            version=version,
            layout=layout,
            timestamp=timestamp,
            record_size=record_size,
            field_count=field_count,
            data_begin=data_begin,
            info_data_start=info_start,
        )
    else:
        timestamp = cursor.read_u32()
        record_size = cursor.read_u16()
        field_count = cursor.read_u16()
        record_count = cursor.read_u32()
        sample_interval = cursor.read_f64()
        data_begin = cursor.read_u32()
        if not math.isfinite(sample_interval) or sample_interval < 0:
            raise InvalidHeader(f"Invalid sample interval: {sample_interval}")
        header = Header(
            signature=signature,
            version=version,
            layout=layout,
            timestamp=timestamp,
            record_size=record_size,
            field_count=field_count,
            data_begin=data_begin,
            record_count=None if record_count == UNTIL_EOF else record_count,
            sample_interval=sample_interval,
        )

    if header.record_size == 0:
        raise InvalidHeader("Record size is zero")
    return header


def read_info_block(cursor: ByteCursor, header: Header) -> Tuple[str, str]:
    """
    Read the text between the field table and the record stream.

    Call with the cursor at the end of the descriptor table. Returns
    (bit_field_names, info_data); the packed layout has no bit field
    names. Leaves the cursor at the start of the record stream.
    """
    table_end = cursor.tell()
    if header.data_begin < table_end:
        raise InvalidHeader(f"Data begins at {header.data_begin}, inside the "
                            f"field table ending at {table_end}")

    bit_field_names = ''
    info_start = table_end
    if header.info_data_start is not None:
        if not table_end <= header.info_data_start <= header.data_begin:
            raise InvalidHeader(f"Info data offset {header.info_data_start} is "
                                f"outside {table_end}..{header.data_begin}")
        info_start = header.info_data_start
        bit_field_names = cursor.read_string(info_start - table_end)

    info_data = cursor.read_string(header.data_begin - info_start)
    return bit_field_names, info_data

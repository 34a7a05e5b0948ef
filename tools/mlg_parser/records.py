"""
Record Decoder

Walks the record stream once, front to back, yielding one RawRecord per
data record (and one Marker per marker block in framed logs). Nothing is
kept once it has been yielded.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from .cursor import ByteCursor
from .errors import (
    ConversionWarning, TruncatedLog, UnknownBlockType, WarningKind
)
from .fields import FieldDescriptor
from .header import (
    BLOCK_HEADER_SIZE, BLOCK_TYPE_FIELD, BLOCK_TYPE_MARKER,
    MARKER_MESSAGE_LENGTH, Header
)

logger = logging.getLogger(__name__)

WarningCallback = Callable[[ConversionWarning], None]


@dataclass
class RawRecord:
    """Physical values of one record, in field declaration order"""
    index: int
    values: Tuple[float, ...]
    clock: Optional[int] = None     # unwrapped block clock ticks (framed only)


@dataclass
class Marker:
    """Marker block from a framed log"""
    index: int                      # index of the next data record
    message: str
    clock: Optional[int] = None


@dataclass
class Sample:
    """A resolved timestamp plus the named physical values"""
    timestamp: float
    values: Dict[str, float]


def record_checksum(data: bytes) -> int:
    """Checksum stored after each framed data record"""
    return sum(data) & 0xFF


class RecordDecoder:
    """
    Forward-only decoder over the record stream.

    Expects the cursor positioned anywhere before the stream; it seeks to
    header.data_begin on first iteration. Iterating a second time raises
    RuntimeError.

    Example:
        decoder = RecordDecoder(header, fields, cursor)
        for item in decoder:
            if isinstance(item, RawRecord):
                print(item.index, item.values)
    """

    def __init__(self, header: Header, fields: List[FieldDescriptor],
                 cursor: ByteCursor,
                 on_warning: Optional[WarningCallback] = None,
                 check_crc: bool = True):
        self.header = header
        self.fields = fields
        self.cursor = cursor
        self.on_warning = on_warning
        self.check_crc = check_crc
        self.records_decoded = 0
        self._started = False
        self._clock = 0

    @property
    def stream_length(self) -> int:
        return max(self.cursor.size - self.header.data_begin, 0)

    @property
    def estimated_total(self) -> int:
        """Expected number of data records (exact for packed logs)"""
        complete = self.stream_length // self.header.record_stride
        if self.header.record_count is not None:
            return min(self.header.record_count, complete)
        return complete

    def _warn(self, kind: WarningKind, message: str, index: Optional[int] = None):
        warning = ConversionWarning(kind, message, index)
        logger.debug("%s", warning)
        if self.on_warning is not None:
            self.on_warning(warning)

    def _decode(self, data: bytes) -> Tuple[float, ...]:
        return tuple(f.decode(data) for f in self.fields)

    def __iter__(self) -> Iterator[Union[RawRecord, Marker]]:
        if self._started:
            raise RuntimeError("RecordDecoder is single-pass")
        self._started = True
        self.cursor.seek(self.header.data_begin)
        if self.header.framed:
            return self._iter_framed()
        return self._iter_packed()

    def _iter_packed(self) -> Iterator[RawRecord]:
        record_size = self.header.record_size
        declared = self.header.record_count
        complete, trailing = divmod(self.cursor.remaining(), record_size)

        if declared is None:
            count = complete
        else:
            count = min(declared, complete)
            if complete > declared:
                trailing += (complete - declared) * record_size

        for index in range(count):
            data = self.cursor.read_bytes(record_size)
            self.records_decoded += 1
            yield RawRecord(index, self._decode(data))

        if declared is not None and complete < declared:
            raise TruncatedLog(declared, complete)
        if trailing:
            self._warn(WarningKind.TRAILING_BYTES,
                       f"{trailing} bytes after the last complete record ignored",
                       count)

    def _advance_clock(self, ticks16: int) -> int:
        self._clock += (ticks16 - self._clock) & 0xFFFF
        return self._clock

    def _iter_framed(self) -> Iterator[Union[RawRecord, Marker]]:
        cursor = self.cursor
        record_size = self.header.record_size
        index = 0

        while cursor.remaining() > 0:
            offset = cursor.tell()
            if cursor.remaining() < BLOCK_HEADER_SIZE:
                self._warn(WarningKind.TRAILING_BYTES,
                           f"{cursor.remaining()} bytes after the last complete block ignored",
                           index)
                return

            block_type = cursor.read_u8()
            cursor.read_u8()    # rolling counter, unused
            ticks16 = cursor.read_u16()

            if block_type == BLOCK_TYPE_FIELD:
                needed = record_size + 1
                if cursor.remaining() < needed:
                    self._warn(WarningKind.TRAILING_BYTES,
                               f"{cursor.size - offset} bytes of an incomplete "
                               f"block at offset {offset} ignored",
                               index)
                    cursor.seek(cursor.size)
                    return
                data = cursor.read_bytes(record_size)
                crc = cursor.read_u8()
                if self.check_crc and crc != record_checksum(data):
                    self._warn(WarningKind.CHECKSUM_MISMATCH,
                               f"checksum {crc:#04x} != {record_checksum(data):#04x} "
                               f"at offset {offset}, record skipped",
                               index)
                    continue
                clock = self._advance_clock(ticks16)
                self.records_decoded += 1
                yield RawRecord(index, self._decode(data), clock)
                index += 1

            elif block_type == BLOCK_TYPE_MARKER:
                if cursor.remaining() < MARKER_MESSAGE_LENGTH:
                    self._warn(WarningKind.TRAILING_BYTES,
                               f"{cursor.size - offset} bytes of an incomplete "
                               f"marker at offset {offset} ignored",
                               index)
                    cursor.seek(cursor.size)
                    return
                message = cursor.read_string(MARKER_MESSAGE_LENGTH)
                yield Marker(index, message, self._advance_clock(ticks16))

            else:
                raise UnknownBlockType(block_type, offset)

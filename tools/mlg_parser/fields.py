"""
Field Descriptor Table

Channel definitions: name, units, on-disk type, position within a record
and the linear conversion from raw to physical value.
"""

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Set

import numpy as np

from .cursor import ByteCursor
from .errors import DuplicateField, EmptyFieldName, FieldOutOfBounds, UnknownFieldType
from .header import Header

FIELD_NAME_LENGTH = 34
FIELD_UNITS_LENGTH = 10
FIELD_CATEGORY_LENGTH = 34


class FieldType(IntEnum):
    """On-disk primitive types, keyed by their type tag"""
    U8 = 0
    I8 = 1
    U16 = 2
    I16 = 3
    U32 = 4
    I32 = 5
    I64 = 6
    F32 = 7
    BITS_U8 = 10
    BITS_U16 = 11
    BITS_U32 = 12

    @property
    def code(self) -> str:
        """struct format character"""
        return _TYPE_CODES[self]

    @property
    def width(self) -> int:
        return struct.calcsize(self.code)

    @property
    def is_float(self) -> bool:
        return self is FieldType.F32

    @property
    def is_bits(self) -> bool:
        return self >= FieldType.BITS_U8


_TYPE_CODES = {
    FieldType.U8: 'B',
    FieldType.I8: 'b',
    FieldType.U16: 'H',
    FieldType.I16: 'h',
    FieldType.U32: 'I',
    FieldType.I32: 'i',
    FieldType.I64: 'q',
    FieldType.F32: 'f',
    FieldType.BITS_U8: 'B',
    FieldType.BITS_U16: 'H',
    FieldType.BITS_U32: 'I',
}

DISPLAY_STYLES = {
    0: 'Float',
    1: 'Hex',
    2: 'bits',
    3: 'Date',
    4: 'On/Off',
    5: 'Yes/No',
    6: 'High/Low',
    7: 'Active/Inactive',
}
DISPLAY_FLOAT = 0


def widen_f32(value: float) -> float:
    """
    Widen a float32 to the shortest double that prints the same.

    struct hands back float32 values as the exact binary value
    (0.1f -> 0.10000000149011612); loggers mean the decimal they wrote.
    """
    return float(str(np.float32(value)))


@dataclass
class FieldDescriptor:
    """One channel of the log"""
    name: str
    units: str
    field_type: FieldType
    offset: int
    scale: float = 1.0
    bias: float = 0.0
    digits: Optional[int] = None
    display_style_code: int = DISPLAY_FLOAT
    category: str = ''
    _packer: struct.Struct = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self.field_type = FieldType(self.field_type)
        self._packer = struct.Struct('>' + self.field_type.code)

    @property
    def width(self) -> int:
        return self.field_type.width

    @property
    def end(self) -> int:
        return self.offset + self.width

    @property
    def display_style(self) -> str:
        """Human-readable display style"""
        return DISPLAY_STYLES.get(self.display_style_code,
                                  f'Unknown({self.display_style_code})')

    @property
    def is_float_display(self) -> bool:
        return self.display_style_code == DISPLAY_FLOAT

    def bind(self, byte_order: str) -> 'FieldDescriptor':
        """Fix the byte order used by decode()"""
        self._packer = struct.Struct(byte_order + self.field_type.code)
        return self

    def decode_raw(self, record: bytes):
        raw = self._packer.unpack_from(record, self.offset)[0]
        if self.field_type.is_float:
            return widen_f32(raw)
        return raw

    def decode(self, record: bytes) -> float:
        """Physical value of this field in a record"""
        raw = self.decode_raw(record)
        if self.scale == 1.0 and self.bias == 0.0:
            return float(raw)
        return raw * self.scale + self.bias


def _read_descriptor(cursor: ByteCursor, header: Header, offset: int):
    """Read one entry; returns (name, tag, descriptor kwargs)"""
    tag = cursor.read_u8()
    name = cursor.read_string(FIELD_NAME_LENGTH)
    units = cursor.read_string(FIELD_UNITS_LENGTH)

    if header.framed:
        display = cursor.read_u8()
        scale = widen_f32(cursor.read_f32())
        transform = widen_f32(cursor.read_f32())
        digits = cursor.read_i8()
        category = ''
        if header.layout.has_category:
            category = cursor.read_string(FIELD_CATEGORY_LENGTH)
        # MegaLogViewer computes (raw + transform) * scale
        bias = transform * scale
    else:
        offset = cursor.read_u16()
        scale = widen_f32(cursor.read_f32())
        bias = widen_f32(cursor.read_f32())
        digits = cursor.read_i8()
        display = DISPLAY_FLOAT
        category = ''

    return name, tag, dict(
        name=name,
        units=units,
        offset=offset,
        scale=scale,
        bias=bias,
        digits=digits if digits >= 0 else None,
        display_style_code=display,
        category=category,
    )


def parse_fields(cursor: ByteCursor, header: Header,
                 count: Optional[int] = None) -> List[FieldDescriptor]:
    """
    Parse the field descriptor table.

    Reads exactly `count` entries (default: header.field_count). In the
    framed layouts fields are packed back to back in declaration order;
    the packed layout stores each offset explicitly.

    Raises:
        EmptyFieldName, DuplicateField, UnknownFieldType, FieldOutOfBounds,
        UnexpectedEof
    """
    if count is None:
        count = header.field_count

    fields: List[FieldDescriptor] = []
    seen: Set[str] = set()
    next_offset = 0

    for index in range(count):
        name, tag, kwargs = _read_descriptor(cursor, header, next_offset)

        if not name:
            raise EmptyFieldName(index)
        if name in seen:
            raise DuplicateField(name)
        try:
            field_type = FieldType(tag)
        except ValueError:
            raise UnknownFieldType(name, tag) from None

        descriptor = FieldDescriptor(field_type=field_type, **kwargs).bind(header.byte_order)
        if descriptor.end > header.record_size:
            raise FieldOutOfBounds(name, descriptor.offset, descriptor.width,
                                   header.record_size)

        seen.add(name)
        fields.append(descriptor)
        next_offset = descriptor.end

    return fields

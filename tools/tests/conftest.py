"""
pytest configuration and fixtures.

The `mlg` fixture builds synthetic MLG logs in memory (and on disk) so
tests never depend on real logger files:

    data = mlg.packed([{'name': 'RPM', 'type': FieldType.U16}], [(950,), (1000,)])
    path = mlg.write(data)
"""

import struct

import pytest

from mlg_parser.fields import FieldType
from mlg_parser.header import SIGNATURE, UNTIL_EOF

PACKED_HEADER = struct.Struct('>6sHIHHIdI')
PACKED_DESCRIPTOR = struct.Struct('>B34s10sHffb')
NATIVE_HEADERS = {
    1: struct.Struct('>6sHIHIHH'),
    2: struct.Struct('>6sHIIIHH'),
}
NATIVE_DESCRIPTOR = struct.Struct('>B34s10sBffb')
BLOCK_HEADER = struct.Struct('>BBH')


def _type_code(field_type) -> str:
    return FieldType(field_type).code


class MlgBuilder:
    """Helper to build MLG files for tests."""

    def __init__(self, tmp_path):
        self.tmp_path = tmp_path

    def write(self, data: bytes, name: str = 'log.mlg'):
        """Write data to a file under tmp_path and return its path."""
        path = self.tmp_path / name
        path.write_bytes(data)
        return path

    def packed(self, fields, records, record_size=None, record_count=None,
               until_eof=False, sample_interval=0.1, info='', trailing=b'',
               signature=SIGNATURE, version=3, timestamp=0):
        """
        Build a packed (version 3) log.

        fields: dicts with name, type, and optional offset, scale, bias,
            units, digits; offsets default to back-to-back packing.
        records: one tuple of raw values per record.
        """
        layout = []
        next_offset = 0
        for f in fields:
            try:
                field_type = FieldType(f['type'])
                width = field_type.width
            except ValueError:
                # deliberately unknown tag
                field_type = f['type']
                width = 1
            offset = f.get('offset', next_offset)
            layout.append((f, field_type, offset))
            next_offset = offset + width
        if record_size is None:
            record_size = max(next_offset, 1)

        info_bytes = info.encode('utf-8')
        data_begin = PACKED_HEADER.size + PACKED_DESCRIPTOR.size * len(fields) + len(info_bytes)
        if until_eof:
            declared = UNTIL_EOF
        elif record_count is None:
            declared = len(records)
        else:
            declared = record_count

        out = bytearray(PACKED_HEADER.pack(signature, version, timestamp, record_size,
                                           len(fields), declared, sample_interval,
                                           data_begin))
        for f, field_type, offset in layout:
            out += PACKED_DESCRIPTOR.pack(
                int(field_type),
                f['name'].encode('utf-8'),
                f.get('units', '').encode('utf-8'),
                offset,
                f.get('scale', 1.0),
                f.get('bias', 0.0),
                f.get('digits', -1),
            )
        out += info_bytes

        for values in records:
            record = bytearray(record_size)
            for (f, field_type, offset), raw in zip(layout, values):
                struct.pack_into('>' + _type_code(field_type), record, offset, raw)
            out += record
        out += trailing
        return bytes(out)

    def native(self, fields, blocks, version=2, info='', bit_field_names='',
               trailing=b'', signature=SIGNATURE, timestamp=0):
        """
        Build a MegaLogViewer (version 1 or 2) framed log.

        fields: dicts with name, type, and optional units, scale,
            transform, digits, display, category.
        blocks: dicts, either {'values': (...), 'clock': n} for a data
            record (optional 'crc' overrides the checksum) or
            {'marker': 'text', 'clock': n}.
        """
        header = NATIVE_HEADERS[version]
        descriptor_size = NATIVE_DESCRIPTOR.size + (34 if version == 2 else 0)
        record_len = sum(FieldType(f['type']).width for f in fields)

        bit_bytes = bit_field_names.encode('utf-8')
        info_bytes = info.encode('utf-8')
        table_end = header.size + descriptor_size * len(fields)
        info_start = table_end + len(bit_bytes)
        data_begin = info_start + len(info_bytes)

        out = bytearray(header.pack(signature, version, timestamp, info_start,
                                    data_begin, record_len, len(fields)))
        for f in fields:
            out += NATIVE_DESCRIPTOR.pack(
                int(f['type']),
                f['name'].encode('utf-8'),
                f.get('units', '').encode('utf-8'),
                f.get('display', 0),
                f.get('scale', 1.0),
                f.get('transform', 0.0),
                f.get('digits', 0),
            )
            if version == 2:
                out += f.get('category', '').encode('utf-8').ljust(34, b'\0')
        out += bit_bytes
        out += info_bytes

        for counter, block in enumerate(blocks):
            clock = block.get('clock', counter) & 0xFFFF
            if 'marker' in block:
                out += BLOCK_HEADER.pack(1, counter & 0xFF, clock)
                out += block['marker'].encode('utf-8').ljust(50, b'\0')
                continue
            record = bytearray()
            for f, raw in zip(fields, block['values']):
                record += struct.pack('>' + _type_code(f['type']), raw)
            out += BLOCK_HEADER.pack(0, counter & 0xFF, clock)
            out += record
            out.append(block.get('crc', sum(record) & 0xFF))
        out += trailing
        return bytes(out)


@pytest.fixture
def mlg(tmp_path):
    """Builder for synthetic MLG logs."""
    return MlgBuilder(tmp_path)


@pytest.fixture
def engine_fields():
    """A small, realistic packed field table."""
    return [
        {'name': 'RPM', 'type': FieldType.U16, 'units': 'rpm'},
        {'name': 'MAP', 'type': FieldType.U16, 'units': 'kPa', 'scale': 0.1},
        {'name': 'CLT', 'type': FieldType.I16, 'units': 'C', 'scale': 0.1, 'bias': -40.0},
        {'name': 'AFR', 'type': FieldType.F32, 'units': 'AFR'},
    ]

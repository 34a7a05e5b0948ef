"""
Header Parser Tests
"""

import struct

import pytest

from mlg_parser.cursor import ByteCursor
from mlg_parser.errors import InvalidHeader, InvalidSignature, UnexpectedEof, UnsupportedVersion
from mlg_parser.fields import FieldType, parse_fields
from mlg_parser.header import SUPPORTED_VERSIONS, parse_header, read_info_block

RPM = {'name': 'RPM', 'type': FieldType.U16, 'units': 'rpm'}


class TestPackedHeader:
    """Version 3 headers."""

    def test_values(self, mlg):
        data = mlg.packed([RPM], [(900,), (950,)], sample_interval=0.05,
                          timestamp=1700000000)
        cur = ByteCursor(data)
        header = parse_header(cur)

        assert header.version == 3
        assert header.record_size == 2
        assert header.record_count == 2
        assert header.sample_interval == 0.05
        assert header.field_count == 1
        assert header.timestamp == 1700000000
        assert header.start_datetime is not None
        assert not header.framed
        assert header.record_stride == 2

    def test_cursor_left_at_field_table(self, mlg):
        """The cursor ends at the first field descriptor."""
        data = mlg.packed([RPM], [])
        cur = ByteCursor(data)
        header = parse_header(cur)
        assert cur.tell() == header.layout.header_size == 32

    def test_until_eof_sentinel(self, mlg):
        data = mlg.packed([RPM], [(1,)], until_eof=True)
        header = parse_header(ByteCursor(data))
        assert header.record_count is None
        assert header.until_eof

    def test_no_timestamp(self, mlg):
        header = parse_header(ByteCursor(mlg.packed([RPM], [])))
        assert header.start_datetime is None

    def test_zero_record_size(self, mlg):
        data = mlg.packed([], [], record_size=0)
        with pytest.raises(InvalidHeader):
            parse_header(ByteCursor(data))

    def test_negative_sample_interval(self, mlg):
        data = mlg.packed([RPM], [], sample_interval=-1.0)
        with pytest.raises(InvalidHeader):
            parse_header(ByteCursor(data))


class TestNativeHeader:
    """MegaLogViewer version 1 and 2 headers."""

    @pytest.mark.parametrize('version', [1, 2])
    def test_values(self, mlg, version):
        data = mlg.native([RPM, {'name': 'TPS', 'type': FieldType.U8}],
                          [{'values': (900, 10), 'clock': 0}],
                          version=version, info='firmware 1.2', bit_field_names='bits')
        cur = ByteCursor(data)
        header = parse_header(cur)

        assert header.version == version
        assert header.framed
        assert header.record_size == 3
        assert header.record_count is None
        assert header.sample_interval == 0.0
        assert header.record_stride == 4 + 3 + 1
        assert cur.tell() == (22 if version == 1 else 24)

    def test_info_block(self, mlg):
        """Bit field names and info text sit between the table and the data."""
        data = mlg.native([RPM], [], info='Capture Date: today', bit_field_names='SPK')
        cur = ByteCursor(data)
        header = parse_header(cur)
        parse_fields(cur, header)
        bits, info = read_info_block(cur, header)
        assert bits == 'SPK'
        assert info == 'Capture Date: today'
        assert cur.tell() == header.data_begin


class TestRejection:
    """Files that are not MLG logs fail fast."""

    def test_bad_signature(self, mlg):
        data = mlg.packed([RPM], [(1,)], signature=b'NOTMLG')
        with pytest.raises(InvalidSignature):
            parse_header(ByteCursor(data))

    def test_short_file_is_bad_signature(self):
        with pytest.raises(InvalidSignature):
            parse_header(ByteCursor(b'MLV'))

    def test_empty_file(self):
        with pytest.raises(InvalidSignature):
            parse_header(ByteCursor(b''))

    def test_unsupported_version(self, mlg):
        data = mlg.packed([RPM], [], version=7)
        with pytest.raises(UnsupportedVersion) as exc:
            parse_header(ByteCursor(data))
        assert exc.value.version == 7
        assert 7 not in SUPPORTED_VERSIONS

    def test_truncated_header(self, mlg):
        data = mlg.packed([RPM], [])[:20]
        with pytest.raises(UnexpectedEof):
            parse_header(ByteCursor(data))

    def test_data_begin_inside_field_table(self, mlg):
        data = bytearray(mlg.packed([RPM], []))
        # data_begin is the last u32 of the packed header
        struct.pack_into('>I', data, 28, 40)
        cur = ByteCursor(bytes(data))
        header = parse_header(cur)
        parse_fields(cur, header)
        with pytest.raises(InvalidHeader):
            read_info_block(cur, header)

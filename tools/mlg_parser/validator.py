"""
Log File Validator

Checks an MLG log without converting it:
- Signature, version and header consistency
- Field descriptor table (names, types, bounds)
- Record count against the declared count
- Framed record checksums
- Trailing partial records
- Timestamp monotonicity
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .cursor import ByteCursor
from .errors import (
    ConversionWarning, FormatError, InvalidHeader, InvalidSignature,
    MlgError, UnexpectedEof, UnsupportedVersion, WarningKind
)
from .fields import parse_fields
from .header import parse_header, read_info_block
from .records import Marker, RecordDecoder
from .timestamps import DEFAULT_TIMESTAMP_FIELD, TimestampResolver


@dataclass
class ValidationReport:
    """Results of file validation"""
    filepath: str
    is_valid: bool = True
    header_valid: bool = True
    fields_valid: bool = True
    stream_valid: bool = True

    version: int = 0
    record_size: int = 0
    field_count: int = 0

    record_count: int = 0
    expected_record_count: Optional[int] = None
    marker_count: int = 0
    checksum_failures: int = 0
    trailing_bytes: bool = False
    non_monotonic_timestamps: int = 0

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, msg: str):
        """Add an error and mark as invalid"""
        self.errors.append(msg)
        self.is_valid = False

    def add_warning(self, msg: str):
        """Add a warning (doesn't affect validity)"""
        self.warnings.append(msg)

    def record_warning(self, warning: ConversionWarning):
        if warning.kind is WarningKind.CHECKSUM_MISMATCH:
            self.checksum_failures += 1
            # one line per file is enough
            if self.checksum_failures > 1:
                return
        elif warning.kind is WarningKind.TRAILING_BYTES:
            self.trailing_bytes = True
        elif warning.kind is WarningKind.NON_MONOTONIC_TIMESTAMP:
            self.non_monotonic_timestamps += 1
            if self.non_monotonic_timestamps > 1:
                return
        self.add_warning(str(warning))

    def summary(self) -> str:
        """Generate human-readable summary"""
        expected = ('until EOF' if self.expected_record_count is None
                    else f"{self.expected_record_count:,}")
        lines = [
            f"Validation Report: {self.filepath}",
            "=" * 50,
            f"Status: {'VALID' if self.is_valid else 'INVALID'}",
            "",
            f"Header:  {'OK' if self.header_valid else 'INVALID'}",
            f"Fields:  {'OK' if self.fields_valid else 'INVALID'}",
            f"Records: {'OK' if self.stream_valid else 'INVALID'}",
            "",
            f"Version:      {self.version}",
            f"Record size:  {self.record_size} bytes",
            f"Fields:       {self.field_count}",
            f"Records:      {self.record_count:,} (declared: {expected})",
        ]

        if self.marker_count:
            lines.append(f"Markers:      {self.marker_count:,}")
        if self.checksum_failures:
            lines.append(f"Checksum failures: {self.checksum_failures:,}")
        if self.non_monotonic_timestamps:
            lines.append(f"Non-monotonic timestamps: {self.non_monotonic_timestamps:,}")

        if self.errors:
            lines.extend(["", "Errors:"])
            for err in self.errors:
                lines.append(f"  - {err}")

        if self.warnings:
            lines.extend(["", "Warnings:"])
            for warn in self.warnings:
                lines.append(f"  - {warn}")

        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            'filepath': self.filepath,
            'is_valid': self.is_valid,
            'header_valid': self.header_valid,
            'fields_valid': self.fields_valid,
            'stream_valid': self.stream_valid,
            'version': self.version,
            'record_size': self.record_size,
            'field_count': self.field_count,
            'record_count': self.record_count,
            'expected_record_count': self.expected_record_count,
            'marker_count': self.marker_count,
            'checksum_failures': self.checksum_failures,
            'trailing_bytes': self.trailing_bytes,
            'non_monotonic_timestamps': self.non_monotonic_timestamps,
            'errors': self.errors,
            'warnings': self.warnings,
        }


def validate_file(filepath: str, check_crc: bool = True,
                  check_timestamps: bool = True,
                  timestamp_field: Optional[str] = DEFAULT_TIMESTAMP_FIELD) -> ValidationReport:
    """
    Validate an MLG log file.

    Args:
        filepath: Path to the log file
        check_crc: Whether to verify framed record checksums
        check_timestamps: Whether to check that timestamps never decrease
        timestamp_field: Field holding the record time

    Returns:
        ValidationReport with detailed results
    """
    report = ValidationReport(filepath=filepath)
    path = Path(filepath)

    if not path.exists():
        report.add_error(f"File not found: {filepath}")
        return report

    with open(path, 'rb') as f:
        cursor = ByteCursor(f)

        try:
            header = parse_header(cursor)
        except (InvalidSignature, UnsupportedVersion, InvalidHeader, UnexpectedEof) as e:
            report.header_valid = False
            report.add_error(f"Invalid header: {e}")
            return report

        report.version = header.version
        report.record_size = header.record_size
        report.field_count = header.field_count
        report.expected_record_count = header.record_count

        try:
            fields = parse_fields(cursor, header)
            read_info_block(cursor, header)
        except FormatError as e:
            report.fields_valid = False
            report.add_error(f"Invalid field table: {e}")
            return report

        decoder = RecordDecoder(header, fields, cursor,
                                on_warning=report.record_warning,
                                check_crc=check_crc)
        resolver = None
        if check_timestamps:
            resolver = TimestampResolver(fields, header.sample_interval,
                                         timestamp_field=timestamp_field,
                                         on_warning=report.record_warning)
        try:
            for item in decoder:
                if isinstance(item, Marker):
                    report.marker_count += 1
                    continue
                report.record_count += 1
                if resolver is not None:
                    resolver.resolve(item.index, item.values, item.clock)
        except MlgError as e:
            report.stream_valid = False
            report.add_error(str(e))

    return report


def find_checksum_failures(filepath: str) -> int:
    """Number of framed records whose checksum does not match"""
    report = validate_file(filepath, check_crc=True, check_timestamps=False)
    return report.checksum_failures

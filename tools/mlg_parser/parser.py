"""
MLG Log File

Path-based entry point: parses the header and field table on open and
streams records from the file on demand, so large logs never have to fit
in memory.
"""

import logging
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union

import numpy as np

from .cursor import ByteCursor
from .errors import ConversionWarning
from .fields import FieldDescriptor, parse_fields
from .header import Header, parse_header, read_info_block
from .pipeline import ConversionOptions, ConversionResult, ProgressCallback, convert
from .records import Marker, RawRecord, RecordDecoder, Sample
from .sinks import CsvSink, DataFrameSink, create_sink
from .timestamps import DEFAULT_TIMESTAMP_FIELD, TimestampResolver

logger = logging.getLogger(__name__)


class LogFile:
    """
    MegaLogViewer binary log.

    Example:
        log = LogFile('datalog.mlg')
        print(log.field_names)
        for sample in log.iter_samples():
            print(f"{sample.timestamp:.3f}: {sample.values['RPM']}")

        log.to_csv('datalog.csv')
    """

    def __init__(self, filepath: Union[str, Path]):
        self.filepath = Path(filepath)
        self._record_count: Optional[int] = None

        with open(self.filepath, 'rb') as f:
            cursor = ByteCursor(f)
            self._header = parse_header(cursor)
            self._fields = parse_fields(cursor, self._header)
            self.bit_field_names, self.info = read_info_block(cursor, self._header)
            self.file_size = cursor.size
        logger.info("Opened %s: version %d, %d fields", self.filepath,
                    self._header.version, len(self._fields))

    @property
    def header(self) -> Header:
        """File header"""
        return self._header

    @property
    def fields(self) -> List[FieldDescriptor]:
        return list(self._fields)

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self._fields]

    @property
    def units(self) -> List[str]:
        return [f.units for f in self._fields]

    def field(self, name: str) -> FieldDescriptor:
        for f in self._fields:
            if f.name == name:
                return f
        raise KeyError(name)

    @property
    def stream_length(self) -> int:
        """Bytes in the record stream"""
        return max(self.file_size - self._header.data_begin, 0)

    @property
    def record_count(self) -> int:
        """
        Number of data records.

        Packed logs: complete records in the stream, capped at the
        declared count. Framed logs interleave markers and may skip bad
        records, so they are counted once by scanning.
        """
        if self._record_count is None:
            if self._header.framed:
                self._record_count = sum(1 for item in self.iter_records()
                                         if isinstance(item, RawRecord))
            else:
                complete = self.stream_length // self._header.record_stride
                if self._header.record_count is not None:
                    complete = min(self._header.record_count, complete)
                self._record_count = complete
        return self._record_count

    def iter_records(self, on_warning: Optional[Callable[[ConversionWarning], None]] = None,
                     check_crc: bool = True) -> Iterator[Union[RawRecord, Marker]]:
        """Iterate raw records (and markers) without loading them into memory"""
        with open(self.filepath, 'rb') as f:
            cursor = ByteCursor(f, self._header.byte_order)
            decoder = RecordDecoder(self._header, self._fields, cursor,
                                    on_warning=on_warning, check_crc=check_crc)
            yield from decoder

    def iter_samples(self, timestamp_field: Optional[str] = DEFAULT_TIMESTAMP_FIELD,
                     on_warning: Optional[Callable[[ConversionWarning], None]] = None,
                     check_crc: bool = True) -> Iterator[Sample]:
        """Iterate timestamped samples; markers are skipped"""
        resolver = TimestampResolver(self._fields, self._header.sample_interval,
                                     timestamp_field=timestamp_field,
                                     on_warning=on_warning)
        names = self.field_names
        for item in self.iter_records(on_warning=on_warning, check_crc=check_crc):
            if isinstance(item, Marker):
                continue
            timestamp = resolver.resolve(item.index, item.values, item.clock)
            yield Sample(timestamp, dict(zip(names, item.values)))

    def iter_markers(self) -> Iterator[Marker]:
        for item in self.iter_records():
            if isinstance(item, Marker):
                yield item

    def convert(self, output_path: Union[str, Path], fmt: str = 'csv',
                options: Optional[ConversionOptions] = None,
                progress_callback: Optional[ProgressCallback] = None,
                **sink_options) -> ConversionResult:
        """Convert to `fmt` ('csv', 'tsv', 'json'); raises on fatal errors"""
        sink = create_sink(fmt, **sink_options)
        result = convert(self.filepath, sink, output_path, options=options,
                         progress_callback=progress_callback)
        return result.raise_on_error()

    def to_csv(self, output_path: Union[str, Path], delimiter: str = ',',
               units_row: bool = True, use_field_digits: bool = False,
               options: Optional[ConversionOptions] = None,
               progress_callback: Optional[ProgressCallback] = None) -> int:
        """
        Export to CSV.

        Returns:
            Number of rows written
        """
        sink = CsvSink(delimiter=delimiter, units_row=units_row,
                       use_field_digits=use_field_digits)
        result = convert(self.filepath, sink, output_path, options=options,
                         progress_callback=progress_callback)
        result.raise_on_error()
        return result.samples_written

    def to_dataframe(self, options: Optional[ConversionOptions] = None):
        """
        Load the whole log into a pandas DataFrame.

        Raises:
            ImportError if pandas is not installed
        """
        sink = DataFrameSink()
        convert(self.filepath, sink, options=options).raise_on_error()
        return sink.frame

    def to_numpy(self, timestamp_field: Optional[str] = DEFAULT_TIMESTAMP_FIELD):
        """
        Load the whole log into numpy arrays.

        Returns:
            Dictionary with a 'timestamp' array and one float64 array per field
        """
        samples = list(self.iter_samples(timestamp_field=timestamp_field))
        result = {'timestamp': np.array([s.timestamp for s in samples], dtype=np.float64)}
        for name in self.field_names:
            result[name] = np.array([s.values[name] for s in samples], dtype=np.float64)
        return result

    def validate(self, check_crc: bool = True):
        """Integrity report for this file"""
        from .validator import validate_file
        return validate_file(str(self.filepath), check_crc=check_crc)

    def __repr__(self) -> str:
        return (f"LogFile('{self.filepath.name}', version={self._header.version}, "
                f"fields={len(self._fields)}, records={self.record_count})")

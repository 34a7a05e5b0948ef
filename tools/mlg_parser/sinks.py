"""
Conversion Sinks

Writers that receive the decoded sample stream: CSV (reference), TSV,
streaming JSON, and an in-memory pandas DataFrame.

Every sink follows the same call order:
    sink.open(target)
    sink.write_metadata(...)            # optional
    sink.write_header(names, units)
    sink.write_sample(t, values)        # once per sample
    sink.write_marker(t, message)       # optional, interleaved
    sink.close()
"""

import csv
import json
import math
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO, Union

Target = Union[str, Path, TextIO, None]

TIMESTAMP_UNITS = 's'


def format_value(value: float, digits: Optional[int] = None) -> str:
    """
    Locale-independent text for a physical value.

    Without digits the value is rounded to 15 significant digits and
    printed in its shortest form, so 250 * 0.1 prints as 25.0 and
    0.1 + 0.2 as 0.3. Scientific notation only appears for magnitudes
    of 1e16 and above or below 1e-4.
    """
    if not math.isfinite(value):
        return repr(float(value))
    if digits is not None:
        return f"{value:.{digits}f}"
    return repr(float(f"{value:.15g}"))


class Sink(ABC):
    """Destination for a stream of samples"""

    extension = ''

    def open(self, target: Target = None) -> 'Sink':
        return self

    def write_metadata(self, metadata: Mapping[str, Any]) -> None:
        """Describe the source log; ignored by sinks with nowhere to put it"""

    @abstractmethod
    def write_header(self, field_names: Sequence[str], units: Sequence[str],
                     digits: Optional[Sequence[Optional[int]]] = None,
                     timestamp_name: Optional[str] = None) -> None:
        """
        Column names and units, in declaration order.

        timestamp_name is the log field the timestamps come from, if any;
        tabular sinks use it to name the leading column.
        """

    @abstractmethod
    def write_sample(self, timestamp: float, values: Sequence[float]) -> None:
        ...

    def write_marker(self, timestamp: float, message: str) -> None:
        """Record a log marker; ignored by tabular sinks"""

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class TextSink(Sink):
    """Sink writing to a text file or an already open text stream"""

    def __init__(self):
        self._file: Optional[TextIO] = None
        self._owns_file = False

    def open(self, target: Target = None) -> 'TextSink':
        if target is None:
            raise ValueError(f"{type(self).__name__} needs an output path or stream")
        if isinstance(target, (str, Path)):
            self._file = open(target, 'w', newline='', encoding='utf-8')
            self._owns_file = True
        else:
            self._file = target
            self._owns_file = False
        return self

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def flush(self) -> None:
        if self._file is not None:
            self._file.flush()

    def close(self) -> None:
        if self._file is None:
            return
        try:
            self._finish()
            self._file.flush()
        finally:
            if self._owns_file:
                self._file.close()
            self._file = None

    def _finish(self) -> None:
        """Write any closing text before the file is released"""


def _as_row(values: Union[Sequence[float], Mapping[str, float]]) -> List[float]:
    if isinstance(values, Mapping):
        return list(values.values())
    return list(values)


class CsvSink(TextSink):
    """
    Delimited text output.

    Args:
        delimiter: single-character field separator
        units_row: write a second header row with the units
        timestamp_column: name of the leading timestamp column, or None
            to leave the timestamp out; when the timestamps come from a
            log field the column takes that field's name
        use_field_digits: format each value with its field's display
            digits instead of the lossless default
    """

    extension = '.csv'

    def __init__(self, delimiter: str = ',', units_row: bool = True,
                 timestamp_column: Optional[str] = 'Time',
                 use_field_digits: bool = False):
        super().__init__()
        if len(delimiter) != 1:
            raise ValueError(f"Delimiter must be a single character: {delimiter!r}")
        self.delimiter = delimiter
        self.units_row = units_row
        self.timestamp_column = timestamp_column
        self.use_field_digits = use_field_digits
        self._writer = None
        self._digits: List[Optional[int]] = []
        self.rows_written = 0

    def open(self, target: Target = None) -> 'CsvSink':
        super().open(target)
        self._writer = csv.writer(self._file, delimiter=self.delimiter)
        return self

    def write_header(self, field_names, units, digits=None, timestamp_name=None):
        names = list(field_names)
        unit_row = list(units)
        if self.timestamp_column is not None:
            names.insert(0, timestamp_name or self.timestamp_column)
            unit_row.insert(0, TIMESTAMP_UNITS)
        self._writer.writerow(names)
        if self.units_row:
            self._writer.writerow(unit_row)

        if self.use_field_digits and digits is not None:
            self._digits = list(digits)
        else:
            self._digits = [None] * len(field_names)

    def write_sample(self, timestamp, values):
        row = [format_value(v, d) for v, d in zip(_as_row(values), self._digits)]
        if self.timestamp_column is not None:
            row.insert(0, format_value(timestamp))
        self._writer.writerow(row)
        self.rows_written += 1


class TsvSink(CsvSink):
    """Tab-separated output, as MegaLogViewer's own export writes it"""

    extension = '.tsv'

    def __init__(self, **kwargs):
        kwargs.setdefault('delimiter', '\t')
        super().__init__(**kwargs)


def _json_number(value: float) -> Optional[float]:
    """JSON has no NaN or infinity; they become null"""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


class JsonSink(TextSink):
    """
    Streaming JSON document.

    Layout:
        {"metadata": {...},
         "fields": [{"name": ..., "units": ...}, ...],
         "records": [
          {"timestamp": 0.0, "type": "field", "RPM": 950.0, ...},
          {"timestamp": 1.5, "type": "marker", "message": "lap"}
         ]}

    Records are written as they arrive; close() finishes the document,
    so a cancelled conversion still leaves valid JSON behind. NaN and
    infinite values are written as null. Marker timestamps use the same
    time base as the samples.
    """

    extension = '.json'

    def __init__(self, indent: Optional[int] = None):
        super().__init__()
        self.indent = indent
        self._metadata: Optional[Dict[str, Any]] = None
        self._names: List[str] = []
        self._first = True
        self._started = False
        self.rows_written = 0

    def write_metadata(self, metadata):
        self._metadata = dict(metadata)

    def write_header(self, field_names, units, digits=None, timestamp_name=None):
        self._names = list(field_names)
        fields = [{'name': n, 'units': u} for n, u in zip(field_names, units)]
        out = self._file
        out.write('{')
        if self._metadata is not None:
            out.write('"metadata": ')
            out.write(json.dumps(self._metadata, indent=self.indent))
            out.write(',\n')
        out.write('"fields": ')
        out.write(json.dumps(fields, indent=self.indent))
        out.write(',\n"records": [')
        self._started = True

    def _write_record(self, record: Dict[str, Any]) -> None:
        if not self._first:
            self._file.write(',')
        self._file.write('\n')
        self._file.write(json.dumps(record, allow_nan=False))
        self._first = False

    def write_sample(self, timestamp, values):
        record: Dict[str, Any] = {'timestamp': _json_number(timestamp), 'type': 'field'}
        record.update(zip(self._names, map(_json_number, _as_row(values))))
        self._write_record(record)
        self.rows_written += 1

    def write_marker(self, timestamp, message):
        self._write_record({'timestamp': _json_number(timestamp), 'type': 'marker',
                            'message': message})

    def _finish(self):
        if self._started:
            self._file.write('\n]}\n')
            self._started = False


class DataFrameSink(Sink):
    """
    Collect the samples into a pandas DataFrame.

    The frame is available as `.frame` after close(); units are kept in
    `frame.attrs['units']` and markers in `.markers`.

    Raises:
        ImportError if pandas is not installed
    """

    def __init__(self, timestamp_column: str = 'Time'):
        try:
            import pandas  # noqa: F401
        except ImportError:
            raise ImportError("pandas is required for DataFrame export. "
                              "Install with: pip install pandas")
        self.timestamp_column = timestamp_column
        self.frame = None
        self.markers: List[Dict[str, Any]] = []
        self._columns: List[str] = []
        self._units: Dict[str, str] = {}
        self._rows: List[List[float]] = []

    def write_header(self, field_names, units, digits=None, timestamp_name=None):
        time_column = timestamp_name or self.timestamp_column
        self._columns = [time_column] + list(field_names)
        self._units = {time_column: TIMESTAMP_UNITS}
        self._units.update(zip(field_names, units))

    def write_sample(self, timestamp, values):
        self._rows.append([timestamp] + _as_row(values))

    def write_marker(self, timestamp, message):
        self.markers.append({'timestamp': timestamp, 'message': message})

    def close(self):
        import pandas as pd

        if self.frame is not None:
            return
        self.frame = pd.DataFrame(self._rows, columns=self._columns, dtype=float)
        self.frame.attrs['units'] = self._units
        self._rows = []


SINK_TYPES = {
    'csv': CsvSink,
    'tsv': TsvSink,
    'json': JsonSink,
}

OUTPUT_EXTENSIONS = {name: cls.extension for name, cls in SINK_TYPES.items()}


def create_sink(fmt: str, **options) -> Sink:
    """Build a file sink by format name ('csv', 'tsv' or 'json')"""
    try:
        sink_type = SINK_TYPES[fmt.lower()]
    except KeyError:
        raise ValueError(f"Unknown output format: {fmt!r} "
                         f"(expected one of {', '.join(SINK_TYPES)})") from None
    return sink_type(**options)

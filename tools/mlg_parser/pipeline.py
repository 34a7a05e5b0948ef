"""
Conversion Pipeline

Single pass from an MLG log to a sink:

    UNOPENED -> HEADER_PARSED -> FIELDS_PARSED -> STREAMING -> DONE
         \\____________\\______________\\_____________\\__-> FAILED

Metadata problems fail before the sink is opened, so they leave no
output behind. Problems in the record stream fail after the valid rows
have been written; partial output is left in place.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Tuple, Union

from .cursor import ByteCursor, ByteSource
from .errors import (
    ConversionCancelled, ConversionWarning, ErrorKind, InputOutputError,
    MlgError, WarningKind
)
from .fields import FieldDescriptor, parse_fields
from .header import CLOCK_RESOLUTION_S, Header, parse_header, read_info_block
from .records import Marker, RecordDecoder
from .sinks import Sink, Target
from .timestamps import DEFAULT_TIMESTAMP_FIELD, TimestampResolver

logger = logging.getLogger(__name__)

Source = Union[str, Path, ByteSource]
ProgressCallback = Callable[[int, int], None]


class State(Enum):
    UNOPENED = 'unopened'
    HEADER_PARSED = 'header_parsed'
    FIELDS_PARSED = 'fields_parsed'
    STREAMING = 'streaming'
    DONE = 'done'
    FAILED = 'failed'


# What the converter was doing when it failed from a given state
PHASE_ACTIVITY = {
    State.UNOPENED: 'reading the header',
    State.HEADER_PARSED: 'reading the field table',
    State.FIELDS_PARSED: 'opening the output',
    State.STREAMING: 'streaming records',
}

_NEXT_STATE = {
    State.UNOPENED: State.HEADER_PARSED,
    State.HEADER_PARSED: State.FIELDS_PARSED,
    State.FIELDS_PARSED: State.STREAMING,
    State.STREAMING: State.DONE,
}


@dataclass(frozen=True)
class ConversionOptions:
    """
    Decoding options.

    timestamp_field:
        Field whose value is the record time; None always derives time
        from the block clock or the sample interval.
    check_crc:
        Skip framed records whose checksum does not match.
    clock_resolution:
        Seconds per block clock tick in framed logs.
    progress_interval:
        Records between progress callbacks.
    max_warnings_per_kind:
        Warnings of one kind kept in the result; later ones are only
        counted.
    """
    timestamp_field: Optional[str] = DEFAULT_TIMESTAMP_FIELD
    check_crc: bool = True
    clock_resolution: float = CLOCK_RESOLUTION_S
    progress_interval: int = 10000
    max_warnings_per_kind: int = 10


@dataclass
class ConversionResult:
    """Terminal outcome of a conversion"""
    state: State
    samples_written: int = 0
    markers_written: int = 0
    warnings: List[ConversionWarning] = field(default_factory=list)
    warning_counts: Dict[WarningKind, int] = field(default_factory=dict)
    error: Optional[MlgError] = None
    failed_phase: Optional[State] = None

    @property
    def ok(self) -> bool:
        return self.state is State.DONE

    @property
    def warning_total(self) -> int:
        """Every warning raised, including the ones not kept in `warnings`"""
        return sum(self.warning_counts.values())

    @property
    def suppressed_warnings(self) -> int:
        return self.warning_total - len(self.warnings)

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    def raise_on_error(self) -> 'ConversionResult':
        if self.error is not None:
            raise self.error
        return self

    def summary(self) -> str:
        if self.ok:
            text = f"OK: {self.samples_written:,} samples"
        else:
            activity = PHASE_ACTIVITY.get(self.failed_phase, str(self.failed_phase))
            text = (f"FAILED while {activity} "
                    f"({self.error_kind.value}): {self.error} "
                    f"[{self.samples_written:,} samples written]")
        if self.warning_total:
            text += f", {self.warning_total:,} warning(s)"
        return text


def _is_cancelled(cancel) -> bool:
    return cancel is not None and cancel.is_set()


class Converter:
    """
    One conversion of one log into one sink.

    Args:
        source: path, bytes, or seekable binary file object
        sink: Sink to write to
        target: path or text stream handed to sink.open()
        options: ConversionOptions
        cancel: object with is_set() (e.g. threading.Event), polled
            between records
        progress_callback: callback(current, total)

    Example:
        result = Converter('log.mlg', CsvSink(), 'log.csv').run()
        if not result.ok:
            print(result.summary())
    """

    def __init__(self, source: Source, sink: Sink, target: Target = None,
                 options: Optional[ConversionOptions] = None,
                 cancel=None,
                 progress_callback: Optional[ProgressCallback] = None):
        self.source = source
        self.sink = sink
        self.target = target
        self.options = options or ConversionOptions()
        self.cancel = cancel
        self.progress_callback = progress_callback

        self.header: Optional[Header] = None
        self.fields: List[FieldDescriptor] = []
        self.bit_field_names = ''
        self.info = ''
        self._state = State.UNOPENED
        self._result: Optional[ConversionResult] = None

    @property
    def state(self) -> State:
        return self._state

    @property
    def source_name(self) -> str:
        if isinstance(self.source, (str, Path)):
            return str(self.source)
        return getattr(self.source, 'name', '<stream>')

    def _advance(self, expected: State) -> None:
        if self._state is not expected:
            raise RuntimeError(f"Invalid transition from {self._state.value}")
        self._state = _NEXT_STATE[expected]

    def _open_source(self) -> Tuple[Union[ByteSource, BinaryIO], bool]:
        if isinstance(self.source, (str, Path)):
            return open(self.source, 'rb'), True
        return self.source, False

    def _record_warning(self, warning: ConversionWarning) -> None:
        counts = self._result.warning_counts
        seen = counts.get(warning.kind, 0)
        counts[warning.kind] = seen + 1
        if seen < self.options.max_warnings_per_kind:
            self._result.warnings.append(warning)
            logger.warning("%s: %s", self.source_name, warning)
        else:
            logger.debug("%s: %s", self.source_name, warning)

    def metadata(self) -> Dict[str, Any]:
        """Description of the source log for sinks that keep one"""
        header = self.header
        return {
            'file_format': header.signature.rstrip(b'\0').decode('ascii'),
            'format_version': header.version,
            'timestamp': header.timestamp,
            'record_size': header.record_size,
            'record_count': header.record_count,
            'sample_interval': header.sample_interval,
            'field_count': header.field_count,
            'bit_field_names': self.bit_field_names,
            'info_data': self.info,
        }

    def run(self) -> ConversionResult:
        if self._result is not None:
            raise RuntimeError("Converter.run() may only be called once")
        result = self._result = ConversionResult(state=self._state)
        stream, owns_stream = None, False
        sink_open = False

        try:
            try:
                stream, owns_stream = self._open_source()
                cursor = ByteCursor(stream)
                logger.info("Converting %s", self.source_name)

                self.header = parse_header(cursor)
                self._advance(State.UNOPENED)

                self.fields = parse_fields(cursor, self.header)
                self.bit_field_names, self.info = read_info_block(cursor, self.header)
                self._advance(State.HEADER_PARSED)

                try:
                    self.sink.open(self.target)
                except ValueError as e:
                    raise InputOutputError(f"Cannot open output: {e}") from e
                sink_open = True
                self._advance(State.FIELDS_PARSED)

                self._stream(cursor, result)

                sink_open = False
                self.sink.close()
                self._advance(State.STREAMING)
            except OSError as e:
                raise InputOutputError(str(e)) from e
        except MlgError as e:
            result.failed_phase = self._state
            result.error = e
            self._state = State.FAILED
            logger.error("%s: failed while %s: %s", self.source_name,
                         PHASE_ACTIVITY.get(result.failed_phase, result.failed_phase), e)
            if sink_open:
                try:
                    self.sink.close()
                except OSError as close_error:
                    logger.error("%s: could not close output: %s",
                                 self.source_name, close_error)
        finally:
            if owns_stream:
                stream.close()

        result.state = self._state
        if result.ok:
            logger.info("%s: wrote %d samples", self.source_name, result.samples_written)
        return result

    def _stream(self, cursor: ByteCursor, result: ConversionResult) -> None:
        options = self.options
        decoder = RecordDecoder(self.header, self.fields, cursor,
                                on_warning=self._record_warning,
                                check_crc=options.check_crc)
        resolver = TimestampResolver(self.fields, self.header.sample_interval,
                                     timestamp_field=options.timestamp_field,
                                     clock_resolution=options.clock_resolution,
                                     on_warning=self._record_warning)

        # the timestamp field becomes the leading column
        columns = [i for i in range(len(self.fields)) if i != resolver.field_index]
        value_fields = [self.fields[i] for i in columns]
        timestamp_name = None
        if resolver.uses_field:
            timestamp_name = self.fields[resolver.field_index].name
        self.sink.write_metadata(self.metadata())
        self.sink.write_header([f.name for f in value_fields],
                               [f.units for f in value_fields],
                               [f.digits for f in value_fields],
                               timestamp_name=timestamp_name)

        total = decoder.estimated_total
        interval = max(options.progress_interval, 1)
        for item in decoder:
            if _is_cancelled(self.cancel):
                raise ConversionCancelled(result.samples_written)

            if isinstance(item, Marker):
                timestamp = resolver.resolve_marker(item.index, item.clock)
                self.sink.write_marker(timestamp, item.message)
                result.markers_written += 1
                continue

            timestamp = resolver.resolve(item.index, item.values, item.clock)
            if resolver.field_index is None:
                row = item.values
            else:
                row = [item.values[i] for i in columns]
            self.sink.write_sample(timestamp, row)
            result.samples_written += 1

            if self.progress_callback and result.samples_written % interval == 0:
                self.progress_callback(result.samples_written, total)

        if self.progress_callback:
            self.progress_callback(result.samples_written, total)


def convert(source: Source, sink: Sink, target: Target = None,
            options: Optional[ConversionOptions] = None,
            cancel=None,
            progress_callback: Optional[ProgressCallback] = None) -> ConversionResult:
    """Run one conversion and return its result"""
    return Converter(source, sink, target, options=options, cancel=cancel,
                     progress_callback=progress_callback).run()

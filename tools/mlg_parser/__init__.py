"""
MLG Binary Log Parser

A Python library for decoding MegaLogViewer-style binary datalogs (.mlg)
and converting them to CSV, TSV, JSON or pandas DataFrames in a single
streaming pass.

Example usage:
    from mlg_parser import LogFile

    log = LogFile('datalog.mlg')
    print(f"Fields: {', '.join(log.field_names)}")
    print(f"Records: {log.record_count}")

    # Validate file integrity
    report = log.validate()
    if report.is_valid:
        print("File integrity verified!")

    # Export to CSV
    log.to_csv('datalog.csv')

    # Lower level: drive the pipeline directly
    from mlg_parser import CsvSink, convert
    result = convert('datalog.mlg', CsvSink(delimiter='\\t'), 'datalog.tsv')
    print(result.summary())
"""

from .cursor import ByteCursor
from .errors import (
    ConversionCancelled, ConversionWarning, DuplicateField, EmptyFieldName,
    ErrorKind, FieldOutOfBounds, FormatError, InputOutputError, InvalidHeader,
    InvalidSignature, MlgError, TruncatedLog, UnexpectedEof, UnknownBlockType,
    UnknownFieldType, UnsupportedVersion, WarningKind
)
from .fields import FieldDescriptor, FieldType, parse_fields
from .header import SIGNATURE, SUPPORTED_VERSIONS, Header, parse_header
from .parser import LogFile
from .pipeline import ConversionOptions, ConversionResult, Converter, State, convert
from .records import Marker, RawRecord, RecordDecoder, Sample
from .sinks import (
    OUTPUT_EXTENSIONS, CsvSink, DataFrameSink, JsonSink, Sink, TsvSink,
    create_sink, format_value
)
from .timestamps import TimestampResolver
from .validator import ValidationReport, validate_file

__version__ = '1.0.0'
__all__ = [
    'ByteCursor',
    'ConversionCancelled',
    'ConversionOptions',
    'ConversionResult',
    'ConversionWarning',
    'Converter',
    'CsvSink',
    'DataFrameSink',
    'DuplicateField',
    'EmptyFieldName',
    'ErrorKind',
    'FieldDescriptor',
    'FieldOutOfBounds',
    'FieldType',
    'FormatError',
    'Header',
    'InputOutputError',
    'InvalidHeader',
    'InvalidSignature',
    'JsonSink',
    'LogFile',
    'Marker',
    'MlgError',
    'OUTPUT_EXTENSIONS',
    'RawRecord',
    'RecordDecoder',
    'SIGNATURE',
    'SUPPORTED_VERSIONS',
    'Sample',
    'Sink',
    'State',
    'TimestampResolver',
    'TruncatedLog',
    'TsvSink',
    'UnexpectedEof',
    'UnknownBlockType',
    'UnknownFieldType',
    'UnsupportedVersion',
    'ValidationReport',
    'WarningKind',
    'convert',
    'create_sink',
    'format_value',
    'parse_fields',
    'parse_header',
    'validate_file',
]

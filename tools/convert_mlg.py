#!/usr/bin/env python3
"""
MLG Log Converter

Converts MegaLogViewer binary logs to CSV, TSV or JSON for analysis in
spreadsheet applications or other tools.

Usage:
    python convert_mlg.py <input.mlg> [<input2.mlg> ...]
    python convert_mlg.py <input.mlg> -o output.csv
    python convert_mlg.py <input.mlg> --format json
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from mlg_parser import ConversionOptions, Converter, OUTPUT_EXTENSIONS, create_sink


def progress_bar(current: int, total: int, width: int = 50):
    """Print a progress bar"""
    if total == 0:
        return
    percent = min(current / total, 1.0)
    filled = int(width * percent)
    bar = '█' * filled + '░' * (width - filled)
    sys.stdout.write(f'\r[{bar}] {percent*100:.1f}%')
    sys.stdout.flush()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Convert MLG binary log files to CSV/TSV/JSON',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Convert to CSV (auto-named)
    python convert_mlg.py logs/2024-05-01_track.mlg

    # Convert several logs at once
    python convert_mlg.py logs/*.mlg

    # Convert to a specific output file
    python convert_mlg.py logs/track.mlg -o output/track.csv

    # Tab separated, rounded to each field's display digits
    python convert_mlg.py logs/track.mlg --format tsv --digits

    # Export as JSON including markers
    python convert_mlg.py logs/track.mlg --format json
"""
    )

    parser.add_argument('inputs', nargs='+', metavar='input',
                        help='Input MLG log file(s)')
    parser.add_argument('--output', '-o',
                        help='Output file path (single input only)')
    parser.add_argument('--format', '-f', choices=sorted(OUTPUT_EXTENSIONS),
                        default='csv', help='Output format (default: csv)')
    parser.add_argument('--no-units', action='store_true',
                        help='Do not write the units row (CSV/TSV)')
    parser.add_argument('--digits', action='store_true',
                        help="Round values to each field's display digits (CSV/TSV)")
    parser.add_argument('--timestamp-field', default='Time', metavar='NAME',
                        help='Field holding the record time (default: Time)')
    parser.add_argument('--no-crc', action='store_true',
                        help='Keep records whose checksum does not match')
    parser.add_argument('--quiet', '-q', action='store_true',
                        help='Suppress progress output')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Show detailed output')
    return parser


def sink_options(args) -> dict:
    if args.format == 'json':
        return {}
    return {'units_row': not args.no_units, 'use_field_digits': args.digits}


def convert_one(input_path: Path, output_path: Path, args, cancel) -> bool:
    """Convert a single file; returns True on success"""
    if not args.quiet:
        print(f"Reading: {input_path}")
        print(f"Writing: {output_path}")

    options = ConversionOptions(timestamp_field=args.timestamp_field or None,
                                check_crc=not args.no_crc)
    sink = create_sink(args.format, **sink_options(args))
    callback = None if args.quiet else progress_bar
    converter = Converter(input_path, sink, output_path, options=options,
                          cancel=cancel, progress_callback=callback)
    result = converter.run()

    if not args.quiet:
        print()  # Newline after progress bar

    for warning in result.warnings:
        print(f"  Warning: {warning}", file=sys.stderr)
    if result.suppressed_warnings:
        print(f"  ... and {result.suppressed_warnings:,} more warning(s)", file=sys.stderr)

    if not result.ok:
        print(f"Error in [{input_path}]: {result.summary()}", file=sys.stderr)
        return False

    if not args.quiet:
        print(f"  Wrote {result.samples_written:,} rows")
        if result.markers_written:
            print(f"  Wrote {result.markers_written:,} markers")
    return True


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose:
        level = logging.INFO
    elif args.quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')

    if args.output and len(args.inputs) > 1:
        parser.error('--output can only be used with a single input file')

    # Ctrl-C stops after the current record and leaves a valid partial file
    cancel = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())

    all_ok = True
    try:
        for name in args.inputs:
            input_path = Path(name)
            if not input_path.exists():
                print(f"Error: Input file not found: {name}", file=sys.stderr)
                all_ok = False
                continue

            if args.output:
                output_path = Path(args.output)
            else:
                output_path = input_path.with_suffix(OUTPUT_EXTENSIONS[args.format])

            if not convert_one(input_path, output_path, args, cancel):
                all_ok = False
            if cancel.is_set():
                break
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if not args.quiet and all_ok:
        print("Done!")
    sys.exit(0 if all_ok else 1)


if __name__ == '__main__':
    main()

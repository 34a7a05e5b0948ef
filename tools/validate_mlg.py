#!/usr/bin/env python3
"""
MLG Log File Validation Tool

Validates MegaLogViewer binary logs for integrity, checking:
- File header and field table
- Record checksums
- Truncated or trailing records
- Timestamp ordering

Usage:
    python validate_mlg.py <logfile.mlg> [--no-crc] [--json]
    python validate_mlg.py --batch <directory> [--json]
"""

import argparse
import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from mlg_parser import validate_file


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Validate MLG binary log files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Validate a single file
    python validate_mlg.py logs/track.mlg

    # Validate all .mlg files in a directory
    python validate_mlg.py --batch logs/

    # Output as JSON
    python validate_mlg.py logs/track.mlg --json

    # Skip checksum verification
    python validate_mlg.py logs/track.mlg --no-crc
"""
    )

    parser.add_argument('filepath', nargs='?', help='Path to log file')
    parser.add_argument('--batch', '-b', metavar='DIR',
                        help='Validate all .mlg files in directory')
    parser.add_argument('--no-crc', action='store_true',
                        help='Skip record checksum verification')
    parser.add_argument('--no-timestamps', action='store_true',
                        help='Skip timestamp ordering checks')
    parser.add_argument('--timestamp-field', default='Time', metavar='NAME',
                        help='Field holding the record time (default: Time)')
    parser.add_argument('--json', '-j', action='store_true',
                        help='Output results as JSON')

    args = parser.parse_args(argv)

    if not args.filepath and not args.batch:
        parser.print_help()
        sys.exit(1)

    # Collect files to validate
    if args.batch:
        batch_dir = Path(args.batch)
        if not batch_dir.is_dir():
            print(f"Error: {args.batch} is not a directory", file=sys.stderr)
            sys.exit(1)
        files = sorted(batch_dir.glob('*.mlg'))
        if not files:
            print(f"No .mlg files found in {args.batch}", file=sys.stderr)
            sys.exit(1)
    else:
        files = [Path(args.filepath)]

    results = []
    all_valid = True

    for filepath in files:
        report = validate_file(
            str(filepath),
            check_crc=not args.no_crc,
            check_timestamps=not args.no_timestamps,
            timestamp_field=args.timestamp_field or None,
        )
        results.append(report)
        if not report.is_valid:
            all_valid = False

    if args.json:
        output = [r.to_dict() for r in results]
        print(json.dumps(output if len(output) > 1 else output[0], indent=2))
    else:
        for report in results:
            print(report.summary())
            print()

    sys.exit(0 if all_valid else 1)


if __name__ == '__main__':
    main()

"""Command line entry point: ``ifu --root /photos --key ...``."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from rich.console import Console

from .api import DEFAULT_TIMEOUT
from .client import Client
from .config import DEFAULT_BASE_URL, ENV_API_KEY, ENV_BASE_URL, SyncOptions
from .enhanced_logging import attach_file_log
from .exceptions import SetupError
from .linker import DEFAULT_BATCH_SIZE


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ifu",
        description="Upload every top-level folder of ROOT to Immich as an album.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  ifu --root ~/Pictures/albums --key $KEY
  ifu --root /mnt/photos --workers 8 --no-checksum --no-tui

The API url and key default to ${ENV_BASE_URL} and ${ENV_API_KEY}.
Uploaded files are moved to ROOT/<ignore-dir>/<album>/ so later runs skip them.
        """,
    )
    parser.add_argument("--immich", dest="base_url", default=None, help=f"Immich API url including /api (default: {DEFAULT_BASE_URL})")
    parser.add_argument("--key", dest="api_key", default=None, help="Immich API key, sent as x-api-key")
    parser.add_argument("--root", type=Path, default=None, help="Root folder containing album folders")
    parser.add_argument("--deep", dest="recursive", action=argparse.BooleanOptionalAction, default=True, help="Include files in nested folders below each album folder")
    parser.add_argument("--checksum", action=argparse.BooleanOptionalAction, default=True, help="Send a SHA-1 of each file for server-side duplicate detection (slower)")
    parser.add_argument("--batch", dest="batch_size", type=int, default=DEFAULT_BATCH_SIZE, help="Assets added to an album per request")
    parser.add_argument("--workers", type=int, default=4, help="Parallel uploads per album")
    parser.add_argument("--smallest-first", action=argparse.BooleanOptionalAction, default=True, help="Upload smaller files first")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT, help="Seconds allowed for each HTTP request")
    parser.add_argument("--deadline", type=float, default=None, help="Seconds allowed for the whole run; no new files start afterwards")
    parser.add_argument("--ignore-dir", dest="parking_dir", default="ignore", help="Folder skipped as an album and receiving uploaded files")
    parser.add_argument("--tui", dest="live", action=argparse.BooleanOptionalAction, default=True, help="Single-line updating status display on interactive terminals")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--log-file", type=Path, default=None, help="Also write a debug log to this file")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_arguments(argv)
    console = Console(stderr=True)

    options = SyncOptions.from_env(
        base_url=args.base_url,
        api_key=args.api_key,
        root=args.root if args.root and str(args.root) else None,
        recursive=args.recursive,
        checksum=args.checksum,
        batch_size=args.batch_size,
        workers=args.workers,
        smallest_first=args.smallest_first,
        timeout=args.timeout,
        deadline=args.deadline,
        parking_dir=args.parking_dir,
        live=args.live,
    )

    try:
        with Client(options, console=console, log_level=args.log_level) as client:
            if args.log_file:
                attach_file_log(args.log_file)
            client.sync()
    except SetupError as e:
        logging.getLogger("ifu").error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

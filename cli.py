#!/usr/bin/env python3
"""Community Archive upload CLI.

Command-line interface for validating a Twitter archive export and
uploading it to a Community Archive server.
"""

import argparse
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from archive_viewer import config
from archive_viewer.core import summarize_archive
from archive_viewer.exceptions import ArchiveError
from archive_viewer.ingest import (
    PROGRESS_LABELS,
    PROGRESS_PERCENT,
    ArchiveIngestor,
    UploadProgress,
    UploadState,
    input_files_from_path,
)


def make_progress_bar(disable: bool = False):
    """Create a progress bar and an UploadProgress that drives it.

    Returns:
        Tuple of (tqdm bar, UploadProgress).
    """
    pbar = tqdm(total=100, desc="Idle", unit="%", disable=disable)

    def on_state(state: UploadState):
        """Update progress bar."""
        if state is UploadState.IDLE:
            pbar.close()
            return
        pbar.set_description(PROGRESS_LABELS[state])
        target = PROGRESS_PERCENT[state]
        if target > pbar.n:
            pbar.update(target - pbar.n)

    return pbar, UploadProgress(listener=on_state)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Validate a Twitter archive export and upload it to a Community Archive server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s twitter-2024-01-01.zip
  %(prog)s ./twitter-2024-01-01/
  %(prog)s --dry-run twitter-2024-01-01.zip
  %(prog)s --endpoint https://archive.example.org/api/upload-archive archive.zip
        """,
    )
    parser.add_argument(
        "archive",
        help="Archive .zip file or unzipped archive directory",
    )
    parser.add_argument(
        "-e",
        "--endpoint",
        default=config.UPLOAD_ENDPOINT,
        help=f"Upload endpoint (default: {config.UPLOAD_ENDPOINT})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the archive and print a summary without uploading",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Do not show a progress bar",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print verbose output",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.LOG_LEVEL,
        format="%(levelname)s %(name)s: %(message)s",
    )

    path = Path(args.archive)
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return 1

    files = input_files_from_path(path)
    if not files:
        print(f"Error: No files found in {path}", file=sys.stderr)
        return 1

    if args.dry_run:
        ingestor = ArchiveIngestor(endpoint=args.endpoint)
        try:
            archive = ingestor.prepare(files)
        except ArchiveError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(summarize_archive(archive))
        print("\nArchive is valid.")
        return 0

    print(f"Uploading {path} to {args.endpoint}...")
    _, progress = make_progress_bar(disable=args.no_progress)
    ingestor = ArchiveIngestor(endpoint=args.endpoint, progress=progress)
    result = ingestor.handle_files(files)

    if result is None or not result.ok:
        message = result.message if result else "Nothing to upload"
        print(f"Error: {message}", file=sys.stderr)
        return 1

    print(result.message or "Archive uploaded.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

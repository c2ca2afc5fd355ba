"""Community Archive Viewer - ingest Twitter archives and query them for display."""

from archive_viewer.core import (
    detect_and_decode,
    strip_export_preamble,
    parse_export_text,
    safe_get,
    summarize_archive,
)
from archive_viewer.ingest import (
    ArchiveIngestor,
    InputFile,
    UploadProgress,
    UploadResult,
    UploadState,
    build_archive,
    extract_bundle,
)
from archive_viewer.schema import EXPECTED_SCHEMAS, REQUIRED_FILES, validate_content

__version__ = "1.0.0"

__all__ = [
    "detect_and_decode",
    "strip_export_preamble",
    "parse_export_text",
    "safe_get",
    "summarize_archive",
    "ArchiveIngestor",
    "InputFile",
    "UploadProgress",
    "UploadResult",
    "UploadState",
    "build_archive",
    "extract_bundle",
    "EXPECTED_SCHEMAS",
    "REQUIRED_FILES",
    "validate_content",
]

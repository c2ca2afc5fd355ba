"""Archive ingestion: extract, validate, merge and submit an archive.

The user selects either the zip file produced by the platform's export, or
the unpacked export directory. Four files are required (see
``archive_viewer.schema.REQUIRED_FILES``); each is validated and the parsed
arrays are posted as one JSON document to the upload endpoint.
"""

import io
import json
import logging
import mimetypes
import zipfile
import zlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import requests

from archive_viewer import config
from archive_viewer.core import detect_and_decode, parse_export_text
from archive_viewer.exceptions import (
    ArchiveError,
    MalformedZipError,
    MissingFileError,
    SchemaValidationError,
    UnsupportedInputError,
)
from archive_viewer.schema import EXPECTED_SCHEMAS, REQUIRED_FILES, logical_name, validate_content

logger = logging.getLogger(__name__)

ZIP_CONTENT_TYPES = ("application/zip", "application/x-zip-compressed")

UPLOAD_FAILED_MESSAGE = "Failed to upload archive"
UPLOAD_ERROR_MESSAGE = "An error occurred while uploading archive"


class UploadState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    PROCESSING = "processing"


# Progress bar fill for each state
PROGRESS_PERCENT = {
    UploadState.IDLE: 0,
    UploadState.UPLOADING: 50,
    UploadState.PROCESSING: 100,
}

PROGRESS_LABELS = {
    UploadState.UPLOADING: "Uploading...",
    UploadState.PROCESSING: "Processing tweets...",
}


class UploadProgress:
    """Tracks the upload state and reports each transition to a listener."""

    def __init__(self, listener: Optional[Callable[[UploadState], None]] = None):
        self.state = UploadState.IDLE
        self._listener = listener

    @property
    def is_uploading(self) -> bool:
        return self.state is not UploadState.IDLE

    def set(self, state: UploadState) -> None:
        self.state = state
        if self._listener:
            self._listener(state)

    def reset(self) -> None:
        self.set(UploadState.IDLE)


@dataclass
class InputFile:
    """A file picked by the user.

    ``relative_path`` is only set for files selected through a directory
    picker, and is rooted at the selected directory's name
    (``twitter-2024/data/tweets.js``).
    """

    name: str
    content_type: str = ""
    relative_path: str = ""
    data: Optional[bytes] = None
    path: Optional[Path] = field(default=None, repr=False)

    @classmethod
    def from_path(cls, path, relative_path: str = "") -> "InputFile":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "",
            relative_path=relative_path,
            path=path,
        )

    def read(self) -> bytes:
        if self.data is None:
            if self.path is None:
                raise ValueError(f"No content for {self.name}")
            self.data = self.path.read_bytes()
        return self.data

    def text(self) -> str:
        return detect_and_decode(self.read())


def input_files_from_directory(directory) -> List[InputFile]:
    """List the files of a directory the way a directory picker does."""
    root = Path(directory)
    files = []
    for path in sorted(root.rglob("*")):
        if path.is_file():
            rel = f"{root.name}/{path.relative_to(root).as_posix()}"
            files.append(InputFile.from_path(path, relative_path=rel))
    return files


def input_files_from_path(path) -> List[InputFile]:
    """Build the selection for a zip file or an export directory on disk."""
    path = Path(path)
    if path.is_dir():
        return input_files_from_directory(path)
    return [InputFile.from_path(path)]


def is_zip(file: InputFile) -> bool:
    return file.content_type in ZIP_CONTENT_TYPES


def extract_from_zip(data: bytes) -> Dict[str, str]:
    """Read the required files out of an in-memory zip archive.

    Returns:
        Mapping of logical file name to file text.

    Raises:
        MalformedZipError: If the data is not a readable zip archive.
        MissingFileError: If a required file is absent.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise MalformedZipError(f"Could not read zip archive: {e}")

    contents = {}
    with archive:
        names = set(archive.namelist())
        for required in REQUIRED_FILES:
            entry = next((c for c in required.candidates if c in names), None)
            if entry is None:
                raise MissingFileError(required.path, "zip")
            # zlib.error: corrupt stream; RuntimeError: encrypted entry;
            # NotImplementedError: unsupported compression method
            try:
                raw = archive.read(entry)
            except (zipfile.BadZipFile, OSError, zlib.error, RuntimeError, NotImplementedError) as e:
                raise MalformedZipError(f"Could not read {entry}: {e}")
            contents[logical_name(required.path)] = detect_and_decode(raw)
    return contents


def extract_from_directory(files: Sequence[InputFile]) -> Dict[str, str]:
    """Locate the required files in a directory selection.

    Sibling files are found by joining the first segment of the first
    file's relative path with each required path.

    Raises:
        MissingFileError: If a required file is absent.
    """
    root = files[0].relative_path.split("/")[0]
    by_path = {f.relative_path: f for f in files}

    contents = {}
    for required in REQUIRED_FILES:
        entry = next(
            (by_path[f"{root}/{c}"] for c in required.candidates if f"{root}/{c}" in by_path),
            None,
        )
        if entry is None:
            raise MissingFileError(required.path, "directory")
        contents[logical_name(required.path)] = entry.text()
    return contents


def extract_bundle(files: Sequence[InputFile]) -> Dict[str, str]:
    """Extract the required files from a zip or directory selection.

    Raises:
        UnsupportedInputError: If the selection is neither.
    """
    first = files[0]
    if is_zip(first):
        return extract_from_zip(first.read())
    if first.relative_path:
        return extract_from_directory(files)
    raise UnsupportedInputError("Please upload a zip file or a directory")


def build_archive(
    contents: Mapping[str, str],
    schemas: Mapping[str, Mapping[str, Any]] = EXPECTED_SCHEMAS,
) -> Dict[str, List[Any]]:
    """Validate extracted files and merge them into one document.

    Args:
        contents: Logical file name to raw file text.
        schemas: Expected schema per logical file name.

    Returns:
        Logical file name to parsed array.

    Raises:
        SchemaValidationError: If any file fails validation.
    """
    logger.info("Extracted files: %s", list(contents))
    for name, content in contents.items():
        logger.info("Validating file: %s", name)
        schema = schemas.get(name)
        if schema is None or not validate_content(content, schema):
            raise SchemaValidationError(name)

    return {name: parse_export_text(content, name) for name, content in contents.items()}


@dataclass
class UploadResult:
    """Outcome of one upload attempt, as shown to the user."""

    ok: bool
    message: str
    status_code: Optional[int] = None


class ArchiveIngestor:
    """Runs an upload from a file selection to the server's response.

    Args:
        endpoint: URL the merged archive is posted to.
        http: ``requests`` session (or anything with a compatible ``post``).
        notify: Called with the message shown to the user at the end of
            every attempt.
        progress: State tracker for progress display.
        schemas: Expected schema per logical file name.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        http: Optional[requests.Session] = None,
        notify: Optional[Callable[[str], None]] = None,
        progress: Optional[UploadProgress] = None,
        schemas: Mapping[str, Mapping[str, Any]] = EXPECTED_SCHEMAS,
    ):
        self.endpoint = endpoint or config.UPLOAD_ENDPOINT
        self.http = http or requests.Session()
        self.notify = notify
        self.progress = progress or UploadProgress()
        self.schemas = schemas

    def prepare(self, files: Sequence[InputFile]) -> Dict[str, List[Any]]:
        """Extract and validate a selection without submitting it."""
        return build_archive(extract_bundle(files), self.schemas)

    def handle_files(self, files: Sequence[InputFile]) -> Optional[UploadResult]:
        """Ingest a file selection.

        Returns None for an empty selection. Archive problems are reported
        before any network call is made; the state always ends idle.
        """
        if not files:
            return None

        self.progress.set(UploadState.UPLOADING)
        try:
            archive = self.prepare(files)
            self.progress.set(UploadState.PROCESSING)
            result = self.submit(archive)
        except ArchiveError as e:
            logger.error("Error processing archive: %s", e)
            result = UploadResult(ok=False, message=str(e))
        finally:
            self.progress.reset()
        return self._report(result)

    def submit(self, archive: Dict[str, List[Any]]) -> UploadResult:
        """POST a merged archive to the upload endpoint."""
        try:
            response = self.http.post(
                self.endpoint,
                data=json.dumps(archive),
                headers={"Content-Type": "application/json"},
            )
            body = response.json()
        except requests.RequestException as e:
            logger.error("Error uploading archive: %s", e)
            return UploadResult(ok=False, message=UPLOAD_ERROR_MESSAGE)

        message = body.get("message") if isinstance(body, dict) else None
        if response.ok:
            return UploadResult(ok=True, message=message or "", status_code=response.status_code)
        return UploadResult(
            ok=False,
            message=message or UPLOAD_FAILED_MESSAGE,
            status_code=response.status_code,
        )

    def _report(self, result: UploadResult) -> UploadResult:
        if self.notify:
            self.notify(result.message)
        return result

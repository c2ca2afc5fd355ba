"""Exceptions raised while ingesting an archive."""


class ArchiveError(Exception):
    """Base class for archive ingestion failures."""


class UnsupportedInputError(ArchiveError):
    """The selected input is neither a zip archive nor a directory."""


class MalformedZipError(ArchiveError):
    """The uploaded zip archive could not be read."""


class MissingFileError(ArchiveError):
    """A required export file is not present in the archive."""

    def __init__(self, path: str, source: str = "archive"):
        self.path = path
        self.source = source
        super().__init__(f"Required file {path} not found in the {source}")


class ExportParseError(ArchiveError, ValueError):
    """An export file does not contain a parseable JSON array."""


class SchemaValidationError(ArchiveError):
    """An export file does not match its expected schema."""

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f"Invalid schema for {file_name}")

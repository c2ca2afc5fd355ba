"""Runtime configuration, read from environment variables."""

import os
import tempfile
from pathlib import Path

DEFAULT_DATABASE_PATH = Path(tempfile.gettempdir()) / "archive_viewer.db"

# SQLAlchemy URL of the archive store
DATABASE_URL = os.environ.get("ARCHIVE_DATABASE_URL", f"sqlite:///{DEFAULT_DATABASE_PATH}")

# Where the ingestor posts merged archives
UPLOAD_ENDPOINT = os.environ.get(
    "ARCHIVE_UPLOAD_ENDPOINT", "http://localhost:5000/api/upload-archive"
)

# Echo SQL statements (debugging)
DATABASE_ECHO = os.environ.get("ARCHIVE_DATABASE_ECHO", "false").lower() == "true"

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

MAX_CONTENT_LENGTH = 100 * 1024 * 1024  # 100MB max upload

DEFAULT_FIRST_TWEETS_LIMIT = 100
DEFAULT_TOP_TWEETS_LIMIT = 20

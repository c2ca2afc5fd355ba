"""Shared fixtures: mock archive files, zip builders and a temporary store."""

import io
import shutil
import sys
import zipfile
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from archive_viewer import database as database_module
from archive_viewer.core import parse_export_text
from archive_viewer.database import Database
from archive_viewer.store import store_archive

MOCK_ARCHIVE_DIR = Path(__file__).parent / "mock_archive"
REQUIRED_NAMES = ["account", "tweets", "follower", "following"]


def read_mock(name: str) -> str:
    """Text of tests/mock_archive/data/<name>.js."""
    return (MOCK_ARCHIVE_DIR / "data" / f"{name}.js").read_text(encoding="utf-8")


def mock_archive(include_profile: bool = False) -> dict:
    """The mock archive as the ingestor merges it."""
    names = REQUIRED_NAMES + (["profile"] if include_profile else [])
    return {name: parse_export_text(read_mock(name), name) for name in names}


def build_zip(exclude=(), rename=None, replace=None, prefix: str = "") -> bytes:
    """Build an archive zip from the mock files.

    Args:
        exclude: Logical names to leave out.
        rename: Logical name -> entry path to store it under.
        replace: Logical name -> text to store instead of the mock file.
        prefix: Directory prepended to every entry path.
    """
    rename = rename or {}
    replace = replace or {}
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for path in sorted((MOCK_ARCHIVE_DIR / "data").glob("*.js")):
            name = path.stem
            if name in exclude:
                continue
            entry = rename.get(name, f"data/{path.name}")
            zf.writestr(prefix + entry, replace.get(name, path.read_text(encoding="utf-8")))
        zf.writestr(prefix + "data/tweets-media/2001-abc.jpg", b"\xff\xd8\xff")
    return buf.getvalue()


def corrupt_zip_entry(data: bytes, entry: str) -> bytes:
    """Flip every byte of an entry's compressed data, leaving the headers intact."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        info = zf.getinfo(entry)
    buf = bytearray(data)
    offset = info.header_offset
    name_len = int.from_bytes(buf[offset + 26:offset + 28], "little")
    extra_len = int.from_bytes(buf[offset + 28:offset + 30], "little")
    start = offset + 30 + name_len + extra_len
    for i in range(start, start + info.compress_size):
        buf[i] ^= 0xFF
    return bytes(buf)


@pytest.fixture
def archive_dir(tmp_path):
    """A copy of the mock archive unpacked as ``twitter-2024-01-01/``."""
    target = tmp_path / "twitter-2024-01-01"
    shutil.copytree(MOCK_ARCHIVE_DIR, target)
    return target


@pytest.fixture
def database(tmp_path, monkeypatch):
    """A fresh SQLite store used by the query functions."""
    db = Database(f"sqlite:///{tmp_path / 'archive.db'}")
    db.init_database()
    monkeypatch.setattr(database_module, "_default_db", db)
    yield db
    db.close()


@pytest.fixture
def stored_account(database):
    """The mock archive (with profile) written to the store."""
    with database.session_scope() as session:
        stored = store_archive(session, mock_archive(include_profile=True))
    return stored



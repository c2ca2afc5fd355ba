#!/usr/bin/env python3
"""Tests for the CLI functionality."""

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from archive_viewer.ingest import UploadState
from cli import main, make_progress_bar
from conftest import build_zip


def fake_response(status_code, body):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = body
    return response


def test_cli_dry_run_zip(tmp_path, capsys):
    """Test validating a zip without uploading."""
    zip_path = tmp_path / "archive.zip"
    zip_path.write_bytes(build_zip())

    with patch("archive_viewer.ingest.requests.Session") as session_cls:
        exit_code = main(["--dry-run", str(zip_path)])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Tweets: 3" in out
    assert "Archive is valid." in out
    session_cls.return_value.post.assert_not_called()
    print("✓ test_cli_dry_run_zip passed")


def test_cli_dry_run_directory(archive_dir, capsys):
    """Test validating an unzipped archive directory."""
    exit_code = main(["--dry-run", str(archive_dir)])

    assert exit_code == 0
    assert "@ada_l" in capsys.readouterr().out


def test_cli_dry_run_invalid(tmp_path, capsys):
    """Test that a dry run reports an invalid archive."""
    zip_path = tmp_path / "archive.zip"
    zip_path.write_bytes(build_zip(exclude={"tweets"}))

    exit_code = main(["--dry-run", str(zip_path)])

    assert exit_code == 1
    assert "Required file data/tweets.js not found" in capsys.readouterr().err


def test_cli_missing_path(capsys):
    """Test a path that does not exist."""
    assert main(["/nonexistent/archive.zip"]) == 1
    assert "File not found" in capsys.readouterr().err


def test_cli_upload(tmp_path, capsys):
    """Test uploading an archive to the endpoint."""
    zip_path = tmp_path / "archive.zip"
    zip_path.write_bytes(build_zip())

    with patch("archive_viewer.ingest.requests.Session") as session_cls:
        session_cls.return_value.post.return_value = fake_response(
            200, {"message": "Archive for @ada_l uploaded: 3 tweets"}
        )
        exit_code = main(["--no-progress", "-e", "http://archive.test/api/upload-archive", str(zip_path)])

    assert exit_code == 0
    post = session_cls.return_value.post
    assert post.call_count == 1
    assert post.call_args.args[0] == "http://archive.test/api/upload-archive"
    assert "Archive for @ada_l uploaded: 3 tweets" in capsys.readouterr().out
    print("✓ test_cli_upload passed")


def test_cli_upload_server_error(tmp_path, capsys):
    """Test that a rejected upload exits non-zero."""
    zip_path = tmp_path / "archive.zip"
    zip_path.write_bytes(build_zip())

    with patch("archive_viewer.ingest.requests.Session") as session_cls:
        session_cls.return_value.post.return_value = fake_response(500, {})
        exit_code = main(["--no-progress", str(zip_path)])

    assert exit_code == 1
    assert "Failed to upload archive" in capsys.readouterr().err


def test_progress_bar_follows_states():
    """Test that the progress bar tracks the upload states."""
    pbar, progress = make_progress_bar()

    progress.set(UploadState.UPLOADING)
    assert pbar.n == 50
    progress.set(UploadState.PROCESSING)
    assert pbar.n == 100
    progress.reset()
    assert progress.state is UploadState.IDLE

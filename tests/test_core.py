#!/usr/bin/env python3
"""Tests for archive export parsing.

This test suite validates:
- Export preamble stripping (.js assignment wrappers)
- JSON array parsing and error reporting
- Byte decoding
- Archive summaries
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from archive_viewer.core import (
    detect_and_decode,
    parse_export_text,
    parse_twitter_date,
    safe_get,
    strip_export_preamble,
    summarize_archive,
    to_int,
)
from archive_viewer.exceptions import ExportParseError
from conftest import mock_archive, read_mock


def test_strip_known_preamble():
    """Test stripping the window.YTD assignment."""
    text = 'window.YTD.tweets.part0 = [{"tweet": {}}]'
    assert strip_export_preamble(text) == '[{"tweet": {}}]'
    print("✓ window.YTD preamble stripped")


def test_strip_unknown_preamble_uses_first_bracket():
    """Test that an unrecognised preamble is skipped up to the first '['."""
    text = 'export default [1, 2, 3]'
    assert strip_export_preamble(text) == "[1, 2, 3]"
    print("✓ Unknown preamble skipped to first '['")


def test_strip_bom_and_trailing_semicolon():
    """Test BOM removal and trailing ';' handling."""
    text = '\ufeffwindow.YTD.follower.part0 = [];\n'
    assert strip_export_preamble(text) == "[]"
    print("✓ BOM and trailing semicolon removed")


def test_strip_without_array_raises():
    """Test that text without an array literal is rejected."""
    with pytest.raises(ExportParseError):
        strip_export_preamble('window.YTD.account.part0 = {"a": 1}')
    with pytest.raises(ExportParseError):
        strip_export_preamble("no data here")
    print("✓ Missing array literal raises ExportParseError")


def test_parse_mock_tweets():
    """Test parsing the mock tweets.js file."""
    items = parse_export_text(read_mock("tweets"), "tweets.js")

    assert isinstance(items, list), "Should return a list"
    assert len(items) == 3, "Should parse all three tweets"
    assert "tweet" in items[0], "First item should contain 'tweet' key"
    assert items[0]["tweet"]["full_text"].endswith("🧵")
    print(f"✓ Parsed {len(items)} items from tweets.js")


def test_parse_malformed_json_names_file():
    """Test that a JSON error names the file."""
    with pytest.raises(ExportParseError) as excinfo:
        parse_export_text('window.YTD.tweets.part0 = [{"tweet": ', "tweets.js")
    assert "tweets.js" in str(excinfo.value)
    print("✓ Malformed JSON raises ExportParseError naming the file")


@pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
def test_parse_rejects_non_json_constants(constant):
    """Test that NaN and Infinity literals are not accepted as JSON."""
    text = f'window.YTD.tweets.part0 = [{{"tweet": {{"favorite_count": {constant}}}}}]'
    with pytest.raises(ExportParseError) as excinfo:
        parse_export_text(text, "tweets.js")
    assert "tweets.js" in str(excinfo.value)


def test_detect_and_decode_utf8_and_fallback():
    """Test decoding UTF-8 and non-UTF-8 bytes."""
    assert detect_and_decode("café".encode("utf-8")) == "café"
    decoded = detect_and_decode("caf\xe9 au lait, tr\xe8s bien".encode("latin-1"))
    assert isinstance(decoded, str)
    assert decoded.startswith("caf")
    print("✓ Bytes decoded")


def test_safe_get():
    """Test nested lookups."""
    data = {"profile": {"description": {"bio": "hi"}}}
    assert safe_get(data, "profile", "description", "bio") == "hi"
    assert safe_get(data, "profile", "missing", default="x") == "x"
    assert safe_get(None, "profile") is None
    print("✓ safe_get works")


def test_parse_twitter_date_formats():
    """Test both timestamp formats found in archives."""
    tweet_date = parse_twitter_date("Wed Nov 15 12:00:45 +0000 2023")
    iso_date = parse_twitter_date("2010-03-14T09:26:53.000Z")

    assert tweet_date.year == 2023 and tweet_date.utcoffset().total_seconds() == 0
    assert iso_date.year == 2010 and iso_date.tzinfo is not None
    assert parse_twitter_date("not a date") is None
    assert parse_twitter_date(None) is None
    print("✓ Twitter and ISO dates parsed")


def test_to_int():
    """Test count coercion."""
    assert to_int("12") == 12
    assert to_int(7) == 7
    assert to_int("") is None
    assert to_int("many") is None


def test_summarize_archive():
    """Test the archive summary text."""
    summary = summarize_archive(mock_archive())

    assert "@ada_l" in summary
    assert "Tweets: 3" in summary
    assert "Date range:" in summary
    assert "Replies: 1" in summary
    assert "Followers: 2" in summary
    assert "Following: 1" in summary
    print("✓ Summary generated:")
    print(summary)


def test_summarize_empty_archive():
    """Test the summary of an archive without tweets."""
    summary = summarize_archive({"account": [], "tweets": [], "follower": [], "following": []})
    assert "Tweets: 0" in summary
    assert "Date range" not in summary

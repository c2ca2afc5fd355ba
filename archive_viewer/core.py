"""Core parsing functions for Twitter archive export files.

This module turns the raw bytes of an archive export file (``data/*.js``)
into Python lists, and provides a few helpers shared by the ingestor, the
upload store and the CLI.
"""

import json
import re
import textwrap
import unicodedata
from datetime import datetime
from typing import Any, Dict, List, Optional

import chardet
import pandas as pd

from archive_viewer.exceptions import ExportParseError

# Minimum confidence threshold for chardet encoding detection
# Below this threshold, we prefer UTF-8 with error handling
MIN_CHARDET_CONFIDENCE = 0.7

# Encodings that are UTF-8 compatible and don't need special handling
UTF8_COMPATIBLE_ENCODINGS = ("utf-8", "ascii", "utf-8-sig")

# Export files start with an assignment like:  window.YTD.tweets.part0 = [
EXPORT_PREAMBLE = re.compile(r"^\s*window\.YTD\.[A-Za-z0-9_.\-]+\s*=\s*")

# Timestamp format used by tweet.created_at: "Wed Nov 15 12:00:45 +0000 2023"
TWITTER_DATE_FORMAT = "%a %b %d %H:%M:%S %z %Y"


def detect_and_decode(data: bytes) -> str:
    """Detect encoding and decode bytes to text.

    Twitter exports are UTF-8 encoded. We try UTF-8 first, then fall back
    to chardet detection if needed.

    Args:
        data: Raw bytes to decode.

    Returns:
        Decoded and NFC-normalized Unicode string.
    """
    try:
        decoded = data.decode("utf-8")
        return unicodedata.normalize("NFC", decoded)
    except UnicodeDecodeError:
        pass

    try:
        detection = chardet.detect(data) or {}
        encoding = detection.get("encoding") or "utf-8"
        confidence = detection.get("confidence", 0)

        # Low confidence in a non-UTF-8 guess: replace bad bytes instead
        if confidence < MIN_CHARDET_CONFIDENCE and encoding.lower() not in UTF8_COMPATIBLE_ENCODINGS:
            return unicodedata.normalize("NFC", data.decode("utf-8", errors="replace"))

        decoded = data.decode(encoding, errors="replace")
        return unicodedata.normalize("NFC", decoded)
    except (UnicodeDecodeError, LookupError, AttributeError):
        # LookupError: unknown encoding name provided by chardet
        decoded = data.decode("utf-8", errors="replace")
        return unicodedata.normalize("NFC", decoded)


def strip_export_preamble(text: str) -> str:
    """Strip the JavaScript assignment from an export file.

    Archive files look like::

        window.YTD.tweets.part0 = [ ... ]

    A recognised ``window.YTD`` preamble is removed. Any other preamble is
    skipped up to the first ``[``. A trailing ``;`` is dropped.

    Args:
        text: Raw text content of a .js file.

    Returns:
        The JSON array literal.

    Raises:
        ExportParseError: If the text contains no array literal.
    """
    if text and text[0] == "\ufeff":
        text = text[1:]

    match = EXPORT_PREAMBLE.match(text)
    if match:
        body = text[match.end():]
    else:
        start = text.find("[")
        if start == -1:
            raise ExportParseError("Could not locate a JSON array in the export file.")
        body = text[start:]

    body = body.strip()
    if body.endswith(";"):
        body = body[:-1].rstrip()
    if not body.startswith("["):
        raise ExportParseError("Could not locate a JSON array in the export file.")
    return body


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON
    raise ValueError(f"Invalid JSON constant {name}")


def parse_export_text(text: str, filename: str = "export") -> List[Any]:
    """Parse the text of an export file into a list.

    Args:
        text: Decoded content of the file.
        filename: Name of the file (for error reporting).

    Returns:
        The parsed JSON array.

    Raises:
        ExportParseError: If the content is not valid JSON or not an array.
    """
    core = strip_export_preamble(text)
    try:
        parsed = json.loads(core, parse_constant=_reject_constant)
    except ValueError as jde:
        context = textwrap.shorten(text, width=200, placeholder="...")
        raise ExportParseError(f"JSON parse error in {filename}: {jde}. Sample: {context}")
    if not isinstance(parsed, list):
        raise ExportParseError(f"Top-level JSON in {filename} must be an array.")
    return parsed


def safe_get(d: Dict, *keys, default=None) -> Any:
    """Safely get a nested value from a dictionary.

    Args:
        d: Dictionary to traverse.
        *keys: Sequence of keys to follow.
        default: Value to return if key path doesn't exist.

    Returns:
        Value at the key path, or default.
    """
    cur = d
    for k in keys:
        if isinstance(cur, dict) and k in cur:
            cur = cur[k]
        else:
            return default
    return cur


def parse_twitter_date(value: Any) -> Optional[datetime]:
    """Parse a tweet or account timestamp.

    Handles both ``"Wed Nov 15 12:00:45 +0000 2023"`` and ISO 8601
    (``"2023-11-15T12:30:45.000Z"``). Returns None when unparseable.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value, TWITTER_DATE_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def to_int(value: Any) -> Optional[int]:
    """Coerce an export count (often a string) to int."""
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def tweets_frame(tweet_items: List[Dict]) -> pd.DataFrame:
    """Flatten ``tweets`` export items into a typed DataFrame."""
    rows = []
    for it in tweet_items:
        rec = safe_get(it, "tweet", default={}) or {}
        rows.append(
            {
                "id_str": str(rec.get("id_str") or rec.get("id") or ""),
                "created_at": rec.get("created_at"),
                "full_text": rec.get("full_text"),
                "favorite_count": rec.get("favorite_count"),
                "retweet_count": rec.get("retweet_count"),
                "in_reply_to_screen_name": rec.get("in_reply_to_screen_name"),
            }
        )
    df = pd.DataFrame(rows, columns=[
        "id_str",
        "created_at",
        "full_text",
        "favorite_count",
        "retweet_count",
        "in_reply_to_screen_name",
    ])
    df["created_at"] = pd.to_datetime(df["created_at"], format="mixed", errors="coerce", utc=True)
    for col in ["favorite_count", "retweet_count"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def summarize_archive(archive: Dict[str, List[Any]]) -> str:
    """Generate a text summary of a merged archive document.

    Args:
        archive: Mapping of logical file name to parsed array.

    Returns:
        Multi-line summary string.
    """
    lines = []
    account = safe_get((archive.get("account") or [{}])[0], "account", default={}) or {}
    if account:
        lines.append(
            f"Account: @{account.get('username', '?')} ({account.get('accountDisplayName', '')})"
        )

    df = tweets_frame(archive.get("tweets") or [])
    lines.append(f"Tweets: {len(df):,}")
    if df["created_at"].notna().any():
        lines.append(f'Date range: {df["created_at"].min()} -> {df["created_at"].max()}')
    replies = int(df["in_reply_to_screen_name"].notna().sum())
    if len(df):
        lines.append(f"Replies: {replies:,}")
    if df["favorite_count"].notna().any():
        lines.append(
            f"Favorites: mean {df['favorite_count'].mean():.2f}, max {df['favorite_count'].max():.0f}"
        )
    if df["retweet_count"].notna().any():
        lines.append(
            f"Retweets: mean {df['retweet_count'].mean():.2f}, max {df['retweet_count'].max():.0f}"
        )

    lines.append(f"Followers: {len(archive.get('follower') or []):,}")
    lines.append(f"Following: {len(archive.get('following') or []):,}")
    return "\n".join(lines)

"""Expected layout of an uploaded archive.

Validation is presence-only: every top-level key declared for a file must
appear on every element of that file's array. The nested declarations
document the shape of each record; they are not checked.
"""

import logging
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Tuple

from archive_viewer.core import parse_export_text
from archive_viewer.exceptions import ExportParseError

logger = logging.getLogger(__name__)

DATA_DIR = "data/"
EXPORT_SUFFIX = ".js"


class RequiredFile(NamedTuple):
    """A file that must be present in every uploaded archive."""

    name: str
    path: str
    aliases: Tuple[str, ...] = ()

    @property
    def candidates(self) -> Tuple[str, ...]:
        return (self.path,) + self.aliases


REQUIRED_FILES: Tuple[RequiredFile, ...] = (
    RequiredFile("account", "data/account.js"),
    # Older exports name the tweets file in the singular
    RequiredFile("tweets", "data/tweets.js", ("data/tweet.js",)),
    RequiredFile("follower", "data/follower.js"),
    RequiredFile("following", "data/following.js"),
)

REQUIRED_FILE_NAMES: Tuple[str, ...] = tuple(f.name for f in REQUIRED_FILES)


def _frozen(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({k: _frozen(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_frozen(v) for v in value)
    return value


EXPECTED_SCHEMAS: Mapping[str, Mapping[str, Any]] = _frozen(
    {
        "account": {
            "account": {
                "email": "",
                "createdVia": "",
                "username": "",
                "accountId": "",
                "createdAt": "",
                "accountDisplayName": "",
            },
        },
        "tweets": {
            "tweet": {
                "edit_info": {},
                "retweeted": False,
                "source": "",
                "entities": {},
                "display_text_range": [],
                "favorite_count": "",
                "id_str": "",
                "truncated": False,
                "retweet_count": "",
                "id": "",
                "created_at": "",
                "favorited": False,
                "full_text": "",
                "lang": "",
            },
        },
        "follower": {"follower": {"accountId": "", "userLink": ""}},
        "following": {"following": {"accountId": "", "userLink": ""}},
    }
)


def logical_name(path: str) -> str:
    """Map an archive path to its logical file name.

    >>> logical_name("data/tweets.js")
    'tweets'
    """
    name = path
    if name.startswith(DATA_DIR):
        name = name[len(DATA_DIR):]
    if name.endswith(EXPORT_SUFFIX):
        name = name[: -len(EXPORT_SUFFIX)]
    return name


def validate_items(items: Any, expected_schema: Mapping[str, Any]) -> bool:
    """Check parsed export data against an expected schema.

    Args:
        items: Parsed JSON value of an export file.
        expected_schema: Mapping whose top-level keys must be present on
            every element.

    Returns:
        True if ``items`` is a list of dicts that all carry the declared keys.
    """
    if not isinstance(items, list):
        logger.error("Data is not an array")
        return False

    for item in items:
        if not isinstance(item, dict):
            logger.error("Item is not an object: %r", item)
            return False
        missing = [key for key in expected_schema if key not in item]
        if missing:
            logger.error("Item is missing keys %s", missing)
            return False
    return True


def validate_content(content: str, expected_schema: Mapping[str, Any]) -> bool:
    """Parse the text of an export file and validate it.

    Args:
        content: Raw text of the file, preamble included.
        expected_schema: Schema for this file, from ``EXPECTED_SCHEMAS``.

    Returns:
        False if the content does not parse or does not match the schema.
    """
    logger.debug("Validating content... %s", content.split("\n", 1)[0][:200])
    try:
        items = parse_export_text(content)
    except ExportParseError as e:
        logger.error("Error parsing JSON: %s", e)
        return False
    return validate_items(items, expected_schema)


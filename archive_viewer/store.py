"""Persist uploaded archives into the archive store."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from archive_viewer.core import parse_twitter_date, safe_get, to_int
from archive_viewer.exceptions import SchemaValidationError
from archive_viewer.models import Account, ArchiveUpload, Follower, Following, Profile, Tweet
from archive_viewer.schema import EXPECTED_SCHEMAS, REQUIRED_FILE_NAMES, validate_items

logger = logging.getLogger(__name__)


@dataclass
class StoredArchive:
    account_id: str
    username: str
    tweets: int
    followers: int
    following: int
    archive_at: datetime


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_archive(
    archive: Any,
    schemas: Mapping[str, Mapping[str, Any]] = EXPECTED_SCHEMAS,
) -> None:
    """Check a merged archive document.

    Besides the key check the ingestor makes, every record stored under a
    declared key must itself be an object.

    Raises:
        SchemaValidationError: Naming the first missing or invalid file.
    """
    if not isinstance(archive, dict):
        raise SchemaValidationError("archive")
    for name in REQUIRED_FILE_NAMES:
        if name not in archive or not validate_items(archive[name], schemas[name]):
            raise SchemaValidationError(name)
        for item in archive[name]:
            if not all(isinstance(item[key], dict) for key in schemas[name]):
                logger.error("Record in %s is not an object: %r", name, item)
                raise SchemaValidationError(name)
    if not archive["account"]:
        raise SchemaValidationError("account")


def _account_links(items: List[Dict], key: str) -> Dict[str, Optional[str]]:
    links = {}
    for item in items:
        account_id = safe_get(item, key, "accountId")
        if account_id:
            links[str(account_id)] = safe_get(item, key, "userLink")
    return links


def _store_profile(session: Session, account_id: str, items: Any) -> None:
    if not isinstance(items, list) or not items:
        return
    rec = safe_get(items[0], "profile")
    if not isinstance(rec, dict):
        logger.warning("Skipping profile for %s: record is not an object", account_id)
        return
    session.execute(delete(Profile).where(Profile.account_id == account_id))
    session.add(
        Profile(
            account_id=account_id,
            bio=safe_get(rec, "description", "bio"),
            website=safe_get(rec, "description", "website"),
            location=safe_get(rec, "description", "location"),
            avatar_media_url=rec.get("avatarMediaUrl"),
            header_media_url=rec.get("headerMediaUrl"),
        )
    )


def store_archive(
    session: Session,
    archive: Dict[str, Any],
    archive_at: Optional[datetime] = None,
) -> StoredArchive:
    """Validate a merged archive and write it to the store.

    Re-uploading an account replaces its tweets, followers, following and
    profile, and adds a new archive upload entry.

    Args:
        session: Open session; the caller commits.
        archive: Logical file name to parsed array. A ``profile`` array is
            stored when present.
        archive_at: Upload timestamp, defaults to now.

    Returns:
        Counts of what was stored.
    """
    validate_archive(archive)

    acc = safe_get(archive["account"][0], "account", default={}) or {}
    if not acc.get("accountId"):
        raise SchemaValidationError("account")
    account_id = str(acc["accountId"])
    archive_at = _utc(archive_at) or datetime.now(timezone.utc)

    session.merge(
        Account(
            account_id=account_id,
            username=acc.get("username") or "",
            account_display_name=acc.get("accountDisplayName"),
            created_at=_utc(parse_twitter_date(acc.get("createdAt"))),
            created_via=acc.get("createdVia"),
            email=acc.get("email"),
        )
    )
    _store_profile(session, account_id, archive.get("profile"))

    tweets = {}
    for item in archive["tweets"]:
        rec = safe_get(item, "tweet", default={}) or {}
        tweet_id = str(rec.get("id_str") or rec.get("id") or "")
        if not tweet_id:
            continue
        tweets[tweet_id] = Tweet(
            tweet_id=tweet_id,
            account_id=account_id,
            full_text=rec.get("full_text") or rec.get("text"),
            favorite_count=to_int(rec.get("favorite_count")),
            retweet_count=to_int(rec.get("retweet_count")),
            created_at=_utc(parse_twitter_date(rec.get("created_at"))),
            in_reply_to_screen_name=rec.get("in_reply_to_screen_name"),
            in_reply_to_status_id=rec.get("in_reply_to_status_id_str") or rec.get("in_reply_to_status_id"),
            lang=rec.get("lang"),
            source=rec.get("source"),
        )

    followers = _account_links(archive["follower"], "follower")
    following = _account_links(archive["following"], "following")

    for model in (Tweet, Follower, Following):
        session.execute(delete(model).where(model.account_id == account_id))
    session.add_all(tweets.values())
    session.add_all(
        Follower(account_id=account_id, follower_account_id=fid, user_link=link)
        for fid, link in followers.items()
    )
    session.add_all(
        Following(account_id=account_id, following_account_id=fid, user_link=link)
        for fid, link in following.items()
    )
    session.add(ArchiveUpload(account_id=account_id, archive_at=archive_at))
    session.flush()

    logger.info(
        "Stored archive for %s: %d tweets, %d followers, %d following",
        account_id, len(tweets), len(followers), len(following),
    )
    return StoredArchive(
        account_id=account_id,
        username=acc.get("username") or "",
        tweets=len(tweets),
        followers=len(followers),
        following=len(following),
        archive_at=archive_at,
    )

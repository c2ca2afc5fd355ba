"""Display records built from archive store rows.

Every field that comes from a joined row (account, profile, archive upload)
may be missing; the projections below decide the fallback for each one.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from archive_viewer.models import Account, Tweet

UNKNOWN = "Unknown"


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands back naive datetimes; the store writes UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


@dataclass
class TweetView:
    tweet_id: str
    username: str
    display_name: str
    profile_image_url: str
    text: Optional[str]
    favorite_count: Optional[int]
    retweet_count: Optional[int]
    created_at: Optional[datetime]
    in_reply_to_screen_name: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = _iso(self.created_at)
        return data


@dataclass
class AccountView:
    account_id: str
    username: str
    account_display_name: str
    created_at: Optional[datetime]
    bio: str
    website: str
    location: str
    avatar_media_url: str
    archive_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = _iso(self.created_at)
        data["archive_at"] = _iso(self.archive_at)
        return data


@dataclass
class UserData:
    account: AccountView
    tweet_count: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {"account": self.account.to_dict(), "tweetCount": self.tweet_count}


def format_tweet(tweet: Tweet) -> TweetView:
    """Project a tweet row, with its joined account, into a TweetView."""
    account = tweet.account
    profile = account.profile[0] if account is not None and account.profile else None
    return TweetView(
        tweet_id=tweet.tweet_id,
        username=(account.username if account is not None else None) or UNKNOWN,
        display_name=(account.account_display_name if account is not None else None) or UNKNOWN,
        profile_image_url=(profile.avatar_media_url if profile is not None else None) or "",
        text=tweet.full_text,
        favorite_count=tweet.favorite_count,
        retweet_count=tweet.retweet_count,
        created_at=tweet.created_at,
        in_reply_to_screen_name=tweet.in_reply_to_screen_name,
    )


def format_user_data(account: Account) -> AccountView:
    """Project an account row with its profile and uploads into an AccountView.

    The first profile row is used. ``archive_at`` is the most recent upload.
    """
    profile = account.profile[0] if account.profile else None
    uploads = [u.archive_at for u in account.archive_upload if u.archive_at is not None]
    return AccountView(
        account_id=account.account_id,
        username=account.username or UNKNOWN,
        account_display_name=account.account_display_name or account.username or UNKNOWN,
        created_at=account.created_at,
        bio=(profile.bio if profile is not None else None) or "",
        website=(profile.website if profile is not None else None) or "",
        location=(profile.location if profile is not None else None) or "",
        avatar_media_url=(profile.avatar_media_url if profile is not None else None) or "",
        archive_at=max(uploads) if uploads else None,
    )

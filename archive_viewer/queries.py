"""Read queries over the archive store.

Each function opens its own session, and closes it before returning.
Missing data comes back as an empty list or None, never as an exception.
"""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import contains_eager, selectinload

from archive_viewer import config
from archive_viewer.database import create_server_client
from archive_viewer.models import Account, Tweet
from archive_viewer.views import TweetView, UserData, format_tweet, format_user_data


def _tweets_query(account_id: str):
    # Inner join: tweets whose account row is missing are not returned
    return (
        select(Tweet)
        .join(Tweet.account)
        .options(contains_eager(Tweet.account).selectinload(Account.profile))
        .where(Tweet.account_id == account_id)
    )


def get_first_tweets(account_id: str, limit: int = config.DEFAULT_FIRST_TWEETS_LIMIT) -> List[TweetView]:
    """Return the account's earliest tweets, oldest first.

    Args:
        account_id: Account identifier.
        limit: Maximum number of tweets.

    Returns:
        List of TweetView records, empty if the account has no tweets.
    """
    with create_server_client() as session:
        stmt = _tweets_query(account_id).order_by(Tweet.created_at.asc().nulls_last()).limit(limit)
        rows = session.scalars(stmt).all()
        return [format_tweet(tweet) for tweet in rows]


def get_top_tweets(account_id: str, limit: int = config.DEFAULT_TOP_TWEETS_LIMIT) -> List[TweetView]:
    """Return the account's most retweeted tweets.

    Ties on retweet count are broken by favorite count, both descending.
    Tweets without counts sort last on every backend.
    """
    with create_server_client() as session:
        stmt = (
            _tweets_query(account_id)
            .order_by(Tweet.retweet_count.desc().nulls_last(), Tweet.favorite_count.desc().nulls_last())
            .limit(limit)
        )
        rows = session.scalars(stmt).all()
        return [format_tweet(tweet) for tweet in rows]


def get_user_data(account_id: str) -> Optional[UserData]:
    """Return the account's profile and tweet count.

    Returns None, without counting tweets, when the account does not exist.
    """
    with create_server_client() as session:
        stmt = (
            select(Account)
            .options(selectinload(Account.profile), selectinload(Account.archive_upload))
            .where(Account.account_id == account_id)
        )
        account = session.scalars(stmt).one_or_none()
        if account is None:
            return None

        count = session.scalar(
            select(func.count(Tweet.tweet_id)).where(Tweet.account_id == account_id)
        )
        return UserData(account=format_user_data(account), tweet_count=count)

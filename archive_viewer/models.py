"""SQLAlchemy ORM models for the archive store."""
from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Account(Base):
    """An archived account."""

    __tablename__ = "account"

    account_id = Column(String, primary_key=True)
    username = Column(String, nullable=False, index=True)
    account_display_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True)
    created_via = Column(String, nullable=True)
    email = Column(String, nullable=True)

    # Relationships
    profile = relationship("Profile", back_populates="account", cascade="all, delete-orphan")
    tweets = relationship("Tweet", back_populates="account", cascade="all, delete-orphan")
    archive_upload = relationship(
        "ArchiveUpload",
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="ArchiveUpload.archive_at",
    )
    followers = relationship("Follower", back_populates="account", cascade="all, delete-orphan")
    following = relationship("Following", back_populates="account", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Account(account_id='{self.account_id}', username='{self.username}')>"


class Profile(Base):
    """Profile details (bio, avatar) of an account."""

    __tablename__ = "profile"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(String, ForeignKey("account.account_id", ondelete="CASCADE"), nullable=False, index=True)
    bio = Column(Text, nullable=True)
    website = Column(String, nullable=True)
    location = Column(String, nullable=True)
    avatar_media_url = Column(String, nullable=True)
    header_media_url = Column(String, nullable=True)

    account = relationship("Account", back_populates="profile")


class Tweet(Base):
    """A tweet from an uploaded archive."""

    __tablename__ = "tweets"

    tweet_id = Column(String, primary_key=True)
    account_id = Column(String, ForeignKey("account.account_id", ondelete="CASCADE"), nullable=False, index=True)
    full_text = Column(Text, nullable=True)
    favorite_count = Column(Integer, nullable=True)
    retweet_count = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True, index=True)
    in_reply_to_screen_name = Column(String, nullable=True)
    in_reply_to_status_id = Column(String, nullable=True)
    lang = Column(String, nullable=True)
    source = Column(String, nullable=True)

    account = relationship("Account", back_populates="tweets")

    def __repr__(self):
        return f"<Tweet(tweet_id='{self.tweet_id}', account_id='{self.account_id}')>"


class ArchiveUpload(Base):
    """One upload of an account's archive."""

    __tablename__ = "archive_upload"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    account_id = Column(String, ForeignKey("account.account_id", ondelete="CASCADE"), nullable=False, index=True)
    archive_at = Column(DateTime(timezone=True), nullable=False)

    account = relationship("Account", back_populates="archive_upload")


class Follower(Base):
    __tablename__ = "followers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(String, ForeignKey("account.account_id", ondelete="CASCADE"), nullable=False, index=True)
    follower_account_id = Column(String, nullable=False)
    user_link = Column(String, nullable=True)

    account = relationship("Account", back_populates="followers")

    __table_args__ = (
        UniqueConstraint("account_id", "follower_account_id", name="uq_follower"),
    )


class Following(Base):
    __tablename__ = "following"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(String, ForeignKey("account.account_id", ondelete="CASCADE"), nullable=False, index=True)
    following_account_id = Column(String, nullable=False)
    user_link = Column(String, nullable=True)

    account = relationship("Account", back_populates="following")

    __table_args__ = (
        UniqueConstraint("account_id", "following_account_id", name="uq_following"),
    )

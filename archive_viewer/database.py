"""Database connection and session management for the archive store."""
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from flask import current_app, has_app_context
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from archive_viewer import config
from archive_viewer.models import Base

# Key under which the Flask app keeps its Database
EXTENSION_KEY = "archive_db"


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str, echo: bool = False):
        """
        Initialize database connection.

        Args:
            database_url: SQLAlchemy database URL
            echo: Enable SQLAlchemy SQL logging
        """
        self.database_url = database_url
        self.echo = echo
        self.engine: Optional[Engine] = None
        self.session_factory = None
        self._initialized = False

    def init_database(self):
        """Initialize database engine and session factory, creating tables."""
        if self._initialized:
            return

        url = make_url(self.database_url)
        engine_args = {"echo": self.echo}
        if url.get_backend_name() == "sqlite":
            engine_args["connect_args"] = {"check_same_thread": False}
            if url.database and url.database != ":memory:":
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
            else:
                # One shared connection, or every session sees an empty database
                engine_args["poolclass"] = StaticPool

        self.engine = create_engine(self.database_url, **engine_args)

        if url.get_backend_name() == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)
        self._initialized = True

    def get_session(self) -> Session:
        """Open a new session. The caller closes it."""
        if not self._initialized:
            self.init_database()
        return self.session_factory()

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope around a series of operations."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self):
        """Dispose of the engine."""
        if self.engine:
            self.engine.dispose()
        self._initialized = False


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


_default_db: Optional[Database] = None


def get_database() -> Database:
    """Return the database of the current Flask app, or the configured default."""
    global _default_db
    if has_app_context() and EXTENSION_KEY in current_app.extensions:
        return current_app.extensions[EXTENSION_KEY]
    if _default_db is None:
        _default_db = Database(config.DATABASE_URL, echo=config.DATABASE_ECHO)
    return _default_db


def create_server_client() -> Session:
    """Open a fresh session for one read call."""
    return get_database().get_session()

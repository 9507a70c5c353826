"""Audio Files API - Database engine and session management.

SQLAlchemy sync engine/session factory. SQLite by default; any SQLAlchemy URL
may be supplied via DATABASE_URL.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker

from app.config import DB_PATH
from app.models import Base


def get_database_url(db_path: str | Path | None = None, database_url: str | None = None) -> str:
    """Get the database URL.

    Args:
        db_path: Optional SQLite file path. Defaults to config.DB_PATH.
        database_url: Full SQLAlchemy URL. Takes precedence over db_path.

    Returns:
        Connection URL string.
    """
    if database_url:
        return database_url
    path = db_path if db_path is not None else DB_PATH
    return f"sqlite:///{path}"


def create_db_engine(
    db_path: str | Path | None = None,
    echo: bool = False,
    database_url: str | None = None,
) -> Engine:
    """Create SQLAlchemy engine.

    Args:
        db_path: Optional path override for the SQLite database file.
        echo: If True, log all SQL statements.
        database_url: Optional full URL (non-SQLite backends).

    Returns:
        SQLAlchemy Engine instance.
    """
    url = get_database_url(db_path, database_url)
    connect_args = {}
    if url.startswith("sqlite"):
        # Sessions are per request and never shared across threads.
        connect_args["check_same_thread"] = False
        if db_path is None and database_url is None:
            DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=echo, connect_args=connect_args, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the given engine.

    Args:
        engine: SQLAlchemy Engine instance.

    Returns:
        Configured sessionmaker.
    """
    # - autoflush=False: explicit flush control
    # - expire_on_commit=False: audit rows stay readable after commit
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(
    db_path: str | Path | None = None,
    echo: bool = False,
    database_url: str | None = None,
) -> tuple[Engine, sessionmaker]:
    """Initialize the database: create engine, session factory, and all tables.

    This is idempotent - safe to call multiple times.

    Args:
        db_path: Optional path override for the SQLite database file.
        echo: If True, log all SQL statements.
        database_url: Optional full URL (takes precedence over db_path).

    Returns:
        Tuple of (engine, SessionFactory).
    """
    engine = create_db_engine(db_path, echo=echo, database_url=database_url)
    SessionFactory = create_session_factory(engine)

    # Create all tables (idempotent via checkfirst=True default)
    Base.metadata.create_all(engine)

    return engine, SessionFactory

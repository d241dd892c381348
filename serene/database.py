"""
Central SQLAlchemy models and session utilities.

These definitions power both Alembic migrations and runtime ORM queries.
"""

import logging
import os
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Index,
    Integer,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import func

logger = logging.getLogger(__name__)

Base = declarative_base()

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


class Note(Base):
    """
    Scratchpad notes with user isolation.

    Schema supports both SQLite (dev) and PostgreSQL (prod).
    """
    __tablename__ = "notes"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)

    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_notes_user_updated', 'user_id', 'updated_at'),
    )


class NoteVersion(Base):
    """
    Append-only note snapshots.

    note_id is deliberately not a foreign key: versions survive the deletion
    of their note until pruned explicitly.
    """
    __tablename__ = "note_versions"

    id = Column(String(36), primary_key=True)
    note_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    format = Column(String(32), nullable=False, default="default")
    version_number = Column(Integer, nullable=False)
    is_processed = Column(Boolean, nullable=False, default=False)
    processing_metadata = Column(Text, nullable=True)  # JSON string

    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('note_id', 'version_number', name='uq_note_versions_note_number'),
        Index('idx_note_versions_user_note', 'user_id', 'note_id'),
        Index('idx_note_versions_note_created', 'note_id', 'created_at'),
    )


class NoteVersionCounter(Base):
    """
    Highest version number ever issued per note.

    Survives version deletion so numbers are never handed out twice.
    """
    __tablename__ = "note_version_counters"

    note_id = Column(String(36), primary_key=True)
    last_number = Column(Integer, nullable=False, default=0)


class Prompt(Base):
    """
    User-authored prompt templates. Built-in templates are never stored.
    """
    __tablename__ = "prompts"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(255), nullable=True, index=True)
    name = Column(Text, nullable=False)
    template_type = Column(String(64), nullable=False)
    prompt_text = Column(Text, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_prompts_user_type', 'user_id', 'template_type'),
    )


def get_database_url() -> str:
    """
    Get database URL from environment, defaulting to SQLite.

    Returns:
        Database connection string
    """
    database_url = os.getenv("DATABASE_URL")

    if database_url:
        # Hosted Postgres
        return database_url

    flask_env = os.getenv("FLASK_ENV", "development")
    if flask_env == "production":
        raise ValueError("DATABASE_URL environment variable is not set in production environment!")

    # SQLite (development)
    from pathlib import Path
    db_path = Path(__file__).parent.parent / ".serene.db"
    logger.warning("Using SQLite database at %s", db_path)
    return f"sqlite:///{db_path}"


def get_engine():
    """Get (and lazily create) the shared SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _engine = create_engine_for_url()
    return _engine


def get_session_factory() -> sessionmaker:
    """Return the configured session factory."""
    global _SessionFactory
    if _SessionFactory is None:
        _SessionFactory = make_session_factory(get_engine())
    return _SessionFactory


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        future=True,
    )


def create_engine_for_url(database_url: Optional[str] = None) -> Engine:
    """Build a SQLAlchemy engine for the given URL (or default environment)."""
    url = database_url or get_database_url()
    engine = create_engine(
        url,
        future=True,
        echo=False,
        pool_pre_ping=True,
    )

    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _set_sqlite_pragmas)

    return engine


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Apply SQLite pragmas for better consistency (WAL, foreign keys)."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()

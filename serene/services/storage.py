"""
SQLAlchemy-backed note repository.

Owns the lifetime of Note rows and the engine/session plumbing shared by the
version archive and prompt catalog. Every call is scoped to a user, and any
driver or database failure surfaces as an opaque PersistenceError.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Generator, List, Optional
from uuid import uuid4

from sqlalchemy import desc
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..config import Config
from ..database import (
    Base,
    Note as NoteORM,
    create_engine_for_url,
    get_engine,
    get_session_factory,
    make_session_factory,
)
from .errors import NotFoundError, PersistenceError
from .models import Note as NoteDTO

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp (the columns are timezone-less)."""
    return datetime.now(UTC).replace(tzinfo=None)


def configure_engine(
    db_path: Optional[Path] = None,
    database_url: Optional[str] = None,
) -> tuple[Engine, sessionmaker]:
    if database_url:
        engine = create_engine_for_url(database_url)
    elif db_path:
        resolved = Path(db_path).resolve()
        engine = create_engine_for_url(f"sqlite:///{resolved}")
    else:
        return get_engine(), get_session_factory()

    return engine, make_session_factory(engine)


def ensure_schema(engine: Engine) -> None:
    """Create tables for SQLite; hosted Postgres is migrated with Alembic."""
    if engine.dialect.name == "sqlite":
        Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    session = factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(str(e)) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _note_to_dto(note: NoteORM) -> NoteDTO:
    return NoteDTO(
        id=note.id,
        user_id=note.user_id,
        title=note.title,
        content=note.content,
        created_at=note.created_at,
        updated_at=note.updated_at,
    )


class NoteRepository:
    """
    CRUD over the user's notes.

    Nothing here retries; callers decide what to do with a PersistenceError.
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        database_url: Optional[str] = None,
    ):
        self.engine, self.session_factory = configure_engine(db_path, database_url)
        ensure_schema(self.engine)

    def fetch_all(self, user_id: str) -> List[NoteDTO]:
        """All notes for a user, most recently updated first."""
        with session_scope(self.session_factory) as session:
            notes = (
                session.query(NoteORM)
                .filter(NoteORM.user_id == user_id)
                .order_by(desc(NoteORM.updated_at), desc(NoteORM.created_at))
                .all()
            )
            return [_note_to_dto(note) for note in notes]

    def get(self, user_id: str, note_id: str) -> Optional[NoteDTO]:
        with session_scope(self.session_factory) as session:
            note = (
                session.query(NoteORM)
                .filter(NoteORM.id == note_id, NoteORM.user_id == user_id)
                .one_or_none()
            )
            return _note_to_dto(note) if note else None

    def create(self, user_id: str, title: str, content: str) -> NoteDTO:
        """
        Insert a new note.

        Args:
            user_id: Owner of the note.
            title: Display title; blank becomes the default title.
            content: Markdown body.

        Returns:
            The stored note with its server-assigned id and timestamps.
        """
        now = utcnow()
        db_note = NoteORM(
            id=str(uuid4()),
            user_id=user_id,
            title=(title or "").strip() or Config.DEFAULT_NOTE_TITLE,
            content=content,
            created_at=now,
            updated_at=now,
        )

        with session_scope(self.session_factory) as session:
            session.add(db_note)

        logger.debug("Created note %s for user %s", db_note.id, user_id)
        return _note_to_dto(db_note)

    def update(self, user_id: str, note_id: str, title: Optional[str], content: str) -> NoteDTO:
        """
        Overwrite a note's title/content in place.

        A blank title keeps the current one.

        Raises:
            NotFoundError: if the note does not exist for this user.
        """
        with session_scope(self.session_factory) as session:
            note = (
                session.query(NoteORM)
                .filter(NoteORM.id == note_id, NoteORM.user_id == user_id)
                .one_or_none()
            )
            if not note:
                raise NotFoundError(f"Note {note_id} not found")

            note.title = (title or "").strip() or note.title
            note.content = content
            note.updated_at = utcnow()
            session.add(note)
            session.flush()
            return _note_to_dto(note)

    def delete(self, user_id: str, note_id: str) -> None:
        """
        Remove a note. Its versions are left in place.

        Raises:
            NotFoundError: if there was nothing to delete.
        """
        with session_scope(self.session_factory) as session:
            deleted = (
                session.query(NoteORM)
                .filter(NoteORM.id == note_id, NoteORM.user_id == user_id)
                .delete(synchronize_session=False)
            )
        if not deleted:
            raise NotFoundError(f"Note {note_id} not found")

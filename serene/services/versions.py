"""
Version archive: append-only snapshots of notes.

Version numbers are assigned per note as max(existing) + 1, floored by a
per-note high-water mark so deleting the newest version never frees its
number. The read and the insert are separate statements, so two writers can
pick the same number; the (note_id, version_number) unique constraint turns
that into an IntegrityError and the insert is retried with a fresh number.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError

from ..database import NoteVersion as NoteVersionORM, NoteVersionCounter as NoteVersionCounterORM
from .errors import NotFoundError, PersistenceError
from .models import Note, NoteFormat, NoteVersion, ProcessingMetadata
from .storage import NoteRepository, session_scope, utcnow

logger = logging.getLogger(__name__)

MAX_NUMBERING_ATTEMPTS = 3


def _metadata_to_json(metadata: Optional[ProcessingMetadata]) -> Optional[str]:
    if metadata is None:
        return None
    payload = metadata.model_dump(exclude_none=True)
    return json.dumps(payload) if payload else None


def _metadata_from_json(value: Optional[str]) -> Optional[ProcessingMetadata]:
    if not value:
        return None
    try:
        return ProcessingMetadata.model_validate(json.loads(value))
    except (TypeError, ValueError):
        logger.warning("Ignoring unreadable processing metadata: %r", value)
        return None


def _version_to_dto(row: NoteVersionORM) -> NoteVersion:
    return NoteVersion(
        id=row.id,
        note_id=row.note_id,
        user_id=row.user_id,
        title=row.title,
        content=row.content,
        format=row.format or NoteFormat.DEFAULT,
        version_number=row.version_number,
        is_processed=bool(row.is_processed),
        processing_metadata=_metadata_from_json(row.processing_metadata),
        created_at=row.created_at,
    )


class VersionArchive:
    """Creates, lists, prunes and restores note versions."""

    def __init__(self, notes: NoteRepository):
        self.notes = notes
        self.session_factory = notes.session_factory

    def create_version(
        self,
        note_id: str,
        user_id: str,
        title: str,
        content: str,
        format: NoteFormat = NoteFormat.DEFAULT,
        is_processed: bool = False,
        metadata: Optional[ProcessingMetadata] = None,
    ) -> NoteVersion:
        """
        Append a snapshot for ``note_id``.

        Raises:
            PersistenceError: if the store rejects the insert.
        """
        last_error: Optional[PersistenceError] = None
        for attempt in range(1, MAX_NUMBERING_ATTEMPTS + 1):
            try:
                return self._insert_next(
                    note_id, user_id, title, content, NoteFormat(format), is_processed, metadata
                )
            except PersistenceError as e:
                if not isinstance(e.__cause__, IntegrityError):
                    raise
                last_error = e
                logger.info(
                    "Version number collision on note %s (attempt %d), retrying",
                    note_id,
                    attempt,
                )
        raise last_error

    def _insert_next(
        self,
        note_id: str,
        user_id: str,
        title: str,
        content: str,
        format: NoteFormat,
        is_processed: bool,
        metadata: Optional[ProcessingMetadata],
    ) -> NoteVersion:
        with session_scope(self.session_factory) as session:
            current_max = (
                session.query(func.max(NoteVersionORM.version_number))
                .filter(NoteVersionORM.note_id == note_id)
                .scalar()
            ) or 0
            counter = session.get(NoteVersionCounterORM, note_id)
            if counter is None:
                counter = NoteVersionCounterORM(note_id=note_id, last_number=0)
                session.add(counter)
            next_number = max(current_max, counter.last_number or 0) + 1
            counter.last_number = next_number

            row = NoteVersionORM(
                id=str(uuid4()),
                note_id=note_id,
                user_id=user_id,
                title=title,
                content=content,
                format=format.value,
                version_number=next_number,
                is_processed=is_processed,
                processing_metadata=_metadata_to_json(metadata),
                created_at=utcnow(),
            )
            session.add(row)
            session.flush()
            return _version_to_dto(row)

    def list_versions(self, note_id: str, user_id: str, limit: Optional[int] = None) -> List[NoteVersion]:
        """Versions of a note, newest first. ``limit`` keeps only the latest N."""
        with session_scope(self.session_factory) as session:
            query = (
                session.query(NoteVersionORM)
                .filter(NoteVersionORM.note_id == note_id, NoteVersionORM.user_id == user_id)
                .order_by(desc(NoteVersionORM.created_at), desc(NoteVersionORM.version_number))
            )
            if limit is not None:
                query = query.limit(limit)
            return [_version_to_dto(row) for row in query.all()]

    def get_version(self, version_id: str, user_id: str) -> Optional[NoteVersion]:
        with session_scope(self.session_factory) as session:
            row = (
                session.query(NoteVersionORM)
                .filter(NoteVersionORM.id == version_id, NoteVersionORM.user_id == user_id)
                .one_or_none()
            )
            return _version_to_dto(row) if row else None

    def delete_version(self, version_id: str, user_id: str) -> None:
        with session_scope(self.session_factory) as session:
            session.query(NoteVersionORM).filter(
                NoteVersionORM.id == version_id,
                NoteVersionORM.user_id == user_id,
            ).delete(synchronize_session=False)

    def delete_all_for_note(self, note_id: str, user_id: str) -> None:
        with session_scope(self.session_factory) as session:
            session.query(NoteVersionORM).filter(
                NoteVersionORM.note_id == note_id,
                NoteVersionORM.user_id == user_id,
            ).delete(synchronize_session=False)

    def restore(self, version: NoteVersion) -> Note:
        """
        Write a version back onto its live note, then record that as a new version.

        The archive never rewinds: restoring v3 of a five-version note yields v6.

        Raises:
            NotFoundError: if the note no longer exists.
        """
        note = self.notes.update(version.user_id, version.note_id, version.title, version.content)
        self.create_version(
            note_id=note.id,
            user_id=version.user_id,
            title=note.title,
            content=note.content,
            format=version.format,
            metadata=ProcessingMetadata(
                restored_from=version.id,
                restored_from_version=version.version_number,
            ),
        )
        return note

    def restore_by_id(self, version_id: str, user_id: str) -> Note:
        version = self.get_version(version_id, user_id)
        if version is None:
            raise NotFoundError(f"Version {version_id} not found")
        return self.restore(version)

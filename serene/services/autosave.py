"""
Autosave coordinator for a single editing session.

Edits are debounced: each edit restarts a quiet-period timer and only the
latest pending title/content is written when it fires. Flushes (tab hidden,
editor closed, note switch) skip the timer and write immediately.

Concurrency rules:
- At most one save is in flight. A debounced save that fires while another
  save is running is dropped, not queued.
- Flushes wait for the in-flight save to finish and then write, so switching
  notes never loses the outgoing note's edits.
- Every path that supersedes the timer cancels it, and a stale timer that
  fires anyway is ignored by generation check.

Successful saves are followed by a best-effort version snapshot; snapshot
failures are logged and never reported as save failures. Background save
failures only set ``last_error``.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional

from ..config import Config
from .errors import NotFoundError, PersistenceError
from .models import Note, NoteFormat, NoteVersion, ProcessingMetadata, apply_format
from .storage import NoteRepository, utcnow
from .versions import VersionArchive

logger = logging.getLogger(__name__)


class AutosaveCoordinator:
    """Orchestrates note saves and snapshots; holds no persistent state."""

    def __init__(
        self,
        notes: NoteRepository,
        versions: VersionArchive,
        user_id: Optional[str],
        active_note: Optional[Note] = None,
        format: NoteFormat = NoteFormat.DEFAULT,
        debounce_seconds: float = Config.AUTOSAVE_DEBOUNCE_SECONDS,
        timer_factory: Callable[..., Any] = threading.Timer,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.notes = notes
        self.versions = versions
        self.user_id = user_id
        self.active_note = active_note
        self.format = NoteFormat(format)
        self.debounce_seconds = debounce_seconds
        self._timer_factory = timer_factory
        self._clock = clock

        self._cond = threading.Condition()
        self._timer: Any = None
        self._generation = 0

        self.pending_title: Optional[str] = None
        self.pending_content: Optional[str] = None
        self.is_saving = False
        self.last_saved_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Editor events
    # ------------------------------------------------------------------

    def on_edit(self, title: str, content: str) -> None:
        """Record the latest edit and restart the quiet-period timer."""
        with self._cond:
            self.pending_title = title
            self.pending_content = content
            self._cancel_timer_locked()
            generation = self._generation
            timer = self._timer_factory(
                self.debounce_seconds, self._fire_debounced, args=(generation,)
            )
            timer.daemon = True
            self._timer = timer
        timer.start()

    def flush_now(self, title: str, content: str) -> Optional[Note]:
        """
        Save immediately, cancelling any pending debounced save.

        Never raises; failures land in ``last_error``.
        """
        self.cancel_pending()
        return self._save(title, content, wait=True)

    def on_visibility_change(self, hidden: bool, title: str, content: str) -> Optional[Note]:
        if not hidden:
            return None
        return self.flush_now(title, content)

    def close(self, title: str, content: str) -> Optional[Note]:
        """Editor teardown: no timer may outlive the session."""
        return self.flush_now(title, content)

    def switch_active_note(
        self,
        next_note: Optional[Note],
        current_title: str,
        current_content: str,
    ) -> Optional[Note]:
        """
        Make ``next_note`` (or nothing, for a fresh draft) the active note.

        Unsaved non-blank content of the current note is flushed, and any
        in-flight save has completed before the pointer moves. A failed flush
        leaves ``last_error`` set.
        """
        if current_content and current_content.strip():
            self.flush_now(current_title, current_content)
        else:
            self.cancel_pending()

        with self._cond:
            while self.is_saving:
                self._cond.wait()
            self.active_note = next_note
            self.pending_title = None
            self.pending_content = None
        logger.debug("Active note switched to %s", next_note.id if next_note else None)
        return next_note

    def apply_format(self, fmt: NoteFormat, content: str) -> str:
        """Switch the session format; blank content is seeded with its skeleton."""
        self.format = NoteFormat(fmt)
        return apply_format(self.format, content)

    # ------------------------------------------------------------------
    # Explicit user actions (errors propagate)
    # ------------------------------------------------------------------

    def save(self, title: str, content: str) -> Optional[Note]:
        """Manual save. Raises PersistenceError/NotFoundError to the caller."""
        self.cancel_pending()
        return self._save(title, content, wait=True, raise_errors=True)

    def save_processed(
        self,
        title: str,
        content: str,
        metadata: Optional[ProcessingMetadata] = None,
    ) -> Optional[Note]:
        """Persist enhanced text and snapshot it as a processed version."""
        self.cancel_pending()
        return self._save(
            title,
            content,
            wait=True,
            raise_errors=True,
            is_processed=True,
            metadata=metadata,
        )

    def cancel_pending(self) -> None:
        with self._cond:
            self._cancel_timer_locked()
            self.pending_title = None
            self.pending_content = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cancel_timer_locked(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire_debounced(self, generation: int) -> None:
        with self._cond:
            if generation != self._generation:
                return
            self._timer = None
            title = self.pending_title
            content = self.pending_content
            self.pending_title = None
            self.pending_content = None
        if content is None:
            return
        self._save(title or "", content, wait=False)

    def _save(
        self,
        title: str,
        content: str,
        wait: bool,
        raise_errors: bool = False,
        is_processed: bool = False,
        metadata: Optional[ProcessingMetadata] = None,
    ) -> Optional[Note]:
        with self._cond:
            if self.is_saving and not wait:
                logger.debug("Autosave already in flight; dropping request")
                return None
            while self.is_saving:
                self._cond.wait()
            active = self.active_note
            if active is None and not (content and content.strip()):
                return None
            self.is_saving = True

        try:
            if active is None:
                note = self.notes.create(self.user_id, title, content)
            else:
                note = self.notes.update(self.user_id, active.id, title, content)

            with self._cond:
                # a switch during the save owns the pointer now
                if self.active_note is active:
                    self.active_note = note
                self.last_saved_at = self._clock()
                self.last_error = None

            self._snapshot(note, is_processed=is_processed, metadata=metadata)
            return note
        except (PersistenceError, NotFoundError) as e:
            logger.warning("Saving note failed: %s", e)
            with self._cond:
                self.last_error = str(e)
            if raise_errors:
                raise
            return None
        finally:
            with self._cond:
                self.is_saving = False
                self._cond.notify_all()

    def _snapshot(
        self,
        note: Note,
        is_processed: bool = False,
        metadata: Optional[ProcessingMetadata] = None,
    ) -> Optional[NoteVersion]:
        if not self.user_id:
            logger.warning("No authenticated user; skipping version for note %s", note.id)
            return None
        try:
            return self.versions.create_version(
                note_id=note.id,
                user_id=self.user_id,
                title=note.title,
                content=note.content,
                format=self.format,
                is_processed=is_processed,
                metadata=metadata,
            )
        except PersistenceError as e:
            logger.error("Error creating version for note %s: %s", note.id, e)
            return None

"""
Dependency injection container for backend services.

We store a single Services instance on the Flask app (app.extensions["services"]).
Routes can then fetch dependencies via get_services() which makes route tests able
to inject fakes without importing/initializing global singletons.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from flask import current_app

from .autosave import AutosaveCoordinator
from .models import Note, NoteFormat
from .processor import ContentProcessor
from .prompts import PromptCatalog
from .storage import NoteRepository
from .versions import VersionArchive


@dataclass(frozen=True)
class Services:
    notes: NoteRepository
    versions: VersionArchive
    prompts: PromptCatalog
    processor: ContentProcessor

    def autosave_session(
        self,
        user_id: Optional[str],
        active_note: Optional[Note] = None,
        format: NoteFormat = NoteFormat.DEFAULT,
        **kwargs,
    ) -> AutosaveCoordinator:
        """A fresh coordinator for one open document; sessions share nothing."""
        return AutosaveCoordinator(
            self.notes,
            self.versions,
            user_id,
            active_note=active_note,
            format=format,
            **kwargs,
        )


def create_services(
    *,
    database_url: Optional[str] = None,
    db_path: Optional[Path] = None,
    openai_client=None,
) -> Services:
    """
    Build the production Services container.

    Args:
        database_url: Optional override for database URL (useful for tests).
        db_path: Optional SQLite file path (useful for tests).
        openai_client: Optional pre-built (or fake) OpenAI client.
    """
    notes = NoteRepository(db_path=db_path, database_url=database_url)
    prompts = PromptCatalog(notes.session_factory)
    return Services(
        notes=notes,
        versions=VersionArchive(notes),
        prompts=prompts,
        processor=ContentProcessor(prompts, client=openai_client),
    )


def get_services() -> Services:
    """
    Fetch the Services container from the current Flask app.

    Raises:
        RuntimeError if services have not been attached to the app.
    """
    services = current_app.extensions.get("services")
    if services is None:
        raise RuntimeError('Services not configured. Expected app.extensions["services"].')
    return services

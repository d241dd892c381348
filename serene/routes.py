"""
REST API routes for the scratchpad backend.

Organized into logical groups:
- Notes: CRUD operations for scratchpad notes
- Versions: Note version history (list, snapshot, restore, prune)
- Prompts: Built-in and user-authored enhancement templates
- Processing: AI note enhancement with graceful fallback

All routes except health, formats and processing require authentication and
are user-scoped.
"""

import logging

from flask import Blueprint, g, jsonify, request
from pydantic import ValidationError

from .auth import optional_auth, require_auth
from .config import Config
from .services.container import get_services
from .services.errors import (
    InvalidOperationError,
    NotFoundError,
    PersistenceError,
    SereneError,
)
from .services.models import (
    FORMAT_TEMPLATES,
    NoteCreate,
    NoteUpdate,
    NoteVersionCreate,
    ProcessRequest,
    PromptCreate,
    PromptUpdate,
)

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__)


def _json_error(message: str, status: int = 400):
    return jsonify({"error": message}), status


@bp.errorhandler(SereneError)
def _handle_pipeline_error(e: SereneError):
    if isinstance(e, NotFoundError):
        return _json_error(str(e), 404)
    if isinstance(e, InvalidOperationError):
        return _json_error(str(e), 403)
    if isinstance(e, PersistenceError):
        logger.error("Persistence error: %s", e)
        return _json_error("Database error", 500)
    return _json_error(str(e), 500)


@bp.errorhandler(ValidationError)
def _handle_validation_error(e: ValidationError):
    return _json_error(str(e), 400)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("No data provided")
    return data


def _limit_arg():
    raw = request.args.get("limit")
    if raw is None:
        return None
    if raw == "":
        return Config.VERSION_HISTORY_LIMIT
    limit = int(raw)
    if limit < 1:
        raise ValueError("limit must be positive")
    return limit


# ============================================================================
# NOTE ENDPOINTS
# ============================================================================


@bp.get("/notes")
@require_auth
def list_notes():
    """
    List the user's notes, most recently updated first.

    Returns:
        JSON: {"notes": [...], "total": int}
    """
    notes = get_services().notes.fetch_all(g.user_id)
    return jsonify({"notes": [n.to_wire() for n in notes], "total": len(notes)})


@bp.post("/notes")
@require_auth
def create_note():
    """
    Explicit save of a new note. Blank content is rejected.

    Body:
        JSON: {"title": str, "content": str, "format": str (optional)}

    Returns:
        201 + Note
    """
    try:
        payload = NoteCreate.model_validate(_json_body())
    except ValueError as e:
        return _json_error(str(e))

    if not payload.content.strip():
        return _json_error("Content is required")

    session = get_services().autosave_session(g.user_id, format=payload.format)
    note = session.save(payload.title or "", payload.content)
    return jsonify(note.to_wire()), 201


@bp.get("/notes/<note_id>")
@require_auth
def get_note(note_id: str):
    note = get_services().notes.get(g.user_id, note_id)
    if not note:
        return _json_error("Note not found", 404)
    return jsonify(note.to_wire())


@bp.put("/notes/<note_id>")
@require_auth
def update_note(note_id: str):
    """
    Explicit save of an existing note; snapshots a new version on success.

    Body:
        JSON: {"title": str (optional), "content": str (optional), "format": str (optional)}
    """
    try:
        payload = NoteUpdate.model_validate(_json_body())
    except ValueError as e:
        return _json_error(str(e))

    svc = get_services()
    note = svc.notes.get(g.user_id, note_id)
    if not note:
        return _json_error("Note not found", 404)

    session = svc.autosave_session(g.user_id, active_note=note, format=payload.format)
    updated = session.save(
        note.title if payload.title is None else payload.title,
        note.content if payload.content is None else payload.content,
    )
    return jsonify(updated.to_wire())


@bp.delete("/notes/<note_id>")
@require_auth
def delete_note(note_id: str):
    """
    Delete a note. Its version history is kept.

    Returns:
        JSON: {"success": bool, "message": str}
    """
    get_services().notes.delete(g.user_id, note_id)
    return jsonify({"success": True, "message": f"Note {note_id} deleted successfully"})


# ============================================================================
# VERSION ENDPOINTS
# ============================================================================


@bp.post("/note-versions")
@require_auth
def create_note_version():
    """
    Append a version snapshot.

    Body:
        JSON: {noteId, title, content, format, isProcessed?, processingMetadata?}

    Returns:
        201 + NoteVersion
    """
    try:
        payload = NoteVersionCreate.model_validate(_json_body())
    except ValueError as e:
        return _json_error(str(e))

    svc = get_services()
    if svc.notes.get(g.user_id, payload.note_id) is None:
        return _json_error("Note not found", 404)

    version = svc.versions.create_version(
        note_id=payload.note_id,
        user_id=g.user_id,
        title=payload.title,
        content=payload.content,
        format=payload.format,
        is_processed=payload.is_processed,
        metadata=payload.processing_metadata,
    )
    return jsonify(version.to_wire()), 201


@bp.get("/note-versions/<note_id>")
@require_auth
def list_note_versions(note_id: str):
    """
    Versions of a note, newest first.

    ?limit=N keeps the latest N; a bare ?limit uses VERSION_HISTORY_LIMIT.
    """
    try:
        limit = _limit_arg()
    except ValueError:
        return _json_error("limit must be a positive integer")

    versions = get_services().versions.list_versions(note_id, g.user_id, limit=limit)
    return jsonify([v.to_wire() for v in versions])


@bp.delete("/note-versions/<version_id>")
@require_auth
def delete_note_version(version_id: str):
    get_services().versions.delete_version(version_id, g.user_id)
    return "", 204


@bp.delete("/notes/<note_id>/versions")
@require_auth
def delete_all_note_versions(note_id: str):
    get_services().versions.delete_all_for_note(note_id, g.user_id)
    return "", 204


@bp.post("/note-versions/<version_id>/restore")
@require_auth
def restore_note_version(version_id: str):
    """
    Restore a version onto its note. A new version is appended on top.

    Returns:
        JSON: restored Note
    """
    note = get_services().versions.restore_by_id(version_id, g.user_id)
    return jsonify(note.to_wire())


# ============================================================================
# PROMPT ENDPOINTS
# ============================================================================


@bp.get("/prompts")
@require_auth
def list_prompts():
    prompts = get_services().prompts.list_for_user(g.user_id)
    return jsonify([p.to_wire() for p in prompts])


@bp.get("/prompts/templates/types")
def get_template_types():
    return jsonify(get_services().prompts.template_types())


@bp.get("/prompts/template/<template_type>")
@require_auth
def list_prompts_by_type(template_type: str):
    prompts = get_services().prompts.list_by_type(template_type, g.user_id)
    return jsonify([p.to_wire() for p in prompts])


@bp.get("/prompts/<prompt_id>")
@require_auth
def get_prompt(prompt_id: str):
    prompt = get_services().prompts.resolve(prompt_id, g.user_id)
    if prompt is None:
        return _json_error("Prompt not found", 404)
    return jsonify(prompt.to_wire())


@bp.post("/prompts")
@require_auth
def create_prompt():
    try:
        payload = PromptCreate.model_validate(_json_body())
    except ValueError as e:
        return _json_error(str(e))

    prompt = get_services().prompts.create(g.user_id, payload)
    return jsonify(prompt.to_wire()), 201


@bp.put("/prompts/<prompt_id>")
@require_auth
def update_prompt(prompt_id: str):
    try:
        payload = PromptUpdate.model_validate(_json_body())
    except ValueError as e:
        return _json_error(str(e))

    prompt = get_services().prompts.update(prompt_id, payload, g.user_id)
    return jsonify(prompt.to_wire())


@bp.delete("/prompts/<prompt_id>")
@require_auth
def delete_prompt(prompt_id: str):
    get_services().prompts.delete(prompt_id, g.user_id)
    return jsonify({"success": True})


# ============================================================================
# PROCESSING ENDPOINTS
# ============================================================================


@bp.post("/process-note")
@optional_auth
def process_note():
    """
    Enhance note text with an AI template.

    Body:
        JSON: {
            "content": str,
            "promptType": str (optional, default "default"),
            "promptId": str (optional),
            "customPrompt": str (optional)
        }

    Returns:
        JSON: {"success", "processedContent", "promptUsed", "promptType",
               "processingMetadata", "warning"?}
    """
    try:
        payload = ProcessRequest.model_validate(request.get_json(silent=True) or {})
    except ValueError as e:
        return _json_error(str(e))

    if not payload.content.strip():
        return _json_error("Content is required")

    result = get_services().processor.process(
        payload.content,
        prompt_type=payload.prompt_type or "default",
        prompt_id=payload.prompt_id,
        custom_prompt=payload.custom_prompt,
        user_id=g.user_id,
    )
    return jsonify(result.to_wire())


@bp.get("/formats")
def list_formats():
    """Markdown skeletons used to seed empty notes, keyed by format."""
    return jsonify({fmt.value: template for fmt, template in FORMAT_TEMPLATES.items()})


# ============================================================================
# UTILITY ENDPOINTS
# ============================================================================


@bp.get("/health")
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok"})

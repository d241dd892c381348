from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from serene import create_app
from serene.services.container import create_services


class _FakeCompletions:
    def __init__(self):
        self.reply = "Enhanced by model"
        self.error = None
        self.calls = []

    def create(self, **kwargs):  # noqa: ANN003 - test fake
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class _FakeOpenAI:
    def __init__(self):
        self.completions = _FakeCompletions()
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture()
def openai_client():
    return _FakeOpenAI()


@pytest.fixture()
def app(tmp_path: Path, openai_client):
    services = create_services(db_path=tmp_path / "api_test.db", openai_client=openai_client)
    app = create_app(testing=True, services=services)
    yield app


@pytest.fixture()
def client(app):
    return app.test_client()


def _as(user_id: str) -> dict:
    return {"X-Test-User-Id": user_id}


def _create_note(client, title="Groceries", content="- milk", user="user-a", **extra):
    resp = client.post("/api/notes", json={"title": title, "content": content, **extra}, headers=_as(user))
    assert resp.status_code == 201
    return resp.get_json()


# ============================================================================
# Notes
# ============================================================================


def test_notes_require_auth(client):
    assert client.get("/api/notes").status_code == 401
    assert client.post("/api/notes", json={"content": "x"}).status_code == 401


def test_create_note_snapshots_first_version(client):
    note = _create_note(client)

    assert note["id"]
    assert note["title"] == "Groceries"
    assert "createdAt" in note and "updatedAt" in note

    resp = client.get(f"/api/note-versions/{note['id']}", headers=_as("user-a"))
    versions = resp.get_json()
    assert [v["versionNumber"] for v in versions] == [1]
    assert versions[0]["content"] == "- milk"
    assert versions[0]["isProcessed"] is False


def test_create_note_rejects_blank_content(client):
    resp = client.post("/api/notes", json={"title": "t", "content": "  "}, headers=_as("user-a"))
    assert resp.status_code == 400
    assert client.get("/api/notes", headers=_as("user-a")).get_json()["total"] == 0


def test_create_note_rejects_unknown_format(client):
    resp = client.post(
        "/api/notes", json={"content": "x", "format": "sonnet"}, headers=_as("user-a")
    )
    assert resp.status_code == 400


def test_update_note_adds_version(client):
    note = _create_note(client)

    resp = client.put(
        f"/api/notes/{note['id']}", json={"content": "- milk\n- eggs"}, headers=_as("user-a")
    )
    assert resp.status_code == 200
    assert resp.get_json()["content"] == "- milk\n- eggs"
    assert resp.get_json()["title"] == "Groceries"

    versions = client.get(f"/api/note-versions/{note['id']}", headers=_as("user-a")).get_json()
    assert [v["versionNumber"] for v in versions] == [2, 1]


def test_notes_are_user_scoped(client):
    note = _create_note(client)

    assert client.get(f"/api/notes/{note['id']}", headers=_as("user-b")).status_code == 404
    assert client.put(
        f"/api/notes/{note['id']}", json={"content": "x"}, headers=_as("user-b")
    ).status_code == 404
    assert client.delete(f"/api/notes/{note['id']}", headers=_as("user-b")).status_code == 404
    assert client.get("/api/notes", headers=_as("user-b")).get_json() == {"notes": [], "total": 0}


def test_delete_note_then_404(client):
    note = _create_note(client)

    resp = client.delete(f"/api/notes/{note['id']}", headers=_as("user-a"))
    assert resp.status_code == 200
    assert resp.get_json()["success"] is True

    assert client.delete(f"/api/notes/{note['id']}", headers=_as("user-a")).status_code == 404
    assert client.get(f"/api/notes/{note['id']}", headers=_as("user-a")).status_code == 404


def test_update_note_rejects_null_content(client):
    note = _create_note(client)

    resp = client.put(f"/api/notes/{note['id']}", json={"content": None}, headers=_as("user-a"))

    assert resp.status_code == 400
    assert "SQL" not in resp.get_json()["error"]
    assert client.get(f"/api/notes/{note['id']}", headers=_as("user-a")).get_json()["content"] == "- milk"


def test_update_note_title_only_keeps_content(client):
    note = _create_note(client)

    resp = client.put(f"/api/notes/{note['id']}", json={"title": "Shopping"}, headers=_as("user-a"))

    assert resp.status_code == 200
    assert resp.get_json()["title"] == "Shopping"
    assert resp.get_json()["content"] == "- milk"


def test_create_note_rejects_non_string_content(client):
    resp = client.post("/api/notes", json={"content": 42}, headers=_as("user-a"))
    assert resp.status_code == 400


# ============================================================================
# Versions
# ============================================================================


def test_manual_version_and_limit(client):
    note = _create_note(client)
    for i in range(3):
        resp = client.post(
            "/api/note-versions",
            json={"noteId": note["id"], "title": "Groceries", "content": f"edit {i}", "format": "braindump"},
            headers=_as("user-a"),
        )
        assert resp.status_code == 201

    resp = client.get(f"/api/note-versions/{note['id']}?limit=2", headers=_as("user-a"))
    versions = resp.get_json()
    assert [v["versionNumber"] for v in versions] == [4, 3]
    assert versions[0]["format"] == "braindump"
    assert versions[0]["processingMetadata"] is None


def test_bare_limit_uses_history_size(client, monkeypatch):
    from serene.config import Config

    monkeypatch.setattr(Config, "VERSION_HISTORY_LIMIT", 2)
    note = _create_note(client, content="v1")
    for content in ("v2", "v3"):
        client.put(f"/api/notes/{note['id']}", json={"content": content}, headers=_as("user-a"))

    versions = client.get(f"/api/note-versions/{note['id']}?limit", headers=_as("user-a")).get_json()
    assert [v["versionNumber"] for v in versions] == [3, 2]


def test_version_for_another_users_note_is_rejected(client):
    note = _create_note(client)

    resp = client.post(
        "/api/note-versions",
        json={"noteId": note["id"], "content": "intruder"},
        headers=_as("user-b"),
    )
    assert resp.status_code == 404

    client.put(f"/api/notes/{note['id']}", json={"content": "mine"}, headers=_as("user-a"))
    versions = client.get(f"/api/note-versions/{note['id']}", headers=_as("user-a")).get_json()
    assert [v["versionNumber"] for v in versions] == [2, 1]


def test_version_list_rejects_bad_limit(client):
    resp = client.get("/api/note-versions/some-note?limit=zero", headers=_as("user-a"))
    assert resp.status_code == 400


def test_create_version_requires_note_id(client):
    resp = client.post("/api/note-versions", json={"content": "x"}, headers=_as("user-a"))
    assert resp.status_code == 400


def test_restore_appends_version(client):
    note = _create_note(client, content="v1")
    for content in ("v2", "v3"):
        client.put(f"/api/notes/{note['id']}", json={"content": content}, headers=_as("user-a"))

    versions = client.get(f"/api/note-versions/{note['id']}", headers=_as("user-a")).get_json()
    v1 = versions[-1]

    resp = client.post(f"/api/note-versions/{v1['id']}/restore", headers=_as("user-a"))
    assert resp.status_code == 200
    assert resp.get_json()["content"] == "v1"

    versions = client.get(f"/api/note-versions/{note['id']}", headers=_as("user-a")).get_json()
    assert versions[0]["versionNumber"] == 4
    assert versions[0]["processingMetadata"] == {"restoredFrom": v1["id"], "restoredFromVersion": 1}


def test_restore_unknown_version_is_404(client):
    resp = client.post("/api/note-versions/missing/restore", headers=_as("user-a"))
    assert resp.status_code == 404


def test_delete_versions(client):
    note = _create_note(client)
    client.put(f"/api/notes/{note['id']}", json={"content": "again"}, headers=_as("user-a"))
    versions = client.get(f"/api/note-versions/{note['id']}", headers=_as("user-a")).get_json()

    resp = client.delete(f"/api/note-versions/{versions[0]['id']}", headers=_as("user-a"))
    assert resp.status_code == 204
    remaining = client.get(f"/api/note-versions/{note['id']}", headers=_as("user-a")).get_json()
    assert len(remaining) == 1

    resp = client.delete(f"/api/notes/{note['id']}/versions", headers=_as("user-a"))
    assert resp.status_code == 204
    assert client.get(f"/api/note-versions/{note['id']}", headers=_as("user-a")).get_json() == []


# ============================================================================
# Prompts
# ============================================================================


def test_list_prompts_includes_builtins(client):
    resp = client.get("/api/prompts", headers=_as("user-a"))
    assert resp.status_code == 200
    ids = [p["id"] for p in resp.get_json()]
    assert "default_default" in ids
    assert "default_translate" in ids


def test_template_types_is_public(client):
    resp = client.get("/api/prompts/templates/types")
    assert resp.status_code == 200
    assert resp.get_json()["meeting"]["name"] == "Meeting Notes Organization"


def test_prompt_crud(client):
    resp = client.post(
        "/api/prompts",
        json={"name": "Terse", "templateType": "summary", "promptText": "Shorten: {content}"},
        headers=_as("user-a"),
    )
    assert resp.status_code == 201
    prompt = resp.get_json()
    assert prompt["isDefault"] is False

    resp = client.put(f"/api/prompts/{prompt['id']}", json={"name": "Tersest"}, headers=_as("user-a"))
    assert resp.status_code == 200
    assert resp.get_json()["name"] == "Tersest"

    by_type = client.get("/api/prompts/template/summary", headers=_as("user-a")).get_json()
    assert [p["id"] for p in by_type] == [prompt["id"], "default_summary"]

    resp = client.delete(f"/api/prompts/{prompt['id']}", headers=_as("user-a"))
    assert resp.get_json() == {"success": True}
    assert client.get(f"/api/prompts/{prompt['id']}", headers=_as("user-a")).status_code == 404


def test_prompt_without_placeholder_is_rejected(client):
    resp = client.post(
        "/api/prompts",
        json={"name": "Bad", "templateType": "summary", "promptText": "no slot"},
        headers=_as("user-a"),
    )
    assert resp.status_code == 400


def test_builtin_prompts_are_read_only(client):
    resp = client.put("/api/prompts/default_diary", json={"name": "x"}, headers=_as("user-a"))
    assert resp.status_code == 403
    assert client.delete("/api/prompts/default_diary", headers=_as("user-a")).status_code == 403

    resp = client.get("/api/prompts/default_diary", headers=_as("user-a"))
    assert resp.status_code == 200
    assert resp.get_json()["name"] == "Diary Enhancement"


# ============================================================================
# Processing
# ============================================================================


def test_process_note_success(client, openai_client):
    resp = client.post("/api/process-note", json={"content": "met bob", "promptType": "meeting"})

    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["success"] is True
    assert payload["processedContent"] == "Enhanced by model"
    assert payload["promptUsed"] == "Meeting Notes Organization"
    assert "warning" not in payload
    assert len(openai_client.completions.calls) == 1


def test_process_note_fallback(client, openai_client):
    openai_client.completions.error = OpenAIError("rate limited")

    resp = client.post("/api/process-note", json={"content": "idea", "promptId": "default_brainstorm"})

    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["success"] is True
    assert payload["promptUsed"] == "brainstorm processing (fallback mode)"
    assert payload["processedContent"].startswith("## Brainstorming Session")
    assert payload["warning"]


def test_process_note_requires_content(client, openai_client):
    resp = client.post("/api/process-note", json={"content": ""})

    assert resp.status_code == 400
    assert openai_client.completions.calls == []


def test_process_note_uses_callers_custom_prompt(client, openai_client):
    resp = client.post(
        "/api/process-note",
        json={"content": "abc", "customPrompt": "Rhyme {content}"},
        headers=_as("user-a"),
    )

    assert resp.get_json()["promptUsed"] == "Custom Prompt"
    assert openai_client.completions.calls[0]["messages"][0]["content"] == "Rhyme abc"


# ============================================================================
# Utility
# ============================================================================


def test_formats_and_health(client):
    formats = client.get("/api/formats").get_json()
    assert formats["default"] == ""
    assert formats["meeting"].startswith("# Meeting Notes")

    assert client.get("/api/health").get_json() == {"status": "ok"}


def test_process_note_anonymous_cannot_use_private_prompt(client, openai_client):
    resp = client.post(
        "/api/prompts",
        json={"name": "Private Prompt", "templateType": "default", "promptText": "SECRET {content}"},
        headers=_as("owner"),
    )
    prompt_id = resp.get_json()["id"]

    resp = client.post("/api/process-note", json={"content": "hi", "promptId": prompt_id})

    assert resp.status_code == 200
    assert resp.get_json()["promptUsed"] == "General Note Enhancement"
    assert "SECRET" not in openai_client.completions.calls[0]["messages"][0]["content"]


@pytest.mark.parametrize(
    "body",
    [
        {"content": "x", "customPrompt": 5},
        {"content": "x", "promptId": 7},
        {"content": 3},
        {"promptType": "diary"},
    ],
)
def test_process_note_rejects_malformed_body(client, openai_client, body):
    resp = client.post("/api/process-note", json=body)

    assert resp.status_code == 400
    assert openai_client.completions.calls == []


def test_process_note_reports_fallback_flag(client, openai_client):
    assert client.post("/api/process-note", json={"content": "x"}).get_json()["fallback"] is False

    openai_client.completions.error = OpenAIError("down")
    assert client.post("/api/process-note", json={"content": "x"}).get_json()["fallback"] is True


def test_persistence_error_body_is_generic(client, app, monkeypatch):
    from serene.services.errors import PersistenceError

    def _boom(user_id):
        raise PersistenceError("(sqlite3.OperationalError) [SQL: SELECT ...]")

    monkeypatch.setattr(app.extensions["services"].notes, "fetch_all", _boom)

    resp = client.get("/api/notes", headers=_as("user-a"))
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Database error"}

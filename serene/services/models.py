"""
Data models for the note pipeline.

Uses Pydantic for validation and serialization. Wire payloads are camelCase
(``noteId``, ``versionNumber``...) while Python code uses snake_case.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

CONTENT_PLACEHOLDER = "{content}"


class NoteFormat(str, Enum):
    """Markdown skeleton a note was started from"""
    DEFAULT = "default"
    DIARY = "diary"
    MEETING = "meeting"
    BRAINDUMP = "braindump"
    BRAINSTORM = "brainstorm"


FORMAT_TEMPLATES = {
    NoteFormat.DEFAULT: "",
    NoteFormat.DIARY: (
        "# Dear Diary\n\nToday I...\n\n## Highlights\n\n- \n\n## Mood\n\n- \n\n"
        "## Tomorrow I will\n\n- "
    ),
    NoteFormat.MEETING: (
        "# Meeting Notes\n\n**Date:** \n**Attendees:** \n\n## Agenda\n\n1. \n\n"
        "## Decisions\n\n- \n\n## Action Items\n\n- [ ] \n\n## Notes\n\n"
    ),
    NoteFormat.BRAINDUMP: (
        "# Brain Dump\n\n## Thoughts\n\n- \n\n## Questions\n\n- \n\n## Ideas\n\n- "
    ),
    NoteFormat.BRAINSTORM: (
        "# Brainstorming Session\n\n## Topic\n\n\n## Ideas\n\n- \n\n## Pros and Cons\n\n"
        "| Idea | Pros | Cons |\n| ---- | ---- | ---- |\n|      |      |      |\n\n"
        "## Action Items\n\n- [ ] "
    ),
}


def format_template(fmt: NoteFormat) -> str:
    return FORMAT_TEMPLATES[NoteFormat(fmt)]


def apply_format(fmt: NoteFormat, content: str) -> str:
    """Seed blank content with the format skeleton; never touch existing text."""
    if content and content.strip():
        return content
    return format_template(fmt)


class WireModel(BaseModel):
    """Base for models exchanged with the frontend (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Note(WireModel):
    """A single markdown scratchpad document"""
    id: str
    user_id: str
    title: str
    content: str
    created_at: datetime
    updated_at: datetime


class ProcessingMetadata(WireModel):
    """Audit details attached to a version. Only populated keys are serialized."""
    model: Optional[str] = None
    prompt_type: Optional[str] = None
    provider: Optional[str] = None
    temperature: Optional[float] = None
    restored_from: Optional[str] = None
    restored_from_version: Optional[int] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NoteCreate(WireModel):
    """Body of POST /notes"""
    title: Optional[str] = None
    content: str
    format: NoteFormat = NoteFormat.DEFAULT


class NoteUpdate(WireModel):
    """Body of PUT /notes/<id>; omitted fields keep their stored value"""
    title: Optional[str] = None
    content: Optional[str] = None
    format: NoteFormat = NoteFormat.DEFAULT

    @field_validator("title", "content", mode="before")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("must be a string when provided")
        return value


class NoteVersion(WireModel):
    """Immutable snapshot of a note"""
    id: str
    note_id: str
    user_id: str
    title: str
    content: str
    format: NoteFormat = NoteFormat.DEFAULT
    version_number: int = Field(..., ge=1)
    is_processed: bool = False
    processing_metadata: Optional[ProcessingMetadata] = None
    created_at: datetime

    def to_wire(self) -> dict:
        data = self.model_dump(mode="json", by_alias=True, exclude={"processing_metadata"})
        data["processingMetadata"] = (
            self.processing_metadata.to_wire() if self.processing_metadata else None
        )
        return data


class NoteVersionCreate(WireModel):
    """Body of POST /note-versions"""
    note_id: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    title: str = ""
    content: str
    format: NoteFormat = NoteFormat.DEFAULT
    is_processed: bool = False
    processing_metadata: Optional[ProcessingMetadata] = None


class PromptTemplate(WireModel):
    """Built-in or user-authored prompt template"""
    id: str
    user_id: Optional[str] = None
    name: str
    template_type: str
    prompt_text: str
    description: Optional[str] = None
    is_default: bool = False
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class PromptCreate(WireModel):
    name: str = Field(..., min_length=1, max_length=200)
    template_type: str = Field(..., min_length=1, max_length=64)
    prompt_text: str = Field(..., min_length=1)

    @field_validator("prompt_text")
    @classmethod
    def _has_placeholder(cls, value: str) -> str:
        if CONTENT_PLACEHOLDER not in value:
            raise ValueError(f"promptText must contain the {CONTENT_PLACEHOLDER} placeholder")
        return value


class PromptUpdate(WireModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    prompt_text: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("prompt_text")
    @classmethod
    def _has_placeholder(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and CONTENT_PLACEHOLDER not in value:
            raise ValueError(f"promptText must contain the {CONTENT_PLACEHOLDER} placeholder")
        return value


class ProcessRequest(WireModel):
    """Body of POST /process-note"""
    content: str
    prompt_type: Optional[str] = None
    prompt_id: Optional[str] = None
    custom_prompt: Optional[str] = None


class ProcessingResult(WireModel):
    """Outcome of a note enhancement request"""
    success: bool = True
    processed_content: str
    prompt_used: str
    prompt_type: str
    warning: Optional[str] = None
    fallback: bool = False
    metadata: ProcessingMetadata = Field(default_factory=ProcessingMetadata)

    def to_wire(self) -> dict:
        data = {
            "success": self.success,
            "processedContent": self.processed_content,
            "promptUsed": self.prompt_used,
            "promptType": self.prompt_type,
            "processingMetadata": self.metadata.to_wire(),
            "fallback": self.fallback,
        }
        if self.warning:
            data["warning"] = self.warning
        return data

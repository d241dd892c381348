"""
Prompt catalog: built-in enhancement templates plus user-authored ones.

Built-ins live only in memory and are addressed as ``default_<type>``; they are
synthesized on every read and can never be edited or deleted. User templates
are stored in the ``prompts`` table.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional
from uuid import uuid4

from sqlalchemy import desc
from sqlalchemy.orm import sessionmaker

from ..database import Prompt as PromptORM
from .errors import InvalidOperationError, NotFoundError, PersistenceError
from .models import CONTENT_PLACEHOLDER, PromptCreate, PromptTemplate, PromptUpdate
from .storage import session_scope, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "default_"
DEFAULT_TEMPLATE_TYPE = "default"

PREDEFINED_PROMPTS: Dict[str, Dict[str, str]] = {
    "diary": {
        "name": "Diary Enhancement",
        "description": "Improves grammar, flow, and adds descriptive language while maintaining personal tone",
        "template": """You are a helpful writing assistant. Please enhance this diary entry by:

1. Improving grammar and flow
2. Adding more descriptive language where appropriate
3. Suggesting better word choices
4. Maintaining the personal, reflective tone
5. Adding emotional depth where appropriate

Original diary entry:
{content}

Enhanced version:""",
    },
    "meeting": {
        "name": "Meeting Notes Organization",
        "description": "Structures meeting notes with clear headings, action items, and key decisions",
        "template": """You are a professional meeting assistant. Please organize and enhance these meeting notes by:

1. Structuring the content with clear headings
2. Extracting and highlighting action items
3. Summarizing key decisions
4. Improving clarity and readability
5. Adding missing context where helpful

Original meeting notes:
{content}

Organized version:""",
    },
    "braindump": {
        "name": "Brain Dump Organization",
        "description": "Categorizes thoughts into logical groups and creates clear structure",
        "template": """You are a productivity assistant. Please organize this brain dump by:

1. Categorizing thoughts into logical groups
2. Creating a clear structure with headings
3. Identifying actionable items vs. ideas
4. Improving clarity and readability
5. Prioritizing items by importance

Original brain dump:
{content}

Organized version:""",
    },
    "brainstorm": {
        "name": "Brainstorm Enhancement",
        "description": "Expands on ideas, adds variations, and suggests implementation steps",
        "template": """You are a creative thinking assistant. Please enhance this brainstorming session by:

1. Expanding on promising ideas
2. Adding related concepts and variations
3. Organizing ideas by theme or category
4. Suggesting next steps for implementation
5. Identifying potential challenges and solutions

Original brainstorm:
{content}

Enhanced version:""",
    },
    "summary": {
        "name": "Content Summarization",
        "description": "Creates concise summaries while preserving key information",
        "template": """You are a summarization expert. Please create a clear, concise summary of this content by:

1. Identifying the main points and key information
2. Removing redundant or less important details
3. Maintaining the original meaning and context
4. Using clear, readable language
5. Organizing information logically

Original content:
{content}

Summary:""",
    },
    "expand": {
        "name": "Content Expansion",
        "description": "Expands brief content with more detail, examples, and context",
        "template": """You are a content expansion specialist. Please expand this content by:

1. Adding relevant details and context
2. Providing examples and explanations
3. Including related information
4. Improving structure and flow
5. Maintaining the original intent

Original content:
{content}

Expanded version:""",
    },
    "translate": {
        "name": "Language Translation",
        "description": "Translates content to English while preserving meaning",
        "template": """You are a professional translator. Please translate this content to English by:

1. Maintaining the original meaning and tone
2. Using natural, fluent language
3. Preserving cultural context where appropriate
4. Keeping the same structure and format
5. Ensuring accuracy and clarity

Original content:
{content}

Translated version:""",
    },
    "default": {
        "name": "General Note Enhancement",
        "description": "General purpose enhancement for any type of note",
        "template": """You are a helpful writing assistant. Please enhance this note by:

1. Improving grammar and clarity
2. Better organizing the content
3. Adding structure where helpful
4. Maintaining the original intent and tone
5. Making it more engaging and readable

Original note:
{content}

Enhanced version:""",
    },
}


def render_prompt(template_text: str, content: str) -> str:
    """
    Substitute note content into a template.

    Only the first ``{content}`` is replaced. A template without the
    placeholder gets the content appended after a blank line.
    """
    if CONTENT_PLACEHOLDER in template_text:
        return template_text.replace(CONTENT_PLACEHOLDER, content, 1)
    return f"{template_text}\n\n{content}"


def is_builtin_id(prompt_id: str) -> bool:
    return prompt_id.startswith(DEFAULT_PREFIX)


def builtin_prompt(template_type: str) -> Optional[PromptTemplate]:
    predefined = PREDEFINED_PROMPTS.get(template_type)
    if predefined is None:
        return None
    now = utcnow()
    return PromptTemplate(
        id=f"{DEFAULT_PREFIX}{template_type}",
        name=predefined["name"],
        template_type=template_type,
        prompt_text=predefined["template"],
        description=predefined["description"],
        is_default=True,
        is_active=True,
        created_at=now,
        updated_at=now,
    )


def _prompt_to_dto(row: PromptORM) -> PromptTemplate:
    return PromptTemplate(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        template_type=row.template_type,
        prompt_text=row.prompt_text,
        is_default=bool(row.is_default),
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class PromptCatalog:
    """Resolves and manages prompt templates."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def builtins(self) -> List[PromptTemplate]:
        return [builtin_prompt(template_type) for template_type in PREDEFINED_PROMPTS]

    def template_types(self) -> Dict[str, Dict[str, str]]:
        return {
            template_type: {"name": p["name"], "description": p["description"]}
            for template_type, p in PREDEFINED_PROMPTS.items()
        }

    def resolve(self, prompt_id: str, user_id: Optional[str] = None) -> Optional[PromptTemplate]:
        """
        Look up a template by id.

        ``default_<type>`` ids never touch storage. Storage failures are logged
        and treated as "not found" so processing can fall through to a
        built-in template.
        """
        if not prompt_id:
            return None
        if is_builtin_id(prompt_id):
            return builtin_prompt(prompt_id[len(DEFAULT_PREFIX):])

        try:
            return self._get_user_prompt(prompt_id, user_id)
        except PersistenceError as e:
            logger.error("Error getting prompt %s: %s", prompt_id, e)
            return None

    def list_for_user(self, user_id: Optional[str]) -> List[PromptTemplate]:
        """The user's active templates (newest first) followed by the built-ins."""
        user_prompts: List[PromptTemplate] = []
        if user_id:
            with session_scope(self.session_factory) as session:
                rows = (
                    session.query(PromptORM)
                    .filter(PromptORM.user_id == user_id, PromptORM.is_active.is_(True))
                    .order_by(desc(PromptORM.created_at))
                    .all()
                )
                user_prompts = [_prompt_to_dto(row) for row in rows]
        return user_prompts + self.builtins()

    def list_by_type(self, template_type: str, user_id: Optional[str] = None) -> List[PromptTemplate]:
        return [p for p in self.list_for_user(user_id) if p.template_type == template_type]

    def create(self, user_id: Optional[str], data: PromptCreate) -> PromptTemplate:
        now = utcnow()
        row = PromptORM(
            id=str(uuid4()),
            user_id=user_id,
            name=data.name,
            template_type=data.template_type,
            prompt_text=data.prompt_text,
            is_default=False,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        with session_scope(self.session_factory) as session:
            session.add(row)
        return _prompt_to_dto(row)

    def update(self, prompt_id: str, data: PromptUpdate, user_id: Optional[str] = None) -> PromptTemplate:
        """
        Edit a user template. Unset fields are left alone.

        Raises:
            InvalidOperationError: for built-in ids.
            NotFoundError: if no such user template exists.
        """
        self._reject_builtin(prompt_id)
        with session_scope(self.session_factory) as session:
            row = self._query_user_prompt(session, prompt_id, user_id).one_or_none()
            if row is None:
                raise NotFoundError(f"Prompt {prompt_id} not found")

            if data.name is not None:
                row.name = data.name
            if data.prompt_text is not None:
                row.prompt_text = data.prompt_text
            if data.is_active is not None:
                row.is_active = data.is_active
            row.updated_at = utcnow()
            session.add(row)
            session.flush()
            return _prompt_to_dto(row)

    def delete(self, prompt_id: str, user_id: Optional[str] = None) -> None:
        self._reject_builtin(prompt_id)
        with session_scope(self.session_factory) as session:
            deleted = self._query_user_prompt(session, prompt_id, user_id).delete(
                synchronize_session=False
            )
        if not deleted:
            raise NotFoundError(f"Prompt {prompt_id} not found")

    def _reject_builtin(self, prompt_id: str) -> None:
        if is_builtin_id(prompt_id):
            raise InvalidOperationError(f"Built-in prompt {prompt_id} cannot be modified")

    def _get_user_prompt(self, prompt_id: str, user_id: Optional[str]) -> Optional[PromptTemplate]:
        with session_scope(self.session_factory) as session:
            row = self._query_user_prompt(session, prompt_id, user_id).one_or_none()
            return _prompt_to_dto(row) if row else None

    @staticmethod
    def _query_user_prompt(session, prompt_id: str, user_id: Optional[str]):
        # anonymous callers only reach ownerless prompts
        owner = PromptORM.user_id.is_(None) if user_id is None else PromptORM.user_id == user_id
        return session.query(PromptORM).filter(PromptORM.id == prompt_id, owner)

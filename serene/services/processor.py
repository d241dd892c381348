"""
Note enhancement via the OpenAI chat completions API.

One request per call: resolve a template, substitute the note into it, ask the
model, return the text verbatim. When the model call fails for any reason the
processor answers with a canned, template-specific rewrite of the input so the
caller always has something to show. It never persists anything itself.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from openai import OpenAIError

from ..config import Config
from .errors import ProcessingError
from .models import ProcessingMetadata, ProcessingResult
from .openai_provider import PROVIDER_NAME, chat_model, get_openai_client
from .prompts import (
    DEFAULT_PREFIX,
    DEFAULT_TEMPLATE_TYPE,
    PREDEFINED_PROMPTS,
    PromptCatalog,
    builtin_prompt,
    is_builtin_id,
    render_prompt,
)

logger = logging.getLogger(__name__)

FALLBACK_WARNING = "LLM processing failed, using fallback processing"

FALLBACK_TEMPLATES = {
    "diary": (
        "**Enhanced Diary Entry**\n\n{content}\n\n"
        "*This entry has been enhanced for better flow and readability while maintaining your personal voice.*"
    ),
    "meeting": (
        "## Meeting Notes\n\n**Key Points:**\n{content}\n\n"
        "**Action Items:**\n- [ ] To be determined\n\n**Next Steps:**\n- To be determined"
    ),
    "braindump": (
        "## Organized Thoughts\n\n{content}\n\n---\n\n"
        "**Categories:**\n- Ideas\n- Tasks\n- Questions\n- Notes"
    ),
    "brainstorm": (
        "## Brainstorming Session\n\n**Original Ideas:**\n{content}\n\n"
        "**Expanded Ideas:**\n- [Original idea] + variations and implementation steps\n\n"
        "**Next Actions:**\n- Research feasibility\n- Create implementation plan"
    ),
    "summary": (
        "## Summary\n\n**Key Points:**\n{content}\n\n"
        "**Main Takeaways:**\n- [Key insight 1]\n- [Key insight 2]\n- [Key insight 3]"
    ),
    "expand": (
        "## Expanded Content\n\n**Original:**\n{content}\n\n**Expanded Version:**\n"
        "This is an expanded version of your content with additional details, examples, "
        "and context to provide a more comprehensive understanding of the topic."
    ),
    "translate": (
        "## Translated Content\n\n**Original:**\n{content}\n\n"
        "**Translation:**\n[This would be the translated version of your content]"
    ),
    "default": (
        "## Enhanced Note\n\n{content}\n\n---\n\n"
        "*This note has been enhanced for better clarity and structure.*"
    ),
}


def fallback_type(prompt_type: Optional[str], prompt_id: Optional[str] = None) -> str:
    """Template type used for degraded output. Never consults storage."""
    if prompt_id and is_builtin_id(prompt_id):
        candidate = prompt_id[len(DEFAULT_PREFIX):]
        if candidate in FALLBACK_TEMPLATES:
            return candidate
    if prompt_type in FALLBACK_TEMPLATES:
        return prompt_type
    return DEFAULT_TEMPLATE_TYPE


def fallback_content(content: str, template_type: str) -> str:
    template = FALLBACK_TEMPLATES.get(template_type, FALLBACK_TEMPLATES[DEFAULT_TEMPLATE_TYPE])
    return template.replace("{content}", content, 1)


class ContentProcessor:
    """
    Enhances note text with a chat completion.

    Features:
    - Template selection: inline custom prompt, then catalog id, then named type
    - Fixed temperature and pinned model from configuration
    - Deterministic fallback when the completion call fails
    """

    def __init__(
        self,
        catalog: PromptCatalog,
        client: Any = None,
        model: Optional[str] = None,
        temperature: float = Config.PROCESSING_TEMPERATURE,
        max_tokens: int = Config.PROCESSING_MAX_TOKENS,
        client_factory: Callable[[], Any] = get_openai_client,
    ):
        self.catalog = catalog
        self._client = client
        self._client_factory = client_factory
        self.model = model or chat_model()
        self.temperature = temperature
        self.max_tokens = max_tokens

    def process(
        self,
        content: str,
        prompt_type: Optional[str] = DEFAULT_TEMPLATE_TYPE,
        prompt_id: Optional[str] = None,
        custom_prompt: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ProcessingResult:
        """
        Enhance ``content`` with the selected template.

        Args:
            content: Note text to enhance.
            prompt_type: Named template type (diary, meeting, ...).
            prompt_id: Catalog id, built-in (``default_<type>``) or user-authored.
            custom_prompt: Inline template text; wins over everything else.
            user_id: Scopes lookups of user-authored templates.

        Returns:
            ProcessingResult; ``fallback`` is True when the model was not reached.

        Raises:
            ValueError: If content is blank.
        """
        if not content or not content.strip():
            raise ValueError("Content is required")

        template_text, template_name, resolved_type = self._resolve_template(
            prompt_type, prompt_id, custom_prompt, user_id
        )
        prompt = render_prompt(template_text, content)

        try:
            processed = self._complete(prompt)
        except ProcessingError as e:
            ftype = fallback_type(prompt_type, prompt_id)
            logger.warning("Note processing failed (%s); falling back to %s template", e, ftype)
            return ProcessingResult(
                processed_content=fallback_content(content, ftype),
                prompt_used=f"{ftype} processing (fallback mode)",
                prompt_type=ftype,
                warning=FALLBACK_WARNING,
                fallback=True,
                metadata=ProcessingMetadata(prompt_type=ftype, provider="fallback"),
            )

        return ProcessingResult(
            processed_content=processed,
            prompt_used=template_name,
            prompt_type=resolved_type,
            metadata=ProcessingMetadata(
                model=self.model,
                prompt_type=resolved_type,
                provider=PROVIDER_NAME,
                temperature=self.temperature,
            ),
        )

    def _resolve_template(
        self,
        prompt_type: Optional[str],
        prompt_id: Optional[str],
        custom_prompt: Optional[str],
        user_id: Optional[str],
    ) -> tuple[str, str, str]:
        requested_type = prompt_type if prompt_type in PREDEFINED_PROMPTS else DEFAULT_TEMPLATE_TYPE

        if custom_prompt and custom_prompt.strip():
            return custom_prompt, "Custom Prompt", requested_type

        if prompt_id:
            template = self.catalog.resolve(prompt_id, user_id)
            if template is not None:
                return template.prompt_text, template.name, template.template_type
            logger.info("Prompt %s not found, using %s template", prompt_id, requested_type)

        template = builtin_prompt(requested_type)
        return template.prompt_text, template.name, requested_type

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                self._client = self._client_factory()
            except ValueError as e:
                raise ProcessingError(str(e)) from e
        return self._client

    def _complete(self, prompt: str) -> str:
        client = self._get_client()
        try:
            completion = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise ProcessingError(f"OpenAI API error: {e}") from e

        try:
            text = completion.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise ProcessingError("Malformed completion response") from e

        if not text or not text.strip():
            raise ProcessingError("OpenAI returned empty response")
        return text

"""
streamgen :: Chat Template

Render chat messages into a prompt string with the checkpoint's
Jinja2 chat template (tokenizer_config.json "chat_template").

The template is compiled once and owned by the ChatTemplate object.

INL - 2025
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
from dataclasses import dataclass, asdict

from streamgen.core.errors import ChatTemplateError


@dataclass
class ChatMessage:
    """One chat turn."""
    role: str
    content: str


Message = Union[ChatMessage, Dict[str, Any]]


def _raise_exception(message: str):
    # Templates call raise_exception() to reject unsupported conversations.
    raise ChatTemplateError(message)


def _tojson(value: Any, ensure_ascii: bool = False, indent: Optional[int] = None) -> str:
    return json.dumps(value, ensure_ascii=ensure_ascii, indent=indent)


class ChatTemplate:
    """
    Chat template renderer.

    Uses a sandboxed Jinja2 environment with the settings HuggingFace
    templates are written against (trim_blocks, lstrip_blocks,
    raise_exception, tojson).
    """

    def __init__(self, template_str: str):
        from jinja2 import TemplateError
        from jinja2.sandbox import ImmutableSandboxedEnvironment

        self.source = template_str
        env = ImmutableSandboxedEnvironment(trim_blocks=True, lstrip_blocks=True)
        env.globals["raise_exception"] = _raise_exception
        env.filters["tojson"] = _tojson
        try:
            self.template = env.from_string(template_str)
        except TemplateError as e:
            raise ChatTemplateError(f"cannot compile chat template: {e}") from e

    def apply(
        self,
        messages: Sequence[Message],
        add_generation_prompt: bool = True,
        **extra: Any,
    ) -> str:
        """
        Render messages into a prompt string.

        Args:
            messages: ChatMessage objects or {"role": ..., "content": ...} dicts
            add_generation_prompt: append the assistant turn marker
            extra: additional template variables (bos_token, tools, ...)

        Returns:
            formatted prompt string
        """
        from jinja2 import TemplateError

        rendered_messages: List[Dict[str, Any]] = [
            asdict(m) if isinstance(m, ChatMessage) else dict(m) for m in messages
        ]
        try:
            return self.template.render(
                messages=rendered_messages,
                add_generation_prompt=add_generation_prompt,
                **extra,
            )
        except TemplateError as e:
            raise ChatTemplateError(f"cannot render chat template: {e}") from e

    @staticmethod
    def from_file(path: Union[str, Path]) -> "ChatTemplate":
        """Load template from a .jinja file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                return ChatTemplate(f.read())
        except OSError as e:
            raise ChatTemplateError(f"cannot read chat template {path}: {e}") from e

    @staticmethod
    def from_tokenizer_config(path: Union[str, Path]) -> "ChatTemplate":
        """Load the "chat_template" field of a tokenizer_config.json."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                tokenizer_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ChatTemplateError(f"cannot read tokenizer config {path}: {e}") from e

        chat_template = tokenizer_config.get("chat_template") if isinstance(tokenizer_config, dict) else None
        if not isinstance(chat_template, str):
            raise ChatTemplateError("chat_template not found")
        return ChatTemplate(chat_template)

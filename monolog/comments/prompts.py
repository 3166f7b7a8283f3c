"""Prompt construction and output cleanup for the model path."""

from __future__ import annotations

import re
from typing import Optional

from .catalog import RoleCatalog
from .models import CommentRole, ConversationContext

SYSTEM_INSTRUCTION = (
    "You are writing live stream viewer comments in Japanese. Keep each comment "
    "short (1-10 words), natural and suited to the requested role. Reply with "
    "the comment text only."
)

_QUOTES = re.compile(r"^[\"'「『]+|[\"'」』]+$")


def build_prompt(
    role: CommentRole,
    context: ConversationContext,
    *,
    catalog: Optional[RoleCatalog] = None,
) -> str:
    catalog = catalog or RoleCatalog()
    lines = [SYSTEM_INSTRUCTION, f"Role: {role.value}"]
    if context.current_topic:
        lines.append(f"Topic: {context.current_topic}")
    transcript = (context.recent_transcript or "").strip()
    if transcript:
        lines.append(f'Recent speech: "{transcript[-200:]}"')
    lines.append(
        f"Mood: engagement {context.user_engagement}, pace {context.conversation_pace}"
    )
    lines.append(catalog.definition(role).guidance)
    return "\n".join(lines)


def clean_response(text: str, *, max_length: int = 100) -> str:
    """Normalise raw model output; an empty string means unusable."""
    cleaned = " ".join((text or "").split())
    cleaned = _QUOTES.sub("", cleaned).strip()
    if len(cleaned) > max_length:
        return ""
    return cleaned


__all__ = ["SYSTEM_INSTRUCTION", "build_prompt", "clean_response"]

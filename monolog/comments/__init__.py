"""Comment generation package."""

from .catalog import RoleCatalog, RoleDefinition, RoleProfile
from .generator import RuleBasedGenerator
from .models import (
    AudioAnalysisData,
    Comment,
    CommentRole,
    ConversationContext,
    InteractionType,
    UserInteraction,
)
from .prompts import build_prompt, clean_response
from .selector import RoleSelector
from .mixer import HybridMixer, MixerStats

__all__ = [
    "CommentRole",
    "InteractionType",
    "ConversationContext",
    "Comment",
    "UserInteraction",
    "AudioAnalysisData",
    "RoleCatalog",
    "RoleDefinition",
    "RoleProfile",
    "RoleSelector",
    "RuleBasedGenerator",
    "HybridMixer",
    "MixerStats",
    "build_prompt",
    "clean_response",
]

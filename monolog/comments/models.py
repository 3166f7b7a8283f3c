"""Dataclasses that describe comments and the conversation they react to."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommentRole(str, Enum):
    """The fixed set of comment archetypes."""

    GREETING = "greeting"
    DEPARTURE = "departure"
    REACTION = "reaction"
    AGREEMENT = "agreement"
    QUESTION = "question"
    INSIDER = "insider"
    SUPPORT = "support"
    PLAYFUL = "playful"


class InteractionType(str, Enum):
    PICKUP = "pickup"
    CLICK = "click"
    THUMBS_UP = "thumbs_up"
    THUMBS_DOWN = "thumbs_down"


EngagementLevel = Literal["low", "medium", "high"]
ConversationPace = Literal["slow", "normal", "fast"]
CommentSource = Literal["rule", "model", "fallback"]


@dataclass
class UserInteraction:
    comment_id: str
    type: InteractionType
    timestamp: datetime = field(default_factory=_utcnow)
    confidence: float = 1.0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "comment_id": self.comment_id,
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "confidence": self.confidence,
        }


@dataclass
class ConversationContext:
    """Snapshot of the live conversation handed in by the caller per call."""

    recent_transcript: str = ""
    current_topic: Optional[str] = None
    user_engagement_level: float = 0.5
    speech_volume: float = 0.0
    speech_rate: float = 1.0
    silence_duration: float = 0.0  # milliseconds
    user_engagement: EngagementLevel = "medium"
    conversation_pace: ConversationPace = "normal"
    session_duration: float = 0.0  # seconds
    comment_history: List["Comment"] = field(default_factory=list)

    @property
    def is_degenerate(self) -> bool:
        """True when there is no usable transcript to react to."""
        return not (self.recent_transcript or "").strip()

    def recent_contents(self, limit: int) -> List[str]:
        if limit <= 0:
            return []
        return [comment.content for comment in self.comment_history[-limit:]]

    def snapshot(self) -> "ConversationContext":
        """Copy suitable for storing on a Comment (history is not carried)."""
        return replace(self, comment_history=[])

    def to_payload(self) -> Dict[str, Any]:
        return {
            "recent_transcript": self.recent_transcript,
            "current_topic": self.current_topic,
            "user_engagement_level": self.user_engagement_level,
            "speech_volume": self.speech_volume,
            "speech_rate": self.speech_rate,
            "silence_duration": self.silence_duration,
            "user_engagement": self.user_engagement,
            "conversation_pace": self.conversation_pace,
            "session_duration": self.session_duration,
        }


@dataclass
class Comment:
    role: CommentRole
    content: str
    context: ConversationContext
    id: str = ""
    timestamp: datetime = field(default_factory=_utcnow)
    source: CommentSource = "rule"
    user_interaction: Optional[UserInteraction] = None

    def __post_init__(self) -> None:
        if not self.content or not self.content.strip():
            raise ValueError("Comment content must be a non-empty string")
        if not self.id:
            self.id = f"{self.role.value}_{uuid.uuid4().hex[:12]}"

    @classmethod
    def create(
        cls,
        role: CommentRole,
        content: str,
        context: ConversationContext,
        *,
        source: CommentSource = "rule",
    ) -> "Comment":
        return cls(role=role, content=content, context=context.snapshot(), source=source)

    def attach_interaction(self, interaction: UserInteraction) -> None:
        """The only mutation allowed on a comment once it exists."""
        if interaction.comment_id != self.id:
            raise ValueError(
                f"Interaction for {interaction.comment_id} cannot attach to {self.id}"
            )
        self.user_interaction = interaction

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "context": self.context.to_payload(),
            "user_interaction": (
                self.user_interaction.to_payload() if self.user_interaction else None
            ),
        }


@dataclass
class AudioAnalysisData:
    """Periodic audio-derived signals pushed by the audio source."""

    volume: float = 0.0  # 0-100 scale
    speech_rate: float = 0.0  # words per minute estimate
    volume_variance: float = 0.0
    is_speaking: bool = False
    silence_duration: float = 0.0  # milliseconds
    average_volume: float = 0.0


__all__ = [
    "CommentRole",
    "InteractionType",
    "UserInteraction",
    "ConversationContext",
    "Comment",
    "AudioAnalysisData",
]

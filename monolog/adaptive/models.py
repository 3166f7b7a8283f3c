"""Dataclasses for preference learning and feedback."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from monolog.comments.models import CommentRole, InteractionType

RoleWeightMap = Dict[CommentRole, float]


def default_weights(value: float = 1.0) -> RoleWeightMap:
    return {role: value for role in CommentRole}


def weights_to_payload(weights: RoleWeightMap) -> Dict[str, float]:
    return {role.value: float(weight) for role, weight in weights.items()}


def weights_from_payload(payload: Dict[str, Any], default: float = 1.0) -> RoleWeightMap:
    weights = default_weights(default)
    for key, value in (payload or {}).items():
        try:
            weights[CommentRole(key)] = float(value)
        except ValueError:
            continue
    return weights


@dataclass
class InteractionEvent:
    session_id: str
    comment_id: str
    type: InteractionType
    strength: float
    role: Optional[CommentRole] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_payload(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "comment_id": self.comment_id,
            "type": self.type.value,
            "strength": self.strength,
            "role": self.role.value if self.role else None,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "InteractionEvent":
        role = payload.get("role")
        return cls(
            session_id=payload.get("session_id", ""),
            comment_id=payload["comment_id"],
            type=InteractionType(payload["type"]),
            strength=float(payload.get("strength", 1.0)),
            role=CommentRole(role) if role else None,
            timestamp=payload.get("timestamp") or datetime.now(timezone.utc).isoformat(),
        )


@dataclass
class UserPreferences:
    """Persisted per-user record."""

    user_id: str
    role_weights: RoleWeightMap = field(default_factory=default_weights)
    session_count: int = 0
    topic_preferences: List[str] = field(default_factory=list)
    interaction_history: List[InteractionEvent] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "role_weights": weights_to_payload(self.role_weights),
            "session_count": self.session_count,
            "topic_preferences": list(self.topic_preferences),
            "interaction_history": [event.to_payload() for event in self.interaction_history],
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], default_weight: float = 1.0) -> "UserPreferences":
        return cls(
            user_id=payload["user_id"],
            role_weights=weights_from_payload(payload.get("role_weights", {}), default_weight),
            session_count=int(payload.get("session_count", 0)),
            topic_preferences=list(payload.get("topic_preferences", [])),
            interaction_history=[
                InteractionEvent.from_payload(item)
                for item in payload.get("interaction_history", [])
            ],
        )


@dataclass
class LearningStats:
    total_feedback_events: int = 0
    role_adjustments: Dict[CommentRole, float] = field(default_factory=dict)
    average_weight: float = 1.0
    most_preferred_role: CommentRole = CommentRole.REACTION
    least_preferred_role: CommentRole = CommentRole.REACTION


@dataclass
class PickupResult:
    comment_id: str
    confidence: float
    elapsed_ms: float
    detected: bool


__all__ = [
    "RoleWeightMap",
    "default_weights",
    "weights_to_payload",
    "weights_from_payload",
    "InteractionEvent",
    "UserPreferences",
    "LearningStats",
    "PickupResult",
]

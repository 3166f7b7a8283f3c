"""Adaptive learning utilities."""

from .models import (
    InteractionEvent,
    LearningStats,
    PickupResult,
    RoleWeightMap,
    UserPreferences,
    default_weights,
)
from .learner import CommentLookup, PreferenceLearningSystem
from .pickup import PickupDetector

__all__ = [
    "PreferenceLearningSystem",
    "PickupDetector",
    "CommentLookup",
    "InteractionEvent",
    "LearningStats",
    "PickupResult",
    "RoleWeightMap",
    "UserPreferences",
    "default_weights",
]

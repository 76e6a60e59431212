"""Collaborators of the content runtime.

Abstract interfaces for scene lookup, highlighting, analytics and timers,
plus the in-process implementations used by the CLI and the tests.
"""

from .base import (
    AnalyticsSink,
    HighlightEffect,
    SceneResolver,
    Scheduler,
    TimerToken,
)
from .events import Signal
from .localization import LocalizationManager, UI_STRINGS
from .analytics import AnalyticsSummary, InteractionRecord, TrainingAnalytics
from .scheduler import ManualScheduler, ManualTimer
from .scene import InMemoryScene, RecordingHighlighter, SceneObject

__all__ = [
    # Abstract interfaces
    "AnalyticsSink",
    "HighlightEffect",
    "SceneResolver",
    "Scheduler",
    "TimerToken",
    # Events and localization
    "Signal",
    "LocalizationManager",
    "UI_STRINGS",
    # In-process implementations
    "AnalyticsSummary",
    "InteractionRecord",
    "TrainingAnalytics",
    "ManualScheduler",
    "ManualTimer",
    "InMemoryScene",
    "RecordingHighlighter",
    "SceneObject",
]

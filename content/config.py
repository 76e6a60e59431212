"""Configuration for the content engines.

These models tune the pacing and presentation of each flow (settle
delays, retry behavior, highlight look). Everything has a default, so an
empty or missing config file yields the standard behavior.
"""

import json
import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class HighlightConfig(BaseModel):
    """Look of the highlight applied to clickable procedure objects."""

    color: str = Field(default="#FFE64D", pattern=r"^#[0-9A-Fa-f]{6}$")
    intensity: float = Field(default=3.5, gt=0)
    pulse: bool = True


class QuizConfig(BaseModel):
    """Configuration for the quiz engine.

    retry_policy "advance" moves on after any validated answer; "retry"
    only moves on after a correct one and locks input for
    retry_cooldown_ms after a wrong one.
    """

    retry_policy: Literal["advance", "retry"] = "advance"
    retry_cooldown_ms: int = Field(default=1500, ge=0)
    auto_advance_ms: int | None = Field(default=None, ge=0)


class DialogueConfig(BaseModel):
    """Configuration for the dialogue engine."""

    evaluated_delay_ms: int = Field(default=800, ge=0)
    neutral_delay_ms: int = Field(default=300, ge=0)


class ProcedureConfig(BaseModel):
    """Configuration for the procedure engine."""

    settle_delay_ms: int = Field(default=500, ge=0)
    error_display_ms: int = Field(default=3000, ge=0)
    highlight: HighlightConfig = Field(default_factory=HighlightConfig)


class LocalizationConfig(BaseModel):
    """Languages available to content and interface strings."""

    default_language: str = "en"
    current_language: str = "en"
    supported_languages: list[str] = Field(default_factory=lambda: ["en", "fr"])


class RuntimeConfig(BaseModel):
    """Master configuration for the content runtime."""

    quiz: QuizConfig = Field(default_factory=QuizConfig)
    dialogue: DialogueConfig = Field(default_factory=DialogueConfig)
    procedure: ProcedureConfig = Field(default_factory=ProcedureConfig)
    localization: LocalizationConfig = Field(default_factory=LocalizationConfig)

    @classmethod
    def load(cls, path: Path | None) -> "RuntimeConfig":
        """Load configuration from a JSON file, or defaults if it is absent."""
        if path is None or not Path(path).exists():
            if path is not None:
                logger.info("Config file %s not found, using defaults", path)
            return cls()

        with open(path, encoding="utf-8") as f:
            return cls.model_validate(json.load(f))

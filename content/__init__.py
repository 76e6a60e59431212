"""Content engines for quizzes, dialogue trees and guided procedures.

Engines live in their own modules (content.question, content.dialogue,
content.procedure) and are imported from there; this package root only
exposes the payload boundary and configuration.
"""

from content.config import (
    DialogueConfig,
    HighlightConfig,
    LocalizationConfig,
    ProcedureConfig,
    QuizConfig,
    RuntimeConfig,
)
from content.payloads import (
    ContentError,
    find_dialogue_problems,
    parse_answer_indices,
    parse_dialogue_payload,
    parse_procedure_payload,
    parse_question_payload,
)

__all__ = [
    # Configuration
    "DialogueConfig",
    "HighlightConfig",
    "LocalizationConfig",
    "ProcedureConfig",
    "QuizConfig",
    "RuntimeConfig",
    # Payload boundary
    "ContentError",
    "find_dialogue_problems",
    "parse_answer_indices",
    "parse_dialogue_payload",
    "parse_procedure_payload",
    "parse_question_payload",
]

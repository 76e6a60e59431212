"""Terminal front-end for the content runtime."""

from ui.app import ContentConsole, parse_letter_input
from ui.components import (
    QuestionPanel,
    DialoguePanel,
    ProcedurePanel,
    PlaceholderPanel,
    AnalyticsSummaryTable,
)
from ui.styles import (
    PRIMARY_TEAL,
    ACCENT_AMBER,
    SUCCESS_GREEN,
    ERROR_RED,
    INFO_BLUE,
    MUTED_GRAY,
)

__all__ = [
    "ContentConsole",
    "parse_letter_input",
    "QuestionPanel",
    "DialoguePanel",
    "ProcedurePanel",
    "PlaceholderPanel",
    "AnalyticsSummaryTable",
    "PRIMARY_TEAL",
    "ACCENT_AMBER",
    "SUCCESS_GREEN",
    "ERROR_RED",
    "INFO_BLUE",
    "MUTED_GRAY",
]

from rich.theme import Theme
from rich.style import Style
from rich.text import Text

from models import ChoiceState, OptionFeedback

PRIMARY_TEAL = "#16A085"
ACCENT_AMBER = "#F39C12"
HIGHLIGHT_YELLOW = "#FFE64D"
SUCCESS_GREEN = "#27AE60"
ERROR_RED = "#C0392B"
INFO_BLUE = "#3498DB"
MUTED_GRAY = "#7F8C8D"
TEXT_WHITE = "#FFFFFF"

DEFAULT_THEME = Theme(
    {
        "primary": Style(color=PRIMARY_TEAL, bold=True),
        "accent": Style(color=ACCENT_AMBER, bold=True),
        "success": Style(color=SUCCESS_GREEN),
        "error": Style(color=ERROR_RED, bold=True),
        "info": Style(color=INFO_BLUE),
        "muted": Style(color=MUTED_GRAY),
        "option_label": Style(color=ACCENT_AMBER, bold=True),
        "option_text": Style(color=TEXT_WHITE),
        "speaker": Style(color=INFO_BLUE, bold=True),
        "context": Style(color=MUTED_GRAY, italic=True),
    }
)


def get_option_style(feedback: OptionFeedback | None, selected: bool) -> Style:
    """Style for a quiz option, by answer feedback or selection."""
    if feedback == OptionFeedback.CORRECT:
        return Style(color=SUCCESS_GREEN, bold=True)
    if feedback == OptionFeedback.WRONG_PICK:
        return Style(color=ERROR_RED, bold=True)
    if feedback == OptionFeedback.NEUTRAL:
        return Style(color=MUTED_GRAY)
    if selected:
        return Style(color=HIGHLIGHT_YELLOW, bold=True)
    return Style(color=TEXT_WHITE)


def get_choice_style(state: ChoiceState) -> Style:
    """Style for a dialogue choice after it has been picked."""
    styles = {
        ChoiceState.CORRECT: Style(color=SUCCESS_GREEN, bold=True),
        ChoiceState.INCORRECT: Style(color=ERROR_RED, bold=True),
        ChoiceState.PICKED: Style(color=INFO_BLUE, bold=True),
    }
    return styles.get(state, Style(color=TEXT_WHITE))


def option_marker(is_multiple_choice: bool, selected: bool) -> str:
    if is_multiple_choice:
        return "[x]" if selected else "[ ]"
    return "(•)" if selected else "( )"


def create_success_header(message: str) -> Text:
    header = Text()
    header.append("✓ ", Style(color=SUCCESS_GREEN, bold=True))
    header.append(message, Style(color=SUCCESS_GREEN, bold=True))
    return header


def create_error_header(message: str) -> Text:
    header = Text()
    header.append("✗ ", Style(color=ERROR_RED, bold=True))
    header.append(message, Style(color=ERROR_RED, bold=True))
    return header

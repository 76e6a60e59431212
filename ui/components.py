from rich.text import Text
from rich.panel import Panel
from rich.table import Table
from rich.style import Style
from rich.align import Align
from rich import box

from models import (
    ContentType,
    DialogueNodeType,
    DialogueView,
    ProcedureView,
    QuestionView,
    ValidationType,
)
from runtime.analytics import AnalyticsSummary
from ui.styles import (
    PRIMARY_TEAL,
    ACCENT_AMBER,
    SUCCESS_GREEN,
    ERROR_RED,
    INFO_BLUE,
    MUTED_GRAY,
    TEXT_WHITE,
    create_error_header,
    create_success_header,
    get_choice_style,
    get_option_style,
    option_marker,
)


class QuestionPanel:
    """A styled panel for the current quiz question."""

    def __init__(self, view: QuestionView):
        self.view = view

    def render(self) -> Panel:
        view = self.view
        content = Text()

        if view.total_questions > 1:
            content.append(
                f"Question {view.question_number}/{view.total_questions}\n",
                Style(color=MUTED_GRAY),
            )

        content.append(view.question_text, Style(color=PRIMARY_TEAL, bold=True))
        content.append("\n\n")

        if view.error:
            content.append(create_error_header(view.error))
            content.append("\n")
        for option in view.options:
            marker = option_marker(view.is_multiple_choice, option.selected)
            style = get_option_style(option.feedback, option.selected)
            content.append(f"{chr(65 + option.index)}. ", Style(color=ACCENT_AMBER, bold=True))
            content.append(f"{marker} ", style)
            content.append(option.label, style)
            content.append("\n")

        if view.is_correct is not None:
            content.append("\n")
            if view.is_correct:
                content.append(create_success_header(view.feedback_text))
            else:
                content.append(create_error_header(view.feedback_text))

        if view.can_advance:
            subtitle = f"'n' {view.advance_label} · 'q' to close"
        elif view.locked:
            subtitle = "Please wait..."
        elif view.can_validate:
            picks = "toggle options" if view.is_multiple_choice else "pick an option"
            subtitle = f"Letters to {picks} · 'v' to validate · 'q' to close"
        else:
            subtitle = "'q' to close"

        return Panel(
            Align.left(content),
            title="Question",
            subtitle=subtitle,
            border_style=PRIMARY_TEAL,
            box=box.HEAVY,
            padding=(1, 2),
        )

    def __rich__(self) -> Panel:
        return self.render()


class DialoguePanel:
    """A styled panel for the current dialogue node."""

    def __init__(self, view: DialogueView):
        self.view = view

    def render(self) -> Panel:
        view = self.view
        content = Text()

        if view.finished:
            content.append(create_success_header(view.completion_text))
            subtitle = f"'q' {view.close_label}"
        elif view.node_type == DialogueNodeType.CHOICE:
            if view.context:
                if view.speaker:
                    content.append(f"{view.speaker}: ", Style(color=INFO_BLUE))
                content.append(view.context, Style(color=MUTED_GRAY, italic=True))
                content.append("\n\n")
            content.append(view.prompt, Style(color=PRIMARY_TEAL, bold=True))
            content.append("\n\n")
            for i, choice in enumerate(view.choices):
                content.append(f"{i + 1}. ", Style(color=ACCENT_AMBER, bold=True))
                content.append(choice.text, get_choice_style(choice.state))
                content.append("\n")
            subtitle = "Number to choose · 'q' to close"
        else:
            if view.speaker:
                content.append(view.speaker, Style(color=INFO_BLUE, bold=True))
                content.append("\n")
            content.append(view.text, Style(color=TEXT_WHITE))
            subtitle = f"'c' {view.continue_label} · 'q' to close"

        return Panel(
            Align.left(content),
            title=view.title or "Dialogue",
            subtitle=subtitle,
            border_style=INFO_BLUE,
            box=box.HEAVY,
            padding=(1, 2),
        )

    def __rich__(self) -> Panel:
        return self.render()


class ProcedurePanel:
    """A styled panel for the current procedure step."""

    def __init__(self, view: ProcedureView):
        self.view = view

    def render(self) -> Panel:
        view = self.view
        content = Text()

        if view.description:
            content.append(view.description, Style(color=MUTED_GRAY))
            content.append("\n\n")

        content.append(
            f"Step {view.step_number}/{view.total_steps}", Style(color=MUTED_GRAY)
        )
        if view.step_title:
            content.append(f" · {view.step_title}", Style(color=ACCENT_AMBER, bold=True))
        content.append("\n")
        content.append(self._create_progress_bar())
        content.append("\n\n")
        content.append(view.instruction, Style(color=TEXT_WHITE, bold=True))

        if view.hint:
            content.append("\n")
            content.append(f"Hint: {view.hint}", Style(color=INFO_BLUE, italic=True))
        if view.image_path:
            content.append("\n")
            content.append(f"[image: {view.image_path}]", Style(color=MUTED_GRAY))
        if view.error_message:
            content.append("\n\n")
            content.append(create_error_header(view.error_message))

        if view.validation_type == ValidationType.CLICK:
            subtitle = "'click <object>' · 'q' to close"
        elif view.validation_type == ValidationType.ZONE:
            subtitle = "'zone <name>' · 'q' to close"
        else:
            subtitle = f"'v' {view.validate_label} · 'q' to close"

        return Panel(
            Align.left(content),
            title=view.title or "Procedure",
            subtitle=subtitle,
            border_style=ACCENT_AMBER,
            box=box.HEAVY,
            padding=(1, 2),
        )

    def _create_progress_bar(self) -> Text:
        """Create a text-based progress bar over completed steps."""
        width = 20
        total = max(self.view.total_steps, 1)
        filled = int(width * self.view.completed_steps / total)
        bar = Text()
        bar.append("█" * filled, Style(color=SUCCESS_GREEN))
        bar.append("░" * (width - filled), Style(color=MUTED_GRAY))
        bar.append(f" {self.view.completed_steps}/{self.view.total_steps}")
        if self.view.wrong_clicks_total:
            bar.append(
                f"  errors: {self.view.wrong_clicks_total}", Style(color=ERROR_RED)
            )
        return bar

    def __rich__(self) -> Panel:
        return self.render()


class PlaceholderPanel:
    """Shown for content types that have no engine."""

    def __init__(self, object_id: str, content_type: ContentType | str, message: str):
        self.object_id = object_id
        self.content_type = content_type
        self.message = message

    def render(self) -> Panel:
        label = (
            self.content_type.value
            if isinstance(self.content_type, ContentType)
            else str(self.content_type)
        )
        content = Text()
        content.append(self.message, Style(color=TEXT_WHITE))
        content.append("\n\n")
        content.append(f"{label} · {self.object_id}", Style(color=MUTED_GRAY))
        return Panel(
            Align.left(content),
            title="Content",
            border_style=MUTED_GRAY,
            box=box.HEAVY,
            padding=(1, 2),
        )

    def __rich__(self) -> Panel:
        return self.render()


class AnalyticsSummaryTable:
    """A styled table of session analytics."""

    def __init__(self, summary: AnalyticsSummary):
        self.summary = summary

    def render(self) -> Panel:
        summary = self.summary
        table = Table(
            show_header=True,
            header_style=Style(color=PRIMARY_TEAL, bold=True),
            border_style=MUTED_GRAY,
            box=box.HEAVY,
        )
        table.add_column("Metric", style=Style(color=TEXT_WHITE))
        table.add_column("Value", justify="right")

        score_color = SUCCESS_GREEN if summary.score >= 80 else ACCENT_AMBER
        if summary.score < 50:
            score_color = ERROR_RED

        table.add_row("Interactions", str(summary.total_interactions))
        table.add_row("Successful", str(summary.successful_interactions))
        table.add_row("Failed", str(summary.failed_interactions))
        table.add_row("Attempts", str(summary.total_attempts))
        table.add_row("Failed attempts", str(summary.total_failed_attempts))
        table.add_row("Average time", f"{summary.average_duration:.1f}s")
        table.add_row("Success rate", f"{summary.success_rate:.0f}%")
        table.add_row(
            "Score", Text(f"{summary.score:.0f}", Style(color=score_color, bold=True))
        )

        return Panel(
            table,
            title="Session Analytics",
            border_style=PRIMARY_TEAL,
            box=box.HEAVY,
        )

    def __rich__(self) -> Panel:
        return self.render()

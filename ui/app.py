from typing import Any, Mapping

from pydantic import BaseModel
from rich.console import Console
from rich.text import Text

from dispatcher import ContentDispatcher
from models import (
    ContentType,
    DialogueNodeType,
    DialogueView,
    FlowResult,
    ProcedureView,
    QuestionView,
)
from runtime.analytics import TrainingAnalytics
from runtime.scheduler import ManualScheduler
from ui.components import (
    AnalyticsSummaryTable,
    DialoguePanel,
    PlaceholderPanel,
    ProcedurePanel,
    QuestionPanel,
)
from ui.styles import DEFAULT_THEME, ERROR_RED, MUTED_GRAY, SUCCESS_GREEN

QUIT_COMMANDS = ("q", "quit", "close")


def parse_letter_input(user_input: str, max_options: int) -> int | None:
    """Parse letter (A-Z) or number (1-26) input to 0-based index.

    Args:
        user_input: Raw user input string.
        max_options: Number of valid options.

    Returns:
        0-based index or None if input is invalid or out of bounds.
    """
    user_input = user_input.strip().upper()

    if len(user_input) == 1 and "A" <= user_input <= "Z":
        index = ord(user_input) - ord("A")
    elif user_input.isdigit():
        index = int(user_input) - 1
    else:
        return None

    if index < 0 or index >= max_options:
        return None

    return index


class ContentConsole:
    """Terminal front-end driving a ContentDispatcher.

    Renders every view an engine publishes and turns typed commands into
    engine operations. After each command the virtual clock is drained so
    settle delays and feedback timers play out before the next prompt.
    """

    def __init__(self, dispatcher: ContentDispatcher, console: Console | None = None):
        self.dispatcher = dispatcher
        self.context = dispatcher.context
        self.console = console or Console(theme=DEFAULT_THEME)
        self.results: list[FlowResult] = []
        self._latest_view: BaseModel | None = None
        self._dirty = False

        for content_type in ContentType:
            engine = dispatcher.get_engine(content_type)
            if engine is not None:
                engine.on_changed.connect(self._on_view_changed)
        dispatcher.on_result.connect(self.results.append)
        if dispatcher.fallback is None:
            dispatcher.fallback = self.show_placeholder

    def _on_view_changed(self, view: BaseModel) -> None:
        self._latest_view = view
        self._dirty = True

    def render_view(self, view: BaseModel) -> None:
        if isinstance(view, QuestionView):
            self.console.print(QuestionPanel(view))
        elif isinstance(view, DialogueView):
            self.console.print(DialoguePanel(view))
        elif isinstance(view, ProcedureView):
            self.console.print(ProcedurePanel(view))
        self.console.print()

    def _render_pending(self) -> None:
        if self._dirty and self._latest_view is not None:
            self._dirty = False
            self.render_view(self._latest_view)

    def _drain_timers(self) -> None:
        scheduler = self.context.scheduler
        if isinstance(scheduler, ManualScheduler):
            scheduler.run_all()

    def show_placeholder(
        self,
        object_id: str,
        content_type: ContentType | str,
        payload: Mapping[str, Any],
    ) -> None:
        message = self.context.localization.resolve(payload.get("title")) or (
            self.context.localization.ui_text("content_unavailable")
        )
        self.console.print(PlaceholderPanel(object_id, content_type, message))
        self.console.print()

    def show_summary(self) -> None:
        analytics = self.context.analytics
        if isinstance(analytics, TrainingAnalytics):
            self.console.print(AnalyticsSummaryTable(analytics.summary()))

    def run(
        self,
        object_id: str,
        content_type: ContentType | str,
        payload: Mapping[str, Any],
    ) -> list[FlowResult]:
        """Display content and process commands until the flow closes.

        Returns:
            The closed/completed results the dispatcher reported.
        """
        if not self.dispatcher.display(object_id, content_type, payload):
            return self.results

        while self.dispatcher.is_displaying:
            self._render_pending()
            command = self.console.input(
                Text("> ", style=f"bold {MUTED_GRAY}")
            ).strip()

            if not self.handle_command(command):
                self.console.print(Text(f"Unknown command: {command!r}\n", style=ERROR_RED))
                continue

            self._render_pending()
            self._drain_timers()

        for result in self.results:
            if result.kind == "completed":
                self.console.print(
                    Text(f"Completed {result.object_id}\n", style=f"bold {SUCCESS_GREEN}")
                )
        return self.results

    def handle_command(self, command: str) -> bool:
        """Apply one typed command to the active flow.

        Returns:
            False if the command is not understood.
        """
        lowered = command.lower()
        if lowered in QUIT_COMMANDS:
            self.dispatcher.close_current_content()
            return True
        if lowered.startswith("lang "):
            self.context.localization.set_language(lowered[5:])
            return True

        content_type = self.dispatcher.current_content_type
        engine = self.dispatcher.current_engine
        if content_type == ContentType.QUESTION:
            return self._handle_question(engine, lowered)
        if content_type == ContentType.DIALOGUE:
            return self._handle_dialogue(engine, lowered)
        if content_type == ContentType.PROCEDURE:
            return self._handle_procedure(engine, command)
        return False

    def _handle_question(self, engine, command: str) -> bool:
        if command == "v":
            engine.validate()
            return True
        if command == "n":
            engine.next_question()
            return True

        question = engine.current_question
        index = parse_letter_input(command, len(question.options) if question else 0)
        if index is None:
            return False
        engine.select_option(index)
        return True

    def _handle_dialogue(self, engine, command: str) -> bool:
        node = engine.current_node
        if node is not None and node.type == DialogueNodeType.CHOICE:
            # Letters pick choices here, so "c" is the third choice
            index = parse_letter_input(command, len(node.choices))
            if index is None:
                return False
            engine.choose(index)
            return True
        if command in ("", "c"):
            engine.continue_()
            return True
        return False

    def _handle_procedure(self, engine, command: str) -> bool:
        verb, _, argument = command.partition(" ")
        verb = verb.lower()
        if verb == "v":
            engine.validate_step()
            return True
        if verb == "click" and argument:
            engine.click_object(argument.strip())
            return True
        if verb == "zone" and argument:
            engine.enter_zone(argument.strip())
            return True
        return False

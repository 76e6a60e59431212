from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

# A plain string shown in every language, or {language code: string}.
LocalizedText = str | dict[str, str]


class ContentType(str, Enum):
    QUESTION = "question"
    DIALOGUE = "dialogue"
    PROCEDURE = "procedure"
    TEXT = "text"


# ============================================================================
# Quiz Models
# ============================================================================


class QuestionSpec(BaseModel):
    """A single- or multi-select question.

    correct_answers holds de-duplicated option indices in declared order,
    all of which are valid indices into options. Single-select questions
    only use the first one.
    """

    key: str = "question_1"
    question_text: LocalizedText
    options: list[LocalizedText]
    is_multiple_choice: bool = False
    correct_answers: list[int] = Field(default_factory=list)
    feedback: LocalizedText = ""
    incorrect_feedback: LocalizedText = ""

    @property
    def answer_set(self) -> set[int]:
        """The indices that make an answer correct."""
        if self.is_multiple_choice:
            return set(self.correct_answers)
        return {self.correct_answers[0]} if self.correct_answers else set()

    def is_correct(self, selected: set[int]) -> bool:
        """Exact set match; multi-select gets no partial credit."""
        answers = self.answer_set
        return bool(answers) and selected == answers


class QuizSpec(BaseModel):
    """An ordered sequence of questions shown one after the other."""

    questions: list[QuestionSpec]


# ============================================================================
# Dialogue Models
# ============================================================================


class DialogueNodeType(str, Enum):
    START = "start"
    DIALOGUE = "dialogue"
    CHOICE = "choice"
    END = "end"


class DialogueChoice(BaseModel):
    id: str
    text: LocalizedText = ""
    is_correct: bool = False
    next_node_id: str = ""


class DialogueNode(BaseModel):
    """A node of a dialogue tree.

    Dialogue nodes carry speaker/text, choice nodes carry choice_text (the
    prompt) and choices. Start and dialogue nodes continue to next_node_id;
    an empty next_node_id ends the dialogue.
    """

    id: str
    type: DialogueNodeType
    speaker: LocalizedText = ""
    text: LocalizedText = ""
    choice_text: LocalizedText = ""
    next_node_id: str = ""
    choices: list[DialogueChoice] = Field(default_factory=list)

    @property
    def is_evaluated(self) -> bool:
        """A choice node is evaluated if at least one choice is marked correct."""
        return any(choice.is_correct for choice in self.choices)

    def get_choice(self, choice_id: str) -> DialogueChoice | None:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None


class DialogueTree(BaseModel):
    key: str = "dialogue"
    title: LocalizedText = ""
    start_node_id: str
    nodes: dict[str, DialogueNode]

    def get_node(self, node_id: str) -> DialogueNode | None:
        if not node_id:
            return None
        return self.nodes.get(node_id)

    def count_choice_nodes(self) -> int:
        return sum(1 for n in self.nodes.values() if n.type == DialogueNodeType.CHOICE)


# ============================================================================
# Procedure Models
# ============================================================================


class ValidationType(str, Enum):
    CLICK = "click"
    ZONE = "zone"
    MANUAL = "manual"


class DecoyRef(BaseModel):
    """A wrong click target with its own error message."""

    object_name: str
    error_message: LocalizedText = ""


class ProcedureStep(BaseModel):
    key: str
    target_object_name: str = ""
    title: LocalizedText = ""
    instruction: LocalizedText = ""
    hint: LocalizedText = ""
    validation_type: ValidationType = ValidationType.CLICK
    zone_object_name: str = ""
    decoys: list[DecoyRef] = Field(default_factory=list)
    image_path: str | None = None
    highlight_color: str | None = None
    use_blinking: bool = True


class ProcedureSpec(BaseModel):
    key: str = "procedure"
    title: LocalizedText = ""
    description: LocalizedText = ""
    steps: list[ProcedureStep]
    decoys: list[DecoyRef] = Field(default_factory=list)
    enable_highlight: bool = True
    keep_progress_on_other_click: bool = False


# ============================================================================
# Flow Results
# ============================================================================


class ContentClosed(BaseModel):
    kind: Literal["closed"] = "closed"
    object_id: str


class ContentCompleted(BaseModel):
    kind: Literal["completed"] = "completed"
    object_id: str
    success: bool
    details: dict[str, Any] = Field(default_factory=dict)


FlowResult = ContentClosed | ContentCompleted


# ============================================================================
# Render Views
# ============================================================================


class OptionFeedback(str, Enum):
    """How an option is shown once its question has been answered."""

    CORRECT = "correct"
    WRONG_PICK = "wrong_pick"
    NEUTRAL = "neutral"


class OptionView(BaseModel):
    index: int
    label: str
    selected: bool = False
    feedback: OptionFeedback | None = None


class QuestionView(BaseModel):
    question_number: int
    total_questions: int
    question_text: str
    options: list[OptionView]
    is_multiple_choice: bool
    answered: bool = False
    is_correct: bool | None = None
    feedback_text: str = ""
    can_validate: bool = False
    can_advance: bool = False
    advance_label: str = ""
    locked: bool = False
    error: str | None = None


class ChoiceState(str, Enum):
    IDLE = "idle"
    CORRECT = "correct"
    INCORRECT = "incorrect"
    PICKED = "picked"


class DialogueChoiceView(BaseModel):
    id: str
    text: str
    state: ChoiceState = ChoiceState.IDLE


class DialogueView(BaseModel):
    title: str = ""
    node_id: str = ""
    node_type: DialogueNodeType | None = None
    speaker: str = ""
    text: str = ""
    context: str = ""
    prompt: str = ""
    choices: list[DialogueChoiceView] = Field(default_factory=list)
    can_continue: bool = False
    continue_label: str = ""
    finished: bool = False
    completion_text: str = ""
    close_label: str = ""


class ProcedureView(BaseModel):
    title: str = ""
    description: str = ""
    step_number: int = 0
    total_steps: int = 0
    step_title: str = ""
    instruction: str = ""
    hint: str = ""
    image_path: str | None = None
    validation_type: ValidationType | None = None
    can_validate: bool = False
    validate_label: str = ""
    error_message: str | None = None
    completed_steps: int = 0
    wrong_clicks_total: int = 0
    finished: bool = False

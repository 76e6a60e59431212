"""Quiz engine.

Shows one question or a sequence of them. Single-select questions are
correct when the pick equals the first declared answer; multi-select
questions are correct only when the picked set equals the answer set.
A question scores 100 only when its first validation was correct.
"""

import logging
from typing import Any, Mapping

from content.base import ContentEngine
from content.payloads import parse_question_payload
from models import (
    ContentType,
    OptionFeedback,
    OptionView,
    QuestionSpec,
    QuestionView,
    QuizSpec,
)

logger = logging.getLogger(__name__)


class QuizEngine(ContentEngine[QuizSpec]):
    """Engine for question content.

    After a validation the retry policy decides what happens:
    - "advance": the question is answered whatever the outcome and the
      continue affordance moves to the next question.
    - "retry": a wrong answer locks input for the cooldown, then clears
      the selection for another try; only a correct answer moves on.
    """

    content_type = ContentType.QUESTION

    def __init__(self, context):
        super().__init__(context)
        self._index = 0
        self._answered = False
        self._locked = False
        self._selected: set[int] = set()
        self._first_attempt_correct: bool | None = None
        self._last_correct: bool | None = None
        self._user_answers: list[list[int]] = []
        self._results: list[bool] = []

    @property
    def config(self):
        return self.context.config.quiz

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def answered(self) -> bool:
        return self._answered

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def selected(self) -> frozenset[int]:
        return frozenset(self._selected)

    @property
    def first_attempt_correct(self) -> bool | None:
        return self._first_attempt_correct

    @property
    def current_question(self) -> QuestionSpec | None:
        if self.spec is None or self._index >= len(self.spec.questions):
            return None
        return self.spec.questions[self._index]

    def parse(self, payload: Mapping[str, Any]) -> QuizSpec:
        return parse_question_payload(payload)

    def _start(self) -> None:
        self._index = 0
        self._results = []
        self._begin_question()

    def _begin_question(self) -> None:
        question = self.current_question
        self._answered = False
        self._locked = False
        self._selected = set()
        self._first_attempt_correct = None
        self._last_correct = None
        self._user_answers = []

        if not question.options:
            logger.error(
                "Question %s of %s has no options, nothing to validate",
                question.key,
                self.object_id,
            )
            return

        analytics = self.context.analytics
        subtype = "multiple_choice" if question.is_multiple_choice else "single_choice"
        self._record = analytics.start_interaction(self.object_id, "question", subtype)
        analytics.add_data(self._record, "questionKey", question.key)
        analytics.add_data(self._record, "objectId", f"{self.object_id}_{question.key}")
        analytics.add_data(self._record, "correctAnswers", list(question.correct_answers))
        logger.debug("Showing %s of %s", question.key, self.object_id)

    def select_option(self, index: int) -> None:
        """Pick an option (single-select) or toggle it (multi-select)."""
        question = self.current_question
        if not self._active or question is None or self._answered or self._locked:
            return
        if not 0 <= index < len(question.options):
            logger.warning(
                "Option %d out of range for %s (%d options)",
                index,
                question.key,
                len(question.options),
            )
            return

        if question.is_multiple_choice:
            self._selected ^= {index}
        else:
            self._selected = {index}
        self._last_correct = None
        self._changed()

    def validate(self) -> bool | None:
        """Check the current selection.

        Returns:
            Whether the answer was correct, or None if the call was ignored
            (nothing selected, already answered, or locked).
        """
        question = self.current_question
        if (
            not self._active
            or question is None
            or self._answered
            or self._locked
            or not self._selected
        ):
            return None

        is_correct = question.is_correct(self._selected)
        analytics = self.context.analytics
        analytics.increment_attempts(self._record)

        self._user_answers.append(sorted(self._selected))
        analytics.add_data(self._record, "userAnswers", list(self._user_answers))

        if self._first_attempt_correct is None:
            self._first_attempt_correct = is_correct
            analytics.add_data(self._record, "firstAttemptCorrect", is_correct)
            analytics.add_data(self._record, "finalScore", 100 if is_correct else 0)
            self._results.append(is_correct)

        self._last_correct = is_correct
        logger.debug("%s validated, correct=%s", question.key, is_correct)

        if is_correct or self.config.retry_policy == "advance":
            self._answered = True
            analytics.end_interaction(self._record, is_correct)
            self._record = None
            if self.config.auto_advance_ms is not None:
                index = self._index
                self._schedule(
                    self.config.auto_advance_ms, lambda: self._auto_advance(index)
                )
        else:
            self._locked = True
            self._schedule(self.config.retry_cooldown_ms, self._unlock)

        self._changed()
        return is_correct

    def _unlock(self) -> None:
        self._locked = False
        self._selected = set()
        self._changed()

    def _auto_advance(self, index: int) -> None:
        if self._index == index and self._answered:
            self.next_question()

    def next_question(self) -> None:
        """Move past an answered question; completes the quiz after the last."""
        if not self._active or not self._answered:
            return

        self._index += 1
        if self._index >= len(self.spec.questions):
            total = len(self.spec.questions)
            correct = sum(self._results)
            self._complete(
                True,
                totalQuestions=total,
                firstAttemptCorrect=correct,
                score=round(correct / total * 100, 2),
            )
            self.close()
            return

        self._begin_question()
        self._changed()

    def _option_feedback(self, question: QuestionSpec, index: int) -> OptionFeedback | None:
        if not self._answered:
            return None
        if index in question.answer_set:
            return OptionFeedback.CORRECT
        if index in self._selected:
            return OptionFeedback.WRONG_PICK
        return OptionFeedback.NEUTRAL

    def view(self) -> QuestionView:
        question = self.current_question
        resolve = self.context.localization.resolve

        options = [
            OptionView(
                index=i,
                label=resolve(option),
                selected=i in self._selected,
                feedback=self._option_feedback(question, i),
            )
            for i, option in enumerate(question.options)
        ]

        feedback_text = ""
        if self._last_correct is True:
            feedback_text = resolve(question.feedback) or self._ui("correct")
        elif self._last_correct is False:
            feedback_text = resolve(question.incorrect_feedback) or self._ui("incorrect")

        is_last = self._index == len(self.spec.questions) - 1
        return QuestionView(
            question_number=self._index + 1,
            total_questions=len(self.spec.questions),
            question_text=resolve(question.question_text),
            options=options,
            is_multiple_choice=question.is_multiple_choice,
            answered=self._answered,
            is_correct=self._last_correct,
            feedback_text=feedback_text,
            can_validate=bool(options) and not self._answered and not self._locked,
            can_advance=self._answered,
            advance_label=self._ui("finish" if is_last else "next_question"),
            locked=self._locked,
            error=None if options else self._ui("no_options"),
        )

"""Dialogue tree engine."""

import logging
from typing import Any, Mapping

from content.base import ContentEngine
from content.payloads import parse_dialogue_payload
from models import (
    ChoiceState,
    ContentType,
    DialogueChoiceView,
    DialogueNode,
    DialogueNodeType,
    DialogueTree,
    DialogueView,
)

logger = logging.getLogger(__name__)


class DialogueEngine(ContentEngine[DialogueTree]):
    """Walks a dialogue tree from its start node to an end.

    Start nodes redirect immediately. Dialogue nodes wait for continue_().
    Choice nodes wait for choose(), then move on after a settle delay that
    is longer for evaluated nodes (where the pick is right or wrong) than
    for neutral ones. Reaching an end node or an empty nextNodeId
    completes the dialogue; the flow then stays open until closed.
    """

    content_type = ContentType.DIALOGUE

    def __init__(self, context):
        super().__init__(context)
        self._current: DialogueNode | None = None
        self._last_dialogue: DialogueNode | None = None
        self._processing = False
        self._picked: str | None = None
        self._finished = False
        self._choices: list[dict[str, Any]] = []
        self._started_at = 0.0
        self._node_shown_at = 0.0
        self.score: float | None = None

    @property
    def current_node(self) -> DialogueNode | None:
        return self._current

    @property
    def last_dialogue_node(self) -> DialogueNode | None:
        return self._last_dialogue

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def choices_made(self) -> list[dict[str, Any]]:
        return list(self._choices)

    def parse(self, payload: Mapping[str, Any]) -> DialogueTree:
        return parse_dialogue_payload(payload)

    def _start(self) -> None:
        self._current = None
        self._last_dialogue = None
        self._processing = False
        self._picked = None
        self._finished = False
        self._choices = []
        self.score = None
        self._started_at = self._now()

        analytics = self.context.analytics
        self._record = analytics.start_interaction(self.object_id, "dialogue", "branching")
        analytics.add_data(self._record, "dialogueKey", self.spec.key)
        analytics.add_data(self._record, "totalChoiceNodes", self.spec.count_choice_nodes())

        self._navigate(self.spec.start_node_id, render=False)

    def _navigate(self, node_id: str, render: bool = True) -> None:
        visited_starts: set[str] = set()
        while True:
            node = self.spec.get_node(node_id)
            if node is None:
                if node_id:
                    logger.warning("Dialogue node %s not found, ending dialogue", node_id)
                self._finish(render)
                return
            if node.type == DialogueNodeType.START:
                if node.id in visited_starts:
                    logger.error("Start node %s redirects to itself", node.id)
                    self._finish(render)
                    return
                visited_starts.add(node.id)
                node_id = node.next_node_id
                continue
            break

        self._current = node
        self._picked = None
        self._processing = False

        if node.type == DialogueNodeType.END:
            self._finish(render)
            return
        if node.type == DialogueNodeType.DIALOGUE:
            self._last_dialogue = node

        self._node_shown_at = self._now()
        logger.debug("Dialogue %s at node %s (%s)", self.spec.key, node.id, node.type.value)
        if render:
            self._changed()

    def continue_(self) -> None:
        """Advance past the current dialogue line."""
        node = self._current
        if (
            not self._active
            or self._finished
            or self._processing
            or node is None
            or node.type != DialogueNodeType.DIALOGUE
        ):
            return
        self._navigate(node.next_node_id)

    def choose(self, choice: str | int) -> None:
        """Pick a choice on the current choice node, by id or by position."""
        node = self._current
        if (
            not self._active
            or self._finished
            or self._processing
            or node is None
            or node.type != DialogueNodeType.CHOICE
        ):
            return

        if isinstance(choice, int):
            picked = node.choices[choice] if 0 <= choice < len(node.choices) else None
        else:
            picked = node.get_choice(choice)
        if picked is None:
            logger.warning("Node %s has no choice %r", node.id, choice)
            return

        self._processing = True
        self._picked = picked.id
        evaluated = node.is_evaluated
        now = self._now()
        self._choices.append(
            {
                "nodeId": node.id,
                "choiceId": picked.id,
                "isCorrect": picked.is_correct,
                "evaluated": evaluated,
                "timestamp": round(now - self._started_at, 3),
                "responseTime": round(now - self._node_shown_at, 3),
            }
        )
        analytics = self.context.analytics
        analytics.increment_attempts(self._record)
        analytics.add_data(self._record, "choices", list(self._choices))
        logger.debug("Choice %s picked on node %s", picked.id, node.id)

        delay = (
            self.context.config.dialogue.evaluated_delay_ms
            if evaluated
            else self.context.config.dialogue.neutral_delay_ms
        )
        next_node_id = picked.next_node_id
        self._schedule(delay, lambda: self._navigate(next_node_id))
        self._changed()

    def _finish(self, render: bool = True) -> None:
        if self._finished:
            return
        self._finished = True
        self._processing = False

        evaluated = [c for c in self._choices if c["evaluated"]]
        correct = sum(1 for c in evaluated if c["isCorrect"])
        self.score = round(correct / len(evaluated) * 100, 2) if evaluated else 100.0

        analytics = self.context.analytics
        analytics.add_data(self._record, "evaluatedChoices", len(evaluated))
        analytics.add_data(self._record, "correctChoices", correct)
        analytics.add_data(self._record, "finalScore", self.score)
        analytics.end_interaction(self._record, True)
        self._record = None

        self._complete(
            True,
            score=self.score,
            choices=len(self._choices),
            evaluatedChoices=len(evaluated),
            correctChoices=correct,
        )
        if render:
            self._changed()

    def _choice_state(self, node: DialogueNode, choice_id: str, is_correct: bool) -> ChoiceState:
        if self._picked != choice_id:
            return ChoiceState.IDLE
        if not node.is_evaluated:
            return ChoiceState.PICKED
        return ChoiceState.CORRECT if is_correct else ChoiceState.INCORRECT

    def view(self) -> DialogueView:
        loc = self.context.localization
        title = loc.resolve_any(self.spec.title)
        if self._finished:
            return DialogueView(
                title=title,
                node_id=self._current.id if self._current else "",
                node_type=self._current.type if self._current else None,
                finished=True,
                completion_text=self._ui("dialogue_complete"),
                close_label=self._ui("close"),
            )

        node = self._current
        if node.type == DialogueNodeType.DIALOGUE:
            return DialogueView(
                title=title,
                node_id=node.id,
                node_type=node.type,
                speaker=loc.resolve_any(node.speaker),
                text=loc.resolve_any(node.text),
                can_continue=not self._processing,
                continue_label=self._ui("continue"),
            )

        context = ""
        if self._last_dialogue is not None:
            context = f'"{loc.resolve_any(self._last_dialogue.text)}"'
        return DialogueView(
            title=title,
            node_id=node.id,
            node_type=node.type,
            speaker=loc.resolve_any(self._last_dialogue.speaker) if self._last_dialogue else "",
            context=context,
            prompt=loc.resolve_any(node.choice_text),
            choices=[
                DialogueChoiceView(
                    id=choice.id,
                    text=loc.resolve_any(choice.text),
                    state=self._choice_state(node, choice.id, choice.is_correct),
                )
                for choice in node.choices
            ],
        )

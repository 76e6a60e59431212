"""Shared pytest fixtures for the content runtime test suite."""

import copy
import pytest
from typing import Any

import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from content.config import RuntimeConfig
from runtime.context import RuntimeContext
from runtime.scene import InMemoryScene


class EventLog:
    """Records events from engine and dispatcher signals in arrival order."""

    def __init__(self):
        self.events: list[tuple[str, tuple[Any, ...]]] = []

    def recorder(self, name: str):
        def record(*args: Any) -> None:
            self.events.append((name, args))

        return record

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> list[tuple[Any, ...]]:
        return [args for event, args in self.events if event == name]

    def watch_engine(self, engine) -> "EventLog":
        engine.on_closed.connect(self.recorder("closed"))
        engine.on_completed.connect(self.recorder("completed"))
        engine.on_changed.connect(self.recorder("changed"))
        return self

    def watch_dispatcher(self, dispatcher) -> "EventLog":
        dispatcher.on_content_displayed.connect(self.recorder("displayed"))
        dispatcher.on_content_closed.connect(self.recorder("closed"))
        dispatcher.on_content_completed.connect(self.recorder("completed"))
        return self


@pytest.fixture
def event_log() -> EventLog:
    return EventLog()


@pytest.fixture
def scene() -> InMemoryScene:
    """Scene with procedure targets, decoys, a zone and an unrelated object."""
    return InMemoryScene.from_names(
        "valve_a",
        "valve_b",
        "valve_c",
        "valve_decoy",
        "control_panel",
        "mute_decoy",
        "pump_zone",
        "bystander",
    )


@pytest.fixture
def runtime_config() -> RuntimeConfig:
    return RuntimeConfig()


@pytest.fixture
def context(scene, runtime_config) -> RuntimeContext:
    """Runtime context built from the in-memory collaborators."""
    return RuntimeContext.in_memory(scene=scene, config=runtime_config)


@pytest.fixture
def scheduler(context):
    return context.scheduler


@pytest.fixture
def analytics(context):
    return context.analytics


@pytest.fixture
def highlighter(context):
    return context.highlighter


SINGLE_QUESTION: dict[str, Any] = {
    "questionText": {"en": "Which valve isolates the pump?", "fr": "Quelle vanne isole la pompe ?"},
    "options": [
        {"en": "Valve A", "fr": "Vanne A"},
        {"en": "Valve B", "fr": "Vanne B"},
        {"en": "Valve C", "fr": "Vanne C"},
    ],
    "isMultipleChoice": False,
    "correctAnswers": [1],
    "feedback": {"en": "Well done", "fr": "Bravo"},
    "incorrectFeedback": {"en": "It is valve B", "fr": "C'est la vanne B"},
}

MULTI_QUESTION: dict[str, Any] = {
    "questionText": "Pick the protective equipment",
    "options": ["A", "B", "C"],
    "isMultipleChoice": True,
    "correctAnswers": [0, 2],
}

DIALOGUE: dict[str, Any] = {
    "title": {"en": "Handover", "fr": "Passation"},
    "startNodeId": "start",
    "nodes": [
        {"id": "start", "type": "start", "nextNodeId": "hello"},
        {
            "id": "hello",
            "type": "dialogue",
            "speaker_en": "Supervisor",
            "speaker_fr": "Superviseur",
            "text_en": "The pump is leaking.",
            "text_fr": "La pompe fuit.",
            "nextNodeId": "ask",
        },
        {
            "id": "ask",
            "type": "choice",
            "text_en": "What do you do?",
            "text_fr": "Que faites-vous ?",
            "choices": [
                {"id": "isolate", "text_en": "Isolate it", "text_fr": "L'isoler", "isCorrect": True, "nextNodeId": "mood"},
                {"id": "ignore", "text_en": "Ignore it", "text_fr": "L'ignorer", "isCorrect": False, "nextNodeId": "mood"},
            ],
        },
        {
            "id": "mood",
            "type": "choice",
            "text_en": "How do you feel?",
            "choices": [
                {"id": "fine", "text_en": "Fine", "nextNodeId": "bye"},
                {"id": "tired", "text_en": "Tired", "nextNodeId": "bye"},
            ],
        },
        {
            "id": "bye",
            "type": "dialogue",
            "speaker_en": "Supervisor",
            "text_en": "See you tomorrow.",
            "nextNodeId": "end",
        },
        {"id": "end", "type": "end"},
    ],
}

PROCEDURE: dict[str, Any] = {
    "procedure_valves": True,
    "title": {"en": "Valve lineup", "fr": "Alignement des vannes"},
    "fakeObjects": [
        {"objectName": "control_panel", "errorMessage": {"en": "Not the panel.", "fr": "Pas le panneau."}},
    ],
    "steps": [
        {
            "targetObjectName": "valve_a",
            "text": {"en": "Close valve A", "fr": "Fermez la vanne A"},
            "validationType": "click",
            "fakeObjects": [
                {"objectName": "valve_decoy", "errorMessage": {"en": "That is the bypass valve.", "fr": "C'est la vanne de dérivation."}},
                {"objectName": "mute_decoy"},
            ],
        },
        {"targetObjectName": "valve_b", "text": "Close valve B", "validationType": "click"},
        {"targetObjectName": "valve_c", "text": "Close valve C", "validationType": "click"},
    ],
}


@pytest.fixture
def single_question_payload() -> dict[str, Any]:
    return copy.deepcopy(SINGLE_QUESTION)


@pytest.fixture
def multi_question_payload() -> dict[str, Any]:
    return copy.deepcopy(MULTI_QUESTION)


@pytest.fixture
def quiz_payload() -> dict[str, Any]:
    """Two-question sequential quiz."""
    return {"questions": [copy.deepcopy(SINGLE_QUESTION), copy.deepcopy(MULTI_QUESTION)]}


@pytest.fixture
def dialogue_payload() -> dict[str, Any]:
    return copy.deepcopy(DIALOGUE)


@pytest.fixture
def procedure_payload() -> dict[str, Any]:
    return copy.deepcopy(PROCEDURE)

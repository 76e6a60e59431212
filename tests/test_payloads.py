"""Unit tests for payload parsing at the content boundary."""

import pytest

from content.payloads import (
    ContentError,
    find_dialogue_problems,
    parse_answer_indices,
    parse_dialogue_payload,
    parse_procedure_payload,
    parse_question_payload,
)
from models import DialogueNodeType, ValidationType


class TestParseAnswerIndices:
    """Tests for correct-answer normalization."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (1, [1]),
            ([0, 2], [0, 2]),
            ([2, 0, 2], [2, 0]),
            (["0", "2"], [0, 2]),
            ([0.0, 2.0], [0, 2]),
            ("0,2", [0, 2]),
            ("0; 2", [0, 2]),
            ("0 2", [0, 2]),
            ("[0, 2]", [0, 2]),
            (None, []),
        ],
    )
    def test_accepted_shapes(self, raw, expected):
        """Every supported shape normalizes to the same indices."""
        assert parse_answer_indices(raw) == expected

    @pytest.mark.parametrize("raw", ["a,b", True, [True], [-1], "[0,", {"a": 1}, [1.5]])
    def test_rejected_shapes(self, raw):
        """Anything that is not a non-negative integer is a content error."""
        with pytest.raises(ContentError):
            parse_answer_indices(raw)


class TestParseQuestionPayload:
    """Tests for question payloads."""

    def test_inline_question(self, single_question_payload):
        """A payload carrying questionText is a one-question quiz."""
        quiz = parse_question_payload(single_question_payload)
        assert len(quiz.questions) == 1
        question = quiz.questions[0]
        assert question.key == "question_1"
        assert question.correct_answers == [1]
        assert question.options[0] == {"en": "Valve A", "fr": "Vanne A"}

    def test_question_sequence_keys(self, quiz_payload):
        """Questions in a sequence are keyed question_1, question_2, ..."""
        quiz = parse_question_payload(quiz_payload)
        assert [q.key for q in quiz.questions] == ["question_1", "question_2"]
        assert quiz.questions[1].is_multiple_choice

    def test_options_as_language_map(self):
        """{lang: [options]} becomes one LocalizedText per option."""
        quiz = parse_question_payload(
            {
                "questionText": "Q",
                "options": {"en": ["Water", "CO2"], "fr": ["Eau", "CO2"]},
                "correctAnswers": "1",
            }
        )
        assert quiz.questions[0].options == [
            {"en": "Water", "fr": "Eau"},
            {"en": "CO2", "fr": "CO2"},
        ]

    def test_legacy_single_correct_answer(self):
        """A scalar correctAnswer is used when correctAnswers is absent."""
        quiz = parse_question_payload(
            {"questionText": "Q", "options": ["a", "b"], "correctAnswer": 1}
        )
        assert quiz.questions[0].correct_answers == [1]

    def test_flat_question_text(self):
        """questionText_en / questionText_fr are accepted."""
        quiz = parse_question_payload(
            {
                "questionText_en": "Q",
                "questionText_fr": "Q fr",
                "options": ["a"],
                "correctAnswers": [0],
            }
        )
        assert quiz.questions[0].question_text == {"en": "Q", "fr": "Q fr"}

    def test_answer_out_of_range(self):
        """An answer index outside the options is a content error."""
        with pytest.raises(ContentError):
            parse_question_payload(
                {"questionText": "Q", "options": ["a", "b"], "correctAnswers": [2]}
            )

    def test_missing_question_text(self):
        """A question without text is a content error."""
        with pytest.raises(ContentError):
            parse_question_payload({"options": ["a"], "correctAnswers": [0]})

    def test_no_correct_answer(self):
        """Options without any correct answer are a content error."""
        with pytest.raises(ContentError):
            parse_question_payload({"questionText": "Q", "options": ["a", "b"]})

    def test_empty_options_parse(self):
        """Empty options parse; the engine reports them when displayed."""
        quiz = parse_question_payload({"questionText": "Q", "options": []})
        assert quiz.questions[0].options == []

    def test_non_mapping_payload(self):
        """A payload that is not an object is a content error."""
        with pytest.raises(ContentError):
            parse_question_payload(["not", "a", "mapping"])

    def test_empty_payload(self):
        """A payload with neither questionText nor questions is rejected."""
        with pytest.raises(ContentError):
            parse_question_payload({})

    def test_single_select_uses_first_declared_answer(self):
        """Declared order is kept so single-select uses the first answer."""
        quiz = parse_question_payload(
            {"questionText": "Q", "options": ["a", "b", "c"], "correctAnswers": [2, 0]}
        )
        assert quiz.questions[0].answer_set == {2}


class TestParseDialoguePayload:
    """Tests for dialogue payloads."""

    def test_flat_fields(self, dialogue_payload):
        """speaker_en/text_en style fields become LocalizedText."""
        tree = parse_dialogue_payload(dialogue_payload)
        hello = tree.get_node("hello")
        assert hello.type == DialogueNodeType.DIALOGUE
        assert hello.speaker == {"en": "Supervisor", "fr": "Superviseur"}
        assert hello.text == {"en": "The pump is leaking.", "fr": "La pompe fuit."}
        assert hello.next_node_id == "ask"

    def test_choice_node(self, dialogue_payload):
        """Choice nodes use text as their prompt and parse their choices."""
        tree = parse_dialogue_payload(dialogue_payload)
        ask = tree.get_node("ask")
        assert ask.choice_text == {"en": "What do you do?", "fr": "Que faites-vous ?"}
        assert [c.id for c in ask.choices] == ["isolate", "ignore"]
        assert ask.is_evaluated
        assert not tree.get_node("mood").is_evaluated
        assert tree.count_choice_nodes() == 2

    def test_nested_localized_fields(self):
        """Nested {en, fr} speaker/text maps are accepted too."""
        tree = parse_dialogue_payload(
            {
                "startNodeId": "a",
                "nodes": [
                    {
                        "id": "a",
                        "type": "dialogue",
                        "speaker": {"en": "Ana"},
                        "text": {"en": "Hi", "fr": "Salut"},
                    }
                ],
            }
        )
        assert tree.get_node("a").text == {"en": "Hi", "fr": "Salut"}

    def test_is_correct_as_string(self):
        """isCorrect given as a string is parsed as a boolean."""
        tree = parse_dialogue_payload(
            {
                "startNodeId": "c",
                "nodes": [
                    {
                        "id": "c",
                        "type": "choice",
                        "text": "?",
                        "choices": [
                            {"id": "x", "text": "X", "isCorrect": "true"},
                            {"id": "y", "text": "Y", "isCorrect": "false"},
                        ],
                    }
                ],
            }
        )
        choices = tree.get_node("c").choices
        assert choices[0].is_correct is True
        assert choices[1].is_correct is False

    def test_wrapped_under_dialogue_key(self, dialogue_payload):
        """A dialogue may sit under a dialogue_<name> key."""
        tree = parse_dialogue_payload({"dialogue_handover": dialogue_payload})
        assert tree.key == "dialogue_handover"

    def test_missing_start_node(self, dialogue_payload):
        """No startNodeId is a content error."""
        del dialogue_payload["startNodeId"]
        with pytest.raises(ContentError):
            parse_dialogue_payload(dialogue_payload)

    def test_unknown_start_node(self, dialogue_payload):
        """A startNodeId naming no node is a content error."""
        dialogue_payload["startNodeId"] = "nowhere"
        with pytest.raises(ContentError):
            parse_dialogue_payload(dialogue_payload)

    def test_dangling_next_node(self, dialogue_payload):
        """A nextNodeId naming no node is a content error."""
        dialogue_payload["nodes"][1]["nextNodeId"] = "ghost"
        with pytest.raises(ContentError, match="ghost"):
            parse_dialogue_payload(dialogue_payload)

    def test_dangling_choice_target(self, dialogue_payload):
        """A choice pointing to a missing node is a content error."""
        dialogue_payload["nodes"][2]["choices"][0]["nextNodeId"] = "ghost"
        with pytest.raises(ContentError):
            parse_dialogue_payload(dialogue_payload)

    def test_unknown_node_type(self, dialogue_payload):
        """An unknown node type is a content error."""
        dialogue_payload["nodes"][1]["type"] = "monologue"
        with pytest.raises(ContentError):
            parse_dialogue_payload(dialogue_payload)

    def test_choice_node_without_choices(self, dialogue_payload):
        """A choice node must offer choices."""
        dialogue_payload["nodes"][2]["choices"] = []
        with pytest.raises(ContentError):
            parse_dialogue_payload(dialogue_payload)

    def test_unreachable_nodes_are_warnings(self, dialogue_payload):
        """Unreachable nodes are reported but do not reject the dialogue."""
        dialogue_payload["nodes"].append(
            {"id": "orphan", "type": "dialogue", "text": "lonely"}
        )
        tree = parse_dialogue_payload(dialogue_payload)
        problems = find_dialogue_problems(tree)
        assert problems == ["warning: node orphan is unreachable from the start"]

    def test_valid_dialogue_has_no_problems(self, dialogue_payload):
        """Every node of the sample dialogue is reachable and resolvable."""
        tree = parse_dialogue_payload(dialogue_payload)
        assert find_dialogue_problems(tree) == []


class TestParseProcedurePayload:
    """Tests for procedure payloads."""

    def test_steps_and_decoys(self, procedure_payload):
        """Steps, their decoys and the global decoys are parsed."""
        spec = parse_procedure_payload(procedure_payload)
        assert spec.key == "procedure_valves"
        assert [s.key for s in spec.steps] == ["step_1", "step_2", "step_3"]
        first = spec.steps[0]
        assert first.target_object_name == "valve_a"
        assert first.validation_type == ValidationType.CLICK
        assert [d.object_name for d in first.decoys] == ["valve_decoy", "mute_decoy"]
        assert first.decoys[1].error_message == ""
        assert [d.object_name for d in spec.decoys] == ["control_panel"]

    def test_flag_defaults(self, procedure_payload):
        """enableHighlight defaults on, keepProgressOnOtherClick off."""
        spec = parse_procedure_payload(procedure_payload)
        assert spec.enable_highlight is True
        assert spec.keep_progress_on_other_click is False
        assert spec.steps[0].use_blinking is True

    def test_key_fallback(self):
        """Without a procedure_ key the procedure is named 'procedure'."""
        spec = parse_procedure_payload({"steps": [{"validationType": "manual"}]})
        assert spec.key == "procedure"

    def test_validation_type_fallback(self):
        """Missing validationType uses requireManualValidation, else click."""
        spec = parse_procedure_payload(
            {
                "steps": [
                    {"targetObjectName": "a", "requireManualValidation": True},
                    {"targetObjectName": "b"},
                ]
            }
        )
        assert spec.steps[0].validation_type == ValidationType.MANUAL
        assert spec.steps[1].validation_type == ValidationType.CLICK

    def test_unknown_validation_type(self):
        """An unknown validationType is a content error."""
        with pytest.raises(ContentError):
            parse_procedure_payload({"steps": [{"validationType": "voice"}]})

    def test_zone_step_requires_zone(self):
        """A zone step without zoneObjectName is a content error."""
        with pytest.raises(ContentError):
            parse_procedure_payload({"steps": [{"validationType": "zone"}]})

    def test_no_steps(self):
        """A procedure without steps is a content error."""
        with pytest.raises(ContentError):
            parse_procedure_payload({"title": "Empty"})

    def test_legacy_numbered_steps(self):
        """step_N keys are ordered numerically and use correctObjectId."""
        spec = parse_procedure_payload(
            {
                "step_10": {"correctObjectId": "ten", "instruction": "Last"},
                "step_2": {"correctObjectId": "two", "instruction": "Second"},
                "step_1": {"correctObjectId": "one", "instruction": "First"},
            }
        )
        assert [s.target_object_name for s in spec.steps] == ["one", "two", "ten"]
        assert [s.key for s in spec.steps] == ["step_1", "step_2", "step_3"]
        assert spec.steps[0].instruction == "First"

    def test_fake_object_without_name_is_skipped(self):
        """Decoys with no objectName are dropped."""
        spec = parse_procedure_payload(
            {"steps": [{"targetObjectName": "a", "fakeObjects": [{"errorMessage": "x"}]}]}
        )
        assert spec.steps[0].decoys == []

"""Payload boundary: raw content mappings to typed content specs.

Payloads arrive as JSON-like mappings authored in a scene editor. Field
names are fixed (questionText, correctAnswers, targetObjectName, ...) and
several legacy shapes are still in circulation. Every shape question is
answered here, once, so the engines only ever see QuestionSpec,
DialogueTree and ProcedureSpec.
"""

import json
import logging
import re
from collections import deque
from typing import Any, Mapping

from pydantic import ValidationError

from models import (
    DecoyRef,
    DialogueChoice,
    DialogueNode,
    DialogueNodeType,
    DialogueTree,
    LocalizedText,
    ProcedureSpec,
    ProcedureStep,
    QuestionSpec,
    QuizSpec,
    ValidationType,
)

logger = logging.getLogger(__name__)

FLAT_LANGUAGES = ("en", "fr")


class ContentError(ValueError):
    """Malformed or missing content in a payload."""


# ============================================================================
# Shared helpers
# ============================================================================


def _require_mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ContentError(f"{what} must be an object, got {type(value).__name__}")
    return value


def _localized(value: Any) -> LocalizedText:
    """Coerce a raw field into LocalizedText."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    return str(value)


def _localized_field(data: Mapping[str, Any], key: str) -> LocalizedText:
    """Read `key` as LocalizedText, accepting flat `key_en`/`key_fr` fields too."""
    if data.get(key) not in (None, ""):
        return _localized(data[key])
    flat = {
        lang: str(data[f"{key}_{lang}"])
        for lang in FLAT_LANGUAGES
        if data.get(f"{key}_{lang}")
    }
    return flat or ""


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no", ""):
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    raise ContentError(f"Expected a boolean, got {value!r}")


def _build(model: type, what: str, **fields: Any):
    try:
        return model(**fields)
    except ValidationError as e:
        raise ContentError(f"Invalid {what}: {e}") from e


def parse_answer_indices(raw: Any) -> list[int]:
    """Normalize correct-answer data into unique option indices.

    Accepts an int, a homogeneous list of ints or numeric strings, a
    delimited string ("0,2", "0; 2", "0 2") or a JSON array given as a
    string ("[0, 2]").

    Raises:
        ContentError: If any element is not a non-negative integer.
    """
    if raw is None:
        return []

    if isinstance(raw, bool):
        raise ContentError(f"Invalid answer index: {raw!r}")

    if isinstance(raw, int):
        items: list[Any] = [raw]
    elif isinstance(raw, float):
        items = [raw]
    elif isinstance(raw, str):
        text = raw.strip()
        if text.startswith("["):
            try:
                items = json.loads(text)
            except json.JSONDecodeError as e:
                raise ContentError(f"Invalid answer list {raw!r}: {e}") from e
            if not isinstance(items, list):
                raise ContentError(f"Invalid answer list {raw!r}")
        else:
            items = [part for part in re.split(r"[,;\s]+", text) if part]
    elif isinstance(raw, (list, tuple, set)):
        items = list(raw)
    else:
        raise ContentError(f"Unsupported answer format: {type(raw).__name__}")

    indices: list[int] = []
    for item in items:
        if isinstance(item, bool):
            raise ContentError(f"Invalid answer index: {item!r}")
        if isinstance(item, int):
            index = item
        elif isinstance(item, float) and item.is_integer():
            index = int(item)
        elif isinstance(item, str) and item.strip().lstrip("-").isdigit():
            index = int(item.strip())
        else:
            raise ContentError(f"Invalid answer index: {item!r}")
        if index < 0:
            raise ContentError(f"Negative answer index: {index}")
        if index not in indices:
            indices.append(index)

    return indices


# ============================================================================
# Questions
# ============================================================================


def _parse_options(raw: Any) -> list[LocalizedText]:
    """Options are a list of LocalizedText or {lang: [option, ...]}."""
    if raw is None:
        return []
    if isinstance(raw, list):
        return [_localized(option) for option in raw]
    if isinstance(raw, Mapping):
        per_language = {
            lang: values for lang, values in raw.items() if isinstance(values, list)
        }
        if not per_language:
            raise ContentError("Localized options must map languages to lists")
        count = max(len(values) for values in per_language.values())
        return [
            {
                lang: str(values[i])
                for lang, values in per_language.items()
                if i < len(values) and values[i] is not None
            }
            for i in range(count)
        ]
    raise ContentError(f"Unsupported options format: {type(raw).__name__}")


def parse_question(data: Mapping[str, Any], key: str = "question_1") -> QuestionSpec:
    """Parse one question object."""
    data = _require_mapping(data, f"Question {key}")

    question_text = _localized_field(data, "questionText")
    if not question_text:
        raise ContentError(f"Question {key} has no questionText")

    options = _parse_options(data.get("options"))
    is_multiple = _as_bool(data.get("isMultipleChoice"), False)

    raw_answers = data.get("correctAnswers")
    if raw_answers is None:
        raw_answers = data.get("correctAnswer")
    correct = parse_answer_indices(raw_answers)

    if options:
        if not correct:
            raise ContentError(f"Question {key} declares no correct answer")
        out_of_range = [i for i in correct if i >= len(options)]
        if out_of_range:
            raise ContentError(
                f"Question {key}: answer indices {out_of_range} outside "
                f"{len(options)} options"
            )
        if not is_multiple and len(correct) > 1:
            logger.debug(
                "Single-select question %s lists %d answers, using the first",
                key,
                len(correct),
            )

    return _build(
        QuestionSpec,
        f"question {key}",
        key=key,
        question_text=question_text,
        options=options,
        is_multiple_choice=is_multiple,
        correct_answers=correct,
        feedback=_localized_field(data, "feedback"),
        incorrect_feedback=_localized_field(data, "incorrectFeedback"),
    )


def parse_question_payload(payload: Any) -> QuizSpec:
    """Parse a question payload: one inline question or a `questions` list."""
    payload = _require_mapping(payload, "Question payload")

    if "questionText" in payload or "options" in payload:
        return QuizSpec(questions=[parse_question(payload)])

    raw_questions = payload.get("questions")
    if not isinstance(raw_questions, list) or not raw_questions:
        raise ContentError("Question payload has neither questionText nor questions")

    return QuizSpec(
        questions=[
            parse_question(item, key=f"question_{i + 1}")
            for i, item in enumerate(raw_questions)
        ]
    )


# ============================================================================
# Dialogues
# ============================================================================


def _parse_choice(data: Any, node_id: str, index: int) -> DialogueChoice:
    data = _require_mapping(data, f"Choice {index} of node {node_id}")
    return _build(
        DialogueChoice,
        f"choice {index} of node {node_id}",
        id=str(data.get("id") or f"{node_id}_choice_{index + 1}"),
        text=_localized_field(data, "text"),
        is_correct=_as_bool(data.get("isCorrect"), False),
        next_node_id=str(data.get("nextNodeId") or ""),
    )


def _parse_node(data: Any, index: int) -> DialogueNode:
    data = _require_mapping(data, f"Dialogue node {index}")
    node_id = str(data.get("id") or "")
    if not node_id:
        raise ContentError(f"Dialogue node {index} has no id")

    raw_type = str(data.get("type") or "").strip().lower()
    try:
        node_type = DialogueNodeType(raw_type)
    except ValueError:
        raise ContentError(f"Dialogue node {node_id} has unknown type {raw_type!r}")

    choices = []
    choice_text: LocalizedText = ""
    if node_type == DialogueNodeType.CHOICE:
        raw_choices = data.get("choices") or []
        if not isinstance(raw_choices, list) or not raw_choices:
            raise ContentError(f"Choice node {node_id} has no choices")
        choices = [_parse_choice(c, node_id, i) for i, c in enumerate(raw_choices)]
        choice_text = _localized_field(data, "choiceText") or _localized_field(
            data, "text"
        )

    return _build(
        DialogueNode,
        f"dialogue node {node_id}",
        id=node_id,
        type=node_type,
        speaker=_localized_field(data, "speaker"),
        text="" if node_type == DialogueNodeType.CHOICE else _localized_field(data, "text"),
        choice_text=choice_text,
        next_node_id=str(data.get("nextNodeId") or ""),
        choices=choices,
    )


def _unwrap_dialogue(payload: Mapping[str, Any]) -> tuple[str, Mapping[str, Any]]:
    """Dialogues may sit under a `dialogue_<name>` key."""
    if "nodes" in payload:
        return str(payload.get("dialogueKey") or payload.get("id") or "dialogue"), payload
    for key, value in payload.items():
        if key.startswith("dialogue_") and isinstance(value, Mapping):
            return key, value
    raise ContentError("Dialogue payload has no nodes")


def parse_dialogue_payload(payload: Any) -> DialogueTree:
    """Parse a dialogue payload into a DialogueTree.

    Raises:
        ContentError: On a missing or unknown start node, duplicate node
            ids, malformed nodes, or a nextNodeId that names no node.
    """
    payload = _require_mapping(payload, "Dialogue payload")
    key, data = _unwrap_dialogue(payload)

    raw_nodes = data.get("nodes")
    if not isinstance(raw_nodes, list) or not raw_nodes:
        raise ContentError(f"Dialogue {key} has no nodes")

    nodes: dict[str, DialogueNode] = {}
    for index, raw in enumerate(raw_nodes):
        node = _parse_node(raw, index)
        if node.id in nodes:
            raise ContentError(f"Dialogue {key} has duplicate node id {node.id}")
        nodes[node.id] = node

    start_id = str(data.get("startNodeId") or "")
    if not start_id:
        raise ContentError(f"Dialogue {key} has no startNodeId")
    if start_id not in nodes:
        raise ContentError(f"Dialogue {key}: start node {start_id} does not exist")

    tree = DialogueTree(
        key=key,
        title=_localized_field(data, "title"),
        start_node_id=start_id,
        nodes=nodes,
    )

    errors = [p for p in find_dialogue_problems(tree) if not p.startswith("warning:")]
    if errors:
        raise ContentError(f"Dialogue {key}: " + "; ".join(errors))
    return tree


def find_dialogue_problems(tree: DialogueTree) -> list[str]:
    """Check a dialogue graph for dangling references and dead ends.

    Returns:
        Problem descriptions. Unreachable nodes are reported with a
        "warning:" prefix; everything else makes traversal get stuck.
    """
    problems: list[str] = []

    for node in tree.nodes.values():
        if node.next_node_id and node.next_node_id not in tree.nodes:
            problems.append(f"node {node.id} points to missing node {node.next_node_id}")
        for choice in node.choices:
            if choice.next_node_id and choice.next_node_id not in tree.nodes:
                problems.append(
                    f"choice {choice.id} of node {node.id} points to missing "
                    f"node {choice.next_node_id}"
                )

    start = tree.get_node(tree.start_node_id)
    if start is None:
        problems.append(f"start node {tree.start_node_id} does not exist")
        return problems
    if start.type == DialogueNodeType.START and not start.next_node_id:
        problems.append(f"start node {start.id} has no nextNodeId")

    reachable: set[str] = set()
    queue = deque([start.id])
    while queue:
        node_id = queue.popleft()
        if node_id in reachable or node_id not in tree.nodes:
            continue
        reachable.add(node_id)
        node = tree.nodes[node_id]
        if node.next_node_id:
            queue.append(node.next_node_id)
        for choice in node.choices:
            if choice.next_node_id:
                queue.append(choice.next_node_id)

    for node_id in tree.nodes:
        if node_id not in reachable:
            problems.append(f"warning: node {node_id} is unreachable from the start")

    return problems


# ============================================================================
# Procedures
# ============================================================================


def _parse_decoys(raw: Any, where: str) -> list[DecoyRef]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ContentError(f"fakeObjects of {where} must be a list")
    decoys = []
    for index, item in enumerate(raw):
        item = _require_mapping(item, f"fakeObjects[{index}] of {where}")
        name = str(item.get("objectName") or "")
        if not name:
            logger.warning("Skipping fake object %d of %s without objectName", index, where)
            continue
        decoys.append(
            DecoyRef(object_name=name, error_message=_localized(item.get("errorMessage")))
        )
    return decoys


def _parse_validation_type(data: Mapping[str, Any], where: str) -> ValidationType:
    raw = str(data.get("validationType") or "").strip().lower()
    if not raw:
        manual = _as_bool(data.get("requireManualValidation"), False)
        return ValidationType.MANUAL if manual else ValidationType.CLICK
    try:
        return ValidationType(raw)
    except ValueError:
        raise ContentError(f"{where} has unknown validationType {raw!r}")


def _parse_step(data: Any, number: int) -> ProcedureStep:
    where = f"Step {number}"
    data = _require_mapping(data, where)
    validation = _parse_validation_type(data, where)
    zone = str(data.get("zoneObjectName") or "")
    if validation == ValidationType.ZONE and not zone:
        raise ContentError(f"{where} is a zone step without zoneObjectName")

    instruction = _localized_field(data, "instruction") or _localized_field(data, "text")
    return _build(
        ProcedureStep,
        where.lower(),
        key=f"step_{number}",
        target_object_name=str(data.get("targetObjectName") or ""),
        title=_localized_field(data, "title"),
        instruction=instruction,
        hint=_localized_field(data, "hint"),
        validation_type=validation,
        zone_object_name=zone,
        decoys=_parse_decoys(data.get("fakeObjects"), where),
        image_path=str(data["imagePath"]) if data.get("imagePath") else None,
        highlight_color=str(data["highlightColor"]) if data.get("highlightColor") else None,
        use_blinking=_as_bool(data.get("useBlinking"), True),
    )


def _parse_legacy_steps(payload: Mapping[str, Any]) -> list[ProcedureStep]:
    """Steps given as step_1, step_2, ... keys with correctObjectId targets."""
    numbered = []
    for key, value in payload.items():
        match = re.fullmatch(r"step_(\d+)", key)
        if match and isinstance(value, Mapping):
            numbered.append((int(match.group(1)), value))
    numbered.sort(key=lambda pair: pair[0])

    steps = []
    for position, (_, data) in enumerate(numbered, start=1):
        step = _parse_step(
            {**data, "targetObjectName": data.get("correctObjectId", "")}, position
        )
        steps.append(step)
    return steps


def parse_procedure_payload(payload: Any) -> ProcedureSpec:
    """Parse a procedure payload into a ProcedureSpec."""
    payload = _require_mapping(payload, "Procedure payload")

    key = next((k for k in payload if k.startswith("procedure_")), None)
    if key is None:
        logger.debug("No procedure_ key in payload, using 'procedure'")
        key = "procedure"

    raw_steps = payload.get("steps")
    if raw_steps is not None:
        if not isinstance(raw_steps, list):
            raise ContentError("Procedure steps must be a list")
        steps = [_parse_step(item, i + 1) for i, item in enumerate(raw_steps)]
    else:
        steps = _parse_legacy_steps(payload)

    if not steps:
        raise ContentError(f"Procedure {key} has no steps")

    return _build(
        ProcedureSpec,
        f"procedure {key}",
        key=key,
        title=_localized_field(payload, "title"),
        description=_localized_field(payload, "description"),
        steps=steps,
        decoys=_parse_decoys(payload.get("fakeObjects"), f"procedure {key}"),
        enable_highlight=_as_bool(payload.get("enableHighlight"), True),
        keep_progress_on_other_click=_as_bool(
            payload.get("keepProgressOnOtherClick"), False
        ),
    )

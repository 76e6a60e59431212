import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.text import Text

from content.config import RuntimeConfig
from content.payloads import (
    ContentError,
    find_dialogue_problems,
    parse_dialogue_payload,
    parse_procedure_payload,
    parse_question_payload,
)
from dispatcher import ContentDispatcher
from logging_setup import setup_console_logging
from models import ContentType, DialogueTree, ProcedureSpec, QuizSpec
from runtime.context import RuntimeContext
from runtime.scene import InMemoryScene, SceneObject
from ui import ContentConsole
from ui.styles import DEFAULT_THEME, ERROR_RED, MUTED_GRAY, SUCCESS_GREEN

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"

# Payload parsers used by `check`
PAYLOAD_PARSERS = {
    ContentType.QUESTION: parse_question_payload,
    ContentType.DIALOGUE: parse_dialogue_payload,
    ContentType.PROCEDURE: parse_procedure_payload,
}


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with subcommands."""
    parser = argparse.ArgumentParser(description="Training content runtime")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to the console",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Play subcommand
    play_parser = subparsers.add_parser("play", help="Play a content payload")
    play_parser.add_argument("payload", type=Path, help="Path to a JSON payload")
    play_parser.add_argument(
        "--type",
        dest="content_type",
        required=True,
        choices=[t.value for t in ContentType],
        help="Content type of the payload",
    )
    play_parser.add_argument(
        "--object-id",
        default=None,
        help="Scene object the content is attached to (default: payload file name)",
    )
    play_parser.add_argument(
        "--scene",
        type=Path,
        default=None,
        help="JSON list of scene objects (default: objects named in the payload)",
    )
    play_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Runtime configuration JSON file",
    )
    play_parser.add_argument(
        "--lang",
        default=None,
        help="Language to start in",
    )
    play_parser.add_argument(
        "--analytics-out",
        type=Path,
        default=None,
        help="Write session analytics JSON to this file",
    )

    # Check subcommand
    check_parser = subparsers.add_parser("check", help="Validate a content payload")
    check_parser.add_argument("payload", type=Path, help="Path to a JSON payload")
    check_parser.add_argument(
        "--type",
        dest="content_type",
        required=True,
        choices=[t.value for t in PAYLOAD_PARSERS],
        help="Content type of the payload",
    )

    return parser


def load_payload(path: Path) -> dict[str, Any]:
    """Load a JSON payload file."""
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def scene_for_payload(content_type: ContentType, payload: dict[str, Any]) -> InMemoryScene:
    """Build a scene holding every object a procedure payload names."""
    scene = InMemoryScene()
    if content_type != ContentType.PROCEDURE:
        return scene

    try:
        spec = parse_procedure_payload(payload)
    except ContentError:
        return scene

    names = {d.object_name for d in spec.decoys}
    for step in spec.steps:
        names.update(
            name for name in (step.target_object_name, step.zone_object_name) if name
        )
        names.update(d.object_name for d in step.decoys)
    for name in sorted(names):
        scene.add(SceneObject(name=name))
    return scene


def build_context(
    content_type: ContentType,
    payload: dict[str, Any],
    scene_path: Path | None = None,
    config_path: Path | None = None,
    language: str | None = None,
) -> RuntimeContext:
    """Assemble the in-process collaborators for a CLI session."""
    config = RuntimeConfig.load(config_path)
    if scene_path is not None:
        scene = InMemoryScene.from_file(scene_path)
    else:
        scene = scene_for_payload(content_type, payload)
    logger.debug("Scene objects: %s", ", ".join(scene.names) or "none")

    context = RuntimeContext.in_memory(scene=scene, config=config)
    if language:
        context.localization.set_language(language)
    return context


def run_play(args, console: Console | None = None) -> int:
    """Run the play subcommand."""
    console = console or Console(theme=DEFAULT_THEME)
    content_type = ContentType(args.content_type)

    try:
        payload = load_payload(args.payload)
    except (OSError, ValueError) as e:
        console.print(Text(f"Error: cannot read {args.payload}: {e}", style=ERROR_RED))
        return 1

    context = build_context(
        content_type,
        payload,
        scene_path=args.scene,
        config_path=args.config,
        language=args.lang,
    )
    dispatcher = ContentDispatcher(context)
    app = ContentConsole(dispatcher, console=console)

    object_id = args.object_id or args.payload.stem
    app.run(object_id, content_type, payload)
    app.show_summary()

    if args.analytics_out is not None:
        args.analytics_out.write_text(context.analytics.export_json(), encoding="utf-8")
        console.print(
            Text(f"Analytics written to {args.analytics_out}", style=MUTED_GRAY)
        )
    return 0


def run_check(args, console: Console | None = None) -> int:
    """Run the check subcommand."""
    console = console or Console(theme=DEFAULT_THEME)
    content_type = ContentType(args.content_type)

    try:
        payload = load_payload(args.payload)
        spec = PAYLOAD_PARSERS[content_type](payload)
    except (OSError, ValueError) as e:
        console.print(Text(f"✗ {args.payload}: {e}", style=f"bold {ERROR_RED}"))
        return 1

    if isinstance(spec, QuizSpec):
        summary = f"{len(spec.questions)} question(s)"
    elif isinstance(spec, DialogueTree):
        summary = f"{len(spec.nodes)} node(s), {spec.count_choice_nodes()} choice node(s)"
        for problem in find_dialogue_problems(spec):
            console.print(Text(f"  {problem}", style=MUTED_GRAY))
    elif isinstance(spec, ProcedureSpec):
        summary = f"{len(spec.steps)} step(s)"
    else:
        summary = ""

    console.print(Text(f"✓ {args.payload}: {summary}", style=f"bold {SUCCESS_GREEN}"))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point with CLI routing."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_console_logging(logging.DEBUG if args.verbose else logging.WARNING)

    if args.command == "play":
        return run_play(args)
    if args.command == "check":
        return run_check(args)

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())

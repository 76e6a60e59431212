"""Guided procedure engine.

A procedure is an ordered list of steps. Each step is validated by one of
three strategies:
- click: the trainee clicks the step's target among highlighted decoys
- zone: the trainee walks into a trigger zone
- manual: the trainee presses the validate-step affordance

Clicking a decoy costs a wrong click and shows that decoy's message.
Clicking anything outside the armed objects either restarts the whole
procedure (default) or, with keepProgressOnOtherClick, only costs a
wrong click.
"""

import logging
import re
from typing import Any, Hashable, Mapping

from pydantic import BaseModel

from content.base import ContentEngine
from content.payloads import parse_procedure_payload
from models import (
    ContentType,
    DecoyRef,
    LocalizedText,
    ProcedureSpec,
    ProcedureStep,
    ProcedureView,
    ValidationType,
)
from runtime.base import TimerToken

logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


class StepProgress(BaseModel):
    """Progress on one step during one run through the procedure."""

    started_at: float | None = None
    duration: float = 0.0
    wrong_clicks: int = 0
    completed: bool = False

    def mark_completed(self, now: float) -> None:
        if self.completed:
            raise RuntimeError("Step already completed")
        self.completed = True
        self.duration = round(now - (self.started_at or now), 3)


class ProcedureEngine(ContentEngine[ProcedureSpec]):
    """Engine for procedure content.

    Only the current step is armed. Every highlight the engine applies is
    tracked and removed on step change, reset, completion and close.
    """

    content_type = ContentType.PROCEDURE

    def __init__(self, context):
        super().__init__(context)
        self._index = 0
        self._progress: list[StepProgress] = []
        self._wrong_clicks_total = 0
        self._resets = 0
        self._armed: dict[Hashable, DecoyRef | None] = {}
        self._correct_target: Hashable | None = None
        self._zone: Hashable | None = None
        self._highlighted: set[Hashable] = set()
        self._settling = False
        self._finished = False
        self._error: tuple[LocalizedText | None, int] | None = None
        self._error_timer: TimerToken | None = None
        self._step_records: list[dict[str, Any]] = []
        self._started_at = 0.0

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def config(self):
        return self.context.config.procedure

    @property
    def current_step_index(self) -> int:
        return self._index

    @property
    def current_step(self) -> ProcedureStep | None:
        if self.spec is None or self._index >= len(self.spec.steps):
            return None
        return self.spec.steps[self._index]

    @property
    def wrong_clicks_total(self) -> int:
        return self._wrong_clicks_total

    @property
    def wrong_clicks_this_step(self) -> int:
        if not self._progress or self._index >= len(self._progress):
            return 0
        return self._progress[self._index].wrong_clicks

    @property
    def resets(self) -> int:
        return self._resets

    @property
    def armed_objects(self) -> frozenset:
        return frozenset(self._armed)

    @property
    def correct_target(self) -> Hashable | None:
        return self._correct_target

    @property
    def armed_zone(self) -> Hashable | None:
        return self._zone

    @property
    def highlighted_objects(self) -> frozenset:
        return frozenset(self._highlighted)

    @property
    def progress(self) -> list[StepProgress]:
        return list(self._progress)

    @property
    def is_settling(self) -> bool:
        return self._settling

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def error_text(self) -> str | None:
        if self._error is None:
            return None
        message, count = self._error
        text = self._text(message) if message else ""
        return self._ui("error_count", message=text or self._ui("wrong_click"), count=count)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def parse(self, payload: Mapping[str, Any]) -> ProcedureSpec:
        return parse_procedure_payload(payload)

    def _start(self) -> None:
        self._wrong_clicks_total = 0
        self._resets = 0
        self._finished = False
        self._step_records = []
        self._started_at = self._now()

        analytics = self.context.analytics
        self._record = analytics.start_interaction(self.object_id, "procedure", "sequential")
        analytics.increment_attempts(self._record)
        analytics.add_data(self._record, "procedureKey", self.spec.key)
        analytics.add_data(self._record, "totalSteps", len(self.spec.steps))
        analytics.add_data(self._record, "steps", [])

        self._reset_progress()
        self._enter_step(0, render=False)

    def _release(self) -> None:
        self._disarm()
        self._clear_error()
        self._settling = False

    def _reset_progress(self) -> None:
        # Fresh objects per run so a completed flag is never cleared
        self._progress = [StepProgress() for _ in self.spec.steps]

    def _disarm(self) -> None:
        highlighter = self.context.highlighter
        for handle in self._highlighted:
            highlighter.remove(handle)
        self._highlighted.clear()
        self._armed.clear()
        self._correct_target = None
        self._zone = None

    def _step_color(self, step: ProcedureStep) -> str:
        color = step.highlight_color
        if color and HEX_COLOR.match(color):
            return color
        if color:
            logger.warning("Invalid highlightColor %r on %s", color, step.key)
        return self.config.highlight.color

    def _highlight(self, handle: Hashable, step: ProcedureStep) -> None:
        highlight = self.config.highlight
        self.context.highlighter.apply(
            handle, self._step_color(step), highlight.intensity, highlight.pulse
        )
        self._highlighted.add(handle)

    def _should_highlight(self, step: ProcedureStep) -> bool:
        return self.spec.enable_highlight and step.use_blinking

    def _enter_step(self, index: int, render: bool = True) -> None:
        self._disarm()
        self._clear_error()
        self._settling = False
        self._index = index

        step = self.spec.steps[index]
        self._progress[index].started_at = self._now()
        scene = self.context.scene

        if step.validation_type == ValidationType.CLICK:
            target = scene.find_by_name(step.target_object_name)
            if target is None:
                logger.warning(
                    "Target %r of %s not found, step cannot be completed",
                    step.target_object_name,
                    step.key,
                )
            else:
                self._armed[target] = None
                self._correct_target = target

            for decoy in step.decoys + self.spec.decoys:
                handle = scene.find_by_name(decoy.object_name)
                if handle is None:
                    logger.warning(
                        "Fake object %r of %s not found", decoy.object_name, step.key
                    )
                elif handle not in self._armed:
                    self._armed[handle] = decoy

            if self._should_highlight(step):
                for handle in self._armed:
                    self._highlight(handle, step)

        elif step.validation_type == ValidationType.ZONE:
            zone = scene.find_by_name(step.zone_object_name)
            if zone is None:
                logger.warning(
                    "Zone %r of %s not found", step.zone_object_name, step.key
                )
            self._zone = zone

            if step.target_object_name and self._should_highlight(step):
                target = scene.find_by_name(step.target_object_name)
                if target is not None:
                    self._highlight(target, step)

        logger.debug(
            "Procedure %s entered %s (%s)",
            self.spec.key,
            step.key,
            step.validation_type.value,
        )
        if render:
            self._changed()

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    def click_object(self, name: str) -> None:
        """Resolve an object by name and treat it as clicked."""
        handle = self.context.scene.find_by_name(name)
        if handle is None:
            logger.debug("Click on unknown object %r ignored", name)
            return
        self.handle_click(handle)

    def handle_click(self, handle: Hashable | None) -> None:
        """Process a click on a scene object.

        Zone steps ignore clicks; on a manual step any click is a wrong click.
        """
        step = self.current_step
        if (
            not self._active
            or self._finished
            or step is None
            or handle is None
            or step.validation_type == ValidationType.ZONE
            or self._settling
        ):
            return

        if step.validation_type == ValidationType.MANUAL:
            # Nothing is clickable on a manual step
            self._register_wrong_click(None)
        elif self._correct_target is not None and handle == self._correct_target:
            self._complete_step(step, target_id=step.target_object_name)
            self._settling = True
            self._changed()
            self._schedule(self.config.settle_delay_ms, self._advance)
        elif handle in self._armed:
            self._register_wrong_click(self._armed[handle])
        elif self.spec.keep_progress_on_other_click:
            self._register_wrong_click(None)
        else:
            self._hard_reset()

    def handle_zone_entered(self, handle: Hashable | None) -> None:
        """Process the trainee entering a trigger zone."""
        step = self.current_step
        if (
            not self._active
            or self._finished
            or step is None
            or step.validation_type != ValidationType.ZONE
            or handle is None
            or handle != self._zone
        ):
            return
        self._complete_step(step, target_id=step.zone_object_name, wrong_clicks=0)
        self._advance()

    def enter_zone(self, name: str) -> None:
        """Resolve a zone by name and treat it as entered."""
        self.handle_zone_entered(self.context.scene.find_by_name(name))

    def validate_step(self) -> None:
        """Complete the current manual step."""
        step = self.current_step
        if (
            not self._active
            or self._finished
            or step is None
            or step.validation_type != ValidationType.MANUAL
        ):
            return
        self._complete_step(step, target_id=step.target_object_name)
        self._advance()

    def _register_wrong_click(self, decoy: DecoyRef | None) -> None:
        progress = self._progress[self._index]
        progress.wrong_clicks += 1
        self._wrong_clicks_total += 1
        message = decoy.error_message if decoy is not None else None
        self._show_error(message, progress.wrong_clicks)
        logger.debug(
            "Wrong click on %s (%d this step, %d total)",
            self.spec.steps[self._index].key,
            progress.wrong_clicks,
            self._wrong_clicks_total,
        )

    def _hard_reset(self) -> None:
        failed_index = self._index
        self._resets += 1
        self._wrong_clicks_total += 1
        logger.info(
            "Procedure %s restarted after a click outside the armed objects",
            self.spec.key,
        )
        self._reset_progress()
        # The outside click stays charged to the step it happened on
        self._progress[failed_index].wrong_clicks = 1
        self._step_records = []

        analytics = self.context.analytics
        analytics.add_data(self._record, "resets", self._resets)
        analytics.add_data(self._record, "steps", [])
        self._enter_step(0, render=False)
        self._show_error(None, self._wrong_clicks_total)

    def _show_error(self, message: LocalizedText | None, count: int) -> None:
        if self._error_timer is not None:
            self._error_timer.cancel()
        self._error = (message, count)
        self._error_timer = self._schedule(self.config.error_display_ms, self._hide_error)
        self._changed()

    def _hide_error(self) -> None:
        self._error = None
        self._error_timer = None
        self._changed()

    def _clear_error(self) -> None:
        if self._error_timer is not None:
            self._error_timer.cancel()
            self._error_timer = None
        self._error = None

    def _complete_step(
        self,
        step: ProcedureStep,
        target_id: str,
        wrong_clicks: int | None = None,
    ) -> None:
        progress = self._progress[self._index]
        progress.mark_completed(self._now())
        self._step_records.append(
            {
                "stepNumber": self._index + 1,
                "stepKey": step.key,
                "targetObjectId": target_id,
                "completed": True,
                "duration": progress.duration,
                "wrongClicksOnThisStep": (
                    progress.wrong_clicks if wrong_clicks is None else wrong_clicks
                ),
            }
        )
        self.context.analytics.add_data(self._record, "steps", list(self._step_records))
        logger.debug("Procedure %s completed %s", self.spec.key, step.key)

    def _advance(self) -> None:
        self._settling = False
        next_index = self._index + 1
        if next_index >= len(self.spec.steps):
            self._complete_procedure()
        else:
            self._enter_step(next_index)

    def _complete_procedure(self) -> None:
        self._finished = True
        self._disarm()
        self._clear_error()

        total_steps = len(self.spec.steps)
        perfect_steps = sum(
            1 for p in self._progress if p.completed and p.wrong_clicks == 0
        )
        perfect = self._wrong_clicks_total == 0
        duration = round(self._now() - self._started_at, 3)

        analytics = self.context.analytics
        analytics.add_data(self._record, "perfectCompletion", perfect)
        analytics.add_data(self._record, "totalWrongClicks", self._wrong_clicks_total)
        analytics.add_data(self._record, "totalDuration", duration)
        analytics.add_data(self._record, "perfectStepsCount", perfect_steps)
        analytics.add_data(
            self._record, "finalScore", round(perfect_steps / total_steps * 100, 2)
        )
        analytics.end_interaction(self._record, True)
        self._record = None

        self._complete(
            True,
            totalWrongClicks=self._wrong_clicks_total,
            perfectCompletion=perfect,
            perfectStepsCount=perfect_steps,
            resets=self._resets,
        )
        self.close()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def view(self) -> ProcedureView:
        step = self.current_step
        if step is None:
            return ProcedureView(
                title=self._text(self.spec.title),
                total_steps=len(self.spec.steps),
                finished=True,
            )

        instruction = self._text(step.instruction) or self._ui(
            f"instruction_{step.validation_type.value}"
        )
        return ProcedureView(
            title=self._text(self.spec.title),
            description=self._text(self.spec.description),
            step_number=self._index + 1,
            total_steps=len(self.spec.steps),
            step_title=self._text(step.title),
            instruction=instruction,
            hint=self._text(step.hint),
            image_path=step.image_path,
            validation_type=step.validation_type,
            can_validate=step.validation_type == ValidationType.MANUAL,
            validate_label=self._ui("validate_step"),
            error_message=self.error_text,
            completed_steps=sum(1 for p in self._progress if p.completed),
            wrong_clicks_total=self._wrong_clicks_total,
            finished=self._finished,
        )

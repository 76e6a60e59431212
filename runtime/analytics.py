"""In-process analytics sink for training interactions.

Each content flow opens one interaction record per scored unit (a quiz
question, a whole dialogue, a whole procedure), writes data fields into
it and ends it with a success flag. Procedures are weighted per step when
the session score is computed.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, Field

from runtime.base import AnalyticsSink

logger = logging.getLogger(__name__)


class InteractionRecord(BaseModel):
    """One tracked interaction."""

    interaction_id: str
    kind: str
    subtype: str
    object_id: str
    start_time: datetime
    end_time: datetime | None = None
    duration: float = 0.0
    attempts: int = 0
    success: bool = False
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def ended(self) -> bool:
        return self.end_time is not None


class AnalyticsSummary(BaseModel):
    """Aggregate figures over every ended interaction."""

    total_interactions: int = 0
    successful_interactions: int = 0
    failed_interactions: int = 0
    total_attempts: int = 0
    total_failed_attempts: int = 0
    average_duration: float = 0.0
    success_rate: float = 0.0
    score: float = 100.0


class TrainingAnalytics(AnalyticsSink):
    """Collects InteractionRecords in memory.

    Only one interaction is open at a time: starting a new one ends a
    still-open predecessor as failed.
    """

    def __init__(
        self,
        clock: Callable[[], float] | None = None,
        session_id: str | None = None,
    ):
        self._clock = clock or time.monotonic
        self.session_id = session_id or datetime.now(timezone.utc).strftime(
            "session_%Y%m%d_%H%M%S"
        )
        self._records: dict[str, InteractionRecord] = {}
        self._started_at: dict[str, float] = {}
        self._open: str | None = None
        self._counter = 0

    def start_interaction(self, object_id: str, kind: str, subtype: str) -> str:
        if self._open is not None:
            logger.debug("Ending unfinished interaction %s", self._open)
            self.end_interaction(self._open, False)

        self._counter += 1
        interaction_id = f"{object_id}_{kind}_{self._counter}"
        self._records[interaction_id] = InteractionRecord(
            interaction_id=interaction_id,
            kind=kind,
            subtype=subtype,
            object_id=object_id,
            start_time=datetime.now(timezone.utc),
        )
        self._started_at[interaction_id] = self._clock()
        self._open = interaction_id
        logger.debug("Started interaction %s (%s/%s)", interaction_id, kind, subtype)
        return interaction_id

    def _get_open(self, record: str) -> InteractionRecord | None:
        interaction = self._records.get(record)
        if interaction is None:
            logger.warning("Unknown interaction record %s", record)
            return None
        if interaction.ended:
            logger.debug("Interaction %s already ended", record)
            return None
        return interaction

    def add_data(self, record: str, key: str, value: Any) -> None:
        interaction = self._get_open(record)
        if interaction is not None:
            interaction.data[key] = value

    def increment_attempts(self, record: str) -> None:
        interaction = self._get_open(record)
        if interaction is not None:
            interaction.attempts += 1

    def end_interaction(self, record: str, success: bool) -> None:
        interaction = self._get_open(record)
        if interaction is None:
            return
        interaction.end_time = datetime.now(timezone.utc)
        interaction.duration = round(self._clock() - self._started_at[record], 3)
        interaction.success = success
        if self._open == record:
            self._open = None
        logger.debug(
            "Ended interaction %s success=%s duration=%.3fs",
            record,
            success,
            interaction.duration,
        )

    def get(self, record: str) -> InteractionRecord | None:
        return self._records.get(record)

    @property
    def interactions(self) -> list[InteractionRecord]:
        return list(self._records.values())

    def summary(self) -> AnalyticsSummary:
        """Compute totals and the session score.

        Procedures count once per step and earn a point per perfect step.
        Other interactions count once and earn a point when their
        finalScore is at least 100 (or when they carry no finalScore).
        """
        ended = [r for r in self._records.values() if r.ended]
        if not ended:
            return AnalyticsSummary()

        total = 0
        points = 0
        attempts = 0
        failed_attempts = 0
        for record in ended:
            if record.kind == "procedure":
                steps = int(record.data.get("totalSteps", 0))
                total += steps
                points += int(record.data.get("perfectStepsCount", 0))
            else:
                total += 1
                if "finalScore" not in record.data:
                    points += 1
                elif float(record.data["finalScore"]) >= 100:
                    points += 1

            attempts += record.attempts
            if record.success:
                failed_attempts += max(record.attempts - 1, 0)
            else:
                failed_attempts += record.attempts

        return AnalyticsSummary(
            total_interactions=total,
            successful_interactions=points,
            failed_interactions=total - points,
            total_attempts=attempts,
            total_failed_attempts=failed_attempts,
            average_duration=round(sum(r.duration for r in ended) / len(ended), 3),
            success_rate=round(points / total * 100, 2) if total else 0.0,
            score=round(points / total * 100, 2) if total else 100.0,
        )

    def export_json(self) -> str:
        """Serialize the session and its interactions to JSON."""
        payload = {
            "sessionId": self.session_id,
            "interactions": [
                record.model_dump(mode="json") for record in self._records.values()
            ],
            "summary": self.summary().model_dump(mode="json"),
        }
        return json.dumps(payload, indent=2, ensure_ascii=False)

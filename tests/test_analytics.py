"""Unit tests for the in-process analytics sink."""

import json

import pytest

from runtime.analytics import TrainingAnalytics


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink(clock) -> TrainingAnalytics:
    return TrainingAnalytics(clock=clock, session_id="session_test")


class TestInteractionRecords:
    """Tests for the record lifecycle."""

    def test_record_lifecycle(self, sink, clock):
        """Data, attempts, success and duration end up on the record."""
        record = sink.start_interaction("panel_1", "question", "single_choice")
        assert record == "panel_1_question_1"

        sink.add_data(record, "questionKey", "question_1")
        sink.increment_attempts(record)
        clock.now = 2.5
        sink.end_interaction(record, True)

        interaction = sink.get(record)
        assert interaction.ended
        assert interaction.success is True
        assert interaction.attempts == 1
        assert interaction.duration == 2.5
        assert interaction.data == {"questionKey": "question_1"}

    def test_end_is_idempotent(self, sink):
        """A second end does not overwrite the first."""
        record = sink.start_interaction("panel_1", "question", "single_choice")
        sink.end_interaction(record, True)
        sink.end_interaction(record, False)
        assert sink.get(record).success is True

    def test_writes_after_end_are_ignored(self, sink):
        """An ended record no longer accepts data or attempts."""
        record = sink.start_interaction("panel_1", "question", "single_choice")
        sink.end_interaction(record, True)
        sink.add_data(record, "late", 1)
        sink.increment_attempts(record)
        assert "late" not in sink.get(record).data
        assert sink.get(record).attempts == 0

    def test_starting_new_record_fails_open_one(self, sink):
        """Only one interaction is open; a new one ends its predecessor as failed."""
        first = sink.start_interaction("panel_1", "question", "single_choice")
        second = sink.start_interaction("npc_1", "dialogue", "branching")
        assert sink.get(first).ended
        assert sink.get(first).success is False
        assert not sink.get(second).ended

    def test_unknown_record_is_ignored(self, sink):
        """Writing to an unknown record is logged, not raised."""
        sink.add_data("nope", "key", 1)
        sink.increment_attempts("nope")
        sink.end_interaction("nope", True)
        assert sink.interactions == []


class TestSummary:
    """Tests for the session score."""

    def test_empty_summary(self, sink):
        """No ended interaction gives the default summary."""
        summary = sink.summary()
        assert summary.total_interactions == 0
        assert summary.score == 100.0

    def test_open_records_are_excluded(self, sink):
        """Only ended interactions are counted."""
        sink.start_interaction("panel_1", "question", "single_choice")
        assert sink.summary().total_interactions == 0

    def test_mixed_session(self, sink):
        """Questions count once; procedures count once per step."""
        question = sink.start_interaction("panel_1", "question", "single_choice")
        sink.increment_attempts(question)
        sink.add_data(question, "finalScore", 100)
        sink.end_interaction(question, True)

        missed = sink.start_interaction("panel_2", "question", "single_choice")
        sink.increment_attempts(missed)
        sink.add_data(missed, "finalScore", 0)
        sink.end_interaction(missed, False)

        procedure = sink.start_interaction("cabinet_1", "procedure", "sequential")
        sink.increment_attempts(procedure)
        sink.add_data(procedure, "totalSteps", 4)
        sink.add_data(procedure, "perfectStepsCount", 3)
        sink.end_interaction(procedure, True)

        summary = sink.summary()
        assert summary.total_interactions == 6
        assert summary.successful_interactions == 4
        assert summary.failed_interactions == 2
        assert summary.total_attempts == 3
        assert summary.total_failed_attempts == 1
        assert summary.score == 66.67
        assert summary.success_rate == 66.67

    def test_record_without_final_score_counts_as_success(self, sink):
        """Interactions that carry no finalScore earn their point."""
        record = sink.start_interaction("sign_1", "text", "read")
        sink.end_interaction(record, True)
        assert sink.summary().score == 100.0

    def test_retries_count_as_failed_attempts(self, sink):
        """A success after three attempts has two failed attempts."""
        record = sink.start_interaction("panel_1", "question", "single_choice")
        for _ in range(3):
            sink.increment_attempts(record)
        sink.end_interaction(record, True)
        assert sink.summary().total_failed_attempts == 2


class TestExport:
    """Tests for JSON export."""

    def test_export_json(self, sink):
        """The export holds the session id, the records and the summary."""
        record = sink.start_interaction("panel_1", "question", "single_choice")
        sink.add_data(record, "finalScore", 100)
        sink.end_interaction(record, True)

        exported = json.loads(sink.export_json())
        assert exported["sessionId"] == "session_test"
        assert exported["interactions"][0]["interaction_id"] == "panel_1_question_1"
        assert exported["interactions"][0]["data"] == {"finalScore": 100}
        assert exported["summary"]["score"] == 100.0

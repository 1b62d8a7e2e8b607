"""Tests for the reschedule engine."""
from datetime import date

import pytest

from things_mcp.tools.reschedule import (
    RescheduleConfig,
    RescheduleDecision,
    RescheduleValidator,
    SkipReason,
    TodoRecord,
    build_reschedule_batch,
    evaluate,
)

TODAY = date(2026, 2, 28)

NOT_OPEN = "status is not open"
NO_DEADLINE = "no deadline set"
PROTECTED = "explicitly scheduled for today (activationDate = today)"
WOULD_NOT_MOVE = "computed new date would not move to-do out of Today"


def run(records, **config_kwargs):
    todos = [TodoRecord.from_dict(r) for r in records]
    config = RescheduleConfig(**config_kwargs)
    result = evaluate(todos, config, TODAY)
    return result, result.skip_report.summary(config.days_threshold)


class TestTodoRecord:
    def test_from_dict_maps_camel_case(self, make_todo):
        record = TodoRecord.from_dict(make_todo(
            name="Write report",
            due_date="2026-03-20T00:00:00.000Z",
            activation_date="2026-02-27T00:00:00.000Z",
            todo_id="abc",
        ))
        assert record.id == "abc"
        assert record.name == "Write report"
        assert record.status == "open"
        assert record.due_date == "2026-03-20T00:00:00.000Z"
        assert record.activation_date == "2026-02-27T00:00:00.000Z"

    def test_from_dict_missing_dates(self):
        record = TodoRecord.from_dict({"id": "1", "name": "x", "status": "open"})
        assert record.due_date is None
        assert record.activation_date is None

    def test_from_dict_requires_status(self):
        with pytest.raises(KeyError):
            TodoRecord.from_dict({"id": "1", "name": "x", "dueDate": "2026-06-01T00:00:00.000Z"})


class TestEvaluate:
    def test_far_deadline_rescheduled(self, make_todo):
        result, _ = run([make_todo(due_date="2026-03-20T00:00:00.000Z")])

        assert len(result.decisions) == 1
        decision = result.decisions[0].to_dict()
        assert decision["newWhen"] == "2026-03-17"
        assert decision["dueDate"] == "2026-03-20"
        assert decision["daysUntilDue"] == 20
        assert decision["oldWhen"] is None

    def test_close_deadline_skipped(self, make_todo):
        result, summary = run([make_todo(due_date="2026-03-05T00:00:00.000Z")])

        assert result.decisions == []
        assert summary == {"deadline within threshold (< 7 days)": 1}

    def test_no_deadline_skipped(self, make_todo):
        result, summary = run([make_todo()])

        assert result.decisions == []
        assert summary == {NO_DEADLINE: 1}

    @pytest.mark.parametrize("status", ["completed", "canceled"])
    def test_not_open_skipped(self, make_todo, status):
        result, summary = run([make_todo(status=status, due_date="2026-06-01T00:00:00.000Z")])

        assert result.decisions == []
        assert summary == {NOT_OPEN: 1}

    def test_status_checked_before_deadline(self, make_todo):
        """A completed to-do without deadline counts as not open."""
        _, summary = run([make_todo(status="completed")])
        assert summary == {NOT_OPEN: 1}

    def test_activation_today_protected(self, make_todo):
        result, summary = run([make_todo(
            due_date="2026-06-01T00:00:00.000Z",
            activation_date="2026-02-28T00:00:00.000Z",
        )])

        assert result.decisions == []
        assert summary == {PROTECTED: 1}

    def test_activation_today_with_time_of_day_protected(self, make_todo):
        _, summary = run([make_todo(
            due_date="2026-06-01T00:00:00.000Z",
            activation_date="2026-02-28T21:15:00+09:00",
        )])
        assert summary == {PROTECTED: 1}

    def test_activation_yesterday_not_protected(self, make_todo):
        result, _ = run([make_todo(
            due_date="2026-06-01T00:00:00.000Z",
            activation_date="2026-02-27T00:00:00.000Z",
        )])

        assert len(result.decisions) == 1
        assert result.decisions[0].to_dict()["oldWhen"] == "2026-02-27"

    def test_custom_threshold(self, make_todo):
        result, _ = run([make_todo(due_date="2026-03-05T00:00:00.000Z")], days_threshold=3)

        assert len(result.decisions) == 1
        assert result.decisions[0].to_dict()["newWhen"] == "2026-03-02"

    def test_custom_buffer(self, make_todo):
        result, _ = run([make_todo(due_date="2026-03-20T00:00:00.000Z")], buffer_days=5)
        assert result.decisions[0].to_dict()["newWhen"] == "2026-03-15"

    def test_zero_buffer_uses_deadline(self, make_todo):
        result, _ = run([make_todo(due_date="2026-03-20T00:00:00.000Z")], buffer_days=0)
        assert result.decisions[0].to_dict()["newWhen"] == "2026-03-20"

    def test_threshold_exact_is_eligible(self, make_todo):
        result, _ = run([make_todo(due_date="2026-03-07T00:00:00.000Z")])

        assert len(result.decisions) == 1
        assert result.decisions[0].to_dict()["newWhen"] == "2026-03-04"

    def test_threshold_minus_one_is_not_eligible(self, make_todo):
        result, summary = run([make_todo(due_date="2026-03-06T00:00:00.000Z")])

        assert result.decisions == []
        assert summary == {"deadline within threshold (< 7 days)": 1}

    def test_new_when_today_guard(self, make_todo):
        result, summary = run([make_todo(due_date="2026-03-08T00:00:00.000Z")], buffer_days=8)

        assert result.decisions == []
        assert summary == {WOULD_NOT_MOVE: 1}

    def test_new_when_past_guard(self, make_todo):
        result, summary = run([make_todo(due_date="2026-03-08T00:00:00.000Z")], buffer_days=100)

        assert result.decisions == []
        assert summary == {WOULD_NOT_MOVE: 1}

    def test_huge_buffer_skipped_without_overflow(self, make_todo):
        result, summary = run([make_todo(due_date="2026-06-01T00:00:00.000Z")], buffer_days=1_000_000)

        assert result.decisions == []
        assert summary == {WOULD_NOT_MOVE: 1}

    def test_new_when_tomorrow_allowed(self, make_todo):
        result, _ = run([make_todo(due_date="2026-03-08T00:00:00.000Z")], buffer_days=7)
        assert result.decisions[0].to_dict()["newWhen"] == "2026-03-01"

    def test_due_today_with_zero_threshold_hits_guard(self, make_todo):
        _, summary = run([make_todo(due_date="2026-02-28T00:00:00.000Z")], days_threshold=0, buffer_days=0)
        assert summary == {WOULD_NOT_MOVE: 1}

    @pytest.mark.parametrize("due_date", ["2026-02-28T00:00:00.000Z", "2026-02-20T00:00:00.000Z"])
    def test_due_today_or_overdue_not_rescheduled(self, make_todo, due_date):
        result, _ = run([make_todo(due_date=due_date)])
        assert result.decisions == []

    def test_new_when_crosses_year_boundary(self, make_todo):
        result, _ = run([make_todo(due_date="2027-01-02T00:00:00.000Z")])
        assert result.decisions[0].to_dict()["newWhen"] == "2026-12-30"

    def test_mixed_scenario(self, make_todo):
        records = [
            make_todo(todo_id="1", name="Far", due_date="2026-06-01T00:00:00.000Z"),
            make_todo(todo_id="2", name="Close", due_date="2026-03-03T00:00:00.000Z"),
            make_todo(todo_id="3", name="NoDL"),
            make_todo(todo_id="4", name="Done", status="completed", due_date="2026-06-01T00:00:00.000Z"),
            make_todo(
                todo_id="5", name="Protected",
                due_date="2026-06-01T00:00:00.000Z",
                activation_date="2026-02-28T00:00:00.000Z",
            ),
            make_todo(todo_id="6", name="Also Far", due_date="2026-05-15T00:00:00.000Z"),
        ]
        result, summary = run(records)

        assert result.skip_report.total == 6
        assert [d.id for d in result.decisions] == ["1", "6"]
        assert result.decisions[0].to_dict()["newWhen"] == "2026-05-29"
        assert result.decisions[1].to_dict()["newWhen"] == "2026-05-12"
        assert summary[NO_DEADLINE] == 1
        assert summary[NOT_OPEN] == 1
        assert summary[PROTECTED] == 1
        assert summary["deadline within threshold (< 7 days)"] == 1

    def test_empty_list(self):
        result, summary = run([])

        assert result.decisions == []
        assert result.skip_report.total == 0
        assert summary == {}

    def test_skip_counts_aggregate(self, make_todo):
        _, summary = run([make_todo(), make_todo(), make_todo()])
        assert summary[NO_DEADLINE] == 3

    def test_skip_counts_keyed_by_enum(self, make_todo):
        result, _ = run([make_todo(), make_todo(status="canceled")])
        assert result.skip_report.counts[SkipReason.NO_DEADLINE] == 1
        assert result.skip_report.counts[SkipReason.STATUS_NOT_OPEN] == 1

    def test_malformed_due_date_raises(self, make_todo):
        with pytest.raises(ValueError, match="Invalid date"):
            run([make_todo(due_date="soon")])

    def test_deterministic(self, make_todo):
        records = [
            make_todo(due_date="2026-06-01T00:00:00.000Z"),
            make_todo(due_date="2026-03-03T00:00:00.000Z"),
        ]
        first, _ = run(records)
        second, _ = run(records)
        assert first.decisions == second.decisions


class TestSkipReasonLabels:
    def test_threshold_label_includes_value(self):
        assert SkipReason.WITHIN_THRESHOLD.label(10) == "deadline within threshold (< 10 days)"

    def test_every_reason_has_label(self):
        for reason in SkipReason:
            assert reason.label(7)


class TestRescheduleValidator:
    def test_valid(self):
        assert RescheduleValidator.validate_all(7, 3) == {}

    def test_zero_allowed(self):
        assert RescheduleValidator.validate_all(0, 0) == {}

    def test_whole_float_allowed(self):
        assert RescheduleValidator.validate_all(7.0, 3.0) == {}

    def test_negative_rejected(self):
        errors = RescheduleValidator.validate_all(-1, -2)
        assert set(errors) == {"daysThreshold", "bufferDays"}

    @pytest.mark.parametrize("value", [1.5, "7", None, True])
    def test_non_integer_rejected(self, value):
        assert "bufferDays" in RescheduleValidator.validate_all(7, value)


class TestBuildRescheduleBatch:
    def test_one_update_per_decision_in_order(self):
        decisions = [
            RescheduleDecision("id1", "A", None, date(2026, 4, 1), date(2026, 4, 4), 35),
            RescheduleDecision("id2", "B", date(2026, 2, 1), date(2026, 4, 5), date(2026, 4, 8), 39),
        ]

        batch = build_reschedule_batch(decisions)

        assert batch == [
            {"type": "to-do", "operation": "update", "id": "id1", "attributes": {"when": "2026-04-01"}},
            {"type": "to-do", "operation": "update", "id": "id2", "attributes": {"when": "2026-04-05"}},
        ]

    def test_empty(self):
        assert build_reschedule_batch([]) == []

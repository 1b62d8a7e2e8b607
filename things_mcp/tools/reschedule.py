"""Deadline-aware rescheduling of the Today list.

Moves to-dos whose deadline is still far away out of Today, scheduling
them ``buffer_days`` before the deadline. Evaluation is pure: the caller
fetches the Today snapshot, captures ``today`` once, and decides whether
to dispatch the resulting batch.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Literal, Optional

from .dates import days_between, format_calendar_day, shift_days, to_calendar_day

logger = logging.getLogger("things-mcp.reschedule")

TodoStatus = Literal["open", "completed", "canceled"]


class SkipReason(Enum):
    """Why a Today item was left where it is."""
    STATUS_NOT_OPEN = "status_not_open"
    NO_DEADLINE = "no_deadline"
    SCHEDULED_TODAY = "scheduled_today"
    WITHIN_THRESHOLD = "within_threshold"
    WOULD_NOT_MOVE = "would_not_move"

    def label(self, days_threshold: int) -> str:
        if self is SkipReason.WITHIN_THRESHOLD:
            return f"deadline within threshold (< {days_threshold} days)"
        return SKIP_LABELS[self]


SKIP_LABELS = {
    SkipReason.STATUS_NOT_OPEN: "status is not open",
    SkipReason.NO_DEADLINE: "no deadline set",
    SkipReason.SCHEDULED_TODAY: "explicitly scheduled for today (activationDate = today)",
    SkipReason.WOULD_NOT_MOVE: "computed new date would not move to-do out of Today",
}


@dataclass(frozen=True)
class TodoRecord:
    """A to-do as fetched from the Today list."""
    id: str
    name: str
    status: TodoStatus
    due_date: Optional[str] = None
    activation_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "TodoRecord":
        """Build from a JXA record (camelCase keys)."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            status=data["status"],
            due_date=data.get("dueDate") or None,
            activation_date=data.get("activationDate") or None,
        )


@dataclass(frozen=True)
class RescheduleConfig:
    days_threshold: int = 7
    buffer_days: int = 3
    dry_run: bool = False


@dataclass(frozen=True)
class RescheduleDecision:
    id: str
    name: str
    old_when: Optional[date]
    new_when: date
    due_date: date
    days_until_due: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "oldWhen": format_calendar_day(self.old_when) if self.old_when else None,
            "newWhen": format_calendar_day(self.new_when),
            "dueDate": format_calendar_day(self.due_date),
            "daysUntilDue": self.days_until_due,
        }


@dataclass
class SkipReport:
    """Aggregate skip counts. Individual skipped items are not retained."""
    counts: Counter = field(default_factory=Counter)
    total: int = 0

    def add(self, reason: SkipReason):
        self.counts[reason] += 1

    def summary(self, days_threshold: int) -> dict:
        """Counts keyed by human-readable label."""
        return {reason.label(days_threshold): count for reason, count in self.counts.items()}


@dataclass
class RescheduleResult:
    decisions: list
    skip_report: SkipReport


class RescheduleValidator:
    """Validates reschedule tool arguments."""

    @classmethod
    def validate_non_negative_int(cls, value) -> bool:
        """Accept ints and whole floats (JSON clients may send 7.0)."""
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        return value >= 0 and float(value).is_integer()

    @classmethod
    def validate_all(cls, days_threshold, buffer_days) -> dict:
        """Validate tuning parameters.

        Returns:
            Empty dict if valid, otherwise dict with error messages.
        """
        errors = {}
        if not cls.validate_non_negative_int(days_threshold):
            errors["daysThreshold"] = f"Invalid daysThreshold '{days_threshold}'. Must be an integer >= 0"
        if not cls.validate_non_negative_int(buffer_days):
            errors["bufferDays"] = f"Invalid bufferDays '{buffer_days}'. Must be an integer >= 0"
        return errors


def _classify(todo: TodoRecord, config: RescheduleConfig, today: date):
    """Return a RescheduleDecision or the SkipReason that stopped it."""
    if todo.status != "open":
        return SkipReason.STATUS_NOT_OPEN

    if not todo.due_date:
        return SkipReason.NO_DEADLINE

    old_when = to_calendar_day(todo.activation_date) if todo.activation_date else None
    if old_when == today:
        return SkipReason.SCHEDULED_TODAY

    deadline = to_calendar_day(todo.due_date)
    days_until_due = days_between(today, deadline)
    if days_until_due < config.days_threshold:
        return SkipReason.WITHIN_THRESHOLD

    # Same as new_when <= today; checked before shifting so a huge buffer cannot overflow date
    if config.buffer_days >= days_until_due:
        return SkipReason.WOULD_NOT_MOVE
    new_when = shift_days(deadline, -config.buffer_days)

    return RescheduleDecision(
        id=todo.id,
        name=todo.name,
        old_when=old_when,
        new_when=new_when,
        due_date=deadline,
        days_until_due=days_until_due,
    )


def evaluate(todos: list, config: RescheduleConfig, today: date) -> RescheduleResult:
    """Classify each Today item as reschedule or skip.

    Args:
        todos: TodoRecord snapshot of the Today list
        config: Tuning parameters for this invocation
        today: Reference day, captured once by the caller

    Raises:
        ValueError: If a present dueDate/activationDate is not ISO-8601.
    """
    decisions = []
    report = SkipReport(total=len(todos))

    for todo in todos:
        outcome = _classify(todo, config, today)
        if isinstance(outcome, SkipReason):
            report.add(outcome)
        else:
            decisions.append(outcome)

    logger.info(
        f"Evaluated {report.total} Today items: {len(decisions)} to reschedule, "
        f"{sum(report.counts.values())} skipped"
    )
    return RescheduleResult(decisions=decisions, skip_report=report)


def build_reschedule_batch(decisions: list) -> list[dict]:
    """One update entry per decision, in decision order.

    Things applies the entries independently; the batch is not atomic.
    """
    return [
        {
            "type": "to-do",
            "operation": "update",
            "id": decision.id,
            "attributes": {"when": format_calendar_day(decision.new_when)},
        }
        for decision in decisions
    ]

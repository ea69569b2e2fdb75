# recurring_reminders/core/models/results.py
from __future__ import annotations
from collections import Counter
from collections.abc import Iterable
from enum import Enum
from typing import Any
from pydantic import BaseModel, ConfigDict, Field


class TaskOutcome(str, Enum):
    """Terminal state of one selected task within a pass."""

    INVALID_ROW = 'INVALID_ROW'  # row could not be mapped onto a RecurringTask
    INELIGIBLE = 'INELIGIBLE'  # not open / not recurring / unassigned / not due
    NO_INTERVAL = 'NO_INTERVAL'  # frequency has no interval
    LEASE_LOST = 'LEASE_LOST'  # another pass owns or already advanced the task
    LEASE_FAILED = 'LEASE_FAILED'  # lease claim errored
    LOOKUP_FAILED = 'LOOKUP_FAILED'
    ADVANCED_WITHOUT_DEVICE = 'ADVANCED_WITHOUT_DEVICE'
    NO_DEVICE_NOT_ADVANCED = 'NO_DEVICE_NOT_ADVANCED'
    SEND_FAILED = 'SEND_FAILED'
    NOTIFIED = 'NOTIFIED'  # sent and schedule advanced
    NOTIFIED_NOT_ADVANCED = 'NOTIFIED_NOT_ADVANCED'  # sent, update failed; may resend
    UNEXPECTED_ERROR = 'UNEXPECTED_ERROR'  # task raised an unexpected exception


_NOTIFIED = frozenset({TaskOutcome.NOTIFIED, TaskOutcome.NOTIFIED_NOT_ADVANCED})
_SEND_FAILURES = frozenset({
    TaskOutcome.LEASE_FAILED,
    TaskOutcome.LOOKUP_FAILED,
    TaskOutcome.SEND_FAILED,
    TaskOutcome.UNEXPECTED_ERROR,
})
_UPDATED = frozenset({TaskOutcome.NOTIFIED, TaskOutcome.ADVANCED_WITHOUT_DEVICE})


class ReminderRunResult(BaseModel):
    """Counters of one reminder pass, serialized with camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    processed: int = 0
    notified: int = 0
    advanced_without_device: int = Field(default=0, alias='advancedWithoutDevice')
    send_failures: int = Field(default=0, alias='sendFailures')
    updated_schedule: int = Field(default=0, alias='updatedSchedule')
    now_ms: int = Field(..., alias='nowMs')

    @classmethod
    def from_outcomes(
        cls, outcomes: Iterable[TaskOutcome], now_ms: int
    ) -> ReminderRunResult:
        counts = Counter(outcomes)
        return cls(
            processed=sum(counts.values()),
            notified=sum(counts[o] for o in _NOTIFIED),
            advanced_without_device=counts[TaskOutcome.ADVANCED_WITHOUT_DEVICE],
            send_failures=sum(counts[o] for o in _SEND_FAILURES),
            updated_schedule=sum(counts[o] for o in _UPDATED),
            now_ms=now_ms,
        )

    def to_response(self) -> dict[str, Any]:
        return {'success': True, **self.model_dump(by_alias=True)}

# core/types/status.py
"""
Enums shared across the reminder scheduler.
This module should not import from other application modules.
"""

from enum import Enum


class TaskStatus(str, Enum):
    """Status of a task as stored by the task CRUD system."""

    PENDING = 'pending'
    IN_PROGRESS = 'in-progress'
    COMPLETED = 'completed'
    OTHER = 'other'  # any value the scheduler does not recognize

    @classmethod
    def parse(cls, raw: object) -> 'TaskStatus':
        value = str(raw or '').strip().lower()
        for status in cls:
            if status.value == value:
                return status
        return cls.OTHER

    @property
    def is_open(self) -> bool:
        """Whether reminders are still sent for tasks in this status."""
        return self in OPEN_TASK_STATUSES


OPEN_TASK_STATUSES: frozenset[TaskStatus] = frozenset({
    TaskStatus.PENDING,
    TaskStatus.IN_PROGRESS,
})


class Frequency(str, Enum):
    """Recurrence frequency of a recurring task."""

    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'
    NONE = 'none'  # not schedulable

    @classmethod
    def parse(cls, raw: object) -> 'Frequency':
        value = str(raw or '').strip().lower()
        for frequency in cls:
            if frequency.value == value:
                return frequency
        return cls.NONE


SCHEDULABLE_FREQUENCIES: frozenset[Frequency] = frozenset({
    Frequency.DAILY,
    Frequency.WEEKLY,
    Frequency.MONTHLY,
})


# task_type value that marks a row as recurring in the tasks table.
RECURRING_TASK_TYPE = 'recurring'

# recurring_reminders/core/scheduler/__init__.py
"""
Scheduler module for sending recurring task reminders.

Main components:
- ReminderScheduler: Runs one batch pass over due tasks
- TaskScheduleStore: Due-task selection, schedule updates and leases
- DeviceResolver: Assignee push-target lookup
- calculate_next_due: Next due time calculation with catch-up

Example usage:
    from recurring_reminders.core.runtime import ReminderRuntime

    runtime = ReminderRuntime(ReminderConfig.from_env())
    result = await runtime.run_once()
"""

from recurring_reminders.core.scheduler.service import ReminderScheduler
from recurring_reminders.core.scheduler.state import TaskScheduleStore
from recurring_reminders.core.scheduler.devices import DeviceResolver
from recurring_reminders.core.scheduler.result_types import BatchQueryError
from recurring_reminders.core.scheduler.calculator import (
    calculate_next_due,
    interval_ms_for,
    is_due,
)

__all__ = [
    'ReminderScheduler',
    'TaskScheduleStore',
    'DeviceResolver',
    'BatchQueryError',
    'calculate_next_due',
    'interval_ms_for',
    'is_due',
]

"""Recurring Reminders - batch reminder passes for recurring tasks"""

# Install Rust-style error handler on import
from .core.errors import install_error_handler as _install_error_handler

_install_error_handler()

from .core.models.config import ReminderConfig, PostgresConfig, PushConfig
from .core.models.entities import RecurringTask, Device
from .core.models.results import ReminderRunResult, TaskOutcome
from .core.types.status import TaskStatus, Frequency
from .core.types.result import Ok, Err, Result, is_ok, is_err
from .core.errors import (
    ReminderError,
    ConfigurationError,
    UnauthorizedError,
    ErrorCode,
)
from .core.scheduler import (
    ReminderScheduler,
    TaskScheduleStore,
    DeviceResolver,
    BatchQueryError,
    calculate_next_due,
    interval_ms_for,
)
from .core.push.notifier import ReminderNotifier
from .core.runtime import ReminderRuntime

__all__ = [
    # Config
    'ReminderConfig',
    'PostgresConfig',
    'PushConfig',
    # Entities
    'RecurringTask',
    'Device',
    'TaskStatus',
    'Frequency',
    # Results
    'ReminderRunResult',
    'TaskOutcome',
    'Ok',
    'Err',
    'Result',
    'is_ok',
    'is_err',
    # Errors
    'ReminderError',
    'ConfigurationError',
    'UnauthorizedError',
    'ErrorCode',
    'BatchQueryError',
    # Scheduler
    'ReminderScheduler',
    'TaskScheduleStore',
    'DeviceResolver',
    'ReminderNotifier',
    'ReminderRuntime',
    'calculate_next_due',
    'interval_ms_for',
]

"""Typed error types for task-store operations.

Result propagation policy
-------------------------
* **Store layer** (``TaskScheduleStore``, ``DeviceResolver``) -- returns
  ``StoreResult``. Never raises for operational failures (only for
  ``asyncio.CancelledError``).

* **Per-task steps in the scheduler** -- branch on the ``Err``: device
  lookup and schedule update failures are tallied and the pass moves on.
  The next invocation re-selects the task, which is the only retry.

* **Process boundary** (``ReminderScheduler.run_once``) -- the batch query
  ``Err`` is converted to ``BatchQueryError`` and aborts the invocation;
  without the candidate list no partial result is meaningful.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from typing_extensions import TypeAliasType

from recurring_reminders.core.types.result import Result


class StoreErrorCode(str, Enum):
    """Categorized store operation failure codes."""

    SCHEMA_INIT_FAILED = 'SCHEMA_INIT_FAILED'
    TASK_QUERY_FAILED = 'TASK_QUERY_FAILED'
    DEVICE_LOOKUP_FAILED = 'DEVICE_LOOKUP_FAILED'
    SCHEDULE_UPDATE_FAILED = 'SCHEDULE_UPDATE_FAILED'
    LEASE_CLAIM_FAILED = 'LEASE_CLAIM_FAILED'
    LEASE_RELEASE_FAILED = 'LEASE_RELEASE_FAILED'


@dataclass(slots=True, frozen=True)
class StoreOperationError:
    """Error payload carried inside Err(...) for store operations.

    Fields:
        code: which operation category failed
        message: human-readable description
        retryable: whether the failure looks transient (connection loss etc.)
        exception: the original cause (if any)
    """

    code: StoreErrorCode
    message: str
    retryable: bool
    exception: BaseException | None = None


T = TypeVar('T')

StoreResult = TypeAliasType(
    'StoreResult', Result[T, StoreOperationError], type_params=(T,)
)


class BatchQueryError(RuntimeError):
    """Candidate selection failed; the whole invocation is aborted."""

    def __init__(self, error: StoreOperationError) -> None:
        super().__init__(error.message)
        self.error = error


class SchemaInitError(RuntimeError):
    """The lease table could not be created; leasing cannot be honored."""

    def __init__(self, error: StoreOperationError) -> None:
        super().__init__(error.message)
        self.error = error

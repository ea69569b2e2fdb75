# recurring_reminders/core/models/entities.py
"""
Typed entities read from the task store.

Store rows arrive as loose mappings (column names differ between the SQL
schema, API payloads and older exports). RecurringTask.from_row and
Device.from_row are the only places that know those spellings; everything
downstream works with these validated models.
"""

from __future__ import annotations
from collections.abc import Mapping
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from recurring_reminders.core.types.status import (
    Frequency,
    SCHEDULABLE_FREQUENCIES,
    TaskStatus,
)

_TASK_KEYS: dict[str, tuple[str, ...]] = {
    'id': ('id', 'task_id', 'taskId'),
    'description': ('description',),
    'assignee_id': ('assignedTo', 'assigned_to', 'assignee_id', 'assigneeId'),
    'tenant_id': ('company_id', 'companyId', 'tenant_id', 'tenantId'),
    'frequency': ('recurrence_frequency', 'recurrenceFrequency', 'frequency'),
    'next_due_at': (
        'next_recurrence_notification_at',
        'nextRecurrenceNotificationAt',
        'next_due_at',
        'nextDueAt',
    ),
    'status': ('status',),
}

_DEVICE_KEYS: dict[str, tuple[str, ...]] = {
    'employee_id': ('id', 'employee_id', 'employeeId'),
    'tenant_id': ('company_id', 'companyId', 'tenant_id', 'tenantId'),
    'push_token': ('onesignal_id', 'onesignalId', 'push_token', 'pushToken'),
}


def _first(row: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    """Return the first non-None value among the candidate keys."""
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def _clean_id(value: Any) -> Optional[str]:
    text = str(value).strip() if value is not None else ''
    return text or None


class RecurringTask(BaseModel):
    """A recurring task as seen by the reminder scheduler."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    description: str = ''
    assignee_id: Optional[str] = None
    tenant_id: Optional[str] = None
    frequency: Frequency = Frequency.NONE
    next_due_at: Optional[int] = Field(
        default=None, description='Epoch ms of the next reminder, None = never scheduled'
    )
    status: TaskStatus = TaskStatus.OTHER

    @field_validator('next_due_at', mode='before')
    @classmethod
    def coerce_next_due(cls, v: Any) -> Any:
        # 0 / '' are treated as "never scheduled", like a missing value
        if v in (None, '', 0, '0'):
            return None
        if isinstance(v, bool):
            raise ValueError('next_due_at must be an epoch-ms integer')
        if isinstance(v, float):
            if not v.is_integer():
                raise ValueError('next_due_at must be an epoch-ms integer')
            return int(v)
        return v

    @property
    def is_eligible(self) -> bool:
        """Schedulable frequency, open status and an assignee within a tenant."""
        return (
            self.frequency in SCHEDULABLE_FREQUENCIES
            and self.status.is_open
            and self.assignee_id is not None
            and self.tenant_id is not None
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> RecurringTask:
        """
        Map a store row onto a RecurringTask.

        Unknown frequency -> Frequency.NONE, unknown status -> TaskStatus.OTHER,
        blank assignee/tenant -> None.

        Raises:
            pydantic.ValidationError: if id is missing or next_due_at is not an integer
        """
        return cls(
            id=_clean_id(_first(row, _TASK_KEYS['id'])) or '',
            description=str(_first(row, _TASK_KEYS['description']) or '').strip(),
            assignee_id=_clean_id(_first(row, _TASK_KEYS['assignee_id'])),
            tenant_id=_clean_id(_first(row, _TASK_KEYS['tenant_id'])),
            frequency=Frequency.parse(_first(row, _TASK_KEYS['frequency'])),
            next_due_at=_first(row, _TASK_KEYS['next_due_at']),
            status=TaskStatus.parse(_first(row, _TASK_KEYS['status'])),
        )


class Device(BaseModel):
    """Push target of an employee."""

    model_config = ConfigDict(frozen=True)

    employee_id: str
    tenant_id: str
    push_token: Optional[str] = None

    @property
    def can_receive_push(self) -> bool:
        return bool(self.push_token)

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Any],
        *,
        employee_id: str,
        tenant_id: str,
    ) -> Device:
        """Map an employee row; a blank token becomes None."""
        return cls(
            employee_id=_clean_id(_first(row, _DEVICE_KEYS['employee_id'])) or employee_id,
            tenant_id=_clean_id(_first(row, _DEVICE_KEYS['tenant_id'])) or tenant_id,
            push_token=_clean_id(_first(row, _DEVICE_KEYS['push_token'])),
        )

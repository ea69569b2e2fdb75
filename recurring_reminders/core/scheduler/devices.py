# recurring_reminders/core/scheduler/devices.py
from __future__ import annotations
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from recurring_reminders.core.logging import get_logger
from recurring_reminders.core.models.entities import Device
from recurring_reminders.core.scheduler.result_types import (
    StoreErrorCode,
    StoreOperationError,
    StoreResult,
)
from recurring_reminders.core.scheduler.sql import SELECT_DEVICE_SQL
from recurring_reminders.core.types.result import Err, Ok
from recurring_reminders.core.utils.db import is_retryable_connection_error

logger = get_logger('scheduler.devices')


class DeviceResolver:
    """Looks up the push target of a task's assignee within its tenant."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def resolve(
        self, assignee_id: str, tenant_id: str
    ) -> StoreResult[Optional[Device]]:
        """
        Resolve the assignee's device.

        Returns:
            Ok(Device) when the employee exists in the tenant (push_token may
            be None), Ok(None) when no such employee, Err on store failure
        """
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    SELECT_DEVICE_SQL,
                    {'employee_id': assignee_id, 'company_id': tenant_id},
                )
                row = result.mappings().first()
        except Exception as exc:
            return Err(StoreOperationError(
                code=StoreErrorCode.DEVICE_LOOKUP_FAILED,
                message=f"Failed to look up device of employee '{assignee_id}': {exc}",
                retryable=is_retryable_connection_error(exc),
                exception=exc,
            ))

        if row is None:
            logger.debug(
                f"No employee '{assignee_id}' in tenant '{tenant_id}'"
            )
            return Ok(None)

        return Ok(Device.from_row(row, employee_id=assignee_id, tenant_id=tenant_id))

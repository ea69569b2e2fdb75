# recurring_reminders/core/scheduler/state.py
from __future__ import annotations
from typing import Any, Optional
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from recurring_reminders.core.logging import get_logger
from recurring_reminders.core.models.store_pg import TaskModel
from recurring_reminders.core.scheduler.result_types import (
    StoreErrorCode,
    StoreOperationError,
    StoreResult,
)
from recurring_reminders.core.scheduler.sql import (
    CLAIM_LEASE_SQL,
    PURGE_EXPIRED_LEASES_SQL,
    RELEASE_LEASE_SQL,
    UPDATE_NEXT_DUE_SQL,
)
from recurring_reminders.core.types.result import Err, Ok
from recurring_reminders.core.types.status import (
    OPEN_TASK_STATUSES,
    RECURRING_TASK_TYPE,
)
from recurring_reminders.core.utils.db import is_retryable_connection_error

logger = get_logger('scheduler.state')


def _store_error(
    code: StoreErrorCode, message: str, exc: BaseException
) -> Err[StoreOperationError]:
    return Err(StoreOperationError(
        code=code,
        message=f'{message}: {exc}',
        retryable=is_retryable_connection_error(exc),
        exception=exc,
    ))


class TaskScheduleStore:
    """
    Reads due recurring tasks and persists their next reminder time.

    Provides the store operations of one reminder pass:
    - Select due candidates (bounded, deterministic order)
    - Advance next_recurrence_notification_at (monotonic, tenant-scoped)
    - Claim / release a per-task lease so overlapping passes skip each other

    Every operation returns a StoreResult; database failures never raise.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def select_due_tasks(
        self, now_ms: int, limit: int
    ) -> StoreResult[list[dict[str, Any]]]:
        """
        Select recurring, open, assigned tasks whose reminder is due.

        Args:
            now_ms: Current time (epoch ms)
            limit: Maximum rows returned

        Returns:
            Ok(list of raw row mappings), never-scheduled tasks first, then
            oldest due first, ties broken by id
        """
        due_at = TaskModel.next_recurrence_notification_at
        stmt = (
            select(
                TaskModel.id,
                TaskModel.description,
                TaskModel.assigned_to,
                TaskModel.company_id,
                TaskModel.recurrence_frequency,
                TaskModel.next_recurrence_notification_at,
                TaskModel.status,
            )
            .where(TaskModel.task_type == RECURRING_TASK_TYPE)
            .where(TaskModel.status.in_([s.value for s in OPEN_TASK_STATUSES]))
            .where(TaskModel.assigned_to.is_not(None))
            .where(or_(due_at.is_(None), due_at <= now_ms))
            .order_by(due_at.asc().nulls_first(), TaskModel.id.asc())
            .limit(limit)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = [dict(row) for row in result.mappings().all()]
        except Exception as exc:
            return _store_error(
                StoreErrorCode.TASK_QUERY_FAILED, 'Failed to select due tasks', exc
            )

        logger.debug(f'Selected {len(rows)} due recurring task(s) (limit={limit})')
        return Ok(rows)

    async def update_next_due(
        self,
        task_id: str,
        tenant_id: str,
        next_due_ms: int,
    ) -> StoreResult[bool]:
        """
        Persist the next reminder time for one task.

        Returns:
            Ok(True) if the row was updated, Ok(False) if no row matched
            (task gone, tenant mismatch, or a newer value already stored)
        """
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    UPDATE_NEXT_DUE_SQL,
                    {
                        'task_id': task_id,
                        'company_id': tenant_id,
                        'next_due': next_due_ms,
                    },
                )
                await session.commit()
        except Exception as exc:
            return _store_error(
                StoreErrorCode.SCHEDULE_UPDATE_FAILED,
                f"Failed to update next due for task '{task_id}'",
                exc,
            )

        rows_updated = getattr(result, 'rowcount', 0)
        if rows_updated == 0:
            logger.warning(
                f"Next due not updated for task '{task_id}' - not found or already advanced"
            )
            return Ok(False)

        logger.debug(f"Updated task '{task_id}': next_due={next_due_ms}")
        return Ok(True)

    async def claim_lease(
        self,
        task_id: str,
        tenant_id: str,
        *,
        expected_due_ms: Optional[int],
        claimed_by: str,
        now_ms: int,
        lease_ms: int,
    ) -> StoreResult[bool]:
        """
        Claim a task for this pass.

        Granted only while the task still carries ``expected_due_ms`` and
        no other pass holds a live lease on it.

        Returns:
            Ok(True) if claimed, Ok(False) if another pass owns or already
            advanced the task
        """
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    CLAIM_LEASE_SQL,
                    {
                        'task_id': task_id,
                        'company_id': tenant_id,
                        'expected_due': expected_due_ms,
                        'claimed_by': claimed_by,
                        'now': now_ms,
                        'lease_expires_at': now_ms + lease_ms,
                    },
                )
                claimed = result.fetchone() is not None
                await session.commit()
        except Exception as exc:
            return _store_error(
                StoreErrorCode.LEASE_CLAIM_FAILED,
                f"Failed to claim lease for task '{task_id}'",
                exc,
            )

        if not claimed:
            logger.debug(f"Lease for task '{task_id}' not granted to {claimed_by}")
        return Ok(claimed)

    async def release_lease(
        self, task_id: str, tenant_id: str, *, claimed_by: str
    ) -> StoreResult[bool]:
        """Drop this pass's lease. Ok(False) if it had already been taken over."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    RELEASE_LEASE_SQL,
                    {
                        'task_id': task_id,
                        'company_id': tenant_id,
                        'claimed_by': claimed_by,
                    },
                )
                await session.commit()
        except Exception as exc:
            return _store_error(
                StoreErrorCode.LEASE_RELEASE_FAILED,
                f"Failed to release lease for task '{task_id}'",
                exc,
            )
        return Ok(getattr(result, 'rowcount', 0) > 0)

    async def purge_expired_leases(self, now_ms: int) -> StoreResult[int]:
        """Delete leases left behind by passes that died mid-task."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    PURGE_EXPIRED_LEASES_SQL, {'now': now_ms}
                )
                await session.commit()
        except Exception as exc:
            return _store_error(
                StoreErrorCode.LEASE_RELEASE_FAILED, 'Failed to purge expired leases', exc
            )

        purged = getattr(result, 'rowcount', 0) or 0
        if purged:
            logger.info(f'Purged {purged} expired reminder lease(s)')
        return Ok(purged)

# recurring_reminders/core/scheduler/service.py
from __future__ import annotations
import asyncio
import time
import uuid
from collections.abc import Callable, Mapping
from typing import Any, Optional, Protocol
from pydantic import ValidationError
from recurring_reminders.core.logging import get_logger
from recurring_reminders.core.models.config import ReminderConfig
from recurring_reminders.core.models.entities import Device, RecurringTask
from recurring_reminders.core.models.results import ReminderRunResult, TaskOutcome
from recurring_reminders.core.push.result_types import PushResult
from recurring_reminders.core.scheduler.calculator import (
    calculate_next_due,
    is_due,
    now_ms as current_time_ms,
)
from recurring_reminders.core.scheduler.result_types import (
    BatchQueryError,
    StoreResult,
)
from recurring_reminders.core.types.result import is_err

logger = get_logger('scheduler')


class ScheduleStore(Protocol):
    async def select_due_tasks(
        self, now_ms: int, limit: int
    ) -> StoreResult[list[dict[str, Any]]]: ...

    async def update_next_due(
        self, task_id: str, tenant_id: str, next_due_ms: int
    ) -> StoreResult[bool]: ...

    async def claim_lease(
        self,
        task_id: str,
        tenant_id: str,
        *,
        expected_due_ms: Optional[int],
        claimed_by: str,
        now_ms: int,
        lease_ms: int,
    ) -> StoreResult[bool]: ...

    async def release_lease(
        self, task_id: str, tenant_id: str, *, claimed_by: str
    ) -> StoreResult[bool]: ...

    async def purge_expired_leases(self, now_ms: int) -> StoreResult[int]: ...


class Resolver(Protocol):
    async def resolve(
        self, assignee_id: str, tenant_id: str
    ) -> StoreResult[Optional[Device]]: ...


class Notifier(Protocol):
    async def notify(self, task: RecurringTask, device: Device) -> PushResult[str]: ...


class ReminderScheduler:
    """
    Runs one reminder pass per invocation.

    Responsibilities:
    1. Select due recurring tasks (bounded batch)
    2. Compute each task's next due time with catch-up
    3. Optionally lease the task against overlapping passes
    4. Resolve the assignee's device and dispatch one notification
    5. Advance the stored schedule and tally the outcome

    Not self-scheduling: an external trigger (cron, HTTP call, CLI) decides
    when run_once() happens.

    Due checks use the fixed pass time. Lease claims use the pass time plus
    the time elapsed since the pass started (measured with `clock`, seconds),
    so a lease taken late in a long pass still lasts lease_ms.
    """

    def __init__(
        self,
        config: ReminderConfig,
        store: ScheduleStore,
        resolver: Resolver,
        notifier: Notifier,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.store = store
        self.resolver = resolver
        self.notifier = notifier
        self.clock = clock

    async def run_once(self, now_ms: Optional[int] = None) -> ReminderRunResult:
        """
        Execute one batch pass.

        Args:
            now_ms: Pass time (epoch ms); defaults to the current time.
                Fixed for the whole pass.

        Returns:
            ReminderRunResult with the pass counters

        Raises:
            BatchQueryError: if candidate selection fails
        """
        pass_now = current_time_ms() if now_ms is None else now_ms
        started = self.clock()
        pass_id = uuid.uuid4().hex
        logger.info(
            f'Reminder pass {pass_id[:8]} started: now_ms={pass_now} '
            f'limit={self.config.batch_limit} concurrency={self.config.max_concurrency}'
        )

        if self.config.leasing_enabled:
            purge = await self.store.purge_expired_leases(pass_now)
            if is_err(purge):
                logger.warning(
                    f'Could not purge expired leases: {purge.err_value.message}'
                )

        selected = await self.store.select_due_tasks(pass_now, self.config.batch_limit)
        if is_err(selected):
            logger.error(f'Due task query failed: {selected.err_value.message}')
            raise BatchQueryError(selected.err_value)
        rows = selected.ok_value

        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def bounded(row: Mapping[str, Any]) -> TaskOutcome:
            async with semaphore:
                try:
                    return await self._process_row(row, pass_now, pass_id, started)
                except Exception as e:
                    logger.error(
                        f'Unexpected error processing task {row.get("id")!r}: {e}',
                        exc_info=True,
                    )
                    return TaskOutcome.UNEXPECTED_ERROR

        outcomes = await asyncio.gather(*(bounded(row) for row in rows))
        result = ReminderRunResult.from_outcomes(outcomes, pass_now)

        logger.info(
            f'Reminder pass {pass_id[:8]} finished: processed={result.processed} '
            f'notified={result.notified} '
            f'advanced_without_device={result.advanced_without_device} '
            f'send_failures={result.send_failures} '
            f'updated_schedule={result.updated_schedule}'
        )
        return result

    async def _process_row(
        self,
        row: Mapping[str, Any],
        now_ms: int,
        pass_id: str,
        started: float,
    ) -> TaskOutcome:
        try:
            task = RecurringTask.from_row(row)
        except ValidationError as e:
            logger.warning(f'Skipping malformed task row {row.get("id")!r}: {e}')
            return TaskOutcome.INVALID_ROW

        if not task.is_eligible or not is_due(task.next_due_at, now_ms):
            logger.debug(f"Task '{task.id}' is not eligible for a reminder")
            return TaskOutcome.INELIGIBLE

        next_due = calculate_next_due(task.next_due_at, now_ms, task.frequency)
        if next_due is None:
            logger.warning(
                f"Task '{task.id}' has no interval for frequency {task.frequency.value!r}"
            )
            return TaskOutcome.NO_INTERVAL

        if not self.config.leasing_enabled:
            return await self._remind(task, next_due)

        # is_eligible guarantees tenant_id is set
        tenant_id = task.tenant_id or ''
        claimed_at = now_ms + int((self.clock() - started) * 1000)
        claim = await self.store.claim_lease(
            task.id,
            tenant_id,
            expected_due_ms=task.next_due_at,
            claimed_by=pass_id,
            now_ms=claimed_at,
            lease_ms=self.config.lease_ms,
        )
        if is_err(claim):
            logger.error(
                f"Lease claim failed for task '{task.id}' (tenant={tenant_id}): "
                f'{claim.err_value.message}'
            )
            return TaskOutcome.LEASE_FAILED
        if not claim.ok_value:
            logger.info(
                f"Task '{task.id}' (tenant={tenant_id}) is held or already advanced "
                'by another pass, skipping'
            )
            return TaskOutcome.LEASE_LOST

        try:
            return await self._remind(task, next_due)
        finally:
            released = await self.store.release_lease(
                task.id, tenant_id, claimed_by=pass_id
            )
            if is_err(released):
                logger.warning(
                    f"Lease release failed for task '{task.id}': "
                    f'{released.err_value.message} (expires on its own)'
                )

    async def _remind(self, task: RecurringTask, next_due: int) -> TaskOutcome:
        assignee_id = task.assignee_id or ''
        tenant_id = task.tenant_id or ''

        resolved = await self.resolver.resolve(assignee_id, tenant_id)
        if is_err(resolved):
            logger.error(
                f"Device lookup failed for task '{task.id}' (tenant={tenant_id}): "
                f'{resolved.err_value.message}'
            )
            return TaskOutcome.LOOKUP_FAILED

        device = resolved.ok_value
        if device is None or not device.can_receive_push:
            # Advance anyway so the task is not re-selected every pass.
            if await self._advance(task, next_due):
                logger.info(
                    f"Task '{task.id}': assignee '{assignee_id}' has no device, "
                    f'advanced to {next_due}'
                )
                return TaskOutcome.ADVANCED_WITHOUT_DEVICE
            return TaskOutcome.NO_DEVICE_NOT_ADVANCED

        sent = await self.notifier.notify(task, device)
        if is_err(sent):
            return TaskOutcome.SEND_FAILED

        if await self._advance(task, next_due):
            logger.info(
                f"Task '{task.id}': reminder sent (notification={sent.ok_value or '-'}), "
                f'next due {next_due}'
            )
            return TaskOutcome.NOTIFIED

        logger.warning(
            f"Task '{task.id}': reminder sent but schedule not advanced; "
            'it may be re-sent on the next pass'
        )
        return TaskOutcome.NOTIFIED_NOT_ADVANCED

    async def _advance(self, task: RecurringTask, next_due: int) -> bool:
        updated = await self.store.update_next_due(
            task.id, task.tenant_id or '', next_due
        )
        if is_err(updated):
            logger.error(
                f"Schedule update failed for task '{task.id}' "
                f'(tenant={task.tenant_id}): {updated.err_value.message}'
            )
            return False
        return updated.ok_value

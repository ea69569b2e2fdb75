# recurring_reminders/core/runtime.py
from __future__ import annotations
import asyncio
from typing import Optional
from recurring_reminders.core.database import ReminderDatabase
from recurring_reminders.core.logging import get_logger
from recurring_reminders.core.models.config import ReminderConfig
from recurring_reminders.core.models.results import ReminderRunResult
from recurring_reminders.core.push.client import close_push_client, get_push_client
from recurring_reminders.core.push.notifier import ReminderNotifier
from recurring_reminders.core.scheduler.devices import DeviceResolver
from recurring_reminders.core.scheduler.result_types import SchemaInitError
from recurring_reminders.core.scheduler.service import ReminderScheduler
from recurring_reminders.core.scheduler.state import TaskScheduleStore
from recurring_reminders.core.types.result import is_err

logger = get_logger('runtime')


class ReminderRuntime:
    """
    Wires the database, push client and scheduler for one process.

    Built once per process (CLI run or HTTP app) and reused by every pass.
    """

    def __init__(self, config: ReminderConfig):
        self.config = config
        self.database = ReminderDatabase(config.database)
        self.scheduler = ReminderScheduler(
            config,
            store=TaskScheduleStore(self.database.session_factory),
            resolver=DeviceResolver(self.database.session_factory),
            notifier=ReminderNotifier(config.push, get_push_client(config.push)),
        )
        self._started = False
        self._start_lock = asyncio.Lock()

    async def start(self) -> None:
        """
        Create the lease table when leasing is enabled.

        Raises:
            SchemaInitError: if the lease table cannot be created
        """
        if self._started:
            return
        async with self._start_lock:
            if self._started:
                return
            if self.config.leasing_enabled:
                ensured = await self.database.ensure_schema()
                if is_err(ensured):
                    logger.error(
                        f'Lease table init failed: {ensured.err_value.message}'
                    )
                    raise SchemaInitError(ensured.err_value)
            self._started = True

    async def run_once(self, now_ms: Optional[int] = None) -> ReminderRunResult:
        await self.start()
        return await self.scheduler.run_once(now_ms)

    async def close(self) -> None:
        await close_push_client()
        await self.database.close()
        logger.debug('Runtime closed')

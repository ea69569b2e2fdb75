# recurring_reminders/core/database.py
from __future__ import annotations
import hashlib
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from recurring_reminders.core.logging import get_logger
from recurring_reminders.core.models.config import PostgresConfig
from recurring_reminders.core.models.store_pg import ReminderLeaseModel
from recurring_reminders.core.scheduler.result_types import (
    StoreErrorCode,
    StoreOperationError,
    StoreResult,
)
from recurring_reminders.core.scheduler.sql import (
    CHECK_CONNECTION_SQL,
    SCHEMA_ADVISORY_LOCK_SQL,
)
from recurring_reminders.core.types.result import Err, Ok
from recurring_reminders.core.utils.db import is_retryable_connection_error
from recurring_reminders.core.utils.url import mask_database_url


class ReminderDatabase:
    """
    Async engine + session factory for the task store.

    The tasks and employees tables belong to the CRUD system and are never
    created here. ensure_schema() only creates the scheduler's own lease
    table, guarded by an advisory lock so concurrent invocations do not
    race on DDL.
    """

    def __init__(self, config: PostgresConfig):
        self.config = config
        self.logger = get_logger('database')

        engine_cfg = self.config.model_dump(exclude={'database_url'}, exclude_none=True)
        self.async_engine: AsyncEngine = create_async_engine(
            self.config.database_url, **engine_cfg
        )
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.async_engine, expire_on_commit=False
        )
        self._schema_ready = False

        self.logger.info(
            f'Database engine created for {mask_database_url(self.config.database_url)}'
        )

    def _schema_advisory_key(self) -> int:
        """Stable 64-bit advisory lock key, distinct per database URL."""
        basis = self.config.database_url.encode('utf-8', errors='ignore')
        h = hashlib.sha256(b'recurring-reminders-schema:' + basis).digest()
        return int.from_bytes(h[:8], byteorder='big', signed=True)

    async def ensure_schema(self) -> StoreResult[None]:
        """Create the lease table if missing. Safe to call repeatedly."""
        if self._schema_ready:
            return Ok(None)
        try:
            async with self.async_engine.begin() as conn:
                await conn.execute(
                    SCHEMA_ADVISORY_LOCK_SQL,
                    {'key': self._schema_advisory_key()},
                )
                await conn.run_sync(
                    ReminderLeaseModel.metadata.create_all,
                    tables=[ReminderLeaseModel.__table__],
                )
        except Exception as exc:
            return Err(StoreOperationError(
                code=StoreErrorCode.SCHEMA_INIT_FAILED,
                message=f'Failed to create lease table: {exc}',
                retryable=is_retryable_connection_error(exc),
                exception=exc,
            ))
        self._schema_ready = True
        self.logger.info('Lease table ready')
        return Ok(None)

    async def check_connection(self) -> StoreResult[None]:
        """Run SELECT 1 against the store."""
        try:
            async with self.session_factory() as session:
                await session.execute(CHECK_CONNECTION_SQL)
        except Exception as exc:
            return Err(StoreOperationError(
                code=StoreErrorCode.TASK_QUERY_FAILED,
                message=f'Database connectivity check failed: {exc}',
                retryable=is_retryable_connection_error(exc),
                exception=exc,
            ))
        return Ok(None)

    async def close(self) -> None:
        await self.async_engine.dispose()

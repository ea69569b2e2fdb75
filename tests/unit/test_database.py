"""Tests for ReminderDatabase and ReminderRuntime startup (mocked engine)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from recurring_reminders.core.database import ReminderDatabase
from recurring_reminders.core.models.config import (
    PostgresConfig,
    PushConfig,
    ReminderConfig,
)
from recurring_reminders.core.models.store_pg import ReminderLeaseModel
from recurring_reminders.core.push.client import close_push_client
from recurring_reminders.core.runtime import ReminderRuntime
from recurring_reminders.core.scheduler.result_types import (
    SchemaInitError,
    StoreErrorCode,
    StoreOperationError,
)
from recurring_reminders.core.scheduler.sql import SCHEMA_ADVISORY_LOCK_SQL
from recurring_reminders.core.types.result import Err, Ok, is_err, is_ok

DB_URL = 'postgresql+psycopg://app:pw@localhost:5432/tasks'


def _mock_engine(conn: AsyncMock) -> MagicMock:
    engine = MagicMock()
    engine.begin.return_value.__aenter__ = AsyncMock(return_value=conn)
    engine.begin.return_value.__aexit__ = AsyncMock(return_value=False)
    engine.dispose = AsyncMock()
    return engine


def _config(lease_ms: int) -> ReminderConfig:
    return ReminderConfig(
        database=PostgresConfig(database_url=DB_URL),
        push=PushConfig(app_id='app', api_key='key'),
        lease_ms=lease_ms,
    )


@pytest.mark.unit
class TestEnsureSchema:
    """Tests for ReminderDatabase.ensure_schema."""

    @pytest.mark.asyncio
    async def test_locks_then_creates_lease_table_once(self) -> None:
        db = ReminderDatabase(PostgresConfig(database_url=DB_URL))
        conn = AsyncMock()
        db.async_engine = _mock_engine(conn)

        first = await db.ensure_schema()
        second = await db.ensure_schema()

        assert is_ok(first) and is_ok(second)
        assert conn.execute.await_count == 1
        stmt, params = conn.execute.call_args[0]
        assert stmt is SCHEMA_ADVISORY_LOCK_SQL
        assert isinstance(params['key'], int)
        conn.run_sync.assert_awaited_once()
        assert conn.run_sync.call_args.kwargs['tables'] == [ReminderLeaseModel.__table__]

    @pytest.mark.asyncio
    async def test_failure_returns_err_and_retries_next_time(self) -> None:
        db = ReminderDatabase(PostgresConfig(database_url=DB_URL))
        conn = AsyncMock()
        conn.run_sync = AsyncMock(side_effect=[RuntimeError('permission denied'), None])
        db.async_engine = _mock_engine(conn)

        first = await db.ensure_schema()
        second = await db.ensure_schema()

        assert is_err(first)
        assert first.err_value.code == StoreErrorCode.SCHEMA_INIT_FAILED
        assert is_ok(second)

    def test_advisory_key_is_stable_per_url(self) -> None:
        a = ReminderDatabase(PostgresConfig(database_url=DB_URL))
        b = ReminderDatabase(PostgresConfig(database_url=DB_URL))
        c = ReminderDatabase(PostgresConfig(database_url=DB_URL + '2'))

        assert a._schema_advisory_key() == b._schema_advisory_key()
        assert a._schema_advisory_key() != c._schema_advisory_key()
        assert -(2**63) <= a._schema_advisory_key() < 2**63

    @pytest.mark.asyncio
    async def test_close_disposes_engine(self) -> None:
        db = ReminderDatabase(PostgresConfig(database_url=DB_URL))
        engine = _mock_engine(AsyncMock())
        db.async_engine = engine

        await db.close()

        engine.dispose.assert_awaited_once()


@pytest.mark.unit
class TestRuntimeStart:
    """Tests for ReminderRuntime.start."""

    @pytest.mark.asyncio
    async def test_leasing_disabled_skips_schema(self) -> None:
        runtime = ReminderRuntime(_config(lease_ms=0))
        runtime.database.ensure_schema = AsyncMock(return_value=Ok(None))  # type: ignore[method-assign]
        try:
            await runtime.start()
        finally:
            await close_push_client()

        runtime.database.ensure_schema.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_schema_failure_raises(self) -> None:
        runtime = ReminderRuntime(_config(lease_ms=60_000))
        runtime.database.ensure_schema = AsyncMock(  # type: ignore[method-assign]
            return_value=Err(StoreOperationError(
                code=StoreErrorCode.SCHEMA_INIT_FAILED,
                message='Failed to create lease table: denied',
                retryable=False,
            ))
        )
        try:
            with pytest.raises(SchemaInitError, match='denied'):
                await runtime.start()
        finally:
            await close_push_client()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self) -> None:
        runtime = ReminderRuntime(_config(lease_ms=60_000))
        runtime.database.ensure_schema = AsyncMock(return_value=Ok(None))  # type: ignore[method-assign]
        try:
            await runtime.start()
            await runtime.start()
        finally:
            await close_push_client()

        runtime.database.ensure_schema.assert_awaited_once()

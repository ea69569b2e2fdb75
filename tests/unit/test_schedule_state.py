"""Tests for TaskScheduleStore (async DB operations via mocked sessions)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from psycopg import OperationalError

from recurring_reminders.core.scheduler.result_types import StoreErrorCode
from recurring_reminders.core.scheduler.sql import (
    CLAIM_LEASE_SQL,
    PURGE_EXPIRED_LEASES_SQL,
    RELEASE_LEASE_SQL,
    UPDATE_NEXT_DUE_SQL,
)
from recurring_reminders.core.scheduler.state import TaskScheduleStore
from recurring_reminders.core.types.result import is_err, is_ok

NOW = 1_750_000_000_000


# =============================================================================
# Helpers
# =============================================================================


def _make_store() -> tuple[TaskScheduleStore, AsyncMock]:
    """Create a TaskScheduleStore with a mocked async session factory.

    Returns (store, mock_session).
    The session mock is configured as an async context manager.
    """
    mock_session = AsyncMock()

    mock_factory = MagicMock()
    mock_factory.return_value.__aenter__ = AsyncMock(return_value=mock_session)
    mock_factory.return_value.__aexit__ = AsyncMock(return_value=False)

    return TaskScheduleStore(session_factory=mock_factory), mock_session


def _result(rowcount: int = 1) -> MagicMock:
    result = MagicMock()
    result.rowcount = rowcount
    return result


# =============================================================================
# select_due_tasks
# =============================================================================


@pytest.mark.unit
class TestSelectDueTasks:
    """Tests for TaskScheduleStore.select_due_tasks."""

    @pytest.mark.asyncio
    async def test_returns_rows_as_dicts(self) -> None:
        store, session = _make_store()
        rows = [
            {'id': 't-1', 'assigned_to': 'e-1', 'next_recurrence_notification_at': None},
            {'id': 't-2', 'assigned_to': 'e-2', 'next_recurrence_notification_at': 5},
        ]
        mock_result = MagicMock()
        mock_result.mappings.return_value.all.return_value = rows
        session.execute = AsyncMock(return_value=mock_result)

        result = await store.select_due_tasks(NOW, 200)

        assert is_ok(result)
        assert result.ok_value == rows
        assert all(isinstance(r, dict) for r in result.ok_value)

    @pytest.mark.asyncio
    async def test_query_filters_orders_and_limits(self) -> None:
        store, session = _make_store()
        mock_result = MagicMock()
        mock_result.mappings.return_value.all.return_value = []
        session.execute = AsyncMock(return_value=mock_result)

        await store.select_due_tasks(NOW, 25)

        stmt = session.execute.call_args[0][0]
        sql = str(stmt.compile(compile_kwargs={'literal_binds': True}))
        assert "tasks.task_type = 'recurring'" in sql
        assert "'pending'" in sql and "'in-progress'" in sql
        assert 'tasks."assignedTo" IS NOT NULL' in sql
        assert 'tasks.next_recurrence_notification_at IS NULL' in sql
        assert f'tasks.next_recurrence_notification_at <= {NOW}' in sql
        assert 'ORDER BY tasks.next_recurrence_notification_at ASC NULLS FIRST, tasks.id ASC' in sql
        assert 'LIMIT 25' in sql

    @pytest.mark.asyncio
    async def test_db_error_returns_err(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(side_effect=OperationalError('connection refused'))

        result = await store.select_due_tasks(NOW, 200)

        assert is_err(result)
        assert result.err_value.code == StoreErrorCode.TASK_QUERY_FAILED
        assert result.err_value.retryable is True
        assert isinstance(result.err_value.exception, OperationalError)


# =============================================================================
# update_next_due
# =============================================================================


@pytest.mark.unit
class TestUpdateNextDue:
    """Tests for TaskScheduleStore.update_next_due."""

    @pytest.mark.asyncio
    async def test_updates_and_commits(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(return_value=_result(1))

        result = await store.update_next_due('t-1', 'co-1', NOW + 1000)

        assert is_ok(result)
        assert result.ok_value is True
        session.execute.assert_awaited_once_with(
            UPDATE_NEXT_DUE_SQL,
            {'task_id': 't-1', 'company_id': 'co-1', 'next_due': NOW + 1000},
        )
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_zero_rows_is_ok_false(self) -> None:
        """Missing task, wrong tenant or a newer stored value."""
        store, session = _make_store()
        session.execute = AsyncMock(return_value=_result(0))

        result = await store.update_next_due('t-1', 'co-1', NOW)

        assert is_ok(result)
        assert result.ok_value is False

    @pytest.mark.asyncio
    async def test_commit_failure_returns_err(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(return_value=_result(1))
        session.commit = AsyncMock(side_effect=RuntimeError('commit failed'))

        result = await store.update_next_due('t-1', 'co-1', NOW)

        assert is_err(result)
        assert result.err_value.code == StoreErrorCode.SCHEDULE_UPDATE_FAILED
        assert result.err_value.retryable is False

    def test_update_sql_is_monotonic_and_tenant_scoped(self) -> None:
        sql = str(UPDATE_NEXT_DUE_SQL)
        assert 'company_id = :company_id' in sql
        assert 'next_recurrence_notification_at <= :next_due' in sql


# =============================================================================
# Leases
# =============================================================================


@pytest.mark.unit
class TestLeases:
    """Tests for claim_lease / release_lease / purge_expired_leases."""

    @pytest.mark.asyncio
    async def test_claim_granted_when_row_returned(self) -> None:
        store, session = _make_store()
        claim_result = MagicMock()
        claim_result.fetchone.return_value = ('t-1',)
        session.execute = AsyncMock(return_value=claim_result)

        result = await store.claim_lease(
            't-1', 'co-1',
            expected_due_ms=None, claimed_by='pass-a', now_ms=NOW, lease_ms=60_000,
        )

        assert is_ok(result)
        assert result.ok_value is True
        session.execute.assert_awaited_once_with(
            CLAIM_LEASE_SQL,
            {
                'task_id': 't-1',
                'company_id': 'co-1',
                'expected_due': None,
                'claimed_by': 'pass-a',
                'now': NOW,
                'lease_expires_at': NOW + 60_000,
            },
        )
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_claim_refused_when_no_row_returned(self) -> None:
        store, session = _make_store()
        claim_result = MagicMock()
        claim_result.fetchone.return_value = None
        session.execute = AsyncMock(return_value=claim_result)

        result = await store.claim_lease(
            't-1', 'co-1',
            expected_due_ms=NOW - 10, claimed_by='pass-b', now_ms=NOW, lease_ms=60_000,
        )

        assert is_ok(result)
        assert result.ok_value is False

    @pytest.mark.asyncio
    async def test_claim_error(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(side_effect=TimeoutError())

        result = await store.claim_lease(
            't-1', 'co-1',
            expected_due_ms=None, claimed_by='p', now_ms=NOW, lease_ms=1,
        )

        assert is_err(result)
        assert result.err_value.code == StoreErrorCode.LEASE_CLAIM_FAILED
        assert result.err_value.retryable is True

    def test_claim_sql_is_compare_and_swap_with_expiry(self) -> None:
        sql = str(CLAIM_LEASE_SQL)
        assert 'COALESCE(t.next_recurrence_notification_at, 0)' in sql
        assert 'COALESCE(CAST(:expected_due AS BIGINT), 0)' in sql
        assert 'ON CONFLICT (task_id, company_id) DO UPDATE' in sql
        assert 'WHERE l.lease_expires_at <= :now' in sql

    @pytest.mark.asyncio
    async def test_release_only_own_lease(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(return_value=_result(1))

        result = await store.release_lease('t-1', 'co-1', claimed_by='pass-a')

        assert is_ok(result)
        assert result.ok_value is True
        session.execute.assert_awaited_once_with(
            RELEASE_LEASE_SQL,
            {'task_id': 't-1', 'company_id': 'co-1', 'claimed_by': 'pass-a'},
        )

    @pytest.mark.asyncio
    async def test_release_of_taken_over_lease(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(return_value=_result(0))

        result = await store.release_lease('t-1', 'co-1', claimed_by='pass-a')

        assert is_ok(result)
        assert result.ok_value is False

    @pytest.mark.asyncio
    async def test_purge_returns_count(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(return_value=_result(3))

        result = await store.purge_expired_leases(NOW)

        assert is_ok(result)
        assert result.ok_value == 3
        session.execute.assert_awaited_once_with(PURGE_EXPIRED_LEASES_SQL, {'now': NOW})

    @pytest.mark.asyncio
    async def test_purge_error(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(side_effect=RuntimeError('boom'))

        result = await store.purge_expired_leases(NOW)

        assert is_err(result)
        assert result.err_value.code == StoreErrorCode.LEASE_RELEASE_FAILED

"""Tests for reminder message building and ReminderNotifier."""

from __future__ import annotations

from typing import Any

import pytest

from recurring_reminders.core.models.config import PushConfig
from recurring_reminders.core.models.entities import Device, RecurringTask
from recurring_reminders.core.push.notifier import (
    ReminderNotifier,
    build_payload,
    build_reminder_body,
)
from recurring_reminders.core.push.result_types import (
    PushError,
    PushErrorCode,
    PushResult,
)
from recurring_reminders.core.types.result import Err, Ok, is_err, is_ok

CONFIG = PushConfig(app_id='app-1', api_key='key')
DEVICE = Device(employee_id='emp-1', tenant_id='co-1', push_token='player-1')


def _task(description: str = 'Submit timesheet', frequency: str = 'weekly') -> RecurringTask:
    return RecurringTask.from_row({
        'id': 't-7',
        'description': description,
        'assignedTo': 'emp-1',
        'company_id': 'co-1',
        'recurrence_frequency': frequency,
        'status': 'pending',
    })


class FakeTransport:
    def __init__(self, result: PushResult[dict[str, Any]]):
        self.result = result
        self.payloads: list[dict[str, Any]] = []

    async def send(self, payload: dict[str, Any]) -> PushResult[dict[str, Any]]:
        self.payloads.append(payload)
        return self.result


@pytest.mark.unit
class TestMessageBuilding:
    """Tests for build_reminder_body / build_payload."""

    def test_body_with_description(self) -> None:
        assert build_reminder_body(_task()) == 'Reminder (weekly): Submit timesheet'

    def test_body_without_description(self) -> None:
        assert (
            build_reminder_body(_task(description='  ', frequency='daily'))
            == 'You have a daily recurring task reminder.'
        )

    def test_payload_shape(self) -> None:
        payload = build_payload(CONFIG, _task(), 'player-1')

        assert payload == {
            'app_id': 'app-1',
            'include_player_ids': ['player-1'],
            'headings': {'en': 'Recurring Task Reminder'},
            'contents': {'en': 'Reminder (weekly): Submit timesheet'},
            'url': 'https://final-test-task-pro.vercel.app/',
            'data': {
                'type': 'recurring_reminder',
                'task_id': 't-7',
                'recurrence_frequency': 'weekly',
            },
        }


@pytest.mark.unit
class TestReminderNotifier:
    """Tests for ReminderNotifier.notify."""

    @pytest.mark.asyncio
    async def test_returns_notification_id(self) -> None:
        transport = FakeTransport(Ok({'id': 'notif-42'}))
        notifier = ReminderNotifier(CONFIG, transport)

        result = await notifier.notify(_task(), DEVICE)

        assert is_ok(result)
        assert result.ok_value == 'notif-42'
        assert len(transport.payloads) == 1
        assert transport.payloads[0]['include_player_ids'] == ['player-1']

    @pytest.mark.asyncio
    async def test_missing_id_is_empty_string(self) -> None:
        notifier = ReminderNotifier(CONFIG, FakeTransport(Ok({'errors': ['x']})))

        result = await notifier.notify(_task(), DEVICE)

        assert is_ok(result)
        assert result.ok_value == ''

    @pytest.mark.asyncio
    async def test_provider_error_is_passed_through(self) -> None:
        error = PushError(
            code=PushErrorCode.PROVIDER_REJECTED,
            message='provider returned HTTP 400',
            retryable=False,
            status_code=400,
            body={'errors': ['bad']},
        )
        notifier = ReminderNotifier(CONFIG, FakeTransport(Err(error)))

        result = await notifier.notify(_task(), DEVICE)

        assert is_err(result)
        assert result.err_value is error

    @pytest.mark.asyncio
    async def test_device_without_token_sends_nothing(self) -> None:
        transport = FakeTransport(Ok({'id': 'never'}))
        notifier = ReminderNotifier(CONFIG, transport)

        result = await notifier.notify(
            _task(), Device(employee_id='emp-1', tenant_id='co-1')
        )

        assert is_err(result)
        assert transport.payloads == []

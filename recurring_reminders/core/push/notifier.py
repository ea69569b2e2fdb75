# recurring_reminders/core/push/notifier.py
from __future__ import annotations
from typing import Any, Protocol
from recurring_reminders.core.defaults import REMINDER_NOTIFICATION_TYPE
from recurring_reminders.core.logging import get_logger
from recurring_reminders.core.models.config import PushConfig
from recurring_reminders.core.models.entities import Device, RecurringTask
from recurring_reminders.core.push.result_types import (
    PushError,
    PushErrorCode,
    PushResult,
)
from recurring_reminders.core.types.result import Err, Ok

logger = get_logger('push.notifier')


class PushTransport(Protocol):
    async def send(self, payload: dict[str, Any]) -> PushResult[dict[str, Any]]: ...


def build_reminder_body(task: RecurringTask) -> str:
    freq = task.frequency.value
    if task.description:
        return f'Reminder ({freq}): {task.description}'
    return f'You have a {freq} recurring task reminder.'


def build_payload(
    config: PushConfig, task: RecurringTask, push_token: str
) -> dict[str, Any]:
    """OneSignal create-notification body for one task reminder."""
    return {
        'app_id': config.app_id,
        'include_player_ids': [push_token],
        'headings': {'en': config.title},
        'contents': {'en': build_reminder_body(task)},
        'url': config.target_url,
        'data': {
            'type': REMINDER_NOTIFICATION_TYPE,
            'task_id': task.id,
            'recurrence_frequency': task.frequency.value,
        },
    }


class ReminderNotifier:
    """Sends exactly one reminder notification per call. No internal retry."""

    def __init__(self, config: PushConfig, client: PushTransport):
        self.config = config
        self.client = client

    async def notify(self, task: RecurringTask, device: Device) -> PushResult[str]:
        """
        Dispatch the reminder for ``task`` to ``device``.

        Returns:
            Ok(notification id, '' if the provider sent none) or Err(PushError)
        """
        if not device.push_token:
            return Err(PushError(
                code=PushErrorCode.PROVIDER_REJECTED,
                message=f"employee '{device.employee_id}' has no push token",
                retryable=False,
            ))

        payload = build_payload(self.config, task, device.push_token)
        result = await self.client.send(payload)
        match result:
            case Ok(ok_value=body):
                notification_id = str(body.get('id') or '')
                errors = body.get('errors')
                if errors:
                    # OneSignal answers 200 with an errors list for invalid player ids
                    logger.warning(
                        f"Provider accepted task '{task.id}' with errors: {errors}"
                    )
                return Ok(notification_id)
            case Err(err_value=error):
                logger.error(
                    f"Push failed for task '{task.id}' (tenant={task.tenant_id}): "
                    f'{error.message} status={error.status_code} body={error.body}'
                )
                return Err(error)

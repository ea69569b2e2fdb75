# recurring_reminders/core/scheduler/calculator.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from recurring_reminders.core.types.status import Frequency

DAY_MS = 24 * 60 * 60 * 1000

# Calendar months are approximated as 30 days on purpose; the reminder
# cadence drifts against the calendar but stays a fixed step.
INTERVAL_MS: dict[Frequency, int] = {
    Frequency.DAILY: DAY_MS,
    Frequency.WEEKLY: 7 * DAY_MS,
    Frequency.MONTHLY: 30 * DAY_MS,
}


def now_ms() -> int:
    """Current UTC time as epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def interval_ms_for(frequency: Frequency | str | None) -> int:
    """
    Look up the fixed reminder interval for a frequency.

    Returns 0 for Frequency.NONE or any unrecognized value, meaning
    "not schedulable".
    """
    if not isinstance(frequency, Frequency):
        frequency = Frequency.parse(frequency)
    return INTERVAL_MS.get(frequency, 0)


def calculate_next_due(
    prior_due_ms: Optional[int],
    current_ms: int,
    frequency: Frequency | str | None,
) -> Optional[int]:
    """
    Calculate the next reminder timestamp with catch-up semantics.

    Args:
        prior_due_ms: Previously stored due time (epoch ms), None if never scheduled
        current_ms: Current time (epoch ms)
        frequency: Recurrence frequency of the task

    Returns:
        The smallest ``prior_due_ms + k * interval`` strictly greater than
        ``current_ms`` (``current_ms + interval`` when never scheduled), or
        None when the frequency has no interval.

    A gap of any length between invocations collapses into a single due
    reminder: the result always lands in the future.
    """
    interval = interval_ms_for(frequency)
    if interval <= 0:
        return None

    if prior_due_ms is None:
        return current_ms + interval

    if prior_due_ms > current_ms:
        return prior_due_ms

    # Whole steps needed to move strictly past current_ms.
    steps = (current_ms - prior_due_ms) // interval + 1
    next_due = prior_due_ms + steps * interval

    if next_due <= current_ms:
        raise RuntimeError(
            f'Non-monotonic next due calculated: prior={prior_due_ms} '
            f'now={current_ms} next={next_due}'
        )
    return next_due


def is_due(next_due_ms: Optional[int], current_ms: int) -> bool:
    """
    Determine if a task's reminder is due at the current time.

    Args:
        next_due_ms: Stored next due time (epoch ms), None if never scheduled
        current_ms: Current time (epoch ms)

    Returns:
        True if the reminder should be sent now
    """
    if next_due_ms is None:
        # Never scheduled - due immediately
        return True

    return next_due_ms <= current_ms

"""Shared default constants for recurring_reminders."""

# Maximum candidate tasks fetched per invocation.
DEFAULT_BATCH_LIMIT: int = 200

# Per-task lease duration in milliseconds. Long enough to cover one device
# lookup + one provider call + one update; short enough that a crashed
# invocation's claims are reclaimable by the next cron tick.
DEFAULT_LEASE_MS: int = 300_000  # 5 minutes

# Tasks processed concurrently within one pass. 1 keeps the pass sequential.
DEFAULT_MAX_CONCURRENCY: int = 1

DEFAULT_PUSH_API_URL: str = 'https://onesignal.com/api/v1/notifications'
DEFAULT_PUSH_TIMEOUT_SECONDS: float = 10.0
DEFAULT_NOTIFICATION_TITLE: str = 'Recurring Task Reminder'
DEFAULT_TARGET_URL: str = 'https://final-test-task-pro.vercel.app/'

# Metadata 'type' attached to every reminder notification.
REMINDER_NOTIFICATION_TYPE: str = 'recurring_reminder'

"""SQL constants for the reminder scheduler."""

from __future__ import annotations

from sqlalchemy import text


# ---------- Schedule update ----------
# Scoped by task id + tenant. The guard keeps next_recurrence_notification_at
# monotonic: a stale pass can never move a schedule backwards, and
# re-applying the same value still matches.

UPDATE_NEXT_DUE_SQL = text("""
    UPDATE tasks
    SET next_recurrence_notification_at = :next_due
    WHERE id = :task_id
      AND company_id = :company_id
      AND (
        next_recurrence_notification_at IS NULL
        OR next_recurrence_notification_at <= :next_due
      )
""")


# ---------- Device lookup ----------

SELECT_DEVICE_SQL = text("""
    SELECT id, company_id, onesignal_id
    FROM employees
    WHERE id = :employee_id
      AND company_id = :company_id
    LIMIT 1
""")


# ---------- Lease SQL ----------
# A claim is granted only when
#   1. the task still carries the due value the pass selected (compare-and-swap
#      against concurrent passes that already advanced it; NULL and 0 both
#      mean never scheduled), and
#   2. no other pass holds an unexpired lease on it.
# Expired leases are taken over in place.

CLAIM_LEASE_SQL = text("""
    INSERT INTO recurring_reminder_leases AS l
        (task_id, company_id, claimed_by, claimed_due_at, lease_expires_at)
    SELECT t.id, t.company_id, :claimed_by, t.next_recurrence_notification_at, :lease_expires_at
    FROM tasks t
    WHERE t.id = :task_id
      AND t.company_id = :company_id
      AND COALESCE(t.next_recurrence_notification_at, 0)
          = COALESCE(CAST(:expected_due AS BIGINT), 0)
    ON CONFLICT (task_id, company_id) DO UPDATE
    SET claimed_by = EXCLUDED.claimed_by,
        claimed_due_at = EXCLUDED.claimed_due_at,
        lease_expires_at = EXCLUDED.lease_expires_at
    WHERE l.lease_expires_at <= :now
    RETURNING l.task_id
""")

RELEASE_LEASE_SQL = text("""
    DELETE FROM recurring_reminder_leases
    WHERE task_id = :task_id
      AND company_id = :company_id
      AND claimed_by = :claimed_by
""")

PURGE_EXPIRED_LEASES_SQL = text("""
    DELETE FROM recurring_reminder_leases
    WHERE lease_expires_at <= :now
""")


# ---------- Schema ----------

SCHEMA_ADVISORY_LOCK_SQL = text(
    """SELECT pg_advisory_xact_lock(CAST(:key AS BIGINT))"""
)

CHECK_CONNECTION_SQL = text('SELECT 1')

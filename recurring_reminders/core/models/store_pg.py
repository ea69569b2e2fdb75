from __future__ import annotations
from typing import Optional
from sqlalchemy import BigInteger, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for PostgreSQL models"""

    pass


class TaskModel(Base):
    """
    Read/update view of the CRUD system's ``tasks`` table.

    Only the columns the reminder scheduler touches are mapped. The table is
    owned and migrated elsewhere; the scheduler never creates it and only
    ever writes next_recurrence_notification_at.

    - id: str # task id, unique within a company
    - description: str # free text, may be empty
    - assigned_to: str # employee id ("assignedTo" column), NULL = unassigned
    - company_id: str # tenant id
    - task_type: str # 'one_time' | 'recurring'
    - recurrence_frequency: str # 'daily' | 'weekly' | 'monthly' | NULL
    - next_recurrence_notification_at: int # epoch ms of the next reminder, NULL = never scheduled
    - status: str # 'pending' | 'in-progress' | 'completed'
    """

    __tablename__ = 'tasks'

    id: Mapped[str] = mapped_column(String, primary_key=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assigned_to: Mapped[Optional[str]] = mapped_column(
        'assignedTo', String, nullable=True
    )
    company_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    task_type: Mapped[str] = mapped_column(String, nullable=False, default='one_time')
    recurrence_frequency: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    next_recurrence_notification_at: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default='pending')


class ReminderLeaseModel(Base):
    """Short-lived claim on a task while one pass is notifying it.

    Owned by the reminder scheduler (created by ensure_schema). A lease is
    live while lease_expires_at > now; expired rows are reclaimable.

    Fields:
        - task_id: Claimed task
        - company_id: Tenant of the claimed task
        - claimed_by: Id of the pass holding the claim
        - claimed_due_at: next_recurrence_notification_at seen when claiming (NULL = never scheduled)
        - lease_expires_at: Epoch ms after which the claim may be taken over
    """

    __tablename__ = 'recurring_reminder_leases'

    task_id: Mapped[str] = mapped_column(String, primary_key=True)
    company_id: Mapped[str] = mapped_column(String, primary_key=True)
    claimed_by: Mapped[str] = mapped_column(String(64), nullable=False)
    claimed_due_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    lease_expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index('idx_recurring_reminder_leases_expires', 'lease_expires_at'),
    )

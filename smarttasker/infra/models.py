from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    priority = Column(String(10), nullable=False, default="medium")
    due_date = Column(DateTime(timezone=True), nullable=True)
    tags = Column(Text, nullable=True)
    original_task_id = Column(Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
    recurring_task_id = Column(
        Integer,
        ForeignKey("recurring_tasks.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class RecurringTaskModel(Base):
    __tablename__ = "recurring_tasks"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    task_template_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    frequency = Column(String(20), nullable=False, default="daily")
    interval_count = Column(Integer, nullable=False, default=1)
    weekdays = Column(String(20), nullable=True)
    month_day = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    max_instances = Column(Integer, nullable=True)
    created_instances = Column(Integer, nullable=False, default=0)
    last_generated_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

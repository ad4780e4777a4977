from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from .enums import Frequency, TaskPriority, TaskStatus


@dataclass(frozen=True)
class TaskTemplate:
    id: int
    user_id: str
    title: str
    description: str | None
    status: str
    priority: TaskPriority
    due_date: Optional[datetime] = None
    tags: tuple[str, ...] | None = None


@dataclass(frozen=True)
class RecurrenceConfig:
    id: int
    user_id: str
    task_template_id: int
    frequency: Frequency
    start_date: date
    interval_count: int = 1
    weekdays: frozenset[int] | None = None
    month_day: int | None = None
    end_date: Optional[date] = None
    max_instances: int | None = None
    created_instances: int = 0
    last_generated_date: Optional[date] = None
    load_errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskInstance:
    user_id: str
    title: str
    description: str | None
    priority: TaskPriority
    due_date: datetime
    tags: tuple[str, ...] | None
    original_task_id: int
    recurring_task_id: int
    status: TaskStatus = TaskStatus.PENDING


@dataclass(frozen=True)
class CallerContext:
    user_id: str
    service: bool = False


def validate_config(config: RecurrenceConfig) -> list[str]:
    problems: list[str] = list(config.load_errors)
    if config.interval_count < 1:
        problems.append(f"interval_count must be >= 1, got {config.interval_count}")
    if config.weekdays is not None and not config.weekdays:
        problems.append("weekdays must not be empty; leave it unset to allow every day")
    if config.weekdays:
        invalid = sorted(day for day in config.weekdays if not 0 <= day <= 6)
        if invalid:
            problems.append(f"weekdays must be within 0-6, got {invalid}")
    if config.month_day is not None and not 1 <= config.month_day <= 31:
        problems.append(f"month_day must be within 1-31, got {config.month_day}")
    if config.max_instances is not None and config.max_instances < 1:
        problems.append(f"max_instances must be >= 1, got {config.max_instances}")
    if config.created_instances < 0:
        problems.append(f"created_instances must be >= 0, got {config.created_instances}")
    if config.end_date and config.end_date < config.start_date:
        problems.append("end_date precedes start_date")
    return problems

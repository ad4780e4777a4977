"""Expansion of recurrence rules into concrete task instances.

Every expander walks the window one day at a time and keeps the dates that
satisfy the rule, oldest first. Only calendar dates are compared, so the
day, week and month counts are never affected by time zones or DST.
"""
from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import date, datetime, time, timedelta, timezone

from smarttasker.domain.entities import RecurrenceConfig, TaskInstance, TaskTemplate
from smarttasker.domain.enums import Frequency, TaskStatus, Weekday

Expander = Callable[[RecurrenceConfig, TaskTemplate, date, date, int], list[TaskInstance]]


def create_task_instance(template: TaskTemplate, config: RecurrenceConfig, due_on: date) -> TaskInstance:
    return TaskInstance(
        user_id=config.user_id,
        title=template.title,
        description=template.description,
        status=TaskStatus.PENDING,
        priority=template.priority,
        due_date=_due_timestamp(template, due_on),
        tags=template.tags,
        original_task_id=template.id,
        recurring_task_id=config.id,
    )


def generate_daily_tasks(
    config: RecurrenceConfig,
    template: TaskTemplate,
    start: date,
    end: date,
    limit: int,
) -> list[TaskInstance]:
    def matches(day: date) -> bool:
        return (day - config.start_date).days % config.interval_count == 0

    return _collect(config, template, start, end, limit, matches)


def generate_weekly_tasks(
    config: RecurrenceConfig,
    template: TaskTemplate,
    start: date,
    end: date,
    limit: int,
) -> list[TaskInstance]:
    anchor_week = week_number(config.start_date)

    def matches(day: date) -> bool:
        if (week_number(day) - anchor_week) % config.interval_count:
            return False
        return config.weekdays is None or Weekday.of(day) in config.weekdays

    return _collect(config, template, start, end, limit, matches)


def generate_monthly_tasks(
    config: RecurrenceConfig,
    template: TaskTemplate,
    start: date,
    end: date,
    limit: int,
) -> list[TaskInstance]:
    def matches(day: date) -> bool:
        if months_between(config.start_date, day) % config.interval_count:
            return False
        return config.month_day is None or day.day == config.month_day

    return _collect(config, template, start, end, limit, matches)


EXPANDERS: dict[Frequency, Expander] = {
    Frequency.DAILY: generate_daily_tasks,
    Frequency.WEEKLY: generate_weekly_tasks,
    Frequency.MONTHLY: generate_monthly_tasks,
}


def expand(
    config: RecurrenceConfig,
    template: TaskTemplate,
    start: date,
    end: date,
    limit: int,
) -> list[TaskInstance] | None:
    """Dispatch to the expander for ``config.frequency``.

    Returns None when the frequency has no expansion rule, so callers can
    tell an unsupported rule apart from a rule with nothing due.
    """
    expander = EXPANDERS.get(config.frequency)
    if expander is None:
        return None
    return expander(config, template, start, end, limit)


def week_number(day: date) -> int:
    # Ordinal 7 (0001-01-07) is a Sunday, so weeks run Sunday..Saturday.
    return day.toordinal() // 7


def months_between(first: date, second: date) -> int:
    return (second.year - first.year) * 12 + (second.month - first.month)


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _collect(
    config: RecurrenceConfig,
    template: TaskTemplate,
    start: date,
    end: date,
    limit: int,
    matches: Callable[[date], bool],
) -> list[TaskInstance]:
    instances: list[TaskInstance] = []
    if limit <= 0:
        return instances
    for day in iter_days(start, end):
        if not matches(day):
            continue
        instances.append(create_task_instance(template, config, day))
        if len(instances) >= limit:
            break
    return instances


def _due_timestamp(template: TaskTemplate, due_on: date) -> datetime:
    if template.due_date is None:
        return datetime.combine(due_on, time.min, tzinfo=timezone.utc)
    original = template.due_date
    if original.tzinfo is not None:
        original = original.astimezone(timezone.utc)
    time_of_day = original.time().replace(microsecond=0)
    return datetime.combine(due_on, time_of_day, tzinfo=timezone.utc)

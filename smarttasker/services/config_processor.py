from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import StrEnum

from smarttasker.domain.entities import RecurrenceConfig, TaskInstance, TaskTemplate, validate_config
from smarttasker.domain.errors import InvalidRecurrenceConfig, TemplateNotFoundError

from .recurrence import expand

logger = logging.getLogger(__name__)

MAX_TASKS_PER_RUN = 100


class GenerationOutcome(StrEnum):
    CREATED = "created"
    NOTHING_DUE = "nothing_due"
    NONE_CREATED = "none_created"
    MAX_REACHED = "max_reached"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class GenerationWindow:
    start: date
    end: date

    @property
    def is_empty(self) -> bool:
        return self.start > self.end


@dataclass(frozen=True)
class GenerationResult:
    config_id: int
    outcome: GenerationOutcome
    message: str | None = None
    instances: list[TaskInstance] = field(default_factory=list)
    new_total: int | None = None
    last_generated_date: date | None = None


def compute_window(config: RecurrenceConfig, today: date, look_ahead_days: int) -> GenerationWindow:
    horizon = today + timedelta(days=look_ahead_days)
    if config.last_generated_date is not None:
        start = config.last_generated_date + timedelta(days=1)
    else:
        start = config.start_date
    # Never before the rule's anchor and never in the past.
    start = max(start, config.start_date, today)
    end = min(horizon, config.end_date) if config.end_date else horizon
    return GenerationWindow(start=start, end=end)


def remaining_instances(config: RecurrenceConfig) -> int | None:
    if config.max_instances is None:
        return None
    return config.max_instances - config.created_instances


def compute_limit(config: RecurrenceConfig) -> int:
    remaining = remaining_instances(config)
    if remaining is None:
        return MAX_TASKS_PER_RUN
    return min(remaining, MAX_TASKS_PER_RUN)


def process_config(
    config: RecurrenceConfig,
    template: TaskTemplate | None,
    today: date,
    look_ahead_days: int,
) -> GenerationResult:
    problems = validate_config(config)
    if problems:
        raise InvalidRecurrenceConfig(config.id, problems)
    if template is None or template.id != config.task_template_id:
        raise TemplateNotFoundError(
            f"Template task not found: {config.task_template_id} for recurring task {config.id}"
        )

    limit = compute_limit(config)
    if limit <= 0:
        return GenerationResult(
            config_id=config.id,
            outcome=GenerationOutcome.MAX_REACHED,
            message="Max instances reached, no more tasks will be generated",
        )

    window = compute_window(config, today, look_ahead_days)
    if window.is_empty:
        return GenerationResult(
            config_id=config.id,
            outcome=GenerationOutcome.NOTHING_DUE,
            message="No tasks to generate in the specified period",
        )

    instances = expand(config, template, window.start, window.end, limit)
    if instances is None:
        logger.warning("No expansion rule for frequency %r (recurring task %s)", config.frequency, config.id)
        return GenerationResult(
            config_id=config.id,
            outcome=GenerationOutcome.UNSUPPORTED,
            message=f"Unsupported frequency '{config.frequency}': no expansion rule",
        )
    if not instances:
        return GenerationResult(
            config_id=config.id,
            outcome=GenerationOutcome.NONE_CREATED,
            message="No tasks created in this period",
        )

    return GenerationResult(
        config_id=config.id,
        outcome=GenerationOutcome.CREATED,
        instances=instances,
        new_total=config.created_instances + len(instances),
        # Next run resumes after the whole window, even when the limit stopped the walk early.
        last_generated_date=window.end,
    )

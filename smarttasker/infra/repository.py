from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from smarttasker.domain.entities import RecurrenceConfig, TaskInstance, TaskTemplate
from smarttasker.domain.enums import Frequency, TaskPriority
from smarttasker.domain.errors import InvalidTemplateError, PersistenceError, TemplateNotFoundError
from smarttasker.domain.filters import CandidateFilters

from .models import RecurringTaskModel, TaskModel, utcnow

logger = logging.getLogger(__name__)


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _join(values) -> str | None:
    if values is None:
        return None
    return ",".join(str(value) for value in values)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands timestamps back without tzinfo; everything is stored as UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_template(model: TaskModel) -> TaskTemplate:
    try:
        priority = TaskPriority(model.priority)
    except ValueError as exc:
        raise InvalidTemplateError(f"Template task {model.id} has unknown priority {model.priority!r}") from exc
    tags = _split(model.tags)
    return TaskTemplate(
        id=model.id,
        user_id=model.user_id,
        title=model.title,
        description=model.description,
        status=model.status,
        priority=priority,
        due_date=_as_utc(model.due_date),
        tags=tuple(tags) if model.tags is not None else None,
    )


def _to_config(model: RecurringTaskModel) -> RecurrenceConfig:
    # A malformed row becomes a config that fails validation, so only that config is reported.
    load_errors: list[str] = []
    try:
        frequency = Frequency(model.frequency)
    except ValueError:
        load_errors.append(f"unknown frequency {model.frequency!r}")
        frequency = Frequency.CUSTOM
    try:
        weekdays = frozenset(int(day) for day in _split(model.weekdays)) or None
    except ValueError:
        load_errors.append(f"weekdays must be comma separated integers, got {model.weekdays!r}")
        weekdays = None
    return RecurrenceConfig(
        id=model.id,
        user_id=model.user_id,
        task_template_id=model.task_template_id,
        frequency=frequency,
        interval_count=model.interval_count,
        weekdays=weekdays,
        month_day=model.month_day,
        start_date=model.start_date,
        end_date=model.end_date,
        max_instances=model.max_instances,
        created_instances=model.created_instances,
        last_generated_date=model.last_generated_date,
        load_errors=tuple(load_errors),
    )


def _to_row(instance: TaskInstance) -> dict:
    return {
        "user_id": instance.user_id,
        "title": instance.title,
        "description": instance.description,
        "status": instance.status.value,
        "priority": instance.priority.value,
        "due_date": instance.due_date,
        "tags": _join(instance.tags),
        "original_task_id": instance.original_task_id,
        "recurring_task_id": instance.recurring_task_id,
    }


class RecurringTaskRepository:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def list_candidate_configs(self, filters: CandidateFilters) -> list[RecurrenceConfig]:
        with self._session_factory() as session:
            stmt = select(RecurringTaskModel).where(
                or_(
                    RecurringTaskModel.last_generated_date.is_(None),
                    RecurringTaskModel.last_generated_date < filters.horizon,
                ),
                or_(
                    RecurringTaskModel.max_instances.is_(None),
                    RecurringTaskModel.created_instances < RecurringTaskModel.max_instances,
                ),
                or_(
                    RecurringTaskModel.end_date.is_(None),
                    RecurringTaskModel.end_date >= filters.today,
                ),
            )
            if filters.user_id:
                stmt = stmt.where(RecurringTaskModel.user_id == filters.user_id)
            stmt = stmt.order_by(RecurringTaskModel.id.asc())
            return [_to_config(model) for model in session.scalars(stmt)]

    def get_template(self, task_id: int) -> Optional[TaskTemplate]:
        with self._session_factory() as session:
            try:
                task = session.get(TaskModel, task_id)
            except SQLAlchemyError as exc:
                raise TemplateNotFoundError(f"Template task not found: {exc}") from exc
            return _to_template(task) if task else None

    def save_generation(
        self,
        config: RecurrenceConfig,
        instances: list[TaskInstance],
        new_total: int,
        last_generated_date: date,
    ) -> list[int]:
        """Insert ``instances`` and advance the config counters atomically.

        The counter update only matches while ``created_instances`` still
        holds the value this run started from, so an overlapping run cannot
        advance the same config twice.
        """
        with self._session_factory() as session:
            try:
                models = [TaskModel(**_to_row(instance)) for instance in instances]
                session.add_all(models)
                session.flush()
                task_ids = [model.id for model in models]
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(f"Failed to insert tasks: {exc}") from exc

            try:
                result = session.execute(
                    update(RecurringTaskModel)
                    .where(
                        RecurringTaskModel.id == config.id,
                        RecurringTaskModel.created_instances == config.created_instances,
                    )
                    .values(
                        created_instances=new_total,
                        last_generated_date=last_generated_date,
                        updated_at=utcnow(),
                    )
                )
                if result.rowcount != 1:
                    session.rollback()
                    raise PersistenceError(
                        f"Failed to update config: recurring task {config.id} changed during this run, "
                        "changes rolled back"
                    )
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(f"Failed to update config, changes rolled back: {exc}") from exc

        logger.debug("Stored %d tasks for recurring task %s", len(task_ids), config.id)
        return task_ids

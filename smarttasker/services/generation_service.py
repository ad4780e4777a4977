from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from smarttasker.config import SETTINGS, Settings
from smarttasker.domain.entities import CallerContext, RecurrenceConfig
from smarttasker.domain.errors import LookAheadError, PersistenceError, RecurrenceError, UnauthorizedError
from smarttasker.domain.filters import CandidateFilters
from smarttasker.infra.repository import RecurringTaskRepository

from .config_processor import GenerationOutcome, process_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigReport:
    id: int
    tasks_created: int | None = None
    new_total: int | None = None
    message: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        payload: dict = {"id": str(self.id)}
        if self.tasks_created is not None:
            payload["tasksCreated"] = self.tasks_created
        if self.new_total is not None:
            payload["newTotal"] = self.new_total
        if self.message is not None:
            payload["message"] = self.message
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class GenerationReport:
    processed: int = 0
    results: list[ConfigReport] = field(default_factory=list)
    message: str | None = None

    @property
    def tasks_created(self) -> int:
        return sum(result.tasks_created or 0 for result in self.results)

    @property
    def errors(self) -> list[ConfigReport]:
        return [result for result in self.results if result.error]

    def to_dict(self) -> dict:
        payload: dict = {
            "success": True,
            "processed": self.processed,
            "results": [result.to_dict() for result in self.results],
        }
        if self.message is not None:
            payload["message"] = self.message
        return payload


class RecurringTaskService:
    def __init__(self, repo: RecurringTaskRepository, settings: Settings = SETTINGS) -> None:
        self._repo = repo
        self._settings = settings

    def generate(
        self,
        caller: CallerContext | None,
        look_ahead_days: int | None = None,
        today: date | None = None,
    ) -> GenerationReport:
        self._authorize(caller)
        look_ahead = self._resolve_look_ahead(look_ahead_days)
        today = today or datetime.now(timezone.utc).date()
        horizon = today + timedelta(days=look_ahead)
        logger.info("Generating recurring tasks from %s to %s", today, horizon)

        filters = CandidateFilters(
            today=today,
            horizon=horizon,
            user_id=None if caller.service else caller.user_id,
        )
        configs = self._repo.list_candidate_configs(filters)
        if not configs:
            logger.info("No recurring tasks to process")
            return GenerationReport(message="No recurring tasks to process")

        logger.info("Found %d recurring task configs to process", len(configs))
        report = GenerationReport(processed=len(configs))
        for config in configs:
            report.results.append(self._process_one(config, today, look_ahead))
        logger.info(
            "Processed %d recurring task configs, %d tasks created, %d errors",
            report.processed,
            report.tasks_created,
            len(report.errors),
        )
        return report

    def _process_one(self, config: RecurrenceConfig, today: date, look_ahead: int) -> ConfigReport:
        try:
            template = self._repo.get_template(config.task_template_id)
            result = process_config(config, template, today, look_ahead)
            if result.outcome is not GenerationOutcome.CREATED:
                logger.info("Recurring task %s: %s", config.id, result.message)
                return ConfigReport(id=config.id, message=result.message)
            self._repo.save_generation(config, result.instances, result.new_total, result.last_generated_date)
        except PersistenceError as exc:
            if exc.instances_written:
                logger.error(
                    "Recurring task %s needs reconciliation, tasks exist but counters are stale: %s",
                    config.id,
                    exc,
                )
                return ConfigReport(id=config.id, error=f"Tasks created but failed to update config: {exc}")
            logger.error("Recurring task %s: %s", config.id, exc)
            return ConfigReport(id=config.id, error=str(exc))
        except RecurrenceError as exc:
            logger.warning("Skipping recurring task %s: %s", config.id, exc)
            return ConfigReport(id=config.id, error=str(exc))

        logger.info(
            "Created %d tasks for recurring task %s through %s (total %d)",
            len(result.instances),
            config.id,
            result.last_generated_date,
            result.new_total,
        )
        return ConfigReport(id=config.id, tasks_created=len(result.instances), new_total=result.new_total)

    @staticmethod
    def _authorize(caller: CallerContext | None) -> None:
        if caller is None or not caller.user_id or not caller.user_id.strip():
            raise UnauthorizedError("Unauthorized")

    def _resolve_look_ahead(self, look_ahead_days: int | None) -> int:
        if look_ahead_days is None:
            look_ahead_days = self._settings.lookahead_days
        if isinstance(look_ahead_days, bool) or not isinstance(look_ahead_days, int):
            raise LookAheadError(f"lookAheadDays must be an integer, got {look_ahead_days!r}")
        if not 1 <= look_ahead_days <= self._settings.max_lookahead_days:
            raise LookAheadError(
                f"lookAheadDays must be between 1 and {self._settings.max_lookahead_days}, got {look_ahead_days}"
            )
        return look_ahead_days

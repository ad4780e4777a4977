from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from smarttasker.config import Settings
from smarttasker.domain.entities import CallerContext
from smarttasker.domain.enums import Frequency, TaskPriority
from smarttasker.domain.errors import PersistenceError
from smarttasker.domain.filters import CandidateFilters
from smarttasker.infra.db import Base, create_session_factory, init_db
from smarttasker.infra.models import RecurringTaskModel, TaskModel
from smarttasker.infra.repository import RecurringTaskRepository
from smarttasker.services.config_processor import process_config
from smarttasker.services.generation_service import RecurringTaskService

TODAY = date(2024, 3, 1)
HORIZON = TODAY + timedelta(days=30)


@pytest.fixture()
def session_factory(tmp_path):
    factory = create_session_factory(f"sqlite:///{tmp_path / 'smarttasker.db'}")
    Base.metadata.create_all(factory.kw["bind"])
    init_db(factory)
    return factory


@pytest.fixture()
def repo(session_factory) -> RecurringTaskRepository:
    return RecurringTaskRepository(session_factory)


def _add(session_factory, model):
    with session_factory() as session:
        session.add(model)
        session.commit()
        session.refresh(model)
        return model.id


def _template(session_factory, user_id: str = "user-1", status: str = "done", priority: str = "high") -> int:
    return _add(
        session_factory,
        TaskModel(
            user_id=user_id,
            title="Review budget",
            description="Monthly numbers",
            status=status,
            priority=priority,
            due_date=datetime(2024, 1, 5, 18, 45, tzinfo=timezone.utc),
            tags="finance,home",
        ),
    )


def _recurring(session_factory, template_id: int, **values) -> int:
    values.setdefault("user_id", "user-1")
    values.setdefault("frequency", "daily")
    values.setdefault("start_date", date(2024, 1, 1))
    return _add(session_factory, RecurringTaskModel(task_template_id=template_id, **values))


def _count_tasks(session_factory, recurring_task_id: int) -> int:
    with session_factory() as session:
        return session.scalar(
            select(func.count()).select_from(TaskModel).where(TaskModel.recurring_task_id == recurring_task_id)
        )


def test_candidate_configs_require_all_three_conditions(session_factory, repo) -> None:
    template_id = _template(session_factory)
    never_run = _recurring(session_factory, template_id)
    behind = _recurring(session_factory, template_id, last_generated_date=date(2024, 3, 10))
    _recurring(session_factory, template_id, last_generated_date=HORIZON)
    _recurring(session_factory, template_id, max_instances=5, created_instances=5)
    _recurring(
        session_factory,
        template_id,
        max_instances=5,
        created_instances=5,
        last_generated_date=date(2024, 2, 1),
    )
    _recurring(session_factory, template_id, end_date=date(2024, 2, 28))
    open_budget = _recurring(session_factory, template_id, max_instances=5, created_instances=4)

    configs = repo.list_candidate_configs(CandidateFilters(today=TODAY, horizon=HORIZON))

    assert [config.id for config in configs] == [never_run, behind, open_budget]


def test_max_reached_is_excluded_regardless_of_watermark(session_factory, repo) -> None:
    template_id = _template(session_factory)
    for watermark in (None, date(2023, 1, 1), date(2024, 2, 29), HORIZON + timedelta(days=10)):
        _recurring(
            session_factory,
            template_id,
            max_instances=3,
            created_instances=3,
            last_generated_date=watermark,
        )

    assert repo.list_candidate_configs(CandidateFilters(today=TODAY, horizon=HORIZON)) == []


def test_candidate_configs_scoped_to_user(session_factory, repo) -> None:
    mine = _recurring(session_factory, _template(session_factory))
    theirs = _recurring(session_factory, _template(session_factory, "user-2"), user_id="user-2")

    scoped = repo.list_candidate_configs(CandidateFilters(today=TODAY, horizon=HORIZON, user_id="user-1"))
    everyone = repo.list_candidate_configs(CandidateFilters(today=TODAY, horizon=HORIZON))

    assert [config.id for config in scoped] == [mine]
    assert [config.id for config in everyone] == [mine, theirs]


def test_config_is_mapped_to_domain(session_factory, repo) -> None:
    template_id = _template(session_factory)
    _recurring(
        session_factory,
        template_id,
        frequency="weekly",
        interval_count=2,
        weekdays="1,3,5",
        end_date=date(2024, 6, 30),
        max_instances=20,
        created_instances=4,
    )

    config = repo.list_candidate_configs(CandidateFilters(today=TODAY, horizon=HORIZON))[0]

    assert config.frequency is Frequency.WEEKLY
    assert config.interval_count == 2
    assert config.weekdays == frozenset({1, 3, 5})
    assert config.month_day is None
    assert config.end_date == date(2024, 6, 30)
    assert config.max_instances == 20
    assert config.created_instances == 4


def test_get_template(session_factory, repo) -> None:
    template_id = _template(session_factory)

    template = repo.get_template(template_id)

    assert template.title == "Review budget"
    assert template.status == "done"
    assert template.priority is TaskPriority.HIGH
    assert template.tags == ("finance", "home")
    assert template.due_date == datetime(2024, 1, 5, 18, 45, tzinfo=timezone.utc)
    assert repo.get_template(template_id + 100) is None


def test_save_generation_inserts_and_advances_counters(session_factory, repo) -> None:
    template_id = _template(session_factory)
    config_id = _recurring(session_factory, template_id, max_instances=10, created_instances=2)
    config = repo.list_candidate_configs(CandidateFilters(today=TODAY, horizon=HORIZON))[0]
    result = process_config(config, repo.get_template(template_id), TODAY, 2)

    task_ids = repo.save_generation(config, result.instances, result.new_total, result.last_generated_date)

    assert len(task_ids) == 3
    with session_factory() as session:
        stored = session.get(RecurringTaskModel, config_id)
        assert stored.created_instances == 5
        assert stored.last_generated_date == date(2024, 3, 3)
        task = session.get(TaskModel, task_ids[0])
        assert task.status == "pending"
        assert task.original_task_id == template_id
        assert task.recurring_task_id == config_id
        assert task.tags == "finance,home"
        assert task.due_date.replace(tzinfo=None) == datetime(2024, 3, 1, 18, 45)


def test_save_generation_rolls_back_stale_config(session_factory, repo) -> None:
    template_id = _template(session_factory)
    config_id = _recurring(session_factory, template_id, created_instances=3)
    config = repo.list_candidate_configs(CandidateFilters(today=TODAY, horizon=HORIZON))[0]
    result = process_config(config, repo.get_template(template_id), TODAY, 2)
    stale = replace(config, created_instances=1)

    with pytest.raises(PersistenceError) as excinfo:
        repo.save_generation(stale, result.instances, result.new_total, result.last_generated_date)

    assert excinfo.value.instances_written is False
    assert _count_tasks(session_factory, config_id) == 0
    with session_factory() as session:
        assert session.get(RecurringTaskModel, config_id).last_generated_date is None


def test_batch_run_is_idempotent_per_day(session_factory, repo) -> None:
    template_id = _template(session_factory)
    config_id = _recurring(
        session_factory,
        template_id,
        frequency="monthly",
        month_day=15,
        start_date=date(2024, 1, 15),
    )
    service = RecurringTaskService(repo, Settings(database_url="sqlite://"))
    caller = CallerContext(user_id="user-1")

    first = service.generate(caller, look_ahead_days=90, today=TODAY)
    second = service.generate(caller, look_ahead_days=90, today=TODAY)

    assert first.to_dict()["results"] == [{"id": str(config_id), "tasksCreated": 3, "newTotal": 3}]
    assert second.processed == 0
    assert _count_tasks(session_factory, config_id) == 3


def test_template_status_outside_domain_values_still_generates(session_factory, repo) -> None:
    todo_config = _recurring(session_factory, _template(session_factory, status="todo"))
    done_config = _recurring(session_factory, _template(session_factory))
    service = RecurringTaskService(repo, Settings(database_url="sqlite://"))

    report = service.generate(CallerContext(user_id="user-1"), look_ahead_days=2, today=TODAY)

    assert report.to_dict()["results"] == [
        {"id": str(todo_config), "tasksCreated": 3, "newTotal": 3},
        {"id": str(done_config), "tasksCreated": 3, "newTotal": 3},
    ]


def test_unknown_template_priority_only_fails_its_config(session_factory, repo) -> None:
    broken = _recurring(session_factory, _template(session_factory, priority="urgent"))
    healthy = _recurring(session_factory, _template(session_factory))
    service = RecurringTaskService(repo, Settings(database_url="sqlite://"))

    report = service.generate(CallerContext(user_id="user-1"), look_ahead_days=2, today=TODAY)

    first, second = report.results
    assert first.id == broken
    assert "unknown priority 'urgent'" in first.error
    assert second.id == healthy
    assert second.tasks_created == 3
    assert _count_tasks(session_factory, broken) == 0


def test_malformed_config_row_only_fails_its_config(session_factory, repo) -> None:
    template_id = _template(session_factory)
    bad_weekdays = _recurring(session_factory, template_id, frequency="weekly", weekdays="1,x")
    bad_frequency = _recurring(session_factory, template_id, frequency="yearly")
    healthy = _recurring(session_factory, template_id)

    configs = repo.list_candidate_configs(CandidateFilters(today=TODAY, horizon=HORIZON))
    assert [config.id for config in configs] == [bad_weekdays, bad_frequency, healthy]

    service = RecurringTaskService(repo, Settings(database_url="sqlite://"))
    report = service.generate(CallerContext(user_id="user-1"), look_ahead_days=2, today=TODAY)

    assert "weekdays must be comma separated integers" in report.results[0].error
    assert "unknown frequency 'yearly'" in report.results[1].error
    assert report.results[2].tasks_created == 3

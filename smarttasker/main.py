from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from smarttasker.config import SETTINGS
from smarttasker.domain.entities import CallerContext
from smarttasker.domain.errors import LookAheadError, UnauthorizedError
from smarttasker.infra.db import create_session_factory, init_db
from smarttasker.infra.logging import setup_logging
from smarttasker.infra.repository import RecurringTaskRepository
from smarttasker.services.generation_service import RecurringTaskService

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smarttasker-generate",
        description="Generate upcoming task instances from recurring task configs.",
    )
    parser.add_argument("--user", default="", help="id of the user the run is performed for")
    parser.add_argument(
        "--service",
        action="store_true",
        help="run as the scheduler and process every user's recurring tasks",
    )
    parser.add_argument(
        "--look-ahead",
        type=int,
        default=None,
        help=f"days into the future to generate tasks for (default {SETTINGS.lookahead_days})",
    )
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="reference date in YYYY-MM-DD, defaults to the current UTC date",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging()

    user_id = args.user or ("scheduler" if args.service else "")
    caller = CallerContext(user_id=user_id, service=args.service)
    try:
        session_factory = create_session_factory(SETTINGS.require_database_url())
        init_db(session_factory)
        service = RecurringTaskService(RecurringTaskRepository(session_factory))
        report = service.generate(caller, look_ahead_days=args.look_ahead, today=args.today)
    except (UnauthorizedError, LookAheadError) as exc:
        logger.error("Rejected: %s", exc)
        print(json.dumps({"error": str(exc)}))
        return 2
    except (RuntimeError, SQLAlchemyError) as exc:
        logger.exception("Recurring task generation failed")
        print(json.dumps({"error": str(exc)}))
        return 1

    print(json.dumps(report.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

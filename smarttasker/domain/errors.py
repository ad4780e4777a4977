from __future__ import annotations


class RecurrenceError(Exception):
    """Base class for failures isolated to a single recurrence config."""


class TemplateNotFoundError(RecurrenceError):
    pass


class InvalidTemplateError(RecurrenceError, ValueError):
    pass


class InvalidRecurrenceConfig(RecurrenceError, ValueError):
    def __init__(self, config_id: int | None, problems: list[str]) -> None:
        self.config_id = config_id
        self.problems = list(problems)
        super().__init__(f"Invalid recurrence config {config_id}: {'; '.join(self.problems)}")


class PersistenceError(RecurrenceError):
    """Raised by a store when writing a generation batch fails.

    ``instances_written`` is True when the task rows already exist but the
    config counters were not advanced; those need manual reconciliation,
    otherwise the next run generates the same dates again.
    """

    def __init__(self, message: str, *, instances_written: bool = False) -> None:
        super().__init__(message)
        self.instances_written = instances_written


class UnauthorizedError(Exception):
    pass


class LookAheadError(ValueError):
    pass

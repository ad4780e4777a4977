from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class CandidateFilters:
    today: date
    horizon: date
    user_id: str | None = None

"""Session countdown shared by the session controller and the scoring engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..models import ActiveQuizSession, utcnow


@dataclass(slots=True)
class Countdown:
    deadline: datetime
    remaining_seconds: int
    expired: bool

    def to_dict(self) -> dict:
        return {
            "deadline": self.deadline.isoformat(),
            "remaining_seconds": self.remaining_seconds,
            "expired": self.expired,
        }


def countdown(session: ActiveQuizSession, now: datetime | None = None) -> Countdown:
    """Time left before ``QUIZ_DURATION_MINUTES`` after the session started."""
    minutes = current_app.config.get("QUIZ_DURATION_MINUTES", 30)
    deadline = session.start_time + timedelta(minutes=minutes)
    remaining = int((deadline - (now or utcnow())).total_seconds())
    return Countdown(deadline=deadline, remaining_seconds=max(remaining, 0),
                     expired=remaining <= 0)

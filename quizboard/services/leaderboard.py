"""Ranked projections over quiz submissions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import selectinload

from ..errors import NotFound
from ..extensions import db
from ..models import Quiz, QuizSubmission, Subject


@dataclass(slots=True)
class QuizLeaderboardRow:
    student_id: int
    student_name: str
    score: int
    submitted_at: datetime

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "student_name": self.student_name,
            "score": self.score,
            "submitted_at": self.submitted_at.isoformat(),
        }


@dataclass(slots=True)
class SubjectLeaderboardRow:
    student_id: int
    student_name: str
    total_score: int
    quiz_count: int
    average_score: float

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "student_name": self.student_name,
            "total_score": self.total_score,
            "quiz_count": self.quiz_count,
            "average_score": self.average_score,
        }


def _best_per_student(submissions) -> dict[int, QuizSubmission]:
    """Keep the highest score per student, the earlier one on a tie."""
    best = {}
    for sub in submissions:
        current = best.get(sub.student_id)
        if (current is None or sub.score > current.score
                or (sub.score == current.score and sub.submitted_at < current.submitted_at)):
            best[sub.student_id] = sub
    return best


def quiz_leaderboard(quiz_id: int, limit: int | None = None) -> list[QuizLeaderboardRow]:
    if db.session.get(Quiz, quiz_id) is None:
        raise NotFound("quiz does not exist")
    submissions = (QuizSubmission.query
                   .options(selectinload(QuizSubmission.student))
                   .filter_by(quiz_id=quiz_id)
                   .all())
    ranked = sorted(
        _best_per_student(submissions).values(),
        key=lambda s: (-s.score, s.submitted_at),
    )
    if limit is not None:
        ranked = ranked[:limit]
    return [
        QuizLeaderboardRow(student_id=s.student_id, student_name=s.student.name,
                           score=s.score, submitted_at=s.submitted_at)
        for s in ranked
    ]


def subject_leaderboard(subject_id: int) -> list[SubjectLeaderboardRow]:
    if db.session.get(Subject, subject_id) is None:
        raise NotFound("subject does not exist")
    submissions = (QuizSubmission.query
                   .options(selectinload(QuizSubmission.student))
                   .join(Quiz)
                   .filter(Quiz.subject_id == subject_id)
                   .all())

    by_quiz = {}
    for sub in submissions:
        by_quiz.setdefault(sub.quiz_id, []).append(sub)

    totals = {}
    for subs in by_quiz.values():
        for student_id, best in _best_per_student(subs).items():
            name, total, count = totals.get(student_id, (best.student.name, 0, 0))
            totals[student_id] = (name, total + best.score, count + 1)

    rows = [
        SubjectLeaderboardRow(student_id=student_id, student_name=name,
                              total_score=total, quiz_count=count,
                              average_score=round(total / count, 2))
        for student_id, (name, total, count) in totals.items()
    ]
    rows.sort(key=lambda r: (-r.total_score, r.student_name, r.student_id))
    return rows

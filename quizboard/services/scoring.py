"""Scores submitted answers against the answer key and persists the submission."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from ..errors import AlreadySubmitted, NotEnrolled, NotFound, SessionNotActive, ValidationError
from ..extensions import db
from ..models import (ActiveQuizParticipation, ActiveQuizSession, Question, Quiz,
                      QuizSubmission, SessionStatus, User, utcnow)
from . import commit
from .enrollment import can_take_quiz
from .timing import countdown

log = logging.getLogger(__name__)


@dataclass(slots=True)
class QuestionResult:
    question_id: int
    text: str
    options: list[str]
    selected_option_index: int | None
    correct_option_index: int
    points: int
    awarded: int


@dataclass(slots=True)
class QuizResult:
    quiz_id: int
    student_id: int
    score: int
    max_points: int
    submitted_at: datetime
    auto_submitted: bool
    questions: list[QuestionResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "quiz_id": self.quiz_id,
            "student_id": self.student_id,
            "score": self.score,
            "max_points": self.max_points,
            "submitted_at": self.submitted_at.isoformat(),
            "auto_submitted": self.auto_submitted,
            "questions": [
                {
                    "question_id": q.question_id,
                    "text": q.text,
                    "options": q.options,
                    "selected_option_index": q.selected_option_index,
                    "correct_option_index": q.correct_option_index,
                    "points": q.points,
                    "awarded": q.awarded,
                }
                for q in self.questions
            ],
        }


def normalize_answers(raw) -> dict[int, int]:
    """Turn a ``{question_id: option_index}`` mapping into ints.

    JSON object keys arrive as strings. ``None`` values mean unanswered and
    are dropped. Anything else that is not an integer is rejected.
    """
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError("answers must be an object of question id to option index")
    answers = {}
    for key, value in raw.items():
        if value is None:
            continue
        if isinstance(value, bool):
            raise ValidationError(f"answer for question {key} must be an integer")
        try:
            answers[int(key)] = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"answer for question {key} must be an integer") from None
    return answers


def _is_correct(question: Question, answers: dict[int, int]) -> bool:
    selected = answers.get(question.id)
    if selected is None or not 0 <= selected < len(question.options or []):
        return False
    return selected == question.correct_option_index


def score_answers(questions, answers: dict[int, int]) -> int:
    return sum(q.points for q in questions if _is_correct(q, answers))


def has_submitted(quiz_id: int, student_id: int) -> bool:
    return db.session.query(
        QuizSubmission.query.filter_by(quiz_id=quiz_id, student_id=student_id).exists()
    ).scalar()


def recorded_answers(quiz_id: int, student_id: int) -> dict[int, int]:
    """Answers last reported through a heartbeat, empty when none were."""
    row = ActiveQuizParticipation.query.filter_by(
        quiz_id=quiz_id, student_id=student_id).one_or_none()
    return normalize_answers(row.answers) if row is not None else {}


def record_submission(quiz: Quiz, student_id: int, answers: dict[int, int],
                      auto_submitted: bool = False) -> QuizSubmission:
    """Write the submission, clear participation and credit points in one commit."""
    known = {q.id for q in quiz.questions}
    kept = {qid: idx for qid, idx in answers.items() if qid in known}
    score = score_answers(quiz.questions, kept)

    submission = QuizSubmission(
        quiz_id=quiz.id,
        student_id=student_id,
        answers={str(qid): idx for qid, idx in kept.items()},
        score=score,
        submitted_at=utcnow(),
        auto_submitted=auto_submitted,
    )
    (ActiveQuizParticipation.query
     .filter_by(quiz_id=quiz.id, student_id=student_id)
     .delete(synchronize_session=False))
    # increment in SQL so concurrent submissions on other quizzes are not lost
    (User.query
     .filter_by(id=student_id)
     .update({"total_points": User.total_points + score}, synchronize_session=False))
    db.session.add(submission)
    commit(AlreadySubmitted("quiz already submitted"))
    log.info("student %s submitted quiz %s: %s/%s%s", student_id, quiz.id, score,
             quiz.max_points, " (auto)" if auto_submitted else "")
    return submission


def submit(quiz_id: int, student_id: int, raw_answers) -> QuizSubmission:
    answers = normalize_answers(raw_answers)
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound("quiz does not exist")
    if not can_take_quiz(student_id, quiz):
        raise NotEnrolled("you are not enrolled in this quiz")
    if has_submitted(quiz_id, student_id):
        raise AlreadySubmitted("quiz already submitted")
    active = ActiveQuizSession.query.filter_by(
        quiz_id=quiz_id, status=SessionStatus.active).one_or_none()
    if active is None:
        raise SessionNotActive("this quiz is not currently active")
    if countdown(active).expired:
        # past the deadline only answers recorded in time count
        log.warning("late submit from student %s on quiz %s", student_id, quiz_id)
        return record_submission(quiz, student_id, recorded_answers(quiz_id, student_id),
                                 auto_submitted=True)
    return record_submission(quiz, student_id, answers)


def result_for(quiz_id: int, student_id: int) -> QuizResult:
    submission = QuizSubmission.query.filter_by(
        quiz_id=quiz_id, student_id=student_id).one_or_none()
    if submission is None:
        raise NotFound("no submission for this quiz")
    quiz = submission.quiz
    answers = normalize_answers(submission.answers)
    rows = []
    for q in quiz.questions:
        rows.append(QuestionResult(
            question_id=q.id,
            text=q.text,
            options=list(q.options or []),
            selected_option_index=answers.get(q.id),
            correct_option_index=q.correct_option_index,
            points=q.points,
            awarded=q.points if _is_correct(q, answers) else 0,
        ))
    return QuizResult(
        quiz_id=quiz.id,
        student_id=student_id,
        score=submission.score,
        max_points=quiz.max_points,
        submitted_at=submission.submitted_at,
        auto_submitted=submission.auto_submitted,
        questions=rows,
    )

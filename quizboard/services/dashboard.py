"""Per-role summary counts. Read-only."""

from __future__ import annotations

from sqlalchemy import func

from ..errors import NotFound
from ..extensions import db
from ..models import (ActiveQuizSession, EnrollmentStatus, Quiz, QuizEnrollment,
                      QuizSubmission, SessionStatus, Subject, SubjectEnrollment, User)

RECENT_ACTIVITY_LIMIT = 5


def teacher_dashboard(teacher_id: int) -> dict:
    subject_ids = [sid for (sid,) in db.session.query(Subject.id)
                   .filter(Subject.teacher_id == teacher_id).all()]
    if not subject_ids:
        return {
            "subject_count": 0,
            "quiz_count": 0,
            "student_count": 0,
            "pending_subject_requests": 0,
            "pending_quiz_requests": 0,
            "pending_requests": 0,
            "pending_by_subject": {},
            "active_sessions": 0,
        }

    quiz_count = Quiz.query.filter(Quiz.subject_id.in_(subject_ids)).count()
    student_count = (db.session.query(func.count(func.distinct(SubjectEnrollment.student_id)))
                     .filter(SubjectEnrollment.subject_id.in_(subject_ids),
                             SubjectEnrollment.status == EnrollmentStatus.approved)
                     .scalar()) or 0
    pending_by_subject = dict(
        db.session.query(SubjectEnrollment.subject_id, func.count(SubjectEnrollment.id))
        .filter(SubjectEnrollment.subject_id.in_(subject_ids),
                SubjectEnrollment.status == EnrollmentStatus.pending)
        .group_by(SubjectEnrollment.subject_id)
        .all()
    )
    pending_quiz = (QuizEnrollment.query.join(Quiz)
                    .filter(Quiz.subject_id.in_(subject_ids),
                            QuizEnrollment.status == EnrollmentStatus.pending)
                    .count())
    active_sessions = (ActiveQuizSession.query.join(Quiz)
                       .filter(Quiz.subject_id.in_(subject_ids),
                               ActiveQuizSession.status == SessionStatus.active)
                       .count())
    pending_subject = sum(pending_by_subject.values())
    return {
        "subject_count": len(subject_ids),
        "quiz_count": quiz_count,
        "student_count": student_count,
        "pending_subject_requests": pending_subject,
        "pending_quiz_requests": pending_quiz,
        "pending_requests": pending_subject + pending_quiz,
        "pending_by_subject": {str(k): v for k, v in pending_by_subject.items()},
        "active_sessions": active_sessions,
    }


def _count(model, student_id, status):
    return model.query.filter_by(student_id=student_id, status=status).count()


def student_dashboard(student_id: int) -> dict:
    student = db.session.get(User, student_id)
    if student is None:
        raise NotFound("student does not exist")

    enrolled_quiz_ids = [qid for (qid,) in db.session.query(QuizEnrollment.quiz_id)
                         .filter_by(student_id=student_id, status=EnrollmentStatus.approved)
                         .all()]
    submitted_ids = {qid for (qid,) in db.session.query(QuizSubmission.quiz_id)
                     .filter_by(student_id=student_id).all()}
    active_quizzes = []
    if enrolled_quiz_ids:
        active_quizzes = [
            {"quiz_id": s.quiz_id, "title": s.quiz.title, "session_id": s.id}
            for s in (ActiveQuizSession.query
                      .filter(ActiveQuizSession.quiz_id.in_(enrolled_quiz_ids),
                              ActiveQuizSession.status == SessionStatus.active)
                      .all())
            if s.quiz_id not in submitted_ids
        ]

    recent = (QuizSubmission.query
              .filter_by(student_id=student_id)
              .order_by(QuizSubmission.submitted_at.desc())
              .limit(RECENT_ACTIVITY_LIMIT)
              .all())
    pending_subjects = _count(SubjectEnrollment, student_id, EnrollmentStatus.pending)
    pending_quizzes = _count(QuizEnrollment, student_id, EnrollmentStatus.pending)
    return {
        "enrolled_subjects": _count(SubjectEnrollment, student_id, EnrollmentStatus.approved),
        "pending_subjects": pending_subjects,
        "enrolled_quizzes": len(enrolled_quiz_ids),
        "pending_quizzes": pending_quizzes,
        "pending_requests": pending_subjects + pending_quizzes,
        "total_points": student.total_points or 0,
        "completed_quizzes": len(submitted_ids),
        "active_quizzes": active_quizzes,
        "recent_activity": [
            {"quiz_id": s.quiz_id, "title": s.quiz.title, "score": s.score,
             "submitted_at": s.submitted_at.isoformat()}
            for s in recent
        ],
    }

"""Subject- and quiz-level enrollment requests and the access rule built on them."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy.orm import selectinload

from ..errors import (DuplicateRequest, InvalidTransition, NotAuthorized, NotFound,
                      NotOwner, ValidationError)
from ..extensions import db
from ..models import (EnrollmentKind, EnrollmentStatus, Quiz, QuizEnrollment, Role,
                      Subject, SubjectEnrollment, User)
from . import commit

log = logging.getLogger(__name__)

_MODELS = {
    EnrollmentKind.subject: (SubjectEnrollment, Subject, "subject_id"),
    EnrollmentKind.quiz: (QuizEnrollment, Quiz, "quiz_id"),
}


@dataclass(slots=True, frozen=True)
class AccessStatus:
    is_enrolled: bool
    is_pending: bool

    def to_dict(self) -> dict:
        return {"is_enrolled": self.is_enrolled, "is_pending": self.is_pending}


def parse_kind(value) -> EnrollmentKind:
    try:
        return EnrollmentKind(value)
    except ValueError:
        raise ValidationError(f"unknown enrollment kind: {value!r}") from None


def _find(kind: EnrollmentKind, student_id: int, target_id: int):
    model, _, column = _MODELS[kind]
    return model.query.filter_by(student_id=student_id, **{column: target_id}).one_or_none()


def request_enrollment(kind: EnrollmentKind, actor_id: int, target_id: int):
    """Create a pending request for ``actor_id`` on a subject or quiz."""
    model, target_model, column = _MODELS[kind]
    actor = db.session.get(User, actor_id)
    if actor is None or actor.role != Role.student:
        raise NotAuthorized("only students can request enrollment")
    if db.session.get(target_model, target_id) is None:
        raise NotFound(f"{kind.value} does not exist")

    existing = _find(kind, actor_id, target_id)
    if existing is not None:
        raise DuplicateRequest(f"a {existing.status.value} {kind.value} enrollment already exists")

    row = model(student_id=actor_id, status=EnrollmentStatus.pending, **{column: target_id})
    db.session.add(row)
    commit(DuplicateRequest(f"a {kind.value} enrollment already exists"))
    log.info("student %s requested %s enrollment for %s", actor_id, kind.value, target_id)
    return row


def cancel_request(kind: EnrollmentKind, enrollment_id: int, actor_id: int) -> None:
    model = _MODELS[kind][0]
    row = db.session.get(model, enrollment_id)
    if row is None:
        raise NotFound("enrollment request does not exist")
    if row.student_id != actor_id:
        raise NotOwner("enrollment request belongs to another student")
    if row.status != EnrollmentStatus.pending:
        raise InvalidTransition(f"request is already {row.status.value}")
    db.session.delete(row)
    commit()
    log.info("student %s cancelled %s enrollment %s", actor_id, kind.value, enrollment_id)


def decide(kind: EnrollmentKind, enrollment_id: int, teacher_id: int, approve: bool):
    """Approve or reject a pending request; both outcomes are terminal."""
    model = _MODELS[kind][0]
    row = db.session.get(model, enrollment_id)
    if row is None:
        raise NotFound("enrollment request does not exist")
    if row.owner_id != teacher_id:
        raise NotAuthorized(f"you do not own this {kind.value}")
    if row.status != EnrollmentStatus.pending:
        raise InvalidTransition(f"request is already {row.status.value}")

    # guarded update so two racing decisions cannot both apply
    new_status = EnrollmentStatus.approved if approve else EnrollmentStatus.rejected
    updated = (model.query
               .filter_by(id=enrollment_id, status=EnrollmentStatus.pending)
               .update({"status": new_status}, synchronize_session=False))
    if not updated:
        db.session.rollback()
        raise InvalidTransition("request was decided concurrently")
    commit()
    db.session.refresh(row)
    log.info("teacher %s %s %s enrollment %s", teacher_id, new_status.value,
             kind.value, enrollment_id)
    return row


def get_access_status(kind: EnrollmentKind, student_id: int, target_id: int) -> AccessStatus:
    row = _find(kind, student_id, target_id)
    if row is None:
        return AccessStatus(is_enrolled=False, is_pending=False)
    return AccessStatus(is_enrolled=row.status == EnrollmentStatus.approved,
                        is_pending=row.status == EnrollmentStatus.pending)


def can_take_quiz(student_id: int, quiz: Quiz) -> bool:
    """Apply the configured access rule for quiz participation.

    ``all`` needs both the subject and the quiz enrollment approved,
    ``any`` accepts either one.
    """
    subject_ok = get_access_status(EnrollmentKind.subject, student_id, quiz.subject_id).is_enrolled
    quiz_ok = get_access_status(EnrollmentKind.quiz, student_id, quiz.id).is_enrolled
    if current_app.config.get("QUIZ_ACCESS_RULE", "all") == "any":
        return subject_ok or quiz_ok
    return subject_ok and quiz_ok


def pending_requests(teacher_id: int) -> dict:
    """Pending subject and quiz requests on everything ``teacher_id`` owns."""
    subjects = (SubjectEnrollment.query
                .options(selectinload(SubjectEnrollment.student),
                         selectinload(SubjectEnrollment.subject))
                .join(Subject)
                .filter(Subject.teacher_id == teacher_id,
                        SubjectEnrollment.status == EnrollmentStatus.pending)
                .order_by(SubjectEnrollment.created_at.asc())
                .all())
    quizzes = (QuizEnrollment.query
               .options(selectinload(QuizEnrollment.student),
                        selectinload(QuizEnrollment.quiz))
               .join(Quiz).join(Subject)
               .filter(Subject.teacher_id == teacher_id,
                       QuizEnrollment.status == EnrollmentStatus.pending)
               .order_by(QuizEnrollment.created_at.asc())
               .all())
    return {"subjects": subjects, "quizzes": quizzes}

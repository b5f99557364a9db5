"""Live quiz sessions: start/stop, student participation, countdown and monitoring.

A quiz moves ``Inactive -> Active -> Ended``. Only one session per quiz may be
active at a time; the partial unique index on ``active_quiz_session`` backs the
check done here. Ending a session force-submits every student still in
progress with the answers they last reported through a heartbeat. A stop
interrupted part way can be repeated to finish the job.

Live views poll: the monitor payload carries the interval clients should wait
between requests, and a new poll is only issued once the previous one returned.
The monitor itself never writes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (AlreadyActive, AlreadySubmitted, InvalidTransition, NotAuthorized,
                      NotEnrolled, NotFound, SessionNotActive)
from ..extensions import db
from ..models import (ActiveQuizParticipation, ActiveQuizSession, EnrollmentStatus, Quiz,
                      QuizEnrollment, QuizSubmission, SessionStatus, utcnow)
from . import commit
from .enrollment import can_take_quiz
from .scoring import has_submitted, normalize_answers, record_submission, recorded_answers
from .timing import countdown

log = logging.getLogger(__name__)

NOT_STARTED = "not_started"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"


@dataclass(slots=True)
class StopResult:
    session: ActiveQuizSession
    auto_submitted: list[int] = field(default_factory=list)


@dataclass(slots=True)
class MonitorRow:
    student_id: int
    student_name: str
    status: str
    score: int | None = None


@dataclass(slots=True)
class MonitorView:
    quiz_id: int
    session: ActiveQuizSession | None
    students: list[MonitorRow]
    poll_interval: int
    expired: bool = False

    def count(self, status: str) -> int:
        return sum(1 for s in self.students if s.status == status)

    def to_dict(self) -> dict:
        return {
            "quiz_id": self.quiz_id,
            "session": self.session.to_dict() if self.session else None,
            "students": [
                {"student_id": s.student_id, "student_name": s.student_name,
                 "status": s.status, "score": s.score}
                for s in self.students
            ],
            "completed": self.count(COMPLETED),
            "in_progress": self.count(IN_PROGRESS),
            "not_started": self.count(NOT_STARTED),
            "poll_interval": self.poll_interval,
            "expired": self.expired,
        }


def _owned_quiz(quiz_id: int, teacher_id: int) -> Quiz:
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound("quiz does not exist")
    if quiz.teacher_id != teacher_id:
        raise NotAuthorized("you do not own this quiz")
    return quiz


def active_session(quiz_id: int) -> ActiveQuizSession | None:
    return ActiveQuizSession.query.filter_by(
        quiz_id=quiz_id, status=SessionStatus.active).one_or_none()


def _require_active(quiz_id: int) -> ActiveQuizSession:
    session = active_session(quiz_id)
    if session is None:
        raise SessionNotActive("this quiz is not currently active")
    return session


def start(quiz_id: int, teacher_id: int) -> ActiveQuizSession:
    _owned_quiz(quiz_id, teacher_id)
    if active_session(quiz_id) is not None:
        raise AlreadyActive("a session is already active for this quiz")
    session = ActiveQuizSession(quiz_id=quiz_id, teacher_id=teacher_id,
                                status=SessionStatus.active, start_time=utcnow())
    db.session.add(session)
    commit(AlreadyActive("a session is already active for this quiz"))
    log.info("teacher %s started session %s for quiz %s", teacher_id, session.id, quiz_id)
    return session


def stop(session_id: int, teacher_id: int) -> StopResult:
    session = db.session.get(ActiveQuizSession, session_id)
    if session is None:
        raise NotFound("session does not exist")
    quiz = _owned_quiz(session.quiz_id, teacher_id)
    if session.is_active:
        session.status = SessionStatus.ended
        session.end_time = utcnow()
        commit()
        log.info("teacher %s stopped session %s for quiz %s", teacher_id, session_id, quiz.id)
    elif (active_session(quiz.id) is not None
          or ActiveQuizParticipation.query.filter_by(quiz_id=quiz.id).first() is None):
        raise InvalidTransition("session has already ended")
    else:
        # an interrupted stop is repeated to flush the attempts it left behind
        log.info("teacher %s resumed stop of session %s for quiz %s",
                 teacher_id, session_id, quiz.id)

    submitted = list(_force_submit(quiz, _pending_participations(quiz.id)))
    if submitted:
        log.info("auto-submitted %d attempts on quiz %s at stop", len(submitted), quiz.id)
    return StopResult(session=session, auto_submitted=submitted)


def _pending_participations(quiz_id: int) -> list[tuple[int, dict]]:
    """Participations without a submission, as ``(student_id, answers)`` pairs."""
    rows = (ActiveQuizParticipation.query
            .filter_by(quiz_id=quiz_id)
            .order_by(ActiveQuizParticipation.start_time.asc())
            .all())
    return [(p.student_id, dict(p.answers or {})) for p in rows]


def _force_submit(quiz: Quiz, pending):
    for student_id, answers in pending:
        if has_submitted(quiz.id, student_id):
            # stale row left behind by an earlier submit
            (ActiveQuizParticipation.query
             .filter_by(quiz_id=quiz.id, student_id=student_id)
             .delete(synchronize_session=False))
            commit()
            continue
        try:
            record_submission(quiz, student_id, normalize_answers(answers),
                              auto_submitted=True)
        except AlreadySubmitted:
            log.warning("student %s submitted quiz %s while being auto-submitted",
                        student_id, quiz.id)
            continue
        yield student_id


def begin_participation(quiz_id: int, student_id: int) -> ActiveQuizParticipation:
    """Mark ``student_id`` as in progress; calling it again only refreshes the row."""
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound("quiz does not exist")
    session = _require_active(quiz_id)
    if not can_take_quiz(student_id, quiz):
        raise NotEnrolled("you are not enrolled in this quiz")
    if has_submitted(quiz_id, student_id):
        raise AlreadySubmitted("quiz already submitted")
    if countdown(session).expired:
        raise SessionNotActive("time for this session has run out")
    return _touch(quiz_id, student_id)


def _touch(quiz_id: int, student_id: int, answers: dict | None = None) -> ActiveQuizParticipation:
    now = utcnow()
    row = ActiveQuizParticipation.query.filter_by(
        quiz_id=quiz_id, student_id=student_id).one_or_none()
    if row is None:
        row = ActiveQuizParticipation(quiz_id=quiz_id, student_id=student_id,
                                      start_time=now, last_activity=now, answers={})
        db.session.add(row)
    row.last_activity = now
    if answers is not None:
        row.answers = {str(qid): idx for qid, idx in answers.items()}
    try:
        commit()
    except IntegrityError:
        # another heartbeat inserted the row first
        row = ActiveQuizParticipation.query.filter_by(
            quiz_id=quiz_id, student_id=student_id).one()
        row.last_activity = now
        if answers is not None:
            row.answers = {str(qid): idx for qid, idx in answers.items()}
        commit()
    return row


def heartbeat(quiz_id: int, student_id: int, raw_answers=None):
    """Refresh a participation and record the answers selected so far.

    Returns ``(participation, None)`` while the countdown runs and
    ``(None, submission)`` once it has expired and the attempt was submitted.
    Heartbeats after the session ended are refused so no stale writes land.
    """
    answers = normalize_answers(raw_answers) if raw_answers is not None else None
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound("quiz does not exist")
    session = _require_active(quiz_id)
    if not can_take_quiz(student_id, quiz):
        raise NotEnrolled("you are not enrolled in this quiz")
    if has_submitted(quiz_id, student_id):
        raise AlreadySubmitted("quiz already submitted")

    if countdown(session).expired:
        # answers arriving after the deadline are not counted
        submission = record_submission(quiz, student_id, recorded_answers(quiz_id, student_id),
                                       auto_submitted=True)
        return None, submission
    return _touch(quiz_id, student_id, answers), None


def sweep_expired(session: ActiveQuizSession, now: datetime | None = None) -> list[int]:
    """Auto-submit every in-progress student once the session is over.

    An active session is over when its countdown has run out. An ended session
    still has participations only when its stop was interrupted.
    """
    if session.is_active:
        if not countdown(session, now).expired:
            return []
    elif active_session(session.quiz_id) is not None:
        return []
    quiz = session.quiz
    submitted = list(_force_submit(quiz, _pending_participations(quiz.id)))
    if submitted:
        log.info("auto-submitted %d expired attempts on quiz %s", len(submitted), quiz.id)
    return submitted


def sweep_all(now: datetime | None = None) -> dict[int, list[int]]:
    swept = {}
    live = ActiveQuizSession.query.filter_by(status=SessionStatus.active).all()
    for session in live:
        students = sweep_expired(session, now)
        if students:
            swept[session.quiz_id] = students

    # attempts left behind on quizzes that are no longer live
    orphaned = {qid for (qid,) in db.session.query(ActiveQuizParticipation.quiz_id).distinct()}
    for quiz_id in sorted(orphaned - {s.quiz_id for s in live}):
        students = list(_force_submit(db.session.get(Quiz, quiz_id),
                                      _pending_participations(quiz_id)))
        if students:
            log.info("auto-submitted %d stranded attempts on quiz %s", len(students), quiz_id)
            swept[quiz_id] = students
    return swept


def monitor(quiz_id: int, teacher_id: int) -> MonitorView:
    quiz = _owned_quiz(quiz_id, teacher_id)
    session = active_session(quiz_id)

    enrollments = (QuizEnrollment.query
                   .filter_by(quiz_id=quiz.id, status=EnrollmentStatus.approved)
                   .order_by(QuizEnrollment.id.asc())
                   .all())
    scores = {s.student_id: s.score
              for s in QuizSubmission.query.filter_by(quiz_id=quiz.id).all()}
    in_progress = {p.student_id
                   for p in ActiveQuizParticipation.query.filter_by(quiz_id=quiz.id).all()}

    rows = []
    for en in enrollments:
        if en.student_id in scores:
            status = COMPLETED
        elif en.student_id in in_progress:
            status = IN_PROGRESS
        else:
            status = NOT_STARTED
        rows.append(MonitorRow(student_id=en.student_id, student_name=en.student.name,
                               status=status, score=scores.get(en.student_id)))
    return MonitorView(quiz_id=quiz.id, session=session, students=rows,
                       poll_interval=current_app.config.get("MONITOR_POLL_SECONDS", 10),
                       expired=session is not None and countdown(session).expired)

from datetime import timedelta

import pytest

from quizboard.errors import (AlreadyActive, AlreadySubmitted, InvalidTransition, NotAuthorized,
                              NotEnrolled, SessionNotActive, StoreUnavailable)
from quizboard.extensions import db
from quizboard.models import (ActiveQuizParticipation, QuizSubmission, Role, SessionStatus,
                              User, utcnow)
from quizboard.services import quiz_session, scoring


@pytest.fixture
def quiz(teacher, student, make_quiz, approve):
    quiz = make_quiz(teacher, questions=((10, 2), (15, 1)))
    approve(student, quiz)
    return quiz


def _rewind(session, minutes):
    session.start_time = utcnow() - timedelta(minutes=minutes)
    db.session.commit()


def test_start_then_start_again_fails(teacher, quiz):
    session = quiz_session.start(quiz.id, teacher.id)
    assert session.status == SessionStatus.active
    assert session.start_time is not None
    with pytest.raises(AlreadyActive):
        quiz_session.start(quiz.id, teacher.id)


def test_start_requires_owner(make_user, quiz):
    other = make_user(Role.teacher)
    with pytest.raises(NotAuthorized):
        quiz_session.start(quiz.id, other.id)


def test_stop_ends_session(teacher, quiz):
    session = quiz_session.start(quiz.id, teacher.id)
    result = quiz_session.stop(session.id, teacher.id)
    assert result.session.status == SessionStatus.ended
    assert result.session.end_time is not None
    assert quiz_session.active_session(quiz.id) is None
    with pytest.raises(InvalidTransition):
        quiz_session.stop(session.id, teacher.id)


def test_can_restart_after_stop(teacher, quiz):
    first = quiz_session.start(quiz.id, teacher.id)
    quiz_session.stop(first.id, teacher.id)
    second = quiz_session.start(quiz.id, teacher.id)
    assert second.id != first.id


def test_stop_auto_submits_in_progress_students(teacher, student, make_user, approve, quiz):
    idle = make_user()
    approve(idle, quiz)
    session = quiz_session.start(quiz.id, teacher.id)
    q1, q2 = quiz.questions
    quiz_session.begin_participation(quiz.id, student.id)
    quiz_session.heartbeat(quiz.id, student.id, {str(q1.id): 2, str(q2.id): 1})

    result = quiz_session.stop(session.id, teacher.id)

    assert result.auto_submitted == [student.id]
    submission = QuizSubmission.query.filter_by(student_id=student.id).one()
    assert submission.score == 25
    assert submission.auto_submitted is True
    assert ActiveQuizParticipation.query.count() == 0
    assert db.session.get(User, student.id).total_points == 25
    assert QuizSubmission.query.filter_by(student_id=idle.id).count() == 0


def test_begin_requires_active_session(student, quiz):
    with pytest.raises(SessionNotActive):
        quiz_session.begin_participation(quiz.id, student.id)


def test_begin_requires_enrollment(teacher, make_user, quiz):
    quiz_session.start(quiz.id, teacher.id)
    outsider = make_user()
    with pytest.raises(NotEnrolled):
        quiz_session.begin_participation(quiz.id, outsider.id)


def test_begin_is_idempotent(teacher, student, quiz):
    quiz_session.start(quiz.id, teacher.id)
    first = quiz_session.begin_participation(quiz.id, student.id)
    started = first.start_time
    second = quiz_session.begin_participation(quiz.id, student.id)
    assert second.id == first.id
    assert second.start_time == started
    assert ActiveQuizParticipation.query.filter_by(student_id=student.id).count() == 1


def test_begin_after_submit_fails(teacher, student, quiz):
    quiz_session.start(quiz.id, teacher.id)
    scoring.submit(quiz.id, student.id, {})
    with pytest.raises(AlreadySubmitted):
        quiz_session.begin_participation(quiz.id, student.id)


def test_heartbeat_after_stop_is_refused(teacher, student, quiz):
    session = quiz_session.start(quiz.id, teacher.id)
    quiz_session.begin_participation(quiz.id, student.id)
    quiz_session.stop(session.id, teacher.id)
    with pytest.raises(SessionNotActive):
        quiz_session.heartbeat(quiz.id, student.id, {})


def test_countdown_uses_configured_duration(app, teacher, quiz):
    session = quiz_session.start(quiz.id, teacher.id)
    cd = quiz_session.countdown(session, now=session.start_time + timedelta(minutes=10))
    assert cd.deadline == session.start_time + timedelta(minutes=30)
    assert cd.remaining_seconds == 20 * 60
    assert cd.expired is False
    assert quiz_session.countdown(session, now=cd.deadline).expired is True


def test_heartbeat_past_deadline_auto_submits(teacher, student, quiz):
    session = quiz_session.start(quiz.id, teacher.id)
    q1 = quiz.questions[0]
    quiz_session.begin_participation(quiz.id, student.id)
    quiz_session.heartbeat(quiz.id, student.id, {q1.id: 2})
    _rewind(session, 31)

    participation, submission = quiz_session.heartbeat(quiz.id, student.id)

    assert participation is None
    assert submission.score == 10
    assert submission.auto_submitted is True


def test_sweep_expired_submits_everyone_in_progress(teacher, student, quiz):
    session = quiz_session.start(quiz.id, teacher.id)
    quiz_session.begin_participation(quiz.id, student.id)
    assert quiz_session.sweep_expired(session) == []

    _rewind(session, 45)
    assert quiz_session.sweep_all() == {quiz.id: [student.id]}
    assert ActiveQuizParticipation.query.count() == 0


def test_monitor_projection(teacher, student, make_user, approve, quiz):
    busy, idle = make_user(name="Bob"), make_user(name="Cid")
    approve(busy, quiz)
    approve(idle, quiz)
    quiz_session.start(quiz.id, teacher.id)
    scoring.submit(quiz.id, student.id, {})
    quiz_session.begin_participation(quiz.id, busy.id)

    view = quiz_session.monitor(quiz.id, teacher.id)

    statuses = {row.student_id: row.status for row in view.students}
    assert statuses == {
        student.id: quiz_session.COMPLETED,
        busy.id: quiz_session.IN_PROGRESS,
        idle.id: quiz_session.NOT_STARTED,
    }
    data = view.to_dict()
    assert (data["completed"], data["in_progress"], data["not_started"]) == (1, 1, 1)
    assert data["poll_interval"] == 10


def test_monitor_requires_owner(make_user, quiz):
    with pytest.raises(NotAuthorized):
        quiz_session.monitor(quiz.id, make_user(Role.teacher).id)


def _interrupted_stop(monkeypatch, teacher, quiz, students):
    """Stop a session whose second auto-submit hits a store outage."""
    session = quiz_session.start(quiz.id, teacher.id)
    for s in students:
        quiz_session.begin_participation(quiz.id, s.id)
    real = quiz_session.record_submission
    calls = []

    def flaky(*args, **kwargs):
        calls.append(args)
        if len(calls) == 2:
            raise StoreUnavailable("data store unavailable, please retry")
        return real(*args, **kwargs)

    monkeypatch.setattr(quiz_session, "record_submission", flaky)
    with pytest.raises(StoreUnavailable):
        quiz_session.stop(session.id, teacher.id)
    monkeypatch.undo()
    return session, ActiveQuizParticipation.query.one().student_id


def test_interrupted_stop_can_be_repeated(monkeypatch, teacher, student, make_user,
                                          approve, quiz):
    bob = make_user(name="Bob")
    approve(bob, quiz)
    session, left = _interrupted_stop(monkeypatch, teacher, quiz, [student, bob])
    assert session.status == SessionStatus.ended

    result = quiz_session.stop(session.id, teacher.id)

    assert result.auto_submitted == [left]
    assert ActiveQuizParticipation.query.count() == 0
    assert QuizSubmission.query.filter_by(quiz_id=quiz.id).count() == 2
    with pytest.raises(InvalidTransition):
        quiz_session.stop(session.id, teacher.id)


def test_sweep_all_drains_attempts_left_by_interrupted_stop(monkeypatch, teacher, student,
                                                           make_user, approve, quiz):
    bob = make_user(name="Bob")
    approve(bob, quiz)
    session, left = _interrupted_stop(monkeypatch, teacher, quiz, [student, bob])

    assert quiz_session.sweep_expired(session) == [left]
    assert quiz_session.sweep_all() == {}
    statuses = {row.status for row in quiz_session.monitor(quiz.id, teacher.id).students}
    assert statuses == {quiz_session.COMPLETED}


def test_sweep_all_picks_up_stranded_quizzes(monkeypatch, teacher, student, make_user,
                                             approve, quiz):
    bob = make_user(name="Bob")
    approve(bob, quiz)
    _, left = _interrupted_stop(monkeypatch, teacher, quiz, [student, bob])
    assert quiz_session.sweep_all() == {quiz.id: [left]}


def test_monitor_does_not_write(teacher, student, quiz):
    session = quiz_session.start(quiz.id, teacher.id)
    quiz_session.begin_participation(quiz.id, student.id)
    _rewind(session, 45)

    view = quiz_session.monitor(quiz.id, teacher.id)

    assert view.expired is True
    assert [row.status for row in view.students] == [quiz_session.IN_PROGRESS]
    assert view.to_dict()["expired"] is True
    assert QuizSubmission.query.count() == 0
    assert ActiveQuizParticipation.query.count() == 1
    assert db.session.get(User, student.id).total_points == 0

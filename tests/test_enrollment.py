import pytest

from quizboard.errors import (DuplicateRequest, InvalidTransition, NotAuthorized, NotFound,
                              NotOwner)
from quizboard.models import EnrollmentKind, EnrollmentStatus, Role, SubjectEnrollment
from quizboard.services import enrollment


def test_request_then_approve_grants_quiz_access(teacher, student, make_quiz):
    quiz = make_quiz(teacher)
    row = enrollment.request_enrollment(EnrollmentKind.quiz, student.id, quiz.id)
    assert row.status == EnrollmentStatus.pending
    assert enrollment.get_access_status(EnrollmentKind.quiz, student.id, quiz.id).to_dict() == {
        "is_enrolled": False, "is_pending": True}

    enrollment.decide(EnrollmentKind.quiz, row.id, teacher.id, approve=True)

    status = enrollment.get_access_status(EnrollmentKind.quiz, student.id, quiz.id)
    assert status.is_enrolled is True
    assert status.is_pending is False


def test_access_status_is_idempotent(teacher, student, make_quiz):
    quiz = make_quiz(teacher)
    enrollment.request_enrollment(EnrollmentKind.subject, student.id, quiz.subject_id)
    first = enrollment.get_access_status(EnrollmentKind.subject, student.id, quiz.subject_id)
    second = enrollment.get_access_status(EnrollmentKind.subject, student.id, quiz.subject_id)
    assert first == second


def test_no_row_means_not_enrolled(teacher, student, make_quiz):
    quiz = make_quiz(teacher)
    status = enrollment.get_access_status(EnrollmentKind.subject, student.id, quiz.subject_id)
    assert (status.is_enrolled, status.is_pending) == (False, False)


def test_duplicate_request_rejected(teacher, student, make_quiz):
    quiz = make_quiz(teacher)
    enrollment.request_enrollment(EnrollmentKind.subject, student.id, quiz.subject_id)
    with pytest.raises(DuplicateRequest):
        enrollment.request_enrollment(EnrollmentKind.subject, student.id, quiz.subject_id)
    assert SubjectEnrollment.query.filter_by(student_id=student.id).count() == 1


def test_request_unknown_target(student):
    with pytest.raises(NotFound):
        enrollment.request_enrollment(EnrollmentKind.quiz, student.id, 999)


def test_teacher_cannot_request(teacher, make_quiz):
    quiz = make_quiz(teacher)
    with pytest.raises(NotAuthorized):
        enrollment.request_enrollment(EnrollmentKind.quiz, teacher.id, quiz.id)


def test_decide_twice_is_invalid(teacher, student, make_quiz):
    quiz = make_quiz(teacher)
    row = enrollment.request_enrollment(EnrollmentKind.quiz, student.id, quiz.id)
    decided = enrollment.decide(EnrollmentKind.quiz, row.id, teacher.id, approve=False)
    assert decided.status == EnrollmentStatus.rejected
    with pytest.raises(InvalidTransition):
        enrollment.decide(EnrollmentKind.quiz, row.id, teacher.id, approve=True)
    assert enrollment.get_access_status(
        EnrollmentKind.quiz, student.id, quiz.id).is_enrolled is False


def test_decide_requires_ownership(teacher, student, make_user, make_quiz):
    other = make_user(Role.teacher)
    quiz = make_quiz(teacher)
    row = enrollment.request_enrollment(EnrollmentKind.subject, student.id, quiz.subject_id)
    with pytest.raises(NotAuthorized):
        enrollment.decide(EnrollmentKind.subject, row.id, other.id, approve=True)


def test_cancel_pending_request(teacher, student, make_user, make_quiz):
    quiz = make_quiz(teacher)
    row = enrollment.request_enrollment(EnrollmentKind.quiz, student.id, quiz.id)
    other = make_user(Role.student)
    with pytest.raises(NotOwner):
        enrollment.cancel_request(EnrollmentKind.quiz, row.id, other.id)

    enrollment.cancel_request(EnrollmentKind.quiz, row.id, student.id)
    assert enrollment.get_access_status(EnrollmentKind.quiz, student.id, quiz.id) == \
        enrollment.AccessStatus(False, False)
    with pytest.raises(NotFound):
        enrollment.cancel_request(EnrollmentKind.quiz, row.id, student.id)


def test_cannot_cancel_decided_request(teacher, student, make_quiz):
    quiz = make_quiz(teacher)
    row = enrollment.request_enrollment(EnrollmentKind.quiz, student.id, quiz.id)
    enrollment.decide(EnrollmentKind.quiz, row.id, teacher.id, approve=True)
    with pytest.raises(InvalidTransition):
        enrollment.cancel_request(EnrollmentKind.quiz, row.id, student.id)


def test_access_rule_all_needs_both(app, teacher, student, make_quiz):
    quiz = make_quiz(teacher)
    row = enrollment.request_enrollment(EnrollmentKind.quiz, student.id, quiz.id)
    enrollment.decide(EnrollmentKind.quiz, row.id, teacher.id, approve=True)
    assert enrollment.can_take_quiz(student.id, quiz) is False

    row = enrollment.request_enrollment(EnrollmentKind.subject, student.id, quiz.subject_id)
    enrollment.decide(EnrollmentKind.subject, row.id, teacher.id, approve=True)
    assert enrollment.can_take_quiz(student.id, quiz) is True


def test_access_rule_any(app, teacher, student, make_quiz):
    app.config["QUIZ_ACCESS_RULE"] = "any"
    quiz = make_quiz(teacher)
    row = enrollment.request_enrollment(EnrollmentKind.subject, student.id, quiz.subject_id)
    enrollment.decide(EnrollmentKind.subject, row.id, teacher.id, approve=True)
    assert enrollment.can_take_quiz(student.id, quiz) is True


def test_pending_requests_only_for_owned(teacher, student, make_user, make_quiz):
    other = make_user(Role.teacher)
    mine = make_quiz(teacher)
    theirs = make_quiz(other)
    enrollment.request_enrollment(EnrollmentKind.quiz, student.id, mine.id)
    enrollment.request_enrollment(EnrollmentKind.quiz, student.id, theirs.id)
    enrollment.request_enrollment(EnrollmentKind.subject, student.id, mine.subject_id)

    pending = enrollment.pending_requests(teacher.id)
    assert [e.quiz_id for e in pending["quizzes"]] == [mine.id]
    assert [e.subject_id for e in pending["subjects"]] == [mine.subject_id]

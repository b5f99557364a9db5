import pytest
from flask import g

from quizboard import create_app
from quizboard.extensions import db
from quizboard.models import (EnrollmentStatus, Question, Quiz, QuizEnrollment, Role,
                              Subject, SubjectEnrollment, User)

PASSWORD = "secret123"


@pytest.fixture
def app():
    app = create_app("config.TestConfig")

    # requests reuse the fixture app context, so drop the cached login per request
    @app.teardown_request
    def forget_user(exc):
        g.pop("_login_user", None)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role=Role.student, name=None):
        counter["n"] += 1
        n = counter["n"]
        u = User(email=f"{role.value}{n}@example.com", name=name or f"{role.value.title()} {n}",
                 role=role, total_points=0)
        u.set_password(PASSWORD)
        db.session.add(u)
        db.session.commit()
        return u

    return _make


@pytest.fixture
def teacher(make_user):
    return make_user(Role.teacher, name="Ms Teacher")


@pytest.fixture
def student(make_user):
    return make_user(Role.student, name="Alice")


@pytest.fixture
def make_quiz(app):
    def _make(teacher, questions=((10, 2), (15, 1)), subject=None, title="Quiz"):
        if subject is None:
            subject = Subject(name="Science", description="", teacher_id=teacher.id)
            db.session.add(subject)
            db.session.flush()
        quiz = Quiz(subject_id=subject.id, title=title, description="")
        for pos, (points, correct) in enumerate(questions):
            quiz.questions.append(Question(position=pos, text=f"Q{pos + 1}",
                                           options=["a", "b", "c", "d"],
                                           correct_option_index=correct, points=points))
        db.session.add(quiz)
        db.session.commit()
        return quiz

    return _make


@pytest.fixture
def approve(app):
    """Approve a student for a quiz and its subject directly in the store."""
    def _approve(student, quiz):
        if not SubjectEnrollment.query.filter_by(student_id=student.id,
                                                 subject_id=quiz.subject_id).first():
            db.session.add(SubjectEnrollment(student_id=student.id, subject_id=quiz.subject_id,
                                             status=EnrollmentStatus.approved))
        db.session.add(QuizEnrollment(student_id=student.id, quiz_id=quiz.id,
                                      status=EnrollmentStatus.approved))
        db.session.commit()

    return _approve


def login(app, user):
    client = app.test_client()
    resp = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def login_as(app):
    return lambda user: login(app, user)

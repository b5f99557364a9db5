from flask import request, jsonify
from flask_login import login_required, current_user
from sqlalchemy.orm import selectinload
from ...extensions import db
from ...errors import NotFound, ValidationError
from ...models import Subject, Quiz, SubjectEnrollment, QuizEnrollment, Role, EnrollmentKind
from ...services import enrollment, quiz_session, scoring
from ..auth.routes import role_required, payload
from . import bp

def get_quiz(quiz_id):
    quiz = db.session.get(Quiz, quiz_id)
    if not quiz:
        raise NotFound("Quiz does not exist")
    return quiz

@bp.get("/subjects")
@login_required
@role_required(Role.student)
def list_subjects():
    kw = (request.args.get("q") or "").strip()
    q = Subject.query.options(selectinload(Subject.teacher), selectinload(Subject.quizzes))
    if kw:
        q = q.filter(Subject.name.ilike(f"%{kw}%"))
    subjects = q.order_by(Subject.name.asc()).all()
    mine = {e.subject_id: e for e in SubjectEnrollment.query.filter_by(student_id=current_user.id).all()}
    return jsonify({"ok": True, "subjects": [
        dict(s.to_dict(),
             teacher_name=s.teacher.name,
             quiz_count=len(s.quizzes),
             enrollment=mine[s.id].to_dict() if s.id in mine else None)
        for s in subjects
    ]})

@bp.get("/subjects/<int:subject_id>/quizzes")
@login_required
@role_required(Role.student)
def list_quizzes(subject_id):
    s = db.session.get(Subject, subject_id)
    if not s:
        raise NotFound("Subject does not exist")
    quiz_ids = [qz.id for qz in s.quizzes]
    mine = {}
    if quiz_ids:
        mine = {e.quiz_id: e for e in QuizEnrollment.query.filter(
            QuizEnrollment.student_id == current_user.id,
            QuizEnrollment.quiz_id.in_(quiz_ids)).all()}
    return jsonify({"ok": True, "quizzes": [
        dict(qz.to_dict(),
             enrollment=mine[qz.id].to_dict() if qz.id in mine else None,
             active=quiz_session.active_session(qz.id) is not None)
        for qz in s.quizzes
    ]})

@bp.post("/subjects/<int:target_id>/enroll", defaults={"kind": "subject"})
@bp.post("/quizzes/<int:target_id>/enroll", defaults={"kind": "quiz"})
@login_required
@role_required(Role.student)
def request_enrollment(kind, target_id):
    row = enrollment.request_enrollment(enrollment.parse_kind(kind), current_user.id, target_id)
    return jsonify({"ok": True, "enrollment": row.to_dict()}), 201

@bp.post("/enrollments/<kind>/<int:enrollment_id>/cancel")
@login_required
@role_required(Role.student)
def cancel_request(kind, enrollment_id):
    enrollment.cancel_request(enrollment.parse_kind(kind), enrollment_id, current_user.id)
    return jsonify({"ok": True})

@bp.get("/subjects/<int:target_id>/access", defaults={"kind": "subject"})
@bp.get("/quizzes/<int:target_id>/access", defaults={"kind": "quiz"})
@login_required
@role_required(Role.student)
def access_status(kind, target_id):
    status = enrollment.get_access_status(enrollment.parse_kind(kind), current_user.id, target_id)
    return jsonify(dict(status.to_dict(), ok=True))

@bp.get("/quizzes/<int:quiz_id>")
@login_required
@role_required(Role.student)
def quiz_detail(quiz_id):
    quiz = get_quiz(quiz_id)
    session = quiz_session.active_session(quiz_id)
    can_take = enrollment.can_take_quiz(current_user.id, quiz)
    return jsonify({
        "ok": True,
        # answer key never leaves the server
        "quiz": quiz.to_dict(with_questions=can_take and session is not None),
        "session": session.to_dict() if session else None,
        "subject_access": enrollment.get_access_status(
            EnrollmentKind.subject, current_user.id, quiz.subject_id).to_dict(),
        "quiz_access": enrollment.get_access_status(
            EnrollmentKind.quiz, current_user.id, quiz.id).to_dict(),
        "can_take": can_take,
        "has_submitted": scoring.has_submitted(quiz.id, current_user.id),
    })

@bp.post("/quizzes/<int:quiz_id>/begin")
@login_required
@role_required(Role.student)
def begin(quiz_id):
    participation = quiz_session.begin_participation(quiz_id, current_user.id)
    session = quiz_session.active_session(quiz_id)
    quiz = get_quiz(quiz_id)
    return jsonify({"ok": True,
                    "participation": participation.to_dict(),
                    "quiz": quiz.to_dict(with_questions=True),
                    "countdown": quiz_session.countdown(session).to_dict()})

@bp.post("/quizzes/<int:quiz_id>/heartbeat")
@login_required
@role_required(Role.student)
def heartbeat(quiz_id):
    data = request.get_json(silent=True) or {}
    participation, submission = quiz_session.heartbeat(quiz_id, current_user.id,
                                                       data.get("answers"))
    if submission is not None:
        return jsonify({"ok": True, "submitted": True, "submission": submission.to_dict()})
    session = quiz_session.active_session(quiz_id)
    return jsonify({"ok": True, "submitted": False,
                    "participation": participation.to_dict(),
                    "countdown": quiz_session.countdown(session).to_dict()})

@bp.get("/quizzes/<int:quiz_id>/countdown")
@login_required
@role_required(Role.student)
def countdown(quiz_id):
    get_quiz(quiz_id)
    session = quiz_session.active_session(quiz_id)
    if session is None:
        return jsonify({"ok": True, "active": False, "countdown": None})
    return jsonify({"ok": True, "active": True,
                    "countdown": quiz_session.countdown(session).to_dict()})

@bp.post("/quizzes/<int:quiz_id>/submit")
@login_required
@role_required(Role.student)
def submit(quiz_id):
    data = payload()
    if "answers" not in data:
        raise ValidationError("answers are required")
    submission = scoring.submit(quiz_id, current_user.id, data.get("answers"))
    quiz = get_quiz(quiz_id)
    return jsonify({"ok": True, "submission": submission.to_dict(),
                    "max_points": quiz.max_points}), 201

@bp.get("/quizzes/<int:quiz_id>/results")
@login_required
@role_required(Role.student)
def results(quiz_id):
    get_quiz(quiz_id)
    result = scoring.result_for(quiz_id, current_user.id)
    return jsonify(dict(result.to_dict(), ok=True))

from flask import request, jsonify
from flask_login import login_required, current_user
from sqlalchemy.orm import selectinload
from ...extensions import db
from ...errors import NotFound, NotAuthorized, SessionNotActive, ValidationError
from ...models import Subject, Quiz, Question, Role
from ...services import commit, enrollment, quiz_session
from ..auth.routes import role_required, payload
from . import bp

def get_owned_subject(subject_id):
    sec = db.session.get(Subject, subject_id)
    if not sec:
        raise NotFound("Subject does not exist")
    if sec.teacher_id != current_user.id:
        raise NotAuthorized("You do not own this subject")
    return sec

def get_owned_quiz(quiz_id):
    quiz = db.session.get(Quiz, quiz_id)
    if not quiz:
        raise NotFound("Quiz does not exist")
    if quiz.teacher_id != current_user.id:
        raise NotAuthorized("You do not own this quiz")
    return quiz

def parse_questions(items):
    if not isinstance(items, list) or not items:
        raise ValidationError("A quiz needs at least one question")
    questions = []
    for pos, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"Question {pos + 1} is malformed")
        text = (item.get("text") or "").strip()
        options = item.get("options")
        correct = item.get("correct_option_index")
        points = item.get("points", 1)
        if not text:
            raise ValidationError(f"Question {pos + 1} needs text")
        if (not isinstance(options, list) or len(options) < 2
                or not all(isinstance(o, str) and o.strip() for o in options)):
            raise ValidationError(f"Question {pos + 1} needs at least two non-empty options")
        if isinstance(correct, bool) or not isinstance(correct, int) \
                or not (0 <= correct < len(options)):
            raise ValidationError(f"Question {pos + 1} has an invalid correct option")
        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise ValidationError(f"Question {pos + 1} points must be a positive integer")
        questions.append(Question(position=pos, text=text,
                                  options=[o.strip() for o in options],
                                  correct_option_index=correct, points=points))
    return questions

@bp.get("/subjects")
@login_required
@role_required(Role.teacher)
def my_subjects():
    subs = Subject.query.options(
        selectinload(Subject.quizzes)
    ).filter_by(teacher_id=current_user.id).order_by(Subject.name.asc()).all()
    return jsonify({"ok": True, "subjects": [
        dict(s.to_dict(), quiz_count=len(s.quizzes)) for s in subs
    ]})

@bp.post("/subjects")
@login_required
@role_required(Role.teacher)
def create_subject():
    data = payload()
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Subject name is required")
    s = Subject(name=name, description=(data.get("description") or "").strip(),
                teacher_id=current_user.id)
    db.session.add(s)
    commit()
    return jsonify({"ok": True, "subject": s.to_dict()}), 201

@bp.post("/subjects/<int:subject_id>/delete")
@login_required
@role_required(Role.teacher)
def delete_subject(subject_id):
    s = get_owned_subject(subject_id)
    db.session.delete(s)
    commit()
    return jsonify({"ok": True})

@bp.post("/subjects/<int:subject_id>/quizzes")
@login_required
@role_required(Role.teacher)
def create_quiz(subject_id):
    get_owned_subject(subject_id)
    data = request.get_json(silent=True) or {}
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("Quiz title is required")
    questions = parse_questions(data.get("questions"))
    quiz = Quiz(subject_id=subject_id, title=title,
                description=(data.get("description") or "").strip(),
                questions=questions)
    db.session.add(quiz)
    commit()
    return jsonify({"ok": True, "quiz": quiz.to_dict(with_questions=True, with_answers=True)}), 201

@bp.get("/quizzes/<int:quiz_id>")
@login_required
@role_required(Role.teacher)
def quiz_detail(quiz_id):
    quiz = get_owned_quiz(quiz_id)
    session = quiz_session.active_session(quiz_id)
    return jsonify({"ok": True,
                    "quiz": quiz.to_dict(with_questions=True, with_answers=True),
                    "session": session.to_dict() if session else None})

@bp.post("/quizzes/<int:quiz_id>/delete")
@login_required
@role_required(Role.teacher)
def delete_quiz(quiz_id):
    quiz = get_owned_quiz(quiz_id)
    db.session.delete(quiz)
    commit()
    return jsonify({"ok": True})

@bp.get("/requests")
@login_required
@role_required(Role.teacher)
def pending_requests():
    pending = enrollment.pending_requests(current_user.id)
    return jsonify({"ok": True,
                    "subjects": [e.to_dict() for e in pending["subjects"]],
                    "quizzes": [e.to_dict() for e in pending["quizzes"]]})

@bp.post("/requests/<kind>/<int:enrollment_id>/<action>")
@login_required
@role_required(Role.teacher)
def decide_request(kind, enrollment_id, action):
    if action not in ("approve", "reject"):
        raise NotFound("Unknown action")
    row = enrollment.decide(enrollment.parse_kind(kind), enrollment_id,
                            current_user.id, approve=action == "approve")
    return jsonify({"ok": True, "enrollment": row.to_dict()})

@bp.post("/quizzes/<int:quiz_id>/session/start")
@login_required
@role_required(Role.teacher)
def start_session(quiz_id):
    session = quiz_session.start(quiz_id, current_user.id)
    return jsonify({"ok": True, "session": session.to_dict()}), 201

@bp.post("/sessions/<int:session_id>/stop")
@login_required
@role_required(Role.teacher)
def stop_session(session_id):
    result = quiz_session.stop(session_id, current_user.id)
    return jsonify({"ok": True, "session": result.session.to_dict(),
                    "auto_submitted": result.auto_submitted})

@bp.get("/quizzes/<int:quiz_id>/monitor")
@login_required
@role_required(Role.teacher)
def monitor(quiz_id):
    view = quiz_session.monitor(quiz_id, current_user.id)
    return jsonify(dict(view.to_dict(), ok=True))

@bp.get("/quizzes/<int:quiz_id>/enrollments")
@login_required
@role_required(Role.teacher)
def quiz_enrollments(quiz_id):
    quiz = get_owned_quiz(quiz_id)
    return jsonify({"ok": True, "enrollments": [e.to_dict() for e in quiz.enrollments]})

@bp.get("/subjects/<int:subject_id>/enrollments")
@login_required
@role_required(Role.teacher)
def subject_enrollments(subject_id):
    s = get_owned_subject(subject_id)
    return jsonify({"ok": True, "enrollments": [e.to_dict() for e in s.enrollments]})

@bp.post("/quizzes/<int:quiz_id>/session/sweep")
@login_required
@role_required(Role.teacher)
def sweep_session(quiz_id):
    get_owned_quiz(quiz_id)
    session = quiz_session.active_session(quiz_id)
    if session is None:
        raise SessionNotActive("No active session for this quiz")
    return jsonify({"ok": True, "auto_submitted": quiz_session.sweep_expired(session)})

from flask import request, jsonify
from flask_login import login_required, current_user
from ...models import Role
from ...services import dashboard as dashboards
from ...services import leaderboard
from . import bp

@bp.get("/dashboard")
@login_required
def dashboard():
    if current_user.role == Role.teacher:
        data = dashboards.teacher_dashboard(current_user.id)
    else:
        data = dashboards.student_dashboard(current_user.id)
    return jsonify({"ok": True, "role": current_user.role.value, "dashboard": data})

@bp.get("/leaderboards/quizzes/<int:quiz_id>")
@login_required
def quiz_leaderboard(quiz_id):
    limit = request.args.get("limit", type=int)
    if limit is not None:
        limit = min(max(limit, 1), 100)
    rows = leaderboard.quiz_leaderboard(quiz_id, limit=limit)
    return jsonify({"ok": True, "quiz_id": quiz_id, "entries": [r.to_dict() for r in rows]})

@bp.get("/leaderboards/subjects/<int:subject_id>")
@login_required
def subject_leaderboard(subject_id):
    rows = leaderboard.subject_leaderboard(subject_id)
    return jsonify({"ok": True, "subject_id": subject_id, "entries": [r.to_dict() for r in rows]})

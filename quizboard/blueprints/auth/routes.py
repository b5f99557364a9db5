from flask import request, jsonify, abort
from flask_login import login_user, logout_user, login_required, current_user
from ...extensions import db
from ...errors import ValidationError, DuplicateRequest
from ...models import User, Role
from ...services import commit
from . import bp
from functools import wraps

def role_required(*roles):
    def deco(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            if current_user.role not in roles:
                abort(403)
            return f(*args, **kwargs)
        return wrapper
    return deco

def payload():
    return request.get_json(silent=True) or request.form.to_dict() or {}

@bp.post("/register")
def register():
    data = payload()
    email = (data.get("email") or "").strip().lower()
    name = (data.get("name") or "").strip()
    password = data.get("password") or ""
    role = Role.parse(data.get("role"))
    if not email or "@" not in email:
        raise ValidationError("a valid email is required")
    if not name:
        raise ValidationError("name is required")
    if len(password) < 6:
        raise ValidationError("password must be at least 6 characters")
    if role is None:
        raise ValidationError("role must be 'teacher' or 'student'")
    if User.query.filter_by(email=email).one_or_none():
        raise DuplicateRequest("email already registered")

    u = User(email=email, name=name, role=role, total_points=0)
    u.set_password(password)
    db.session.add(u)
    commit(DuplicateRequest("email already registered"))
    login_user(u)
    return jsonify({"ok": True, "user": u.to_dict()}), 201

@bp.post("/login")
def login():
    data = payload()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    u = User.query.filter_by(email=email).one_or_none()
    if u and u.check_password(password):
        login_user(u)
        return jsonify({"ok": True, "user": u.to_dict()})
    return jsonify({"ok": False, "msg": "invalid_credentials",
                    "detail": "Incorrect email or password"}), 401

@bp.get("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})

@bp.get("/me")
@login_required
def me():
    return jsonify({"ok": True, "user": current_user.to_dict()})

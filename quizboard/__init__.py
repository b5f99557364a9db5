import logging

import click
from flask import Flask, jsonify
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException
from .extensions import db, migrate, login_manager
from .errors import QuizboardError, StoreUnavailable
from .logging_config import configure_logging

log = logging.getLogger(__name__)

def register_error_handlers(app):
    @app.errorhandler(QuizboardError)
    def handle_quizboard_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(OperationalError)
    def handle_store_error(err):
        db.session.rollback()
        log.error("data store unavailable: %s", err)
        exc = StoreUnavailable("data store unavailable, please retry")
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({"ok": False, "msg": err.name.lower().replace(" ", "_"),
                        "detail": err.description}), err.code

def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Initialized the database.")

    @app.cli.command("sweep-sessions")
    def sweep_sessions():
        """Auto-submit attempts whose countdown has run out."""
        from .services.quiz_session import sweep_all
        swept = sweep_all()
        total = sum(len(v) for v in swept.values())
        click.echo(f"Auto-submitted {total} attempt(s) across {len(swept)} quiz(zes).")

def create_app(config_object="config.Config"):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    from . import models
    from .models.user import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"ok": False, "msg": "unauthorized",
                        "detail": "Please log in"}), 401

    from .blueprints.auth import bp as auth_bp
    from .blueprints.teacher import bp as teacher_bp
    from .blueprints.student import bp as student_bp
    from .blueprints.board import bp as board_bp
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(teacher_bp, url_prefix="/teacher")
    app.register_blueprint(student_bp, url_prefix="/student")
    app.register_blueprint(board_bp)
    register_error_handlers(app)
    register_commands(app)

    log.info("quizboard app created (access rule: %s)", app.config.get("QUIZ_ACCESS_RULE"))
    return app

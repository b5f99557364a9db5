from ..extensions import db
from .common import ParticipationStatus, SessionStatus, utcnow

class ActiveQuizSession(db.Model):
    __tablename__ = "active_quiz_session"
    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quiz.id"), nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    status = db.Column(db.Enum(SessionStatus, native_enum=False, length=16),
                       nullable=False, default=SessionStatus.active)
    start_time = db.Column(db.DateTime, nullable=False, default=utcnow)
    end_time = db.Column(db.DateTime)
    __table_args__ = (
        # at most one live session per quiz
        db.Index("uq_active_session_per_quiz", "quiz_id", unique=True,
                 sqlite_where=db.text("status = 'active'"),
                 postgresql_where=db.text("status = 'active'")),
    )

    quiz = db.relationship("Quiz", back_populates="sessions")
    teacher = db.relationship("User")

    @property
    def is_active(self):
        return self.status == SessionStatus.active

    def to_dict(self):
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "teacher_id": self.teacher_id,
            "status": self.status.value,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }

class ActiveQuizParticipation(db.Model):
    __tablename__ = "active_quiz_participation"
    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quiz.id"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    status = db.Column(db.Enum(ParticipationStatus, native_enum=False, length=16),
                       nullable=False, default=ParticipationStatus.in_progress)
    start_time = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_activity = db.Column(db.DateTime, nullable=False, default=utcnow)
    answers = db.Column(db.JSON, nullable=False, default=dict)  # last recorded
    __table_args__ = (
        db.UniqueConstraint("student_id", "quiz_id", name="uq_student_quiz_participation"),
    )

    quiz = db.relationship("Quiz", back_populates="participations")
    student = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "student_id": self.student_id,
            "status": self.status.value,
            "start_time": self.start_time.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }

class QuizSubmission(db.Model):
    __tablename__ = "quiz_submission"
    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quiz.id"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    answers = db.Column(db.JSON, nullable=False, default=dict)  # question_id -> option index
    score = db.Column(db.Integer, nullable=False, default=0)
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    auto_submitted = db.Column(db.Boolean, nullable=False, default=False)
    __table_args__ = (
        db.UniqueConstraint("student_id", "quiz_id", name="uq_student_quiz_submission"),
    )

    quiz = db.relationship("Quiz", back_populates="submissions")
    student = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "student_id": self.student_id,
            "score": self.score,
            "submitted_at": self.submitted_at.isoformat(),
            "auto_submitted": self.auto_submitted,
        }

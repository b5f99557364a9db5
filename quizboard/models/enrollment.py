from ..extensions import db
from .common import EnrollmentStatus, utcnow

def _status_column():
    return db.Column(db.Enum(EnrollmentStatus, native_enum=False, length=16),
                     nullable=False, default=EnrollmentStatus.pending)

class SubjectEnrollment(db.Model):
    __tablename__ = "subject_enrollment"
    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey("subject.id"), nullable=False)
    status = _status_column()
    created_at = db.Column(db.DateTime, default=utcnow)
    __table_args__ = (
        db.UniqueConstraint("student_id", "subject_id", name="uq_student_subject"),
    )

    student = db.relationship("User")
    subject = db.relationship("Subject", back_populates="enrollments")

    @property
    def target_id(self):
        return self.subject_id

    @property
    def owner_id(self):
        return self.subject.teacher_id

    def to_dict(self):
        return {
            "id": self.id,
            "kind": "subject",
            "student_id": self.student_id,
            "student_name": self.student.name if self.student else None,
            "subject_id": self.subject_id,
            "subject_name": self.subject.name if self.subject else None,
            "status": self.status.value,
        }

class QuizEnrollment(db.Model):
    __tablename__ = "quiz_enrollment"
    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quiz.id"), nullable=False)
    status = _status_column()
    created_at = db.Column(db.DateTime, default=utcnow)
    __table_args__ = (
        db.UniqueConstraint("student_id", "quiz_id", name="uq_student_quiz_enrollment"),
    )

    student = db.relationship("User")
    quiz = db.relationship("Quiz", back_populates="enrollments")

    @property
    def target_id(self):
        return self.quiz_id

    @property
    def owner_id(self):
        return self.quiz.subject.teacher_id

    def to_dict(self):
        return {
            "id": self.id,
            "kind": "quiz",
            "student_id": self.student_id,
            "student_name": self.student.name if self.student else None,
            "quiz_id": self.quiz_id,
            "quiz_title": self.quiz.title if self.quiz else None,
            "status": self.status.value,
        }

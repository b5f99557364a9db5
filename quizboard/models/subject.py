from ..extensions import db
from .common import utcnow

class Subject(db.Model):
    __tablename__ = "subject"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    teacher_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    teacher = db.relationship("User", back_populates="subjects")
    quizzes = db.relationship("Quiz", back_populates="subject",
                              cascade="all, delete-orphan")
    enrollments = db.relationship("SubjectEnrollment", back_populates="subject",
                                  cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "teacher_id": self.teacher_id,
        }

class Quiz(db.Model):
    __tablename__ = "quiz"
    id = db.Column(db.Integer, primary_key=True)
    subject_id = db.Column(db.Integer, db.ForeignKey("subject.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    created_at = db.Column(db.DateTime, default=utcnow)

    subject = db.relationship("Subject", back_populates="quizzes")
    questions = db.relationship("Question", back_populates="quiz",
                                order_by="Question.position",
                                cascade="all, delete-orphan")
    enrollments = db.relationship("QuizEnrollment", back_populates="quiz",
                                  cascade="all, delete-orphan")
    sessions = db.relationship("ActiveQuizSession", back_populates="quiz",
                               cascade="all, delete-orphan")
    participations = db.relationship("ActiveQuizParticipation", back_populates="quiz",
                                     cascade="all, delete-orphan")
    submissions = db.relationship("QuizSubmission", back_populates="quiz",
                                  cascade="all, delete-orphan")

    @property
    def teacher_id(self):
        return self.subject.teacher_id

    @property
    def max_points(self):
        return sum(q.points for q in self.questions)

    def to_dict(self, with_questions=False, with_answers=False):
        data = {
            "id": self.id,
            "subject_id": self.subject_id,
            "title": self.title,
            "description": self.description,
            "question_count": len(self.questions),
            "max_points": self.max_points,
        }
        if with_questions:
            data["questions"] = [q.to_dict(with_answer=with_answers) for q in self.questions]
        return data

class Question(db.Model):
    __tablename__ = "question"
    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quiz.id"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    text = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON, nullable=False, default=list)  # ordered list of str
    correct_option_index = db.Column(db.Integer, nullable=False)
    points = db.Column(db.Integer, nullable=False, default=1)
    __table_args__ = (
        db.CheckConstraint("points > 0", name="ck_question_points_positive"),
        db.CheckConstraint("correct_option_index >= 0", name="ck_question_correct_index"),
    )

    quiz = db.relationship("Quiz", back_populates="questions")

    def to_dict(self, with_answer=False):
        data = {
            "id": self.id,
            "text": self.text,
            "options": list(self.options or []),
            "points": self.points,
        }
        if with_answer:
            data["correct_option_index"] = self.correct_option_index
        return data

from ..extensions import db
from .common import (Role, EnrollmentStatus, EnrollmentKind, SessionStatus,
                     ParticipationStatus, utcnow)
from .user import User
from .subject import Subject, Quiz, Question
from .enrollment import SubjectEnrollment, QuizEnrollment
from .session import ActiveQuizSession, ActiveQuizParticipation, QuizSubmission

__all__ = [
    "Role", "EnrollmentStatus", "EnrollmentKind", "SessionStatus",
    "ParticipationStatus", "utcnow", "User", "Subject", "Quiz", "Question",
    "SubjectEnrollment", "QuizEnrollment", "ActiveQuizSession",
    "ActiveQuizParticipation", "QuizSubmission",
]

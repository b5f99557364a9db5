import enum
from datetime import datetime, timezone


def utcnow():
    # naive UTC, matching what SQLite hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role(str, enum.Enum):
    teacher = "teacher"
    student = "student"

    @classmethod
    def parse(cls, value):
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class EnrollmentStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class EnrollmentKind(str, enum.Enum):
    subject = "subject"
    quiz = "quiz"


class SessionStatus(str, enum.Enum):
    active = "active"
    ended = "ended"


class ParticipationStatus(str, enum.Enum):
    in_progress = "in_progress"

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent

load_dotenv()  # loads .env if present


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL", f"sqlite:///{(BASE_DIR / 'quizboard.db').as_posix()}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Live quiz timing
    QUIZ_DURATION_MINUTES = int(os.getenv("QUIZ_DURATION_MINUTES", "30"))
    MONITOR_POLL_SECONDS = int(os.getenv("MONITOR_POLL_SECONDS", "10"))
    HEARTBEAT_SECONDS = int(os.getenv("HEARTBEAT_SECONDS", "15"))

    # "all": subject AND quiz enrollment approved; "any": either one
    QUIZ_ACCESS_RULE = os.getenv("QUIZ_ACCESS_RULE", "all")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_LEVEL = "WARNING"
    QUIZ_ACCESS_RULE = "all"

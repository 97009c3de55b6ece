import os
from dotenv import load_dotenv
load_dotenv()


def _int_env(name, default):
    return int(os.getenv(name, str(default)))


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    # SQLite DB file for feedback and chat history
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///supportbot.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = [
        o.strip()
        for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001").split(",")
        if o.strip()
    ]

    # Silence thresholds (seconds of user silence)
    SILENCE_FIRST_PROMPT_SECONDS = _int_env("SILENCE_FIRST_PROMPT_SECONDS", 60)
    SILENCE_CLOSE_SECONDS = _int_env("SILENCE_CLOSE_SECONDS", 180)
    SILENCE_FINAL_CLOSE_SECONDS = _int_env("SILENCE_FINAL_CLOSE_SECONDS", 300)

    # Feedback settings
    FEEDBACK_MIN_RATING = _int_env("FEEDBACK_MIN_RATING", 1)
    FEEDBACK_MAX_RATING = _int_env("FEEDBACK_MAX_RATING", 5)

    # In-memory session state
    FURTHER_ASSISTANCE_TTL_SECONDS = _int_env("FURTHER_ASSISTANCE_TTL_SECONDS", 300)
    SESSION_STATE_TTL_SECONDS = _int_env("SESSION_STATE_TTL_SECONDS", 7200)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "DEBUG"

import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///rankvote.sqlite3")
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # Bearer token for global admin routes; admin routes are closed when empty.
    ADMIN_SECRET = os.getenv("ADMIN_SECRET", "")

    BASE_URL = os.getenv("BASE_URL", "http://localhost:5000")
    BASE_PATH = os.getenv("BASE_PATH", "")

    SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", "true")
    SCHEDULER_INTERVAL_SECONDS = float(os.getenv("SCHEDULER_INTERVAL_SECONDS", "60"))
    MAX_RECURRING_VOTES_PER_TICK = int(os.getenv("MAX_RECURRING_VOTES_PER_TICK", "10"))
    MAX_ACTIVE_RECURRING_GROUPS = int(os.getenv("MAX_ACTIVE_RECURRING_GROUPS", "100"))

    NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10"))

    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = os.getenv("MAIL_USE_TLS", "true").lower() == "true"
    MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", MAIL_USERNAME)

    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "ssl": {"ca": os.getenv("MYSQL_SSL_CA", "")}
        }
        if os.getenv("MYSQL_SSL_CA")
        else {}
    }

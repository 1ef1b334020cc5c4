# config.py - configuration constants
import os
from pathlib import Path

# Create instance folder if it doesn't exist
INSTANCE_PATH = Path(__file__).parent / 'instance'
INSTANCE_PATH.mkdir(exist_ok=True)

# Database file will be stored in the instance folder
DB_PATH = INSTANCE_PATH / 'training.db'


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")
    # Use DATABASE_URL for production, fallback to SQLite for local development
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH.absolute()}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    INSTANCE_PATH = str(INSTANCE_PATH)
    # - pool_pre_ping checks connections before use to avoid stale/expired sockets
    # - pool_recycle forces periodic reconnects to reduce SSL/idle issues
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": int(os.getenv("SQLALCHEMY_POOL_RECYCLE", "280")),
        "pool_timeout": int(os.getenv("SQLALCHEMY_POOL_TIMEOUT", "10")),
    }

    # Cookie/session security (tunable via env for local vs prod)
    SESSION_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "0") == "1"
    REMEMBER_COOKIE_SECURE = os.getenv("REMEMBER_COOKIE_SECURE", "0") == "1"
    # Server-side sessions (Flask-Session) only when a backend is named, e.g. "filesystem"
    SESSION_TYPE = os.getenv("SESSION_TYPE") or None

    PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")

    # Remote score / certificate endpoints. Empty means the app's own database is used directly.
    SCORE_API_URL = os.getenv("SCORE_API_URL", "")
    CERTINFO_API_URL = os.getenv("CERTINFO_API_URL", "")
    # Bearer token required by /api/* when set, and sent by the HTTP clients
    API_TOKEN = os.getenv("API_TOKEN", "")
    try:
        API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", "5"))
    except ValueError:
        API_TIMEOUT_SECONDS = 5.0

    # Background side effects (score save, certificate notification)
    try:
        TASK_WORKERS = int(os.getenv("TASK_WORKERS", "4"))
    except ValueError:
        TASK_WORKERS = 4
    # None means "eager under TESTING, threaded otherwise"
    TASKS_EAGER = {"1": True, "0": False}.get(os.getenv("TASKS_EAGER", ""))

    # Training content
    COURSE_NAME = os.getenv("COURSE_NAME", "Anti-Corruption Training")
    ORGANIZATION_NAME = os.getenv("ORGANIZATION_NAME", "Business Ethics Program")
    SUPPORT_EMAIL = os.getenv("SUPPORT_EMAIL", "support@example.com")

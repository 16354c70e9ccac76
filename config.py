import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _database_url():
    url = os.environ.get("DATABASE_URL")

    # LOCAL FALLBACK
    if not url:
        url = "sqlite:///job_portal.db"

    # Fix postgres:// issue
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    DEBUG = False
    TESTING = False

    # ================= DATABASE =================
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # ================= TOKENS =================
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-jwt-secret-key")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=int(os.environ.get("JWT_ACCESS_MINUTES", 15)))
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=int(os.environ.get("JWT_REFRESH_DAYS", 7)))
    JWT_TOKEN_LOCATION = ["headers"]

    # ================= FORMS =================
    # JSON API authenticated by bearer tokens, no cookie session to protect
    WTF_CSRF_ENABLED = False

    # ================= GOOGLE OAUTH =================
    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET")
    GOOGLE_REDIRECT_URI = os.environ.get(
        "GOOGLE_REDIRECT_URI", "http://localhost:5000/api/auth/google/callback"
    )
    CLIENT_URL = os.environ.get("CLIENT_URL", "http://localhost:3000")

    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # ================= UPLOADS =================
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "uploads")
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024

    # ================= PDF =================
    PDF_RENDER_TIMEOUT_MS = int(os.environ.get("PDF_RENDER_TIMEOUT_MS", 30000))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls):
        pass


class DevConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class ProdConfig(Config):
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    PREFERRED_URL_SCHEME = "https"

    @classmethod
    def validate(cls):
        missing = [
            key for key, default in (
                ("SECRET_KEY", "dev-secret-key"),
                ("JWT_SECRET_KEY", "dev-jwt-secret-key"),
            )
            if getattr(cls, key) == default
        ]
        if missing:
            raise RuntimeError("Missing production secrets: " + ", ".join(missing))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    SECRET_KEY = "test-secret-key"
    GOOGLE_CLIENT_ID = "test-client-id"
    GOOGLE_CLIENT_SECRET = "test-client-secret"
    LOG_LEVEL = "WARNING"


CONFIGS = {
    "dev": DevConfig,
    "prod": ProdConfig,
    "test": TestConfig,
}


def config_for(name=None):
    name = name or os.environ.get("APP_ENV", "dev")
    try:
        return CONFIGS[name]
    except KeyError:
        raise RuntimeError(f"Unknown APP_ENV '{name}', expected one of {sorted(CONFIGS)}")


def split_origins(value):
    if not value or value == "*":
        return "*"
    return [origin.strip() for origin in value.split(",") if origin.strip()]

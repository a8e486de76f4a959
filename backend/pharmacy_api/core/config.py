"""Settings read once from the environment (and backend/.env when present).

JWT_SECRET is mandatory when ENVIRONMENT is "production".
"""

import os
import warnings
from pathlib import Path
from typing import List

from dotenv import load_dotenv

_BACKEND_DIR = Path(__file__).resolve().parents[2]
# Real environment variables win over .env
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)

_DEV_JWT_SECRET = "development-only-weak-default-change-in-production"


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _jwt_secret(environment: str) -> str:
    secret = os.getenv("JWT_SECRET")
    if secret:
        return secret
    if environment == "production":
        raise ValueError(
            "JWT_SECRET is required in production. "
            "Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
        )
    warnings.warn("JWT_SECRET is not set; using the development default", RuntimeWarning)
    return _DEV_JWT_SECRET


class Settings:
    # Server
    PORT: int = int(os.getenv("PORT", "3000"))
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", os.getenv("NODE_ENV", "development"))
    DEBUG: bool = ENVIRONMENT == "development"

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./pharmacy.db")
    # Seconds a SQLite connection waits on a locked database before giving up
    SQLITE_BUSY_TIMEOUT: float = float(os.getenv("SQLITE_BUSY_TIMEOUT", "30"))

    # Tokens
    JWT_SECRET: str = _jwt_secret(ENVIRONMENT)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))

    # Password policy
    MIN_PASSWORD_LENGTH: int = int(os.getenv("MIN_PASSWORD_LENGTH", "8"))
    REQUIRE_NUMBERS: bool = True

    # Bootstrap admin created by init_db when the admins table is empty
    DEFAULT_ADMIN_EMAIL: str = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@pharmacy.com")

    # CORS: explicit origins only
    CORS_ORIGINS: List[str] = _split(os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,"
        "http://localhost:3001,http://127.0.0.1:3001,"
        "http://localhost:19006,http://127.0.0.1:19006",
    ))
    ALLOWED_HOSTS: List[str] = _split(os.getenv("ALLOWED_HOSTS", "*"))

    # Rate Limiting: 100 requests per 15 minutes per client
    RATE_LIMIT_REQUESTS: int = int(os.getenv("RATE_LIMIT_REQUESTS", "100"))
    RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900"))
    # Tighter per-route limits: logins per 15 minutes, registrations and orders per hour
    LOGIN_RATE_LIMIT: int = int(os.getenv("LOGIN_RATE_LIMIT", "5"))
    REGISTER_RATE_LIMIT: int = int(os.getenv("REGISTER_RATE_LIMIT", "3"))
    ORDER_RATE_LIMIT: int = int(os.getenv("ORDER_RATE_LIMIT", "10"))

    # Uploads
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", str(_BACKEND_DIR / "uploads"))
    MAX_UPLOAD_SIZE_MB: int = int(os.getenv("MAX_UPLOAD_SIZE_MB", "5"))

    # Orders
    ORDER_MAX_RETRIES: int = int(os.getenv("ORDER_MAX_RETRIES", "3"))
    LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "20"))

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024


settings = Settings()

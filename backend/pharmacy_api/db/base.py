from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Python-side timestamp default; keeps sub-second precision on SQLite."""
    return datetime.now(timezone.utc)

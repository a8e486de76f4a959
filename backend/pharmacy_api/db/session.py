"""Engine and session factory."""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from pharmacy_api.core.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Fresh connection per session; concurrent writers queue on the file lock
        return {
            "connect_args": {"check_same_thread": False, "timeout": settings.SQLITE_BUSY_TIMEOUT},
            "poolclass": NullPool,
        }
    return {"pool_size": 5, "max_overflow": 10, "pool_recycle": 3600, "pool_pre_ping": True}


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

if engine.dialect.name == "sqlite":
    @event.listens_for(engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

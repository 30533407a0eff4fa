from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from core.config import settings


def engine_options(database_url: str, timeout_seconds: int) -> dict:
    """
    create_engine keyword arguments for a database URL.

    SQLite has no connection wait, so the timeout becomes its busy timeout;
    pooled databases get it as the pool checkout timeout.
    """
    if database_url.startswith("sqlite"):
        # FastAPI runs sync routes in a threadpool
        return {
            "connect_args": {"check_same_thread": False, "timeout": timeout_seconds},
            "pool_pre_ping": True,
        }

    return {
        "pool_timeout": timeout_seconds,
        "pool_pre_ping": True,
    }


engine = create_engine(
    settings.DATABASE_URL,
    **engine_options(settings.DATABASE_URL, settings.DB_POOL_TIMEOUT_SECONDS)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# backend/database.py
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import settings

logger = logging.getLogger(__name__)


def database_url(url: str = None) -> str:
    """Normalise the configured URL; hosted Postgres still hands out postgres:// URLs."""
    url = url or settings.DATABASE_URL
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def make_engine(url: str):
    if url.startswith("sqlite"):
        # Sessions are handed across FastAPI's worker threads
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


engine = make_engine(database_url())
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    """Request-scoped session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    # Models register themselves on Base.metadata at import time
    import models.users  # noqa: F401
    import models.product  # noqa: F401
    import models.stock  # noqa: F401
    import models.log  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from stocksync.config.settings import get_settings
from stocksync.database.models import Base

settings = get_settings()


def _database_url() -> str:
    """Return the configured URL, with the service credential as its password if set."""
    if not settings.database_service_credential:
        return settings.database_url
    url = make_url(settings.database_url).set(password=settings.database_service_credential)
    return url.render_as_string(hide_password=False)


engine_kwargs = {"echo": settings.debug}

if "sqlite" in settings.database_url:
    engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    engine_kwargs["pool_size"] = 5
    engine_kwargs["max_overflow"] = 10
    engine_kwargs["pool_pre_ping"] = True

engine = create_engine(_database_url(), **engine_kwargs)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_db():
    """Create all tables."""
    Base.metadata.create_all(bind=engine)


def get_db() -> Session:
    """Dependency for FastAPI - yields a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

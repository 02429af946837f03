# ABOUTME: Database connection and session management
# ABOUTME: Provides SQLAlchemy engine, session factory, and database initialization

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.config import get_settings

settings = get_settings()

engine = create_engine(
    settings.sqlalchemy_url,
    pool_pre_ping=True,
    connect_args={"check_same_thread": False} if settings.sqlalchemy_url.drivername.startswith("sqlite") else {}
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """Create all tables in dependency order and seed reference data."""
    from app.services.bootstrap import ensure_schema, seed_reference_data

    ensure_schema(engine)

    db = SessionLocal()
    try:
        seed_reference_data(db, settings)
    finally:
        db.close()


def get_db():
    """Dependency for getting database sessions."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

"""
Database connection and session management for the status history store
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import structlog
from ironmonitor.core.config import settings

logger = structlog.get_logger(__name__)


def make_engine(database_url: str) -> Engine:
    """Create an engine; SQLite URLs are made usable from the event loop thread and the API threads"""
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return create_engine(database_url, echo=settings.debug, **options)
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=settings.debug
    )


# Create database engine
engine = make_engine(settings.database_url)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()


def init_database(bind: Engine = None):
    """Initialize database tables"""
    try:
        # Import all models to ensure they are registered
        from ironmonitor.models import status_history  # noqa

        # Create all tables
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        raise

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from auth_service.config import settings
from auth_service.utils.logger import get_logger
from auth_service.exceptions import BaseCustomException, DatabaseError, handle_database_error

logger = get_logger("database")

SQLALCHEMY_DATABASE_URL = settings.SQLALCHEMY_DATABASE_URL

if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    engine_options = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }
else:
    engine_options = {
        "pool_pre_ping": True,  # Checks connection health before using
        "pool_size": 20,        # Number of connections to keep open
        "max_overflow": 30,     # Number of connections beyond pool_size allowed
    }

try:
    engine = create_engine(SQLALCHEMY_DATABASE_URL, **engine_options)
    logger.info("Database engine created successfully")
except Exception as e:
    logger.error(f"Failed to create database engine: {str(e)}", exc_info=True)
    raise DatabaseError("Failed to initialize database connection", details={"original_error": str(e)})

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Database dependency that provides a database session

    Yields:
        Session: Database session
    """
    db = SessionLocal()
    try:
        logger.debug("Database session created")
        yield db
    finally:
        db.close()
        logger.debug("Database session closed")


@contextmanager
def transaction(db: Session, operation: str) -> Iterator[Session]:
    """
    Run a block as one atomic unit of work

    Commits when the block finishes, rolls back on any error. Unique
    constraint violations become ConflictError, other driver errors
    become DatabaseError.

    Args:
        db: Database session
        operation: Description used in logs and error details
    """
    try:
        yield db
        db.commit()
    except BaseCustomException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, operation)
    except Exception:
        db.rollback()
        raise


def check_database_connection() -> bool:
    """
    Test database connection

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        logger.info("Database connection test successful")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection test failed: {str(e)}", exc_info=True)
        return False

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from auth_service.config import settings
from auth_service.utils.logger import setup_logger

# Setup logging before the modules below grab their loggers
logger = setup_logger(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    log_file=settings.LOG_FILE,
)

from auth_service.database import Base, engine, check_database_connection  # noqa: E402
from auth_service.middleware.error_handler import setup_error_handlers  # noqa: E402
from auth_service.models import email_verification, refresh_token, user  # noqa: E402,F401
from auth_service.routes import local_email, local_token, local_user, oauth_google  # noqa: E402

# Create database tables
try:
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")
except SQLAlchemyError as e:
    logger.error(f"Failed to create database tables: {str(e)}", exc_info=True)

app = FastAPI(
    title="Auth Service",
    description="Local credential and Google OAuth authentication with JWT sessions",
    version="0.1.0"
)

setup_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(local_user.router)
app.include_router(local_email.router)
app.include_router(local_token.router)
app.include_router(oauth_google.router)


@app.get("/health")
def health():
    database_ok = check_database_connection()
    return {"success": database_ok, "data": {"database": "ok" if database_ok else "unavailable"}}

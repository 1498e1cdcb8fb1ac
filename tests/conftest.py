import os

# Settings are read at import time, so the test environment goes in first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("APP_URL", "http://testserver")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from auth_service.config import settings
from auth_service.main import app
from auth_service.database import Base, SessionLocal, engine
from auth_service.middleware.rate_limit import FixedWindowLimiter
from auth_service.models.email_verification import EmailVerification
from auth_service.models.refresh_token import RefreshToken
from auth_service.models.user import User
from auth_service.utils.security import get_password_hash
from auth_service.utils.time import utcnow

PASSWORD = "Password123!"


@pytest.fixture(autouse=True)
def reset_state():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    FixedWindowLimiter.reset_all()
    yield
    FixedWindowLimiter.reset_all()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make_user(username="testuser", email="test@example.com", password=PASSWORD, is_verified=True, google_id=None):
        user = User(
            username=username,
            email=email,
            hashed_password=get_password_hash(password) if password else None,
            is_verified=is_verified,
            google_id=google_id,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def test_user(make_user):
    return make_user()


@pytest.fixture
def login(client):
    def _login(username="testuser", password=PASSWORD):
        response = client.post("/local/user/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.json()
        return response.json()["data"]
    return _login


@pytest.fixture
def expire_refresh_token(db):
    def _expire(token):
        record = db.query(RefreshToken).filter(RefreshToken.token == token).one()
        record.expires_at = utcnow() - timedelta(minutes=1)
        db.commit()
    return _expire


@pytest.fixture
def restore_settings():
    """Put back any settings a test flips"""
    original = settings.model_dump()
    yield settings
    for name, value in original.items():
        setattr(settings, name, value)


@pytest.fixture
def count_rows(db):
    def _count(model, **filters):
        db.expire_all()
        return db.query(model).filter_by(**filters).count()
    return _count


@pytest.fixture
def verification_for(db):
    def _verification(user_id):
        db.expire_all()
        return db.query(EmailVerification).filter(EmailVerification.user_id == user_id).first()
    return _verification

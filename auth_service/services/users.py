from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from auth_service.config import settings
from auth_service.database import transaction
from auth_service.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
)
from auth_service.models.email_verification import EmailVerification
from auth_service.models.refresh_token import RefreshToken
from auth_service.models.user import User
from auth_service.schemas.users import UserCreate
from auth_service.services.tokens import (
    find_live_refresh_token,
    issue_token_pair,
    revoke_user_tokens,
)
from auth_service.utils import security
from auth_service.utils.logger import get_logger
from auth_service.utils.time import expires_in

logger = get_logger("users")

REGISTRATION_MESSAGE = "Registration successful. Please check your email for verification instructions."


def find_user_by_identity(db: Session, username: Optional[str], email: Optional[str]) -> Optional[User]:
    """Match a user on username OR email; a missing half never matches"""
    return db.query(User).filter(
        or_(User.username == (username or ""), User.email == (email or ""))
    ).first()


def create_email_verification(db: Session, user: User) -> EmailVerification:
    verification = EmailVerification(
        user_id=user.id,
        token=security.generate_verification_token(),
        expires_at=expires_in(settings.EMAIL_EXPIRATION),
    )
    db.add(verification)
    return verification


def register(db: Session, payload: UserCreate) -> dict:
    """
    Create an unverified user and a pending email verification

    Args:
        db: Database session
        payload: Validated registration data

    Returns:
        dict with the new user, the verification token to mail and a message

    Raises:
        ConflictError: If username or email is already taken
    """
    with transaction(db, "register user"):
        existing = find_user_by_identity(db, payload.username, payload.email)
        if existing:
            logger.warning(f"Registration rejected: username or email already in use ({payload.email})")
            raise ConflictError("Username or email already exists")

        user = User(
            username=payload.username,
            email=payload.email,
            hashed_password=security.get_password_hash(payload.password),
            is_verified=False,
        )
        db.add(user)
        db.flush()

        verification = create_email_verification(db, user)

    db.refresh(user)
    logger.info(f"User registered: {user.username} (id={user.id})")
    return {
        "user": user,
        "verification_token": verification.token,
        "message": REGISTRATION_MESSAGE,
    }


def register_with_auto_login(db: Session, payload: UserCreate) -> dict:
    """
    Register, then hand out a session right away when AUTO_LOGIN_AFTER_REGISTER is set
    """
    result = register(db, payload)
    if not settings.AUTO_LOGIN_AFTER_REGISTER:
        return result

    user = result["user"]
    with transaction(db, "auto login after registration"):
        tokens = issue_token_pair(db, user.id)

    logger.info(f"Auto-login session issued for user {user.id}")
    return {**result, **tokens, "auto_login": True}


def login(db: Session, username: Optional[str], email: Optional[str], password: str) -> dict:
    """
    Authenticate with username or email and start a fresh session

    Every refresh token the user already holds is revoked first.

    Raises:
        AuthenticationError: If the credentials do not match
        AuthorizationError: If the email is not verified yet
    """
    with transaction(db, "login"):
        user = find_user_by_identity(db, username, email)
        if not user or not security.verify_password(password, user.hashed_password):
            logger.warning(f"Login failed: invalid credentials for {username or email}")
            raise AuthenticationError("Invalid credentials")

        if not user.is_verified:
            logger.warning(f"Login refused: user {user.id} has not verified their email")
            raise AuthorizationError("Please verify your email before logging in")

        revoke_user_tokens(db, user.id)
        tokens = issue_token_pair(db, user.id)

    logger.info(f"User {user.id} logged in")
    return tokens


def logout(db: Session, token: str) -> None:
    with transaction(db, "logout"):
        deleted = db.query(RefreshToken).filter(RefreshToken.token == token).delete()
    logger.info(f"Logout removed {deleted} refresh token(s)")


def _authorize_owner(db: Session, token: str, username: Optional[str], email: Optional[str]) -> User:
    """
    Shared check chain for account mutations: live token, existing user,
    token owned by that user
    """
    stored = find_live_refresh_token(db, token)

    user = find_user_by_identity(db, username, email)
    if not user:
        logger.warning(f"Account change rejected: no user for {username or email}")
        raise NotFoundError("User not found")

    if user.id != stored.user_id:
        logger.warning(f"Account change rejected: token of user {stored.user_id} presented for user {user.id}")
        raise AuthorizationError("Token does not match user")

    return user


def change_password(
    db: Session,
    token: str,
    username: Optional[str],
    email: Optional[str],
    old_password: str,
    new_password: str,
) -> dict:
    """
    Replace a user's password and end all of their sessions

    Raises:
        AuthenticationError: If the refresh token is invalid/expired or the old password is wrong
        NotFoundError: If the user does not exist
        AuthorizationError: If the token belongs to someone else
    """
    with transaction(db, "change password"):
        user = _authorize_owner(db, token, username, email)

        if not security.verify_password(old_password, user.hashed_password):
            logger.warning(f"Password change rejected: wrong old password for user {user.id}")
            raise AuthenticationError("Invalid old password")

        user.hashed_password = security.get_password_hash(new_password)
        revoke_user_tokens(db, user.id)

    logger.info(f"Password changed for user {user.id}")
    return {"message": "Password changed successfully"}


def remove_user(db: Session, token: str, username: Optional[str], email: Optional[str], password: str) -> dict:
    """
    Delete an account; verification and refresh tokens go with it

    Raises:
        AuthenticationError: If the refresh token is invalid/expired or the password is wrong
        NotFoundError: If the user does not exist
        AuthorizationError: If the token belongs to someone else
    """
    with transaction(db, "remove user"):
        user = _authorize_owner(db, token, username, email)

        if not security.verify_password(password, user.hashed_password):
            logger.warning(f"Account deletion rejected: wrong password for user {user.id}")
            raise AuthenticationError("Invalid password")

        user_id = user.id
        db.delete(user)

    logger.info(f"User {user_id} deleted")
    return {"message": "User account deleted successfully"}

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from auth_service.config import settings
from auth_service.database import get_db, transaction
from auth_service.exceptions import AuthenticationError, AuthorizationError, TokenError
from auth_service.models.refresh_token import RefreshToken
from auth_service.models.user import User
from auth_service.utils import security
from auth_service.utils.logger import get_logger
from auth_service.utils.time import expires_in

logger = get_logger("tokens")

bearer_scheme = HTTPBearer(auto_error=False)


def issue_refresh_token(db: Session, user_id: int) -> RefreshToken:
    """
    Mint a refresh token and stage it in the current transaction

    Args:
        db: Database session
        user_id: Owner of the token

    Returns:
        The pending RefreshToken row
    """
    record = RefreshToken(
        token=security.create_refresh_token(user_id),
        user_id=user_id,
        expires_at=expires_in(settings.REFRESH_TOKEN_EXPIRATION),
    )
    db.add(record)
    return record


def issue_token_pair(db: Session, user_id: int) -> dict:
    refresh = issue_refresh_token(db, user_id)
    return {
        "access_token": security.create_access_token(user_id),
        "refresh_token": refresh.token,
        "token_type": "bearer",
    }


def revoke_user_tokens(db: Session, user_id: int) -> int:
    """Delete every refresh token a user holds"""
    deleted = db.query(RefreshToken).filter(RefreshToken.user_id == user_id).delete(synchronize_session="fetch")
    logger.info(f"Revoked {deleted} refresh token(s) for user {user_id}")
    return deleted


def find_live_refresh_token(db: Session, token: str) -> RefreshToken:
    """
    Look up a stored refresh token, deleting it if it has expired

    The expired row is committed away before the error is raised so the
    token can never be presented again.

    Raises:
        AuthenticationError: If the token is unknown or expired
    """
    stored = db.query(RefreshToken).filter(RefreshToken.token == token).first()
    if not stored:
        logger.warning("Refresh token not found")
        raise AuthenticationError("Invalid refresh token")

    if stored.is_expired():
        logger.info(f"Deleting expired refresh token for user {stored.user_id}")
        db.delete(stored)
        db.commit()
        raise AuthenticationError("Refresh token expired")

    return stored


def refresh_access_token(db: Session, token: str) -> dict:
    """
    Exchange a refresh token for a new access token

    Args:
        db: Database session
        token: Refresh token issued at login

    Returns:
        dict with the new access token, plus a replacement refresh token
        when rotation is enabled

    Raises:
        AuthenticationError: If the token is unknown, expired or forged
        AuthorizationError: If the owner has not verified their email
    """
    with transaction(db, "refresh token"):
        stored = db.query(RefreshToken).filter(RefreshToken.token == token).first()
        if not stored:
            logger.warning("Refresh failed: token not found")
            raise AuthenticationError("Invalid refresh token")

        if not stored.user.is_verified:
            logger.warning(f"Refresh failed: user {stored.user_id} is not verified")
            raise AuthorizationError("Email is not verified")

        if stored.is_expired():
            logger.info(f"Deleting expired refresh token for user {stored.user_id}")
            db.delete(stored)
            db.commit()
            raise AuthenticationError("Refresh token expired")

        payload = security.decode_refresh_token(token)
        if payload is None or payload["sub"] != str(stored.user_id):
            logger.warning(f"Refresh failed: signature check failed for user {stored.user_id}")
            raise AuthenticationError("Invalid refresh token")

        user_id = stored.user_id
        result = {
            "access_token": security.create_access_token(user_id),
            "token_type": "bearer",
        }
        if settings.ROTATE_REFRESH_TOKENS:
            db.delete(stored)
            result["refresh_token"] = issue_refresh_token(db, user_id).token

        logger.info(f"Access token refreshed for user {user_id}")
        return result


def get_token_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> int:
    """
    Resolve the user id carried by a Bearer access token

    Raises:
        TokenError: If no token was sent
        AuthorizationError: If the token is invalid or expired
    """
    if credentials is None or not credentials.credentials:
        raise TokenError("Authorization token required")

    payload = security.decode_access_token(credentials.credentials)
    if payload is None:
        logger.warning("Access token rejected")
        raise AuthorizationError("Invalid or expired token")

    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthorizationError("Invalid or expired token")


def get_current_user(
    user_id: int = Depends(get_token_subject),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, user_id)
    if user is None:
        logger.warning(f"Token subject {user_id} no longer exists")
        raise AuthenticationError("Could not validate credentials")
    return user

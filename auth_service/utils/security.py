import secrets
import uuid
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from auth_service.config import settings
from auth_service.utils.time import expires_in

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
    bcrypt__ident="2b"  # Use the modern bcrypt variant
)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user_id: int) -> str:
    to_encode = {
        "sub": str(user_id),
        "jti": str(uuid.uuid4()),
        "type": ACCESS_TOKEN_TYPE,
        "exp": expires_in(settings.ACCESS_TOKEN_EXPIRATION),
    }
    return jwt.encode(to_encode, settings.ACCESS_TOKEN_SECRET, algorithm=settings.ALGORITHM)


def create_refresh_token(user_id: int) -> str:
    # Lifetime is tracked by the stored row, not by an exp claim
    to_encode = {
        "sub": str(user_id),
        "jti": str(uuid.uuid4()),
        "type": REFRESH_TOKEN_TYPE,
    }
    return jwt.encode(to_encode, settings.REFRESH_TOKEN_SECRET, algorithm=settings.ALGORITHM)


def _decode(token: str, secret: str, token_type: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != token_type or payload.get("sub") is None:
        return None
    return payload


def decode_access_token(token: str) -> Optional[dict]:
    return _decode(token, settings.ACCESS_TOKEN_SECRET, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> Optional[dict]:
    return _decode(token, settings.REFRESH_TOKEN_SECRET, REFRESH_TOKEN_TYPE)


def generate_verification_token() -> str:
    return secrets.token_hex(32)


def generate_oauth_state() -> str:
    return secrets.token_hex(16)

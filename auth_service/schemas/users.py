import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

USERNAME_RE = re.compile(r"^[A-Za-z0-9]+$")
PASSWORD_SPECIALS = "@$!%*?&"


def validate_password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not re.search(r"[a-z]", v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[0-9]", v):
        raise ValueError("Password must contain at least one number")
    if not any(c in PASSWORD_SPECIALS for c in v):
        raise ValueError(f"Password must contain at least one special character ({PASSWORD_SPECIALS})")
    return v


def normalize_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    return v.strip().lower()


class IdentityMixin(BaseModel):
    """Requests that name a user by username or email"""
    username: Optional[str] = None
    email: Optional[EmailStr] = None

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return normalize_email(v)

    @model_validator(mode="after")
    def require_identity(self):
        if not self.username and not self.email:
            raise ValueError("Either username or email is required")
        return self


class UserCreate(BaseModel):
    username: str
    email: EmailStr
    password: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3 or len(v) > 20:
            raise ValueError("Username must be between 3 and 20 characters")
        if not USERNAME_RE.match(v):
            raise ValueError("Username must contain only letters and numbers")
        return v

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


class UserLogin(IdentityMixin):
    password: str = Field(min_length=1)


class ChangePasswordRequest(IdentityMixin):
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    old_password: str = Field(min_length=1, alias="oldPassword")
    new_password: str = Field(alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return validate_password_strength(v)


class RemoveUserRequest(IdentityMixin):
    token: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ResendVerificationRequest(BaseModel):
    email: EmailStr

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    is_verified: bool
    google_id: Optional[str] = None
    created_at: Optional[datetime] = None


class RegisterResult(BaseModel):
    user: UserOut
    message: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    auto_login: bool = False

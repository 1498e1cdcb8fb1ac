from typing import Optional

from pydantic import BaseModel, Field


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccessToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    # Present only when refresh tokens are rotated
    refresh_token: Optional[str] = None


class RefreshTokenRequest(BaseModel):
    token: str = Field(min_length=1)


class GoogleIdTokenRequest(BaseModel):
    id_token: str = Field(min_length=1)


class TokenSubject(BaseModel):
    id: int


class TokenVerification(BaseModel):
    valid: bool
    user: TokenSubject

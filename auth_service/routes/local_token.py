from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth_service.database import get_db
from auth_service.schemas.message import SuccessResponse, ok
from auth_service.schemas.token import AccessToken, RefreshTokenRequest, TokenVerification
from auth_service.services import tokens as token_service

router = APIRouter(prefix="/local/token", tags=["local token"])


@router.post("/token", response_model=SuccessResponse[AccessToken], response_model_exclude_none=True)
def refresh_token(payload: RefreshTokenRequest, db: Session = Depends(get_db)):
    """
    Get a new access token for a refresh token
    """
    return ok(token_service.refresh_access_token(db, payload.token))


@router.post("/verify", response_model=SuccessResponse[TokenVerification])
def verify_token(user_id: int = Depends(token_service.get_token_subject)):
    """
    Check an access token sent as 'Authorization: Bearer <token>'
    """
    return ok({"valid": True, "user": {"id": user_id}})

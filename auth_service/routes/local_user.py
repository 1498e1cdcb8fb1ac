from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status
from sqlalchemy.orm import Session

from auth_service.database import get_db
from auth_service.exceptions import BaseCustomException
from auth_service.middleware.rate_limit import client_key, limit_register, login_limiter
from auth_service.models.user import User
from auth_service.schemas.message import Message, SuccessResponse, ok
from auth_service.schemas.token import RefreshTokenRequest, TokenPair
from auth_service.schemas.users import (
    ChangePasswordRequest,
    RegisterResult,
    RemoveUserRequest,
    UserCreate,
    UserLogin,
    UserOut,
)
from auth_service.services import users as user_service
from auth_service.services.tokens import get_current_user
from auth_service.utils import email
from auth_service.utils.logger import get_logger

logger = get_logger("user_routes")

router = APIRouter(prefix="/local/user", tags=["local user"])


@router.post(
    "/register",
    response_model=SuccessResponse[RegisterResult],
    status_code=status.HTTP_201_CREATED,
    response_model_exclude_none=True,
    dependencies=[Depends(limit_register)],
)
def register(
    payload: UserCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """
    Create a local account and email a verification link
    """
    logger.info(f"Registration attempt for username: {payload.username}")
    result = user_service.register_with_auto_login(db, payload)

    user = result["user"]
    background_tasks.add_task(
        email.dispatch_verification_email,
        email=user.email,
        token=result["verification_token"],
        username=user.username,
    )

    data = {key: value for key, value in result.items() if key != "verification_token"}
    data["user"] = UserOut.model_validate(user)
    return ok(data)


@router.post("/login", response_model=SuccessResponse[TokenPair])
def login(payload: UserLogin, request: Request, db: Session = Depends(get_db)):
    """
    Exchange username/email and password for an access and refresh token
    """
    key = client_key(request)
    login_limiter.check(key)
    try:
        tokens = user_service.login(db, payload.username, payload.email, payload.password)
    except BaseCustomException:
        login_limiter.hit(key)
        raise
    return ok(tokens)


@router.post("/change-password", response_model=SuccessResponse[Message])
def change_password(payload: ChangePasswordRequest, db: Session = Depends(get_db)):
    """
    Change password; every session of the user is ended
    """
    result = user_service.change_password(
        db,
        token=payload.token,
        username=payload.username,
        email=payload.email,
        old_password=payload.old_password,
        new_password=payload.new_password,
    )
    return ok(result)


@router.delete("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(payload: RefreshTokenRequest, db: Session = Depends(get_db)):
    """
    Invalidate a refresh token
    """
    user_service.logout(db, payload.token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/remove-user", response_model=SuccessResponse[Message])
def remove_user(payload: RemoveUserRequest, db: Session = Depends(get_db)):
    """
    Permanently delete the account
    """
    result = user_service.remove_user(
        db,
        token=payload.token,
        username=payload.username,
        email=payload.email,
        password=payload.password,
    )
    return ok(result)


@router.get("/me", response_model=SuccessResponse[UserOut])
def read_users_me(current_user: User = Depends(get_current_user)):
    """
    Get current logged-in user information
    """
    return ok(UserOut.model_validate(current_user))

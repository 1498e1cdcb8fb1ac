from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from auth_service.database import get_db
from auth_service.middleware.rate_limit import limit_email
from auth_service.schemas.message import Message, SuccessResponse, ok
from auth_service.schemas.users import ResendVerificationRequest
from auth_service.services import email_verification
from auth_service.utils import email
from auth_service.utils.logger import get_logger

logger = get_logger("email_routes")

router = APIRouter(prefix="/local/email", tags=["local email"])


@router.get("/verify-email", response_model=SuccessResponse[Message])
def verify_email(
    token: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    """
    Verify user's email using the token from the verification link
    """
    return ok(email_verification.verify_email(db, token))


@router.post(
    "/resend-verification",
    response_model=SuccessResponse[Message],
    dependencies=[Depends(limit_email)],
)
def resend_verification(
    payload: ResendVerificationRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """
    Resend verification email
    """
    result = email_verification.resend_verification_email(db, payload.email)
    user = result["user"]
    background_tasks.add_task(
        email.dispatch_verification_email,
        email=user.email,
        token=result["verification_token"],
        username=user.username,
    )
    return ok({"message": result["message"]})

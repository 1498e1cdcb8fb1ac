from sqlalchemy.orm import Session

from auth_service.database import transaction
from auth_service.exceptions import NotFoundError, ValidationError
from auth_service.models.email_verification import EmailVerification
from auth_service.models.user import User
from auth_service.services.users import create_email_verification
from auth_service.utils.logger import get_logger

logger = get_logger("email_verification")


def verify_email(db: Session, token: str) -> dict:
    """
    Consume a verification token and mark its owner verified

    Args:
        db: Database session
        token: Token from the verification link

    Returns:
        dict with a confirmation message

    Raises:
        ValidationError: If the token is unknown or has expired
    """
    with transaction(db, "verify email"):
        verification = db.query(EmailVerification).filter(EmailVerification.token == token).first()
        if not verification:
            logger.warning("Email verification failed: unknown token")
            raise ValidationError("Invalid verification token")

        if verification.is_expired():
            logger.info(f"Deleting expired verification for user {verification.user_id}")
            db.delete(verification)
            db.commit()
            raise ValidationError("Verification token has expired")

        user_id = verification.user_id
        verification.user.is_verified = True
        db.delete(verification)

    logger.info(f"Email verified for user {user_id}")
    return {"message": "Email verified successfully"}


def resend_verification_email(db: Session, email: str) -> dict:
    """
    Replace a user's pending verification with a fresh one

    Returns:
        dict with the user and the new token to mail

    Raises:
        NotFoundError: If no user has this email
        ValidationError: If the email is already verified
    """
    with transaction(db, "resend verification email"):
        user = db.query(User).filter(User.email == email).first()
        if not user:
            logger.warning(f"Resend verification failed: no user for {email}")
            raise NotFoundError("User not found")

        if user.is_verified:
            logger.warning(f"Resend verification refused: {email} is already verified")
            raise ValidationError("Email is already verified")

        if user.email_verification is not None:
            db.delete(user.email_verification)
            # The old row must be gone before the replacement takes its user_id slot
            db.flush()

        verification = create_email_verification(db, user)

    logger.info(f"Verification re-issued for user {user.id}")
    return {
        "user": user,
        "verification_token": verification.token,
        "message": "Verification email sent",
    }

import emails
from emails.template import JinjaTemplate

from auth_service.config import settings
from auth_service.utils.logger import get_logger, log_email_operation
from auth_service.exceptions import EmailError, handle_email_error

logger = get_logger("email")

VERIFICATION_TEMPLATE = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h2>Welcome to {{ app_name }}, {{ username }}!</h2>
    <p>Thank you for registering. Please verify your email address by clicking the link below:</p>
    <a href="{{ verification_url }}">Verify Email Address</a>
    <p>This link will expire in {{ expires_in }}.</p>
    <p>If you didn't create an account, please ignore this email.</p>
    <hr>
    <p style="color: #666; font-size: 12px;">
        If the button doesn't work, copy and paste this link into your browser: {{ verification_url }}
    </p>
</div>
"""


def send_email(
    email_to: str,
    subject: str = "",
    html_content: str = None,
    template_name: str = None,
    environment: dict = None,
) -> bool:
    """
    Send email with either direct HTML content or a template

    Args:
        email_to: Recipient email address
        subject: Email subject
        html_content: Direct HTML content
        template_name: Template string to render
        environment: Template variables

    Returns:
        bool: True if email sent successfully

    Raises:
        EmailError: If email configuration is missing or sending fails
    """
    smtp_settings = {
        "SMTP_HOST": settings.SMTP_HOST,
        "SMTP_PORT": settings.SMTP_PORT,
        "SMTP_USER": settings.SMTP_USER,
        "SMTP_PASSWORD": settings.SMTP_PASSWORD,
        "EMAILS_FROM": settings.EMAILS_FROM,
    }
    missing = [name for name, value in smtp_settings.items() if not value]
    if missing:
        error_msg = "Email configuration not set - skipping email sending"
        logger.warning(error_msg)
        raise EmailError(message=error_msg, details={"missing_settings": missing})

    try:
        if html_content:
            html = html_content
        elif template_name:
            html = JinjaTemplate(template_name).render(**(environment or {}))
        else:
            raise ValueError("Either html_content or template_name must be provided")
        message = emails.Message(
            mail_from=(settings.APP_NAME, settings.EMAILS_FROM),
            subject=subject,
            html=html,
        )
    except Exception as e:
        raise handle_email_error(e, "create email message")

    smtp_options = {
        "host": settings.SMTP_HOST,
        "port": settings.SMTP_PORT,
        "user": settings.SMTP_USER,
        "password": settings.SMTP_PASSWORD,
    }
    if settings.SMTP_TLS:
        smtp_options["tls"] = True
    if settings.SMTP_SSL:
        smtp_options["ssl"] = True

    try:
        response = message.send(to=email_to, smtp=smtp_options)
    except Exception as e:
        raise handle_email_error(e, "send email")

    if not response.success:
        logger.error(f"Failed to send email to {email_to}: {response.error}")
        raise EmailError(
            message=f"Failed to send email: {response.error}",
            details={"recipient": email_to, "subject": subject}
        )

    logger.info(f"Email sent successfully to {email_to}")
    return True


@log_email_operation("send verification email")
def send_verification_email(email: str, token: str, username: str) -> bool:
    """
    Send the email verification link

    Raises:
        EmailError: If email sending fails
    """
    verification_url = f"{settings.APP_URL}/local/email/verify-email?token={token}"
    return send_email(
        email_to=email,
        subject="Verify your email address",
        template_name=VERIFICATION_TEMPLATE,
        environment={
            "app_name": settings.APP_NAME,
            "username": username,
            "verification_url": verification_url,
            "expires_in": settings.EMAIL_EXPIRATION,
        },
    )


def dispatch_verification_email(email: str, token: str, username: str) -> None:
    """Background-task entry point; delivery failures never reach the client"""
    try:
        send_verification_email(email, token, username)
    except EmailError as e:
        logger.error(f"Failed to send verification email to {email}: {e.message}")

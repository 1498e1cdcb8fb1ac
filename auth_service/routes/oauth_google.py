from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from auth_service.config import settings
from auth_service.database import get_db
from auth_service.exceptions import BaseCustomException
from auth_service.schemas.message import SuccessResponse, ok
from auth_service.schemas.token import GoogleIdTokenRequest, TokenPair
from auth_service.services.google_oauth import google_oauth_service
from auth_service.utils import security
from auth_service.utils.logger import get_logger

logger = get_logger("oauth_routes")

router = APIRouter(prefix="/oauth", tags=["oauth"])

STATE_COOKIE = "oauth_state"
STATE_COOKIE_MAX_AGE = 10 * 60


def _login_failed_redirect() -> RedirectResponse:
    response = RedirectResponse("/oauth/login-failed", status_code=status.HTTP_302_FOUND)
    response.delete_cookie(STATE_COOKIE, path="/oauth")
    return response


@router.get("/google")
def google_login():
    """
    Send the browser to Google's consent screen
    """
    state = security.generate_oauth_state()
    try:
        url = google_oauth_service.get_authorization_url(state)
    except BaseCustomException as e:
        logger.error(f"Failed to start Google OAuth: {e.message}")
        return _login_failed_redirect()

    response = RedirectResponse(url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=STATE_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.APP_URL.startswith("https"),
        path="/oauth",
    )
    return response


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: str = None,
    state: str = None,
    db: Session = Depends(get_db),
):
    """
    Handle Google's redirect, then hand the tokens to the frontend in the URL fragment
    """
    expected_state = request.cookies.get(STATE_COOKIE)
    if not code or not state or not expected_state or state != expected_state:
        logger.warning("Google OAuth callback rejected: missing code or state mismatch")
        return _login_failed_redirect()

    try:
        user, tokens = google_oauth_service.authenticate_code(db, code)
    except BaseCustomException as e:
        logger.error(f"Google OAuth callback failed: {e.message}")
        return _login_failed_redirect()

    fragment = urlencode({
        "access_token": tokens["access_token"],
        "refresh_token": tokens["refresh_token"],
    })
    response = RedirectResponse(f"{settings.FRONTEND_URL}/#{fragment}", status_code=status.HTTP_302_FOUND)
    response.delete_cookie(STATE_COOKIE, path="/oauth")
    logger.info(f"Google OAuth login completed for user {user.id}")
    return response


@router.get("/login-failed")
def login_failed():
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"success": False, "error": "Login using Google failed"},
    )


@router.post("/google/token", response_model=SuccessResponse[TokenPair])
def google_id_token_login(payload: GoogleIdTokenRequest, db: Session = Depends(get_db)):
    """
    Sign in with a Google ID token obtained by a native client
    """
    user, tokens = google_oauth_service.authenticate_id_token(db, payload.id_token)
    return ok(tokens)

from typing import Any, Dict, Tuple
from urllib.parse import urlencode

import requests
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from sqlalchemy.orm import Session

from auth_service.config import settings
from auth_service.database import transaction
from auth_service.exceptions import OAuthError
from auth_service.models.user import User
from auth_service.services.tokens import issue_token_pair
from auth_service.utils.logger import get_logger, log_oauth_operation

logger = get_logger("google_oauth")

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


def _json_body(response: requests.Response) -> Dict[str, Any]:
    """Decode a Google response that must be a JSON object"""
    try:
        data = response.json()
    except ValueError as e:
        raise OAuthError("Invalid response from Google", details={"original_error": str(e)})
    if not isinstance(data, dict):
        raise OAuthError("Invalid response from Google")
    return data


class GoogleOAuthService:
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    userinfo_url = "https://openidconnect.googleapis.com/v1/userinfo"
    scope = "openid email profile"
    timeout = 10

    @property
    def redirect_uri(self) -> str:
        return f"{settings.APP_URL}/oauth/google/callback"

    def _require_config(self):
        if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
            raise OAuthError("Google OAuth is not configured")

    def get_authorization_url(self, state: str) -> str:
        """Build the Google consent screen URL"""
        self._require_config()
        params = {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    @log_oauth_operation("Google")
    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange authorization code for Google tokens"""
        self._require_config()
        data = {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "code": code,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            response = requests.post(self.token_url, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            raise OAuthError("Could not reach Google", details={"original_error": str(e)})

        if response.status_code != 200:
            raise OAuthError(
                "Failed to get access token from Google",
                details={"status_code": response.status_code},
            )
        return _json_body(response)

    @log_oauth_operation("Google")
    def fetch_user_info(self, access_token: str) -> Dict[str, Any]:
        """Get the OpenID profile of the signed-in Google account"""
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            response = requests.get(self.userinfo_url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise OAuthError("Could not reach Google", details={"original_error": str(e)})

        if response.status_code != 200:
            raise OAuthError(
                "Failed to get user info from Google",
                details={"status_code": response.status_code},
            )
        return _json_body(response)

    @log_oauth_operation("Google")
    def verify_id_token(self, token: str) -> Dict[str, Any]:
        """Validate a Google ID token issued to this client"""
        if not settings.GOOGLE_CLIENT_ID:
            raise OAuthError("Google OAuth is not configured")
        try:
            idinfo = id_token.verify_oauth2_token(
                token,
                google_requests.Request(),
                settings.GOOGLE_CLIENT_ID,
            )
        except ValueError as e:
            raise OAuthError("Invalid Google token", details={"original_error": str(e)})

        if idinfo.get("iss") not in GOOGLE_ISSUERS:
            raise OAuthError("Invalid Google token", details={"original_error": "Invalid issuer"})
        return idinfo

    def authenticate_code(self, db: Session, code: str) -> Tuple[User, dict]:
        """Full redirect flow: code -> Google profile -> local user and session"""
        google_tokens = self.exchange_code(code)
        access_token = google_tokens.get("access_token")
        if not access_token:
            raise OAuthError("Google did not return an access token")
        profile = self.fetch_user_info(access_token)
        return login_with_google_profile(db, profile)

    def authenticate_id_token(self, db: Session, token: str) -> Tuple[User, dict]:
        profile = self.verify_id_token(token)
        return login_with_google_profile(db, profile)


def link_or_create_google_user(db: Session, profile: Dict[str, Any]) -> User:
    """
    Resolve the local user for a Google profile

    A user already holding this Google id wins. Otherwise the user with the
    same email is linked and marked verified, and a new user is created
    when neither exists.

    Args:
        db: Database session (caller owns the transaction)
        profile: OpenID claims with at least 'sub' and 'email'

    Returns:
        The matching or newly created user

    Raises:
        OAuthError: If the profile lacks an id or a verified email, or the
            email belongs to a user linked to another Google account
    """
    google_id = profile.get("sub")
    email = (profile.get("email") or "").strip().lower()
    if not google_id or not email:
        raise OAuthError("Google profile is missing an id or email")
    if profile.get("email_verified") is False:
        raise OAuthError("Google account email is not verified")

    user = db.query(User).filter(User.google_id == google_id).first()
    if user:
        return user

    user = db.query(User).filter(User.email == email).first()
    if not user:
        user = User(
            username=email,
            email=email,
            google_id=google_id,
            is_verified=True,
        )
        db.add(user)
        db.flush()
        logger.info(f"Created user {user.id} from Google account")
        return user

    if user.google_id:
        logger.warning(f"Google login refused: user {user.id} is linked to another Google account")
        raise OAuthError("Email is linked to another Google account")

    user.google_id = google_id
    user.is_verified = True
    if user.email_verification is not None:
        db.delete(user.email_verification)
    logger.info(f"Linked Google account to existing user {user.id}")
    return user


def login_with_google_profile(db: Session, profile: Dict[str, Any]) -> Tuple[User, dict]:
    with transaction(db, "google login"):
        user = link_or_create_google_user(db, profile)
        tokens = issue_token_pair(db, user.id)

    logger.info(f"Google login for user {user.id}")
    return user, tokens


google_oauth_service = GoogleOAuthService()

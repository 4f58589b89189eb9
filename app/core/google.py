"""
Google OAuth (authorization-code flow) helpers.
"""
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from itsdangerous import BadSignature, URLSafeTimedSerializer

from app.core.config import settings

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"

STATE_COOKIE = "oauth_state"
STATE_MAX_AGE = 600  # seconds


class GoogleAuthError(Exception):
    pass


@dataclass(frozen=True)
class GoogleProfile:
    google_id: str
    email: str | None
    name: str | None = None


def _state_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.OAUTH_STATE_SECRET, salt="google-oauth-state")


def generate_state() -> str:
    return _state_serializer().dumps(secrets.token_urlsafe(32))


def verify_state(state: str | None, expected: str | None, max_age: int = STATE_MAX_AGE) -> bool:
    """
    The state returned by Google must be the one we put in the cookie, and
    still carry a valid, unexpired signature.
    """
    if not state or not expected or not secrets.compare_digest(state.encode(), expected.encode()):
        return False
    try:
        _state_serializer().loads(state, max_age=max_age)
    except BadSignature:
        return False
    return True


def get_google_auth_url(state: str) -> str:
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
        "prompt": "select_account",
    }
    return f"{AUTH_URL}?{urlencode(params)}"


def exchange_code_for_token(code: str) -> dict:
    data = {
        "code": code,
        "client_id": settings.GOOGLE_CLIENT_ID,
        "client_secret": settings.GOOGLE_CLIENT_SECRET,
        "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        "grant_type": "authorization_code",
    }
    with httpx.Client(timeout=20) as client:
        response = client.post(TOKEN_URL, data=data)
    if response.status_code != 200:
        raise GoogleAuthError(f"Token exchange failed ({response.status_code})")
    return response.json()


def profile_from_id_token(raw_id_token: str) -> GoogleProfile:
    try:
        idinfo = google_id_token.verify_oauth2_token(
            raw_id_token,
            google_requests.Request(),
            settings.GOOGLE_CLIENT_ID,
        )
    except ValueError as e:
        raise GoogleAuthError("Invalid Google ID token") from e

    sub = idinfo.get("sub")
    if not sub:
        raise GoogleAuthError("Google ID token has no subject")
    email = idinfo.get("email") if idinfo.get("email_verified", True) else None
    return GoogleProfile(google_id=sub, email=email, name=idinfo.get("name"))


def fetch_google_profile(code: str) -> GoogleProfile:
    token = exchange_code_for_token(code)
    raw = token.get("id_token")
    if not raw:
        raise GoogleAuthError("Token response has no id_token")
    return profile_from_id_token(raw)

from functools import lru_cache
from datetime import timedelta

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import TokenConfig, TokenError, TokenIssuer
from app.db.session import get_db
from app.models.user import User
from app.services.auth_service import AuthService
from app.services.notifier import Notifier, get_notifier
from app.services.user_store import UserStore

bearer_scheme = HTTPBearer(auto_error=False)

# one message for every failure so callers can't tell a bad token from a deleted user
UNAUTHORIZED_DETAIL = "Please provide a valid token"


@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(TokenConfig.from_settings(settings))


def get_auth_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> AuthService:
    return AuthService(
        store=UserStore(db),
        notifier=notifier,
        tokens=tokens,
        otp_ttl=timedelta(minutes=settings.OTP_TTL_MIN),
        min_age=settings.MIN_AGE_YEARS,
    )


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=UNAUTHORIZED_DETAIL,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> User:
    if not credentials:
        raise _unauthorized()

    try:
        payload = tokens.verify(credentials.credentials)
    except TokenError:
        raise _unauthorized()

    user = UserStore(db).get_by_id(payload["sub"])
    if not user:
        raise _unauthorized()

    request.state.user = user
    return user

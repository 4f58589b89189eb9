import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse

from app.core.config import settings
from app.core.deps import get_auth_service, get_current_user
from app.core.errors import AuthServiceError, FailureReason
from app.core.google import (
    STATE_COOKIE,
    STATE_MAX_AGE,
    GoogleAuthError,
    fetch_google_profile,
    generate_state,
    get_google_auth_url,
    verify_state,
)
from app.models.user import User
from app.schemas.auth import (
    AccessTokenOut,
    AuthOut,
    CompleteProfileIn,
    MessageOut,
    ProfileOut,
    RefreshIn,
    SigninOtpIn,
    SignupOtpIn,
    UserOut,
    VerifySigninOtpIn,
    VerifySignupOtpIn,
)
from app.services.auth_service import AuthResult, AuthService

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("app.auth")

REFRESH_COOKIE = "refreshToken"


def _cookie_common() -> dict:
    common = dict(
        httponly=True,
        secure=settings.COOKIE_SECURE or settings.is_prod,
        samesite="strict",
        path="/",
    )
    if settings.COOKIE_DOMAIN:
        common["domain"] = settings.COOKIE_DOMAIN
    return common


def _set_refresh_cookie(resp: Response, refresh: str):
    resp.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh,
        max_age=settings.REFRESH_TTL_DAYS * 24 * 3600,
        **_cookie_common(),
    )


def _clear_refresh_cookie(resp: Response):
    common = dict(path="/")
    if settings.COOKIE_DOMAIN:
        common["domain"] = settings.COOKIE_DOMAIN
    resp.delete_cookie(REFRESH_COOKIE, **common)


def _auth_response(result: AuthResult, response: Response) -> AuthOut:
    _set_refresh_cookie(response, result.tokens.refresh_token)
    return AuthOut(
        message=result.message,
        user=UserOut.from_user(result.user),
        access_token=result.tokens.access_token,
    )


def _frontend_redirect(path: str, **params) -> RedirectResponse:
    url = f"{settings.FRONTEND_URL.rstrip('/')}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


# -- OTP -----------------------------------------------------------------------


@router.post("/signup/send-otp", response_model=MessageOut)
def signup_send_otp(
    payload: SignupOtpIn, service: AuthService = Depends(get_auth_service)
):
    return service.signup_with_otp(payload.name, payload.dob, payload.email)


@router.post("/signup/verify-otp", response_model=AuthOut)
def signup_verify_otp(
    payload: VerifySignupOtpIn,
    response: Response,
    service: AuthService = Depends(get_auth_service),
):
    result = service.verify_signup_otp(
        payload.name, payload.dob, payload.email, payload.otp
    )
    return _auth_response(result, response)


@router.post("/signin/send-otp", response_model=MessageOut)
@router.post("/send-otp", response_model=MessageOut, include_in_schema=False)
def signin_send_otp(
    payload: SigninOtpIn, service: AuthService = Depends(get_auth_service)
):
    return service.signin_with_otp(payload.email)


@router.post("/signin/verify-otp", response_model=AuthOut)
@router.post("/verify-otp", response_model=AuthOut, include_in_schema=False)
def signin_verify_otp(
    payload: VerifySigninOtpIn,
    response: Response,
    service: AuthService = Depends(get_auth_service),
):
    result = service.verify_signin_otp(payload.email, payload.otp)
    return _auth_response(result, response)


# -- Google --------------------------------------------------------------------


@router.get("/google")
def google_login():
    if not settings.google_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google OAuth not configured",
        )

    state = generate_state()
    response = RedirectResponse(
        url=get_google_auth_url(state), status_code=status.HTTP_302_FOUND
    )
    response.set_cookie(
        key=STATE_COOKIE,
        value=state,
        max_age=STATE_MAX_AGE,
        httponly=True,
        secure=settings.COOKIE_SECURE or settings.is_prod,
        samesite="lax",  # must survive the cross-site redirect back from Google
        path="/",
    )
    return response


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    service: AuthService = Depends(get_auth_service),
):
    if error or not code:
        logger.info("Google callback without code error=%s", error)
        return _frontend_redirect("/auth/error")

    if not verify_state(state, request.cookies.get(STATE_COOKIE)):
        logger.info("Google callback with bad state")
        return _frontend_redirect("/auth/error")

    try:
        profile = fetch_google_profile(code)
    except GoogleAuthError as e:
        logger.warning("Google profile fetch failed: %s", e)
        return _frontend_redirect("/auth/error")

    if not profile.email:
        return _frontend_redirect("/auth/error")

    try:
        result = service.handle_google_callback(profile)
    except AuthServiceError as e:
        logger.info("Google callback rejected reason=%s", e.reason.value)
        return _frontend_redirect("/auth/error")

    path = "/auth/complete-profile" if result.needs_profile_completion else "/auth/success"
    response = _frontend_redirect(path, token=result.tokens.access_token)
    _set_refresh_cookie(response, result.tokens.refresh_token)
    response.delete_cookie(STATE_COOKIE, path="/")
    return response


# -- session -------------------------------------------------------------------


@router.post("/complete-profile", response_model=ProfileOut)
def complete_profile(
    payload: CompleteProfileIn,
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    updated = service.complete_profile(str(user.id), payload.name, payload.dob)
    return ProfileOut(
        message="Profile completed successfully", user=UserOut.from_user(updated)
    )


@router.post("/refresh", response_model=AccessTokenOut)
def refresh(
    request: Request,
    response: Response,
    payload: RefreshIn | None = None,
    service: AuthService = Depends(get_auth_service),
):
    token = request.cookies.get(REFRESH_COOKIE) or (
        payload.refresh_token if payload else None
    )
    if not token:
        raise AuthServiceError(FailureReason.MISSING_TOKEN, "Refresh token is required")

    tokens = service.refresh_token(token)
    _set_refresh_cookie(response, tokens.refresh_token)
    return AccessTokenOut(access_token=tokens.access_token)


@router.post("/logout", response_model=MessageOut)
def logout(
    response: Response,
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    result = service.logout(str(user.id))
    _clear_refresh_cookie(response)
    return result


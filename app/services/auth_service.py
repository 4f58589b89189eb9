import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable

from app.core.errors import AuthServiceError, FailureReason
from app.core.google import GoogleProfile
from app.core.logging import mask_email
from app.core.otp import OTP_TTL, generate_otp, is_otp_valid, otp_expiry_from, utcnow
from app.core.security import AuthTokens, TokenError, TokenIssuer
from app.core.validation import MIN_AGE_YEARS, is_old_enough, normalize_email
from app.models.user import User
from app.services.notifier import Notifier, OtpPurpose
from app.services.user_store import UserStore

logger = logging.getLogger("app.auth")


@dataclass
class AuthResult:
    message: str
    user: User
    tokens: AuthTokens


@dataclass
class GoogleAuthResult:
    user: User
    tokens: AuthTokens
    needs_profile_completion: bool


class AuthService:
    """
    OTP signup/signin, Google account linking, profile completion and the
    refresh-token session lifecycle.

    Each user row holds at most one live refresh token; issuing a new pair
    overwrites it, so any older refresh token stops matching the store even
    while its signature is still valid.

    Emails are expected already normalized (lowercase, trimmed) by the caller.
    """

    def __init__(
        self,
        store: UserStore,
        notifier: Notifier,
        tokens: TokenIssuer,
        clock: Callable[[], datetime] = utcnow,
        otp_ttl: timedelta = OTP_TTL,
        min_age: int = MIN_AGE_YEARS,
    ):
        self.store = store
        self.notifier = notifier
        self.tokens = tokens
        self.clock = clock
        self.otp_ttl = otp_ttl
        self.min_age = min_age

    # -- OTP dispatch --------------------------------------------------------

    def _set_challenge(self, user: User) -> str:
        code = generate_otp()
        user.otp_code = code
        user.otp_expiry = otp_expiry_from(self.clock(), self.otp_ttl)
        return code

    def signup_with_otp(self, name: str, dob: date, email: str) -> dict:
        user = self.store.get_by_email(email)
        if user and user.is_email_verified:
            raise AuthServiceError(
                FailureReason.ALREADY_EXISTS,
                "User already exists with this email. Please sign in instead.",
            )

        if not user:
            user = User(email=email, is_email_verified=False)
        user.name = name
        user.dob = dob
        code = self._set_challenge(user)
        self.store.save(user)

        self.notifier.notify(email, code, OtpPurpose.SIGNUP)
        logger.info("Signup OTP dispatched user=%s", user.id)
        return {"message": "OTP sent to your email. Please verify to complete signup."}

    def signin_with_otp(self, email: str) -> dict:
        user = self.store.get_by_email(email)
        if not user:
            raise AuthServiceError(
                FailureReason.NOT_FOUND,
                "No account found with this email. Please sign up first.",
            )

        code = self._set_challenge(user)
        self.store.save(user)

        self.notifier.notify(email, code, OtpPurpose.SIGNIN)
        logger.info("Signin OTP dispatched user=%s", user.id)
        return {"message": "OTP sent to your email"}

    # -- OTP verification ----------------------------------------------------

    def _require_user(self, email: str) -> User:
        user = self.store.get_by_email(email)
        if not user:
            raise AuthServiceError(FailureReason.NOT_FOUND, "User not found")
        return user

    def _require_challenge(self, user: User) -> None:
        if not user.otp_code or not user.otp_expiry:
            raise AuthServiceError(
                FailureReason.NO_CHALLENGE, "No OTP found. Please request a new one."
            )

    def _check_code(self, user: User, otp: str) -> None:
        # a failed attempt leaves the challenge in place
        if not is_otp_valid(user.otp_expiry, self.clock()):
            raise AuthServiceError(FailureReason.EXPIRED, "OTP has expired")
        if not secrets.compare_digest(user.otp_code, otp):
            logger.info("OTP mismatch user=%s", user.id)
            raise AuthServiceError(FailureReason.INVALID_CODE, "Invalid OTP")

    def _start_session(self, user: User) -> AuthTokens:
        tokens = self.tokens.issue(str(user.id))
        user.refresh_token = tokens.refresh_token
        return tokens

    def verify_signup_otp(self, name: str, dob: date, email: str, otp: str) -> AuthResult:
        user = self._require_user(email)
        self._require_challenge(user)
        if user.is_email_verified:
            raise AuthServiceError(
                FailureReason.ALREADY_VERIFIED,
                "User already verified. Please sign in instead.",
            )
        self._check_code(user, otp)

        user.name = name
        user.dob = dob
        user.is_email_verified = True
        user.otp_code = None
        user.otp_expiry = None
        tokens = self._start_session(user)
        self.store.save(user)

        logger.info("Signup verified user=%s", user.id)
        return AuthResult("Account created successfully", user, tokens)

    def verify_signin_otp(self, email: str, otp: str) -> AuthResult:
        user = self._require_user(email)
        self._require_challenge(user)
        self._check_code(user, otp)

        user.is_email_verified = True
        user.otp_code = None
        user.otp_expiry = None
        tokens = self._start_session(user)
        self.store.save(user)

        logger.info("Signin verified user=%s", user.id)
        return AuthResult("Signed in successfully", user, tokens)

    # -- Google --------------------------------------------------------------

    def handle_google_callback(self, profile: GoogleProfile) -> GoogleAuthResult:
        user = self.store.get_by_google_id(profile.google_id)

        if not user:
            if not profile.email:
                raise AuthServiceError(
                    FailureReason.VALIDATION, "No email found in Google profile"
                )
            email = normalize_email(profile.email)
            user = self.store.get_by_email(email)
            if user:
                # link by email; Google has already verified the address
                if not user.google_id:
                    user.google_id = profile.google_id
                user.is_email_verified = True
                logger.info("Google account linked user=%s", user.id)
            else:
                # id assigned up front so the token subject is set before insert
                user = User(
                    id=uuid.uuid4(),
                    email=email,
                    google_id=profile.google_id,
                    is_email_verified=True,
                )
                logger.info("Google account created domain=%s", mask_email(email))

        tokens = self._start_session(user)
        self.store.save(user)

        return GoogleAuthResult(
            user=user,
            tokens=tokens,
            needs_profile_completion=user.needs_profile_completion,
        )

    def complete_profile(self, user_id: str, name: str, dob: date) -> User:
        if not is_old_enough(dob, self.clock().date(), self.min_age):
            raise AuthServiceError(
                FailureReason.VALIDATION,
                f"You must be at least {self.min_age} years old",
            )
        user = self.store.get_by_id(user_id)
        if not user:
            raise AuthServiceError(FailureReason.NOT_FOUND, "User not found")

        user.name = name
        user.dob = dob
        self.store.save(user)
        logger.info("Profile completed user=%s", user.id)
        return user

    # -- session -------------------------------------------------------------

    def refresh_token(self, presented: str) -> AuthTokens:
        try:
            payload = self.tokens.verify(presented, is_refresh=True)
        except TokenError as e:
            logger.info("Refresh rejected reason=%s", e.reason.value)
            raise AuthServiceError(
                FailureReason.INVALID_TOKEN, "Invalid or expired refresh token"
            )

        user = self.store.get_by_refresh_token(presented)
        if not user or str(user.id) != payload["sub"]:
            logger.info("Refresh rejected reason=revoked sub=%s", payload["sub"])
            raise AuthServiceError(FailureReason.TOKEN_REVOKED, "Invalid refresh token")

        # rotate
        tokens = self._start_session(user)
        self.store.save(user)
        return tokens

    def logout(self, user_id: str) -> dict:
        user = self.store.get_by_id(user_id)
        if user and user.refresh_token is not None:
            user.refresh_token = None
            self.store.save(user)
        logger.info("Logout user=%s", user_id)
        return {"message": "Logged out successfully"}

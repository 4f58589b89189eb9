import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from app.core.config import Settings

ALGO = "HS256"

ACCESS = "access"
REFRESH = "refresh"


class TokenFailure(str, Enum):
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"


class TokenError(Exception):
    def __init__(self, reason: TokenFailure):
        super().__init__(reason.value)
        self.reason = reason


@dataclass(frozen=True)
class TokenConfig:
    access_secret: str
    refresh_secret: str
    issuer: str
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)

    @classmethod
    def from_settings(cls, s: Settings) -> "TokenConfig":
        return cls(
            access_secret=s.JWT_ACCESS_SECRET,
            refresh_secret=s.JWT_REFRESH_SECRET,
            issuer=s.JWT_ISSUER,
            access_ttl=timedelta(minutes=s.ACCESS_TTL_MIN),
            refresh_ttl=timedelta(days=s.REFRESH_TTL_DAYS),
        )


@dataclass(frozen=True)
class AuthTokens:
    access_token: str
    refresh_token: str


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_jti() -> str:
    return secrets.token_hex(16)  # 32 chars


class TokenIssuer:
    """
    Signs and checks access/refresh JWT pairs.

    Access and refresh tokens are signed with different secrets so one can
    never be accepted as the other. Refresh tokens carry a random jti, so
    two pairs issued in the same second for the same user still differ.
    """

    def __init__(self, config: TokenConfig):
        if config.access_secret == config.refresh_secret:
            raise ValueError("access and refresh secrets must differ")
        self.config = config

    def _secret(self, token_type: str) -> str:
        if token_type == REFRESH:
            return self.config.refresh_secret
        return self.config.access_secret

    def _encode(self, user_id: str, token_type: str, ttl: timedelta, now: datetime) -> str:
        payload: dict[str, Any] = {
            "iss": self.config.issuer,
            "sub": user_id,
            "type": token_type,
            "jti": new_jti(),
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._secret(token_type), algorithm=ALGO)

    def issue(self, user_id: str, now: datetime | None = None) -> AuthTokens:
        now = now or _now()
        return AuthTokens(
            access_token=self._encode(user_id, ACCESS, self.config.access_ttl, now),
            refresh_token=self._encode(user_id, REFRESH, self.config.refresh_ttl, now),
        )

    def verify(self, token: str, is_refresh: bool = False) -> dict[str, Any]:
        token_type = REFRESH if is_refresh else ACCESS
        try:
            payload = jwt.decode(
                token,
                self._secret(token_type),
                algorithms=[ALGO],
                issuer=self.config.issuer,
            )
        except ExpiredSignatureError:
            raise TokenError(TokenFailure.EXPIRED)
        except JWTError:
            raise TokenError(TokenFailure.INVALID_SIGNATURE)

        if payload.get("type") != token_type or not payload.get("sub"):
            raise TokenError(TokenFailure.INVALID_SIGNATURE)
        return payload

import secrets
from datetime import datetime, timedelta, timezone

OTP_LENGTH = 6
OTP_TTL = timedelta(minutes=10)

_OTP_MIN = 10 ** (OTP_LENGTH - 1)  # 100000
_OTP_SPAN = 9 * _OTP_MIN  # 900000 values, 100000..999999


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp() -> str:
    return str(_OTP_MIN + secrets.randbelow(_OTP_SPAN))


def otp_expiry_from(now: datetime, ttl: timedelta = OTP_TTL) -> datetime:
    return now + ttl


def as_utc(value: datetime) -> datetime:
    # some backends (SQLite) hand timestamps back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_otp_valid(expiry: datetime | None, now: datetime) -> bool:
    """Strict: a challenge is dead at its expiry instant."""
    if expiry is None:
        return False
    return as_utc(now) < as_utc(expiry)

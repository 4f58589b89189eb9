import re
from datetime import date

from app.core.otp import utcnow

OTP_RE = re.compile(r"[0-9]{6}")

MIN_AGE_YEARS = 13


def normalize_email(email: str) -> str:
    return email.strip().lower()


def age_on(dob: date, today: date) -> int:
    """Whole years between dob and today, counting a birthday only once reached."""
    years = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        years -= 1
    return years


def is_old_enough(dob: date, today: date, min_age: int = MIN_AGE_YEARS) -> bool:
    return age_on(dob, today) >= min_age


def check_otp_format(otp: str) -> str:
    if not OTP_RE.fullmatch(otp):
        raise ValueError("OTP must be a 6-digit number")
    return otp


def check_dob(dob: date, today: date | None = None, min_age: int = MIN_AGE_YEARS) -> date:
    today = today or utcnow().date()
    if dob > today:
        raise ValueError("Please provide a valid date of birth")
    if not is_old_enough(dob, today, min_age):
        raise ValueError(f"You must be at least {min_age} years old")
    return dob

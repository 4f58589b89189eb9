from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.config import settings
from app.core.validation import check_dob, check_otp_format, normalize_email


class _EmailIn(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def _normalize(cls, v):
        if isinstance(v, str):
            return normalize_email(v)
        return v


class _NameField(BaseModel):
    name: str = Field(min_length=1, max_length=120)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class SignupOtpIn(_EmailIn, _NameField):
    dob: date

    @field_validator("dob")
    @classmethod
    def _age_gate(cls, v: date) -> date:
        return check_dob(v, min_age=settings.MIN_AGE_YEARS)


class SigninOtpIn(_EmailIn):
    pass


class VerifySignupOtpIn(_EmailIn, _NameField):
    dob: date
    otp: str

    @field_validator("dob")
    @classmethod
    def _age_gate(cls, v: date) -> date:
        return check_dob(v, min_age=settings.MIN_AGE_YEARS)

    @field_validator("otp")
    @classmethod
    def _otp_format(cls, v: str) -> str:
        return check_otp_format(v)


class VerifySigninOtpIn(_EmailIn):
    otp: str

    @field_validator("otp")
    @classmethod
    def _otp_format(cls, v: str) -> str:
        return check_otp_format(v)


class CompleteProfileIn(_NameField):
    dob: date

    @field_validator("dob")
    @classmethod
    def _age_gate(cls, v: date) -> date:
        return check_dob(v, min_age=settings.MIN_AGE_YEARS)


class RefreshIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str | None = Field(default=None, alias="refreshToken")


class UserOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str | None
    dob: date | None
    email: str
    is_email_verified: bool = Field(alias="isEmailVerified")
    has_google_auth: bool = Field(alias="hasGoogleAuth")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @classmethod
    def from_user(cls, user) -> "UserOut":
        return cls(
            id=str(user.id),
            name=user.name,
            dob=user.dob,
            email=user.email,
            is_email_verified=user.is_email_verified,
            has_google_auth=bool(user.google_id),
            created_at=user.created_at,
        )


class MessageOut(BaseModel):
    message: str


class AuthOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    user: UserOut
    access_token: str = Field(alias="accessToken")


class AccessTokenOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken")


class ProfileOut(BaseModel):
    message: str
    user: UserOut


class MeOut(BaseModel):
    user: UserOut

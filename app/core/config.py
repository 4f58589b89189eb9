from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    JWT_ACCESS_SECRET: str
    JWT_REFRESH_SECRET: str
    JWT_ISSUER: str = "notes-auth"

    ACCESS_TTL_MIN: int = 15
    REFRESH_TTL_DAYS: int = 7

    OTP_TTL_MIN: int = 10
    MIN_AGE_YEARS: int = 13

    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/auth/google/callback"
    OAUTH_STATE_SECRET: str = "change-me-oauth-state"

    FRONTEND_URL: str = "http://localhost:5173"
    CORS_ORIGINS: list[str] = []

    COOKIE_DOMAIN: str | None = None
    COOKIE_SECURE: bool = False

    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_STARTTLS: bool = True
    EMAIL_FROM: str = "no-reply@localhost"

    @model_validator(mode="after")
    def _separate_signing_keys(self):
        if self.JWT_ACCESS_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        return self

    @property
    def is_prod(self) -> bool:
        return self.ENV.lower() in {"prod", "production"}

    @property
    def google_configured(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET)

    @property
    def allowed_origins(self) -> list[str]:
        return self.CORS_ORIGINS or [self.FRONTEND_URL]


settings = Settings()

import uuid
from datetime import date, datetime
from sqlalchemy import Boolean, Date, DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # absent only while an OAuth signup is pending profile completion
    name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    dob: Mapped[date | None] = mapped_column(Date, nullable=True)

    # stored lowercased and trimmed
    email: Mapped[str] = mapped_column(
        String(320), unique=True, index=True, nullable=False
    )
    google_id: Mapped[str | None] = mapped_column(
        String(255), unique=True, index=True, nullable=True
    )
    is_email_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    # OTP challenge: code and expiry are set and cleared together
    otp_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    otp_expiry: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # single active session: the latest issued refresh token
    refresh_token: Mapped[str | None] = mapped_column(
        String(1024), index=True, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def needs_profile_completion(self) -> bool:
        return not self.name or self.dob is None

    def __repr__(self) -> str:
        return f"<User {self.id}>"

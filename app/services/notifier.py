import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from typing import Protocol

from app.core.config import settings
from app.core.logging import mask_email

logger = logging.getLogger("app.notifier")


class OtpPurpose(str, Enum):
    SIGNUP = "signup"
    SIGNIN = "signin"


class Notifier(Protocol):
    def notify(self, email: str, code: str, purpose: OtpPurpose) -> None: ...


_COPY = {
    OtpPurpose.SIGNUP: (
        "Welcome! Confirm your email",
        "Use this code to finish creating your account:",
    ),
    OtpPurpose.SIGNIN: (
        "Your sign-in code",
        "Use this code to sign in to your account:",
    ),
}


def compose_otp_email(code: str, purpose: OtpPurpose, ttl_minutes: int = 10) -> tuple[str, str, str]:
    """Returns (subject, text, html)."""
    subject, lead = _COPY[purpose]
    footer = f"This code will expire in {ttl_minutes} minutes."
    ignore = "If you didn't request this code, please ignore this email."
    text = f"{lead}\n\n{code}\n\n{footer}\n{ignore}\n"
    html = f"""<!doctype html><html><body style="font-family:system-ui,Segoe UI,Arial,sans-serif;">
  <div style="max-width:560px;margin:0 auto;padding:24px;">
    <h2 style="margin:0 0 12px 0;">{subject}</h2>
    <p style="color:#555;">{lead}</p>
    <p style="font-size:32px;letter-spacing:4px;font-family:'Courier New',monospace;margin:24px 0;">
      <strong>{code}</strong>
    </p>
    <p style="color:#999;font-size:13px;">{footer}</p>
    <hr style="border:none;border-top:1px solid #eee;margin:24px 0;">
    <p style="color:#999;font-size:12px;margin:0;">{ignore}</p>
  </div>
</body></html>"""
    return subject, text, html


class SmtpNotifier:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        starttls: bool = True,
        ttl_minutes: int = 10,
        timeout: float = 20,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.starttls = starttls
        self.ttl_minutes = ttl_minutes
        self.timeout = timeout

    def notify(self, email: str, code: str, purpose: OtpPurpose) -> None:
        subject, text, html = compose_otp_email(code, purpose, self.ttl_minutes)
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = email
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        # errors propagate: an OTP that was never delivered fails the request
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.starttls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)
        logger.info("OTP email sent purpose=%s to=%s", purpose.value, mask_email(email))


def get_notifier() -> Notifier:
    return SmtpNotifier(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        sender=settings.EMAIL_FROM,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        starttls=settings.SMTP_STARTTLS,
        ttl_minutes=settings.OTP_TTL_MIN,
    )

import logging
from typing import Optional

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from ...config import Settings, settings as default_settings
from ...application.ports.notifier import Notifier
from ...exceptions import NotificationError

logger = logging.getLogger(__name__)


def build_mail_config(settings: Settings) -> ConnectionConfig:
    return ConnectionConfig(
        MAIL_USERNAME=settings.MAIL_USERNAME,
        MAIL_PASSWORD=settings.MAIL_PASSWORD,
        MAIL_FROM=settings.MAIL_FROM,
        MAIL_FROM_NAME=settings.MAIL_FROM_NAME,
        MAIL_SERVER=settings.MAIL_SERVER,
        MAIL_PORT=settings.MAIL_PORT,
        MAIL_STARTTLS=settings.MAIL_STARTTLS,
        MAIL_SSL_TLS=settings.MAIL_SSL_TLS,
        USE_CREDENTIALS=bool(settings.MAIL_USERNAME),
        VALIDATE_CERTS=True,
        SUPPRESS_SEND=1 if settings.MAIL_SUPPRESS_SEND else 0,
    )


def render_otp_email(code: str, expire_minutes: int, username: Optional[str] = None) -> str:
    greeting = f"Hello {username}," if username else "Hello,"
    return f"""
    <!DOCTYPE html>
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
      <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2>Your verification code</h2>
        <p>{greeting}</p>
        <p>Use the following one-time code to finish signing in:</p>
        <p style="font-size: 32px; font-weight: bold; letter-spacing: 5px;">{code}</p>
        <ul>
          <li>This code expires in {expire_minutes} minutes</li>
          <li>Do not share this code with anyone</li>
          <li>If you didn't request this code, you can ignore this email</li>
        </ul>
      </div>
    </body>
    </html>
    """


class EmailNotifier(Notifier):
    def __init__(self, mailer: Optional[FastMail] = None, settings: Settings = default_settings):
        self.settings = settings
        self._mailer = mailer

    @property
    def mailer(self) -> FastMail:
        # Built on first use so a missing mail config only fails the send itself
        if self._mailer is None:
            self._mailer = FastMail(build_mail_config(self.settings))
        return self._mailer

    async def send(self, email: str, code: str, username: Optional[str] = None) -> None:
        expire_minutes = self.settings.OTP_EXPIRE_MINUTES
        try:
            message = MessageSchema(
                subject=f"Your OTP Code - {self.settings.MAIL_FROM_NAME}",
                recipients=[email],
                body=render_otp_email(code, expire_minutes, username),
                subtype=MessageType.html,
            )
            await self.mailer.send_message(message)
        except Exception as e:
            logger.error(f"Failed to send OTP email: {e}")
            raise NotificationError("Failed to send OTP email") from e
        logger.info("OTP email handed to mail transport")

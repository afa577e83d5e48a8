"""
Mail Service

Sends plain-text notification emails over SMTP.
"""

import logging
import smtplib
from email.mime.text import MIMEText

from backend.core import config

logger = logging.getLogger(__name__)


class SmtpMailSender:
    """Delivers messages through a single SMTP relay.

    Errors from the relay are not caught here; callers decide whether a failed
    delivery is fatal.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, to: str, subject: str, body: str) -> MIMEText:
        message = MIMEText(body, "plain", "utf-8")
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        return message

    def send(self, to: str, subject: str, body: str) -> None:
        message = self.build_message(to, subject, body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(message)

        logger.debug("Email '%s' sent to %s via %s:%s", subject, to, self.host, self.port)


def get_mail_sender() -> SmtpMailSender:
    return SmtpMailSender(
        host=config.SMTP_HOST,
        port=config.SMTP_PORT,
        sender=config.MAIL_FROM,
        username=config.SMTP_USERNAME,
        password=config.SMTP_PASSWORD,
        use_tls=config.SMTP_USE_TLS,
        timeout=config.SMTP_TIMEOUT_SECONDS,
    )


def build_password_reset_email(reset_url: str, expires_minutes: int) -> tuple[str, str]:
    """Return the ``(subject, body)`` of a password reset email."""
    if expires_minutes % 60 == 0:
        hours = expires_minutes // 60
        lifetime = f"{hours} hour" if hours == 1 else f"{hours} hours"
    else:
        lifetime = f"{expires_minutes} minutes"

    subject = "Password Reset Request"
    body = f"""Hello,

You have requested to reset your password. Please click the link below to reset your password:

{reset_url}

This link will expire in {lifetime}.

If you did not request this password reset, please ignore this email.

Best regards,
Insurance CRM Team
"""
    return subject, body

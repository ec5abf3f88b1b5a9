"""Outgoing email for account lifecycle messages."""

import logging
import smtplib
from email.message import EmailMessage

from backend.config import settings

logger = logging.getLogger(__name__)


class EmailError(Exception):
    """Raised when an email cannot be handed to the mail server."""

    pass


class EmailSender:
    """Interface for sending account emails."""

    def send(self, recipient: str, subject: str, body: str) -> None:
        """Send a plain-text email.

        Args:
            recipient: Destination address
            subject: Subject line
            body: Plain-text body

        Raises:
            EmailError: If the message cannot be sent
        """
        raise NotImplementedError

    def send_password_reset(self, recipient: str, reset_link: str) -> None:
        """Send the password reset link to ``recipient``."""
        body = (
            "You requested a password reset.\n\n"
            f"Open the link below to choose a new password:\n{reset_link}\n\n"
            f"The link expires in {settings.reset_token_expire_minutes} minutes. "
            "If you did not request this, you can ignore this email."
        )
        self.send(recipient, "Reset your password", body)


class LoggingEmailSender(EmailSender):
    """Development sender that writes messages to the log instead of the network."""

    def send(self, recipient: str, subject: str, body: str) -> None:
        logger.info(f"Email to {recipient}: {subject}")
        # Bodies carry reset tokens
        logger.debug(f"Email body for {recipient}:\n{body}")


class SmtpEmailSender(EmailSender):
    """Send email through an SMTP server."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
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

    def send(self, recipient: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (OSError, smtplib.SMTPException) as e:
            raise EmailError(f"Failed to send email to {recipient}: {e}") from e

        logger.info(f"Email '{subject}' sent to {recipient}")


def build_reset_link(token: str) -> str:
    return f"{settings.frontend_url}/reset-password/{token}"


def deliver_password_reset(sender: EmailSender, recipient: str, token: str) -> None:
    """Background task: send the reset email, logging instead of raising on failure."""
    try:
        sender.send_password_reset(recipient, build_reset_link(token))
    except EmailError as e:
        logger.error(f"Password reset email could not be delivered: {e}")


# Global email sender instance
_email_sender: EmailSender | None = None


def get_email_sender() -> EmailSender:
    """Get the configured email sender.

    Returns:
        EmailSender: SMTP sender when SMTP_HOST is set, otherwise a logging sender
    """
    global _email_sender
    if _email_sender is None:
        if settings.smtp_host:
            _email_sender = SmtpEmailSender(
                host=settings.smtp_host,
                port=settings.smtp_port,
                sender=settings.email_from,
                username=settings.smtp_username,
                password=settings.smtp_password,
                use_tls=settings.smtp_use_tls,
            )
        else:
            _email_sender = LoggingEmailSender()
    return _email_sender

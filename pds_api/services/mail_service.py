"""Outbound email: SMTP transport and the account emails built on it."""

import html
import logging
import smtplib
from email.message import EmailMessage

from pds_api.core.config import Settings
from pds_api.core.exceptions import TransportError

logger = logging.getLogger("pds.mail")


class SmtpTransport:
    """Sends one HTML message per call over SMTP."""

    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.username = settings.SMTP_USERNAME
        self.password = settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_USE_TLS
        self.sender = settings.EMAIL_FROM

    def send(self, to: str, subject: str, html: str) -> None:
        """Deliver a message.

        Raises:
            TransportError: If SMTP is unconfigured or the server rejects it.
        """
        if not self.host:
            raise TransportError("Mail transport is not configured")

        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=15) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"Failed to send email: {e}")


class MailService:
    """Renders and sends the account lifecycle emails."""

    def __init__(self, transport, settings: Settings):
        self.transport = transport
        self.frontend_url = settings.FRONTEND_URL.rstrip("/")
        self.app_name = settings.APP_NAME

    def send_verification_email(self, email: str, first_name: str, token: str) -> None:
        link = f"{self.frontend_url}/verify-email?token={token}"
        body = (
            f"<h2>Welcome to {self.app_name}, {html.escape(first_name)}!</h2>"
            "<p>Please verify your email address by clicking the link below:</p>"
            f'<p><a href="{link}">Verify Email</a></p>'
            "<p>This link will expire in 24 hours.</p>"
            "<p>If you did not create an account, please ignore this email.</p>"
        )
        self.transport.send(email, "Verify Your Email Address", body)

    def send_password_reset_email(self, email: str, first_name: str, token: str) -> None:
        link = f"{self.frontend_url}/reset-password?token={token}"
        body = (
            f"<h2>Hello {html.escape(first_name)},</h2>"
            "<p>We received a request to reset your password. Click the link below to choose a new one:</p>"
            f'<p><a href="{link}">Reset Password</a></p>'
            "<p>This link will expire in 1 hour.</p>"
            "<p>If you did not request a password reset, you can safely ignore this email.</p>"
        )
        self.transport.send(email, "Password Reset Request", body)

    def send_welcome_email(self, email: str, first_name: str) -> None:
        body = (
            f"<h2>Welcome aboard, {html.escape(first_name)}!</h2>"
            f"<p>Your email has been verified and your {self.app_name} account is ready.</p>"
            f'<p><a href="{self.frontend_url}/login">Log in</a></p>'
        )
        self.transport.send(email, f"Welcome to {self.app_name}", body)

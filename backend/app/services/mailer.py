"""
ContactBook Backend — Mailer
==============================

What:  Sends the password-reset email.
How:   Renders templates/reset-password.html with Jinja2, then delivers it
       with smtplib on a worker thread (smtplib is blocking). Delivery runs
       under the shared tenacity retry policy.
Who:   AuthService.request_password_reset(). A final failure raises
       UpstreamError("smtp"); the caller logs it and still answers 200.

SMTP session:
    connect (SMTP_HOST:SMTP_PORT, SMTP_TIMEOUT)
    → STARTTLS            if SMTP_USE_TLS
    → LOGIN               if SMTP_USER and SMTP_PASSWORD are set
    → SEND
The password is never logged.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.config import Settings
from app.exceptions import UpstreamError
from app.services.retry_policy import upstream_retrying

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

RESET_SUBJECT = "Password Reset Request"


class Mailer:
    """SMTP delivery of templated transactional email."""

    def __init__(self, settings: Settings, logger: Optional[logging.Logger] = None):
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)
        self.templates = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
        )
        self.logger.info(
            "Mailer configured: host=%s port=%s tls=%s user=%s",
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_use_tls,
            settings.smtp_user or "<none>",
        )

    def render_password_reset(self, email: str, reset_link: str) -> str:
        template = self.templates.get_template("reset-password.html")
        return template.render(
            email=email,
            reset_link=reset_link,
            app_domain=self.settings.app_domain,
            expires_minutes=self.settings.reset_token_minutes,
        )

    def _build_message(self, to_email: str, subject: str, body_html: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f'"Password Reset" <{self.settings.smtp_from}>'
        msg["To"] = to_email
        msg.attach(MIMEText(body_html, "html", "utf-8"))
        return msg

    def _deliver(self, msg: MIMEMultipart) -> None:
        """Blocking SMTP exchange; runs on a worker thread."""
        s = self.settings
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout) as server:
            if s.smtp_use_tls:
                server.starttls()
            if s.smtp_user and s.smtp_password:
                server.login(s.smtp_user, s.smtp_password)
            server.send_message(msg)

    async def send_password_reset(self, email: str, reset_link: str) -> None:
        """
        Render and send the reset email to `email`.

        Raises:
            UpstreamError: SMTP still failing after all retry attempts
        """
        msg = self._build_message(email, RESET_SUBJECT, self.render_password_reset(email, reset_link))
        self.logger.info("Sending password reset email to %s", email)

        try:
            async for attempt in upstream_retrying(
                self.settings, self.logger, (smtplib.SMTPException, OSError)
            ):
                with attempt:
                    await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            self.logger.error("Password reset email to %s failed: %s", email, e)
            raise UpstreamError(
                service="smtp",
                message="Failed to send the email, please try again later.",
                context={"error_type": type(e).__name__},
            ) from e

        self.logger.info("Password reset email delivered to %s", email)

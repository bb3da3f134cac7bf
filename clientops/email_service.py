"""
Email delivery for scheduled reminders
Custom SMTP when configured, Resend as fallback. Bodies are compiled from MJML.
"""

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import resend
from mjml import mjml_to_html

from . import config
from .errors import SendFailure

logger = logging.getLogger(__name__)


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # Newer releases return an object/dict with html and errors
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        html = getattr(result, "html", None)
        if html is not None:
            if getattr(result, "errors", None):
                logger.warning(f"MJML compilation warnings: {result.errors}")
            return html
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise SendFailure(f"Failed to compile MJML template: {str(e)}") from e


class EmailSender:
    """Anything that can deliver a message. Raises SendFailure (or any error) on failure."""

    async def send(self, to: str, subject: str, text_body: str, html_body: str) -> dict:
        raise NotImplementedError


class EmailService(EmailSender):
    def __init__(
        self,
        from_address: Optional[str] = None,
        resend_api_key: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        smtp_use_tls: Optional[bool] = None,
    ):
        self.from_address = from_address or config.EMAIL_FROM_ADDRESS
        self.resend_api_key = resend_api_key if resend_api_key is not None else config.RESEND_API_KEY
        self.smtp_host = smtp_host if smtp_host is not None else config.SMTP_HOST
        self.smtp_port = smtp_port or config.SMTP_PORT
        self.smtp_username = smtp_username if smtp_username is not None else config.SMTP_USERNAME
        self.smtp_password = smtp_password if smtp_password is not None else config.SMTP_PASSWORD
        self.smtp_use_tls = config.SMTP_USE_TLS if smtp_use_tls is None else smtp_use_tls

    @property
    def configured(self) -> bool:
        return bool(self.smtp_host or self.resend_api_key)

    def _send_via_smtp(self, to: str, subject: str, text_body: str, html_body: str) -> dict:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        if self.smtp_port == 465:
            context = ssl.create_default_context()
            server = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=context, timeout=30)
        else:
            server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30)
            if self.smtp_use_tls:
                server.starttls(context=ssl.create_default_context())

        try:
            if self.smtp_username:
                server.login(self.smtp_username, self.smtp_password or "")
            server.sendmail(self.from_address.split("<")[-1].rstrip(">"), [to], msg.as_string())
        finally:
            server.quit()

        logger.info(f"✅ SMTP email sent via {self.smtp_host} to {to}")
        return {"provider": "smtp", "success": True}

    def _send_via_resend(self, to: str, subject: str, text_body: str, html_body: str) -> dict:
        resend.api_key = self.resend_api_key
        response = resend.Emails.send(
            {
                "from": self.from_address,
                "to": [to],
                "subject": subject,
                "html": html_body,
                "text": text_body,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return {"provider": "resend", "success": True, "response": response}

    async def send(self, to: str, subject: str, text_body: str, html_body: str) -> dict:
        """
        Send an email using custom SMTP (if configured) or Resend (fallback)

        Raises:
            SendFailure: when no provider is configured or every provider failed
        """
        if self.smtp_host:
            try:
                logger.info(f"📧 Sending email via custom SMTP: {self.smtp_host}")
                return await asyncio.to_thread(self._send_via_smtp, to, subject, text_body, html_body)
            except Exception as e:
                logger.warning(f"⚠️ Custom SMTP failed, falling back to Resend: {e}")

        if not self.resend_api_key:
            logger.error("❌ No email service configured - RESEND_API_KEY missing and no custom SMTP")
            raise SendFailure("Email service not configured")

        try:
            logger.info(f"📧 Sending email via Resend to: {to}")
            return await asyncio.to_thread(self._send_via_resend, to, subject, text_body, html_body)
        except Exception as e:
            logger.error(f"❌ Email send error to {to}: {e}")
            raise SendFailure(f"Failed to send email: {str(e)}") from e

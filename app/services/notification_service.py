import html
import logging
import smtplib
from email.message import EmailMessage
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

from fastapi.concurrency import run_in_threadpool

from app.core.config import settings

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Email could not be handed to the SMTP server."""


_LAYOUT = """<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"></head>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
      <h1>{title}</h1>
      <p>Hello {name},</p>
      {body}
      <p style="color: #666; font-size: 12px;">This is an automated message. Please do not reply.</p>
    </div>
  </body>
</html>
"""


class Notifier:
    """Outbound email over SMTP. Sending is skipped when SMTP is not configured."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        use_tls: Optional[bool] = None,
        base_url: Optional[str] = None,
    ):
        self.host = host or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.user = settings.SMTP_USER if user is None else user
        self.password = settings.SMTP_PASSWORD if password is None else password
        self.sender = sender or settings.SMTP_FROM or self.user
        self.use_tls = settings.SMTP_USE_TLS if use_tls is None else use_tls
        self.base_url = (base_url or settings.APP_BASE_URL).rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.user and self.password)

    async def send_email(self, to: str, subject: str, html_body: str, text: str) -> bool:
        """Returns False when skipped; raises NotificationError on SMTP failure."""
        if not self.configured:
            logger.info("SMTP not configured, skipping email to %s: %s", to, subject)
            return False

        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        message.add_alternative(html_body, subtype="html")

        try:
            await run_in_threadpool(self._deliver, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"Failed to send email to {to}: {exc}") from exc

        logger.info("Email sent to %s: %s", to, subject)
        return True

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            if self.use_tls:
                smtp.starttls()
            smtp.login(self.user, self.password)
            smtp.send_message(message)

    async def send_debt_creation_email(
        self, email: str, name: str, amount: Decimal, subject: str
    ) -> bool:
        link = f"{self.base_url}/debtor/{quote(email, safe='')}"
        body = (
            "<p>A new debt has been recorded in your name.</p>"
            f"<p><strong>Subject:</strong> {html.escape(subject)}<br>"
            f"<strong>Amount:</strong> {amount}</p>"
            f'<p><a href="{html.escape(link)}">View and pay this debt</a></p>'
        )
        text = (
            f"Hello {name},\n\nA new debt has been recorded in your name.\n"
            f"Subject: {subject}\nAmount: {amount}\n\nView and pay it at {link}\n"
        )
        page = _LAYOUT.format(title="New debt recorded", name=html.escape(name), body=body)
        return await self.send_email(email, "New debt recorded", page, text)

    async def send_payment_confirmation_email(
        self, email: str, name: str, amount: Decimal, subject: str, payment_ref: str
    ) -> bool:
        body = (
            "<p>We confirm that your payment has been received.</p>"
            f"<p><strong>Debt subject:</strong> {html.escape(subject)}<br>"
            f"<strong>Amount paid:</strong> {amount}<br>"
            f"<strong>Payment ID:</strong> {html.escape(payment_ref)}</p>"
            "<p>Thank you for your payment.</p>"
        )
        text = (
            f"Hello {name},\n\nWe confirm that your payment has been received.\n"
            f"Debt subject: {subject}\nAmount paid: {amount}\nPayment ID: {payment_ref}\n"
        )
        page = _LAYOUT.format(title="Payment confirmed", name=html.escape(name), body=body)
        return await self.send_email(email, "Payment confirmation", page, text)

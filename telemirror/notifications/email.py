"""Email notification channel via SMTP.

Provides async email delivery with HTML and plain text parts.
"""

from __future__ import annotations

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import structlog

from telemirror.config import EmailConfig
from telemirror.core.models import Notification

from .formatting import escape_html

logger = structlog.get_logger(__name__)

SMTP_TIMEOUT_S = 10


def build_email(notification: Notification) -> tuple[str, str, str]:
    """Return (subject, html_body, text_body) for a notification."""
    subject = f"[{notification.project}] {notification.title}"
    question = notification.metadata.user_question or ""
    response = notification.metadata.claude_response or notification.message

    text_parts = [notification.title, f"Project: {notification.project}"]
    html_parts = [
        f"<h2>{escape_html(notification.title)}</h2>",
        f"<p><b>Project:</b> {escape_html(notification.project)}</p>",
    ]
    if question:
        text_parts.append(f"Question:\n{question}")
        html_parts.append(f"<h3>Question</h3><pre>{escape_html(question)}</pre>")
    if response:
        text_parts.append(f"Response:\n{response}")
        html_parts.append(f"<h3>Response</h3><pre>{escape_html(response)}</pre>")

    return subject, "\n".join(html_parts), "\n\n".join(text_parts)


class EmailChannel:
    name = "Email"

    def __init__(self, config: EmailConfig) -> None:
        if not config.is_configured:
            raise ValueError("Email channel requires SMTP host, user and recipient")
        self.config = config

    async def send(self, notification: Notification) -> bool:
        """Send the notification; SMTP runs in a worker thread (smtplib is blocking).

        Raises:
            RuntimeError: If SMTP delivery fails
        """
        subject, html_body, text_body = build_email(notification)
        cfg = self.config
        sender = cfg.from_address or str(cfg.user)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{cfg.from_name} <{sender}>"
        msg["To"] = str(cfg.to)
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        def _send_smtp() -> None:
            try:
                if cfg.secure:
                    server: smtplib.SMTP = smtplib.SMTP_SSL(str(cfg.host), cfg.port, timeout=SMTP_TIMEOUT_S)
                else:
                    server = smtplib.SMTP(str(cfg.host), cfg.port, timeout=SMTP_TIMEOUT_S)
                with server:
                    if not cfg.secure:
                        server.ehlo()
                        if server.has_extn("starttls"):
                            server.starttls()
                            server.ehlo()
                    if cfg.user and cfg.password:
                        server.login(cfg.user, cfg.password)
                    server.sendmail(sender, [str(cfg.to)], msg.as_string())
                logger.info("Email sent", to=cfg.to, subject=subject)
            except (smtplib.SMTPException, OSError) as e:
                logger.error("SMTP delivery failed", to=cfg.to, error=str(e))
                raise RuntimeError(f"SMTP delivery failed: {e}") from e

        await asyncio.to_thread(_send_smtp)
        return True

"""Email delivery for workflow summaries."""

from __future__ import annotations

import html
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Callable, Optional, TypeVar

from .config import Config

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class NotificationResult:
    success: bool
    error: Optional[str] = None


def render_email_html(summary: str, title: Optional[str]) -> str:
    heading = html.escape(title or "Workflow Summary")
    body = html.escape(summary or "")
    return (
        '<html><body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">'
        f'<h2 style="color: #2c3e50;">{heading}</h2>'
        '<div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px; margin: 20px 0;">'
        "<h3>Summary</h3>"
        f'<pre style="white-space: pre-wrap; word-wrap: break-word; font-size: 14px;">{body}</pre>'
        "</div><hr />"
        '<p style="color: #7f8c8d; font-size: 12px;">Automated notification from Page Digest</p>'
        "</body></html>"
    )


class EmailNotifier:
    """Send summaries over SMTP. Without a configured host every send is a no-op failure."""

    def __init__(self, config: Config, smtp_factory: Callable[..., Any] = smtplib.SMTP) -> None:
        self.config = config
        self.smtp_factory = smtp_factory

    def send_email(self, to: str, subject: str, summary: str, title: Optional[str] = None) -> NotificationResult:
        cfg = self.config
        if not cfg.email_enabled:
            LOGGER.warning("Email skipped: EMAIL_HOST/EMAIL_FROM not configured")
            return NotificationResult(success=False, error="Email not configured")

        msg = EmailMessage()
        msg["Subject"] = subject or "Workflow summary"
        msg["From"] = cfg.email_from or cfg.email_user
        msg["To"] = to
        msg.set_content(summary or "")
        msg.add_alternative(render_email_html(summary, title), subtype="html")

        try:
            with self.smtp_factory(cfg.email_host, cfg.email_port, timeout=cfg.email_timeout) as server:
                if cfg.email_use_tls:
                    server.starttls(context=ssl.create_default_context())
                if cfg.email_user and cfg.email_password:
                    server.login(cfg.email_user, cfg.email_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.error("Email to %s failed: %s", to, exc)
            return NotificationResult(success=False, error=str(exc))

        LOGGER.info("Email sent to %s", to)
        return NotificationResult(success=True)


def best_effort(label: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> Optional[T]:
    """Run a non-critical side effect; failures are logged and swallowed."""

    try:
        return func(*args, **kwargs)
    except Exception:  # noqa: BLE001 - a side effect must never decide the run's outcome
        LOGGER.exception("%s failed", label)
        return None


__all__ = ["EmailNotifier", "NotificationResult", "best_effort", "render_email_html"]

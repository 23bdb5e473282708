# carebase/core/emailer.py
from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage

from carebase.core.config import settings


def _get_from_email() -> str:
    """
    Decide FROM email:
    - Prefer settings.SMTP_FROM
    - Fallback to settings.SMTP_USER
    """
    from_email = settings.SMTP_FROM or settings.SMTP_USER
    if not from_email:
        raise RuntimeError(
            "No FROM email configured. Set SMTP_FROM or SMTP_USER in settings."
        )
    return from_email


def _build_message(to_email: str, subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = _get_from_email()
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)
    return msg


def send_email(to_email: str, subject: str, body: str) -> None:
    if not to_email:
        raise ValueError("send_email: recipient is required")

    host = settings.SMTP_HOST
    if not host:
        raise RuntimeError("SMTP_HOST is not configured")

    msg = _build_message(to_email, subject, body)

    with smtplib.SMTP(host, settings.SMTP_PORT) as server:
        if settings.SMTP_TLS:
            server.starttls(context=ssl.create_default_context())
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(msg)

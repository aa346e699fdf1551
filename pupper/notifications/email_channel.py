from __future__ import annotations

import os
import smtplib
from email.message import EmailMessage

from ..contact_utils import sanitize_email
from .templates import StatusNotice, html_body, subject, text_body


def build_status_email(notice: StatusNotice, recipient: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = os.environ["EMAIL_FROM"]
    msg["To"] = recipient
    msg["Subject"] = subject(notice)
    msg.set_content(text_body(notice))
    msg.add_alternative(html_body(notice), subtype="html")
    return msg


def send_status_email(notice: StatusNotice) -> None:
    """Email the adopter about their application decision over SMTP."""
    recipient = sanitize_email(notice.email)
    if not recipient:
        raise ValueError(f"Invalid recipient email: {notice.email!r}")

    msg = build_status_email(notice, recipient)
    with smtplib.SMTP_SSL(
        os.environ["EMAIL_HOST"], int(os.environ["EMAIL_PORT"])
    ) as smtp:
        smtp.login(os.environ["EMAIL_USER"], os.environ["EMAIL_PASS"])
        smtp.send_message(msg)

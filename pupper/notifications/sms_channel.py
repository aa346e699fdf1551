from __future__ import annotations

import os

import requests

from ..config import sms_api_base
from ..contact_utils import sanitize_phone
from .templates import StatusNotice, sms_body

SMS_TIMEOUT_SECONDS = 30


def send_status_sms(notice: StatusNotice) -> str | None:
    """Text the adopter about their application decision.

    Posts to a Twilio-compatible ``Messages.json`` endpoint using
    ``SMS_ACCOUNT_SID``/``SMS_AUTH_TOKEN`` basic auth.

    Returns:
        The gateway's message id, if it reports one.
    """
    phone = sanitize_phone(notice.phone)
    if not phone:
        raise ValueError(f"Invalid recipient phone: {notice.phone!r}")

    account_sid = os.environ["SMS_ACCOUNT_SID"]
    url = f"{sms_api_base()}/Accounts/{account_sid}/Messages.json"
    r = requests.post(
        url,
        data={
            "From": os.environ["SMS_FROM"],
            "To": phone,
            "Body": sms_body(notice),
        },
        auth=(account_sid, os.environ["SMS_AUTH_TOKEN"]),
        timeout=SMS_TIMEOUT_SECONDS,
    )
    r.raise_for_status()
    try:
        return r.json().get("sid")
    except ValueError:
        return None

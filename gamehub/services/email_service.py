import logging
from typing import Any, Dict, Tuple

import requests

from gamehub.core.config import settings

logger = logging.getLogger(__name__)

BREVO_SEND_URL = "https://api.brevo.com/v3/smtp/email"
REQUEST_TIMEOUT = 10

_TEMPLATES = {
    "verify_email": {
        "subject": "Verify your {site_name} account",
        "html": (
            "<h2>Welcome to {site_name}!</h2>"
            "<p>Your verification code is: <strong>{code}</strong></p>"
            "<p>This code expires in {minutes} minutes.</p>"
        ),
    },
    "resend_code": {
        "subject": "Your new {site_name} verification code",
        "html": (
            "<h2>New verification code</h2>"
            "<p>Your verification code is: <strong>{code}</strong></p>"
            "<p>This code expires in {minutes} minutes.</p>"
        ),
    },
    "reset_password": {
        "subject": "Reset your {site_name} password",
        "html": (
            "<h2>Password reset</h2>"
            "<p>You asked to reset your password.</p>"
            "<p>Follow this link to choose a new one: <a href=\"{reset_url}\">{reset_url}</a></p>"
            "<p>This link expires in {minutes} minutes.</p>"
        ),
    },
}


def _render(template_key: str, context: Dict[str, Any]) -> Tuple[str, str]:
    ctx = {"site_name": settings.EMAIL_FROM_NAME, "minutes": settings.EMAIL_CODE_EXPIRE_MINUTES, **context}
    tpl = _TEMPLATES[template_key]
    return tpl["subject"].format(**ctx), tpl["html"].format(**ctx)


def send_email(template_key: str, to_email: str, context: Dict[str, Any]) -> bool:
    """Send one transactional email through the Brevo HTTP API.

    Without an API key the message is only logged, which is what local
    development relies on. Returns False when the API rejects the message
    or cannot be reached.
    """
    subject, html_body = _render(template_key, context)

    if not settings.BREVO_API_KEY:
        logger.info(f"Email delivery disabled, would send '{subject}' to {to_email}: {html_body}")
        return True

    payload = {
        "sender": {"name": settings.EMAIL_FROM_NAME, "email": settings.EMAIL_FROM},
        "to": [{"email": to_email}],
        "subject": subject,
        "htmlContent": html_body,
    }
    headers = {
        "api-key": settings.BREVO_API_KEY,
        "accept": "application/json",
        "content-type": "application/json",
    }
    try:
        resp = requests.post(BREVO_SEND_URL, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        logger.error(f"Email API unreachable while sending to {to_email}: {exc}")
        return False

    if 200 <= resp.status_code < 300:
        logger.info(f"Email '{template_key}' sent to {to_email}")
        return True
    logger.error(f"Email API error {resp.status_code} for {to_email}: {resp.text}")
    return False

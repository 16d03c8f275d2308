"""
Google reCAPTCHA verification
"""
import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)

VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class RecaptchaError(Exception):
    """The reCAPTCHA token was missing or rejected"""


def verify_recaptcha(token: str, remote_ip: str = None) -> bool:
    """
    Verify a client token with Google. Skipped when no secret is configured.

    Raises:
        RecaptchaError: token missing, rejected, or Google unreachable
    """
    secret = current_app.config.get("RECAPTCHA_SECRET_KEY")
    if not secret:
        return True

    if not token:
        raise RecaptchaError("reCAPTCHA verification required")

    payload = {"secret": secret, "response": token}
    if remote_ip:
        payload["remoteip"] = remote_ip

    try:
        response = requests.post(VERIFY_URL, data=payload, timeout=10)
        response.raise_for_status()
        result = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"[reCAPTCHA] Verification request failed: {e}")
        raise RecaptchaError("reCAPTCHA verification unavailable") from e

    if not result.get("success"):
        logger.info(f"[reCAPTCHA] Rejected: {result.get('error-codes')}")
        raise RecaptchaError("reCAPTCHA verification failed")

    return True

"""
Transactional email via Flask-Mail
"""
import logging
from typing import List

from flask import current_app
from flask_mail import Message

from learningsphere import mail

logger = logging.getLogger(__name__)


def send_email(subject: str, recipients: List[str], body: str) -> bool:
    """Send a plain-text email; failures are logged and reported as False"""
    msg = Message(subject, recipients=recipients, body=body)
    try:
        mail.send(msg)
        logger.info(f"[Email] Sent '{subject}' to {', '.join(recipients)}")
        return True
    except Exception as e:
        logger.error(f"[Email] Failed to send '{subject}': {e}")
        return False


def send_password_reset(email: str, token: str) -> bool:
    reset_url = f"{current_app.config['FRONTEND_URL'].rstrip('/')}/reset-password/{token}"
    body = (
        "You requested a password reset for your LearningSphere account.\n\n"
        f"Click the link to reset your password: {reset_url}\n"
        "This link is valid for one hour. If you did not request this, ignore this email."
    )
    return send_email("Reset Your Password", [email], body)


def send_session_scheduled(tutor, session) -> bool:
    when = session.scheduled_time.strftime("%Y-%m-%d %H:%M UTC") if session.scheduled_time else "not scheduled"
    body = (
        f"Hi {tutor.name},\n\n"
        f"Your live session \"{session.title}\" has been created.\n"
        f"Session ID: {session.session_id}\n"
        f"Scheduled for: {when}\n"
        f"Capacity: {session.max_participants} participants\n"
    )
    return send_email(f"Live session scheduled: {session.title}", [tutor.email], body)


def send_session_cancelled(recipients: List[str], session) -> bool:
    if not recipients:
        return False
    body = (
        f"The live session \"{session.title}\" ({session.session_id}) has been cancelled "
        "by a moderator. We apologise for the inconvenience."
    )
    return send_email(f"Live session cancelled: {session.title}", recipients, body)

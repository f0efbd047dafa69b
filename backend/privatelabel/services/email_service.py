# Overview: Service-layer operations for email; renders templates and sends through Flask-Mail.

from __future__ import annotations

import logging

from flask import current_app, render_template
from flask_mail import Message

from ..extensions import mail

logger = logging.getLogger(__name__)


def send_email(to: str, subject: str, html: str) -> bool:
    """
    Send one HTML email. Returns True on success, False on any transport
    failure (logged, never raised).
    """
    if not to:
        logger.warning("Skipping email '%s': no recipient", subject)
        return False
    try:
        msg = Message(subject=subject, recipients=[to], html=html)
        mail.send(msg)
        logger.info("Email '%s' sent to %s", subject, to)
        return True
    except Exception as exc:
        logger.error("Failed to send email '%s' to %s: %s", subject, to, exc)
        return False


def send_template(to: str, subject: str, template: str, **context) -> bool:
    """Render templates/emails/<template> with context and send it."""
    context.setdefault("frontend_url", current_app.config.get("FRONTEND_URL", ""))
    html = render_template(f"emails/{template}", subject=subject, **context)
    return send_email(to, subject, html)

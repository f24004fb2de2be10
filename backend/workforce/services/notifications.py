"""
Job Notifications - SMTP email when a background job finishes

send_job_completion_email is synchronous (smtplib) and raises on delivery
failure; notify_job_outcome runs it in a worker thread and only logs
failures, since a lost email must never fail or retry the job itself.
"""

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional

from workforce.config import Settings, get_settings

logger = logging.getLogger(__name__)

JOB_LABELS = {
    "cv_processing": "CV processing",
    "fit_score_calculation": "Fit score calculation",
    "skill_map_generation": "Skill map generation",
}


class NotificationConfigError(RuntimeError):
    """SMTP is not configured."""


def build_job_email(
    user_email: str,
    job_type: str,
    outcome: str,
    error: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> EmailMessage:
    settings = settings or get_settings()
    label = JOB_LABELS.get(job_type, job_type.replace("_", " ").capitalize())

    msg = EmailMessage()
    msg["From"] = settings.smtp_from
    msg["To"] = user_email

    if outcome == "success":
        msg["Subject"] = f"{label} complete"
        text = f"Your {label.lower()} job finished successfully. Results are available in your dashboard."
        html = f"<p>Your <strong>{label.lower()}</strong> job finished successfully.</p><p>Results are available in your dashboard.</p>"
    else:
        msg["Subject"] = f"{label} failed"
        detail = error or "Unknown error"
        text = f"Your {label.lower()} job failed after several attempts.\n\nError: {detail}"
        html = f"<p>Your <strong>{label.lower()}</strong> job failed after several attempts.</p><p>Error: {detail}</p>"

    msg.set_content(text)
    msg.add_alternative(html, subtype="html")
    return msg


def send_job_completion_email(
    user_email: str,
    job_type: str,
    outcome: str,
    error: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> None:
    """
    Send a job outcome email.

    Raises:
        NotificationConfigError: SMTP_HOST not set
        smtplib.SMTPException / OSError: Delivery failure
    """
    settings = settings or get_settings()
    if not settings.smtp_host:
        raise NotificationConfigError("SMTP_HOST not configured")

    msg = build_job_email(user_email, job_type, outcome, error, settings)
    context = ssl.create_default_context()

    if settings.smtp_use_ssl:
        with smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, context=context) as s:
            if settings.smtp_user:
                s.login(settings.smtp_user, settings.smtp_password)
            s.send_message(msg)
    else:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as s:
            s.ehlo()
            s.starttls(context=context)
            s.ehlo()
            if settings.smtp_user:
                s.login(settings.smtp_user, settings.smtp_password)
            s.send_message(msg)

    logger.info(f"Job {outcome} email sent to {user_email}")


async def notify_job_outcome(
    user_email: Optional[str],
    job_type: str,
    outcome: str,
    error: Optional[str] = None,
) -> bool:
    """
    Best-effort async wrapper around send_job_completion_email.

    Returns:
        True when the email was sent
    """
    if not user_email:
        return False
    try:
        await asyncio.to_thread(send_job_completion_email, user_email, job_type, outcome, error)
        return True
    except Exception as e:
        logger.error(f"Job notification email to {user_email} failed: {e}")
        return False

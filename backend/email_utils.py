"""Simple email sending utilities (SMTP)."""
import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)


def _frontend_url() -> str:
    return os.getenv("FRONTEND_URL", "http://localhost:5173")


def _task_link(task_id) -> str:
    return f"{_frontend_url()}/tasks/{task_id}"


def _fmt_due(value) -> str:
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d %H:%M")
    return str(value or "")


def _task_assigned(task):
    return (
        f"New Task Assigned: {task.get('title')}",
        "You have been assigned a new task\n\n"
        f"Title: {task.get('title')}\n"
        f"Due Date: {_fmt_due(task.get('due_date'))}\n"
        f"Priority: {task.get('priority')}\n"
        f"Description: {task.get('description')}\n\n"
        f"View Task: {_task_link(task.get('task_id'))}",
    )


def _task_updated(task):
    return (
        f"Task Updated: {task.get('title')}",
        f"The task \"{task.get('title')}\" has been updated\n\n"
        f"Status: {task.get('status')}\n\n"
        f"View Task: {_task_link(task.get('task_id'))}",
    )


def _deadline_approaching(task):
    return (
        f"Deadline Approaching: {task.get('title')}",
        f"The deadline for task \"{task.get('title')}\" is approaching\n\n"
        f"Due Date: {_fmt_due(task.get('due_date'))}\n\n"
        f"View Task: {_task_link(task.get('task_id'))}",
    )


EMAIL_TEMPLATES = {
    "TASK_ASSIGNED": _task_assigned,
    "TASK_UPDATED": _task_updated,
    "DEADLINE_APPROACHING": _deadline_approaching,
}


def render_task_email(notification_type: str, task: dict, fallback_title: str = "", fallback_body: str = ""):
    """Return (subject, body) for a task notification type"""
    template = EMAIL_TEMPLATES.get(notification_type)
    if template is None:
        return fallback_title or notification_type.replace("_", " ").title(), fallback_body
    return template(task)


def send_email(to_email: str, subject: str, body: str) -> bool:
    """Send an email using SMTP settings from environment.

    Reads SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD and EMAIL_FROM from env.
    Returns True on success, False otherwise.
    """
    smtp_host = os.getenv("SMTP_HOST")
    smtp_port = int(os.getenv("SMTP_PORT", "587"))
    smtp_user = os.getenv("SMTP_USER")
    smtp_password = os.getenv("SMTP_PASSWORD")
    email_from = os.getenv("EMAIL_FROM") or smtp_user

    if not smtp_host or not smtp_user or not smtp_password:
        logger.info("SMTP not configured - skipping email send")
        return False

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = email_from
    msg["To"] = to_email
    msg.set_content(body)

    try:
        with smtplib.SMTP(smtp_host, smtp_port, timeout=10) as server:
            server.starttls()
            server.login(smtp_user, smtp_password)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Error sending email to %s: %s", to_email, e)
        return False

    logger.info("Email sent to %s via %s:%s", to_email, smtp_host, smtp_port)
    return True

# src/sakutto_task/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the concrete store and senders into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..notifications.senders import SmtpEmailSender, WebPushSender
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    email_sender = SmtpEmailSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        user=settings.smtp_user,
        password=settings.smtp_password,
        from_addr=settings.smtp_from,
        starttls=settings.smtp_starttls,
    )
    push_sender = WebPushSender(
        vapid_private_key=settings.vapid_private_key,
        vapid_subject=settings.vapid_subject,
    )

    if not email_sender.configured:
        logger.warning("SMTP is not configured; email notifications will fail.")
    if not push_sender.configured:
        logger.warning("VAPID keys are not configured; push notifications will fail.")

    return AppState(
        settings=settings,
        task_store=TaskStore(settings.tasks_db_path),
        email_sender=email_sender,
        push_sender=push_sender,
    )

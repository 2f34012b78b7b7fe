# src/sakutto_task/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.task_store import TaskStore
from .ports import EmailSender, PushSender


@dataclass
class AppState:
    """Wired application objects shared by the CLI commands."""

    settings: Any
    task_store: TaskStore
    email_sender: EmailSender
    push_sender: PushSender

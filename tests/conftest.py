# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from sakutto_task.core.state import AppState
from sakutto_task.tasks.task_store import TaskStore

from .fakes import FakeEmailSender, FakePushSender


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Only the settings fields that AppState, the CLI commands and the store read.
    Paths point into tmp_path; the dispatch interval is tiny for loop tests.
    """
    return SimpleNamespace(
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        dispatch_interval_seconds=0.01,
        dispatch_timeout_seconds=5.0,
        holiday_years_ahead=20,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture()
def push_sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    store: TaskStore,
    email_sender: FakeEmailSender,
    push_sender: FakePushSender,
) -> AppState:
    """
    AppState wired with deterministic fake senders.

    The TaskStore is a real SQLite database in tmp_path.
    """
    return AppState(
        settings=settings,
        task_store=store,
        email_sender=email_sender,
        push_sender=push_sender,
    )

# tests/test_commands.py

from __future__ import annotations

import json
from datetime import date

import pytest

from sakutto_task.cli.commands import build_parser, run_command
from sakutto_task.tasks.task_models import CustomUnit, NotificationSetting, RecurrenceKind


def _run(state, *argv: str) -> int:
    return run_command(state, build_parser().parse_args(list(argv)))


def test_add_then_list(state, capsys) -> None:
    assert _run(state, "add", "--owner", "u1", "--title", "9:00 洗濯", "--due", "2024-01-08",
                "--recurrence", "weekly") == 0
    assert _run(state, "add", "--owner", "u1", "--title", "buy bread", "--due", "2024-01-08") == 0
    capsys.readouterr()

    assert _run(state, "list", "--owner", "u1", "--date", "2024-01-15") == 0
    out = capsys.readouterr().out
    assert "9:00 洗濯 (repeats)" in out
    assert "buy bread" not in out


def test_add_weekdays_rule(state) -> None:
    assert _run(state, "add", "--owner", "u1", "--title", "gym", "--due", "2024-01-01",
                "--recurrence", "weekdays", "--weekday", "1", "--weekday", "3") == 0
    ((task, rule),) = state.task_store.list_tasks_for_owner("u1")
    assert rule is not None
    assert rule.kind == RecurrenceKind.WEEKDAYS
    assert rule.weekdays == frozenset({1, 3})


def test_list_shows_holiday_name(state, capsys) -> None:
    new_year = date(date.today().year, 1, 1).isoformat()
    assert _run(state, "list", "--owner", "u1", "--date", new_year) == 0
    out = capsys.readouterr().out
    assert f"{new_year} (元日)" in out
    assert "(no tasks)" in out


def test_validation_error_exits_with_2(state, capsys) -> None:
    assert _run(state, "add", "--owner", "u1", "--title", "x", "--due", "2024-02-30") == 2
    assert "error:" in capsys.readouterr().out
    assert state.task_store.count_tasks() == 0


def test_delete_this_only_then_done(state, capsys) -> None:
    _run(state, "add", "--owner", "u1", "--title", "stretch", "--due", "2024-01-01", "--recurrence", "daily")
    ((task, _),) = state.task_store.list_tasks_for_owner("u1")

    assert _run(state, "delete", "--owner", "u1", str(task.id), "--mode", "this_only", "--date", "2024-01-02") == 0
    assert f"Task {task.id} excluded" in capsys.readouterr().out

    assert _run(state, "done", "--owner", "u1", str(task.id), "--date", "2024-01-03") == 0
    completion = state.task_store.get_completion(task.id, date(2024, 1, 3))
    assert completion is not None and completion.completed is True

    assert _run(state, "delete", "--owner", "u2", str(task.id)) == 2


def test_search(state, capsys) -> None:
    _run(state, "add", "--owner", "u1", "--title", "dentist", "--due", "2020-05-01")
    capsys.readouterr()
    assert _run(state, "search", "--owner", "u1", "dent") == 0
    assert "2020-05-01  1" in capsys.readouterr().out


def test_dispatch_for_explicit_slot(state, capsys, email_sender) -> None:
    _run(state, "add", "--owner", "u1", "--title", "Buy milk", "--due", "2024-03-01", "--notify", "09:00")
    state.task_store.upsert_notification_setting(NotificationSetting("u1", "u1@example.com", True, False))
    capsys.readouterr()

    assert _run(state, "dispatch", "--date", "2024-03-01", "--time", "09:00") == 0
    assert "2024-03-01 09:00: email=1 push=0" in capsys.readouterr().out
    assert len(email_sender.sent) == 1


def test_unknown_subcommand_is_rejected() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["frobnicate"])


def test_settings_enable_email_then_dispatch_sends(state, capsys, email_sender) -> None:
    _run(state, "add", "--owner", "u1", "--title", "Buy milk", "--due", "2024-03-01", "--notify", "09:00")
    assert _run(state, "settings", "--owner", "u1", "--email", "u1@example.com", "--email-on") == 0
    assert "email=on (u1@example.com) push=off" in capsys.readouterr().out

    assert _run(state, "settings", "--owner", "u1", "--show") == 0
    assert "email=on (u1@example.com) push=off" in capsys.readouterr().out

    assert _run(state, "dispatch", "--date", "2024-03-01", "--time", "09:00") == 0
    assert [m.to for m in email_sender.sent] == ["u1@example.com"]


def test_settings_email_on_without_address_is_rejected(state, capsys) -> None:
    assert _run(state, "settings", "--owner", "u1", "--email-on") == 2
    assert "error:" in capsys.readouterr().out
    assert state.task_store.get_notification_setting("u1") is None


def test_settings_show_when_unset(state, capsys) -> None:
    assert _run(state, "settings", "--owner", "u1", "--show") == 0
    assert "(no notification settings)" in capsys.readouterr().out


def test_subscribe_and_unsubscribe(state, capsys, tmp_path) -> None:
    sub_file = tmp_path / "sub.json"
    sub_file.write_text(
        json.dumps({"endpoint": "https://push.example/abc", "keys": {"p256dh": "pk", "auth": "au"}}),
        encoding="utf-8",
    )

    assert _run(state, "subscribe", "--owner", "u1", str(sub_file)) == 0
    assert "saved" in capsys.readouterr().out
    assert [s.endpoint for s in state.task_store.list_push_subscriptions("u1")] == ["https://push.example/abc"]

    assert _run(state, "unsubscribe", "--owner", "u1", "https://push.example/abc") == 0
    assert "Subscription removed" in capsys.readouterr().out
    assert state.task_store.list_push_subscriptions("u1") == []

    assert _run(state, "unsubscribe", "--owner", "u1", "https://push.example/abc") == 0
    assert "No such subscription" in capsys.readouterr().out


@pytest.mark.parametrize(
    "content",
    ["not json", "[1, 2]", json.dumps({"endpoint": "https://push.example/x"})],
)
def test_subscribe_rejects_bad_file(state, capsys, tmp_path, content: str) -> None:
    sub_file = tmp_path / "sub.json"
    sub_file.write_text(content, encoding="utf-8")
    assert _run(state, "subscribe", "--owner", "u1", str(sub_file)) == 2
    assert state.task_store.list_push_subscriptions("u1") == []


def test_subscribe_missing_file(state, tmp_path) -> None:
    assert _run(state, "subscribe", "--owner", "u1", str(tmp_path / "nope.json")) == 2


def test_edit_keeps_unspecified_fields(state, capsys) -> None:
    _run(state, "add", "--owner", "u1", "--title", "gym", "--due", "2024-01-01",
         "--notify", "07:00", "--recurrence", "weekly")
    ((task, _),) = state.task_store.list_tasks_for_owner("u1")

    assert _run(state, "edit", "--owner", "u1", str(task.id), "--title", "gym (legs)") == 0
    updated = state.task_store.get_task(task.id)
    assert updated is not None
    assert updated.title == "gym (legs)"
    assert updated.due_date == date(2024, 1, 1)
    assert updated.notification_time == "07:00"
    rule = state.task_store.get_recurrence(task.id)
    assert rule is not None and rule.kind == RecurrenceKind.WEEKLY


def test_edit_changes_rule_and_notification(state) -> None:
    _run(state, "add", "--owner", "u1", "--title", "gym", "--due", "2024-01-01",
         "--notify", "07:00", "--recurrence", "weekly")
    ((task, _),) = state.task_store.list_tasks_for_owner("u1")

    assert _run(state, "edit", "--owner", "u1", str(task.id), "--recurrence", "custom",
                "--every", "2", "--unit", "weeks", "--no-notify") == 0
    rule = state.task_store.get_recurrence(task.id)
    assert rule is not None
    assert (rule.kind, rule.custom_count, rule.custom_unit) == (RecurrenceKind.CUSTOM, 2, CustomUnit.WEEKS)
    updated = state.task_store.get_task(task.id)
    assert updated is not None
    assert updated.notification_enabled is False
    assert updated.notification_time is None

    assert _run(state, "edit", "--owner", "u1", str(task.id), "--no-recurrence") == 0
    assert state.task_store.get_recurrence(task.id) is None


def test_edit_other_owner_is_rejected(state) -> None:
    _run(state, "add", "--owner", "u1", "--title", "mine", "--due", "2024-01-01")
    ((task, _),) = state.task_store.list_tasks_for_owner("u1")
    assert _run(state, "edit", "--owner", "u2", str(task.id), "--title", "theirs") == 2
    assert state.task_store.get_task(task.id).title == "mine"


def test_show_presents_legacy_custom_period(state, capsys) -> None:
    _run(state, "add", "--owner", "u1", "--title", "water plants", "--due", "2024-01-01",
         "--recurrence", "custom", "--every", "14")
    ((task, _),) = state.task_store.list_tasks_for_owner("u1")
    capsys.readouterr()

    assert _run(state, "show", "--owner", "u1", str(task.id)) == 0
    out = capsys.readouterr().out
    assert f"#{task.id} water plants" in out
    assert "due:          2024-01-01" in out
    assert "notification: off" in out
    assert "recurrence:   every 2 weeks" in out


def test_delete_with_mode_needs_date(state, capsys) -> None:
    _run(state, "add", "--owner", "u1", "--title", "stretch", "--due", "2024-01-01", "--recurrence", "daily")
    ((task, _),) = state.task_store.list_tasks_for_owner("u1")

    assert _run(state, "delete", "--owner", "u1", str(task.id), "--mode", "this_only") == 2
    assert "target date is required" in capsys.readouterr().out
    assert state.task_store.get_task(task.id) is not None

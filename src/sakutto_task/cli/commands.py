# src/sakutto_task/cli/commands.py

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from ..core.state import AppState
from ..errors import SakuttoError, ValidationError
from ..notifications.dispatch import dispatch
from ..notifications.scheduler import run_dispatch_loop, slot_for
from ..tasks import task_api
from ..tasks.holidays import get_holiday
from ..tasks.task_models import RecurrenceKind

CommandHandler = Callable[[AppState, argparse.Namespace], int]

logger = logging.getLogger(__name__)


def _date_arg(raw: str | None) -> date:
    return task_api.parse_date(raw) if raw else date.today()


def cmd_add(state: AppState, args: argparse.Namespace) -> int:
    rule = task_api.build_rule(
        args.recurrence,
        custom_count=args.every,
        custom_unit=args.unit,
        weekdays=args.weekday,
    )
    task_id = task_api.create_task(
        state.task_store,
        owner_id=args.owner,
        title=args.title,
        due_date=args.due,
        notification_enabled=args.notify is not None,
        notification_time=args.notify,
        recurrence=rule,
    )
    print(f"Created task {task_id}")
    return 0


def cmd_list(state: AppState, args: argparse.Namespace) -> int:
    target = _date_arg(args.date)
    holiday = get_holiday(target, years_ahead=int(getattr(state.settings, "holiday_years_ahead", 20)))
    header = target.isoformat() + (f" ({holiday.name})" if holiday else "")
    print(header)

    occurrences = task_api.list_occurrences(state.task_store, args.owner, target)
    if not occurrences:
        print("  (no tasks)")
    for occ in occurrences:
        mark = "[x]" if occ.completed else "[ ]"
        repeat = " (repeats)" if occ.is_recurring else ""
        notify = f" @{occ.notification_time}" if occ.notification_time else ""
        print(f"  {mark} #{occ.task_id} {occ.title}{repeat}{notify}")
    return 0


def _describe_rule(detail: task_api.TaskDetail) -> str:
    rule = detail.rule
    if rule is None:
        return "none"
    if rule.kind == RecurrenceKind.CUSTOM:
        if detail.custom_count is None:
            return "custom (inactive)"
        return f"every {detail.custom_count} {detail.custom_unit}"
    if rule.kind == RecurrenceKind.WEEKDAYS:
        days = ",".join(str(d) for d in sorted(rule.weekdays)) or "-"
        return f"weekdays {days}"
    return rule.kind.value


def cmd_show(state: AppState, args: argparse.Namespace) -> int:
    detail = task_api.get_task_detail(state.task_store, args.owner, args.task_id)
    task = detail.task
    print(f"#{task.id} {task.title}")
    print(f"  due:          {task.due_date.isoformat()}")
    print(f"  notification: {task.notification_time if task.notification_enabled else 'off'}")
    print(f"  recurrence:   {_describe_rule(detail)}")
    return 0


def cmd_edit(state: AppState, args: argparse.Namespace) -> int:
    detail = task_api.get_task_detail(state.task_store, args.owner, args.task_id)
    task = detail.task

    if args.no_notify:
        notify_on, notify_time = False, None
    elif args.notify is not None:
        notify_on, notify_time = True, args.notify
    else:
        notify_on, notify_time = task.notification_enabled, task.notification_time

    # Unchanged recurrence keeps the stored rule (legacy day counts included).
    if args.no_recurrence:
        rule = None
    elif args.recurrence is not None:
        rule = task_api.build_rule(
            args.recurrence,
            custom_count=args.every,
            custom_unit=args.unit,
            weekdays=args.weekday,
        )
    else:
        rule = detail.rule

    task_api.update_task(
        state.task_store,
        owner_id=args.owner,
        task_id=task.id,
        title=args.title if args.title is not None else task.title,
        due_date=args.due if args.due is not None else task.due_date,
        notification_enabled=notify_on,
        notification_time=notify_time,
        recurrence=rule,
    )
    print(f"Updated task {task.id}")
    return 0


def cmd_settings(state: AppState, args: argparse.Namespace) -> int:
    store = state.task_store
    if args.show:
        setting = store.get_notification_setting(args.owner)
        if setting is None:
            print("(no notification settings)")
            return 0
    else:
        setting = task_api.save_notification_setting(
            store,
            owner_id=args.owner,
            email=args.email,
            email_enabled=args.email_on,
            push_enabled=args.push_on,
        )
    email_state = "on" if setting.email_enabled else "off"
    push_state = "on" if setting.push_enabled else "off"
    print(f"email={email_state} ({setting.email or '-'}) push={push_state}")
    return 0


def _read_subscription(path: str) -> Any:
    try:
        if path == "-":
            return json.load(sys.stdin)
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except OSError as exc:
        raise ValidationError(f"cannot read subscription file {path}: {exc}") from exc
    except ValueError as exc:
        raise ValidationError(f"subscription file {path} is not valid JSON: {exc}") from exc


def cmd_subscribe(state: AppState, args: argparse.Namespace) -> int:
    data = _read_subscription(args.file)
    if not isinstance(data, dict):
        raise ValidationError("invalid subscription data")
    sub_id = task_api.register_push_subscription(
        state.task_store, owner_id=args.owner, subscription=data
    )
    print(f"Subscription {sub_id} saved")
    return 0


def cmd_unsubscribe(state: AppState, args: argparse.Namespace) -> int:
    removed = task_api.unregister_push_subscription(
        state.task_store, owner_id=args.owner, endpoint=args.endpoint
    )
    print("Subscription removed" if removed else "No such subscription")
    return 0


def cmd_delete(state: AppState, args: argparse.Namespace) -> int:
    outcome = task_api.delete_task(
        state.task_store,
        owner_id=args.owner,
        task_id=args.task_id,
        mode=args.mode,
        target_date=args.date,
    )
    print(f"Task {args.task_id} {outcome}")
    return 0


def cmd_done(state: AppState, args: argparse.Namespace) -> int:
    task_api.toggle_completion(
        state.task_store,
        owner_id=args.owner,
        task_id=args.task_id,
        on_date=_date_arg(args.date),
        completed=not args.undo,
    )
    return 0


def cmd_search(state: AppState, args: argparse.Namespace) -> int:
    years = int(getattr(state.settings, "holiday_years_ahead", 20))
    results = task_api.search_dates(
        state.task_store, args.owner, args.query, today=date.today(), years_ahead=years
    )
    for d, count in results[: args.limit]:
        print(f"{d.isoformat()}  {count}")
    if not results:
        print("(no matches)")
    return 0


def cmd_dispatch(state: AppState, args: argparse.Namespace) -> int:
    now_date, now_time = slot_for(datetime.now())
    target = task_api.parse_date(args.date) if args.date else now_date
    time_str = task_api.validate_time(args.time) if args.time else now_time

    result = asyncio.run(
        dispatch(state.task_store, state.email_sender, state.push_sender, target, time_str)
    )
    print(f"{target.isoformat()} {time_str}: email={result.email_count} push={result.push_count}")
    for err in result.errors:
        print(f"  error: {err}")
    return 0


def cmd_run(state: AppState, args: argparse.Namespace) -> int:
    settings = state.settings
    try:
        asyncio.run(
            run_dispatch_loop(
                state.task_store,
                state.email_sender,
                state.push_sender,
                interval_seconds=float(getattr(settings, "dispatch_interval_seconds", 30.0)),
                timeout_seconds=float(getattr(settings, "dispatch_timeout_seconds", 240.0)),
            )
        )
    except KeyboardInterrupt:
        logger.info("Dispatch loop stopped.")
    return 0


def _add_recurrence_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--recurrence", choices=[k.value for k in RecurrenceKind])
    p.add_argument("--every", type=int, help="custom period count")
    p.add_argument("--unit", choices=["days", "weeks", "months", "years"])
    p.add_argument(
        "--weekday", type=int, action="append", help="0=Sun..6=Sat (repeatable, for 'weekdays')"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sakutto-task", description="Task reminders.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="create a task")
    p.add_argument("--owner", required=True)
    p.add_argument("--title", required=True)
    p.add_argument("--due", required=True, help="YYYY-MM-DD")
    p.add_argument("--notify", metavar="HH:MM", help="notification time (enables notification)")
    _add_recurrence_args(p)
    p.set_defaults(handler=cmd_add)

    p = sub.add_parser("show", help="show one task with its recurrence")
    p.add_argument("--owner", required=True)
    p.add_argument("task_id", type=int)
    p.set_defaults(handler=cmd_show)

    p = sub.add_parser("edit", help="change a task (omitted fields keep their value)")
    p.add_argument("--owner", required=True)
    p.add_argument("task_id", type=int)
    p.add_argument("--title")
    p.add_argument("--due", help="YYYY-MM-DD")
    notify = p.add_mutually_exclusive_group()
    notify.add_argument("--notify", metavar="HH:MM", help="notification time (enables notification)")
    notify.add_argument("--no-notify", action="store_true", help="turn the notification off")
    _add_recurrence_args(p)
    p.add_argument("--no-recurrence", action="store_true", help="make the task a one-off")
    p.set_defaults(handler=cmd_edit)

    p = sub.add_parser("list", help="list a day's tasks")
    p.add_argument("--owner", required=True)
    p.add_argument("--date", help="YYYY-MM-DD (default: today)")
    p.set_defaults(handler=cmd_list)

    p = sub.add_parser("delete", help="delete a task or some of its occurrences")
    p.add_argument("--owner", required=True)
    p.add_argument("task_id", type=int)
    p.add_argument("--mode", choices=["this_only", "future_all"])
    p.add_argument("--date", help="occurrence date for --mode")
    p.set_defaults(handler=cmd_delete)

    p = sub.add_parser("done", help="mark an occurrence completed")
    p.add_argument("--owner", required=True)
    p.add_argument("task_id", type=int)
    p.add_argument("--date", help="YYYY-MM-DD (default: today)")
    p.add_argument("--undo", action="store_true", help="mark as not completed")
    p.set_defaults(handler=cmd_done)

    p = sub.add_parser("search", help="find dates with matching tasks")
    p.add_argument("--owner", required=True)
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=50)
    p.set_defaults(handler=cmd_search)

    p = sub.add_parser("settings", help="set or show notification channels")
    p.add_argument("--owner", required=True)
    p.add_argument("--email", help="address for email notifications")
    p.add_argument("--email-on", action="store_true", help="send email notifications")
    p.add_argument("--push-on", action="store_true", help="send web push notifications")
    p.add_argument("--show", action="store_true", help="print the saved settings only")
    p.set_defaults(handler=cmd_settings)

    p = sub.add_parser("subscribe", help="register a browser push subscription")
    p.add_argument("--owner", required=True)
    p.add_argument("file", help="PushSubscription JSON file ('-' for stdin)")
    p.set_defaults(handler=cmd_subscribe)

    p = sub.add_parser("unsubscribe", help="remove a push subscription")
    p.add_argument("--owner", required=True)
    p.add_argument("endpoint")
    p.set_defaults(handler=cmd_unsubscribe)

    p = sub.add_parser("dispatch", help="send notifications for one slot")
    p.add_argument("--date", help="YYYY-MM-DD (default: now)")
    p.add_argument("--time", help="HH:MM (default: now)")
    p.set_defaults(handler=cmd_dispatch)

    p = sub.add_parser("run", help="dispatch every minute until interrupted")
    p.set_defaults(handler=cmd_run)

    return parser


def run_command(state: AppState, args: argparse.Namespace) -> int:
    handler: CommandHandler = args.handler
    try:
        return handler(state, args)
    except SakuttoError as exc:
        print(f"error: {exc}")
        return 2

# src/sakutto_task/notifications/dispatch.py

"""
Notification dispatch.

One call handles one (date, "HH:mm") slot:
- load tasks whose stored notification time equals the slot time,
- confirm each task really occurs on the date (recurrence + exclusions),
- look up the owner's channel settings,
- send email and/or push, one task at a time per coroutine, all tasks concurrently.

Delivery failures never raise: they are counted out and returned as error strings.
Only a failure to load the candidates (store unreachable) propagates.

There is no delivery guarantee. Calling twice for the same slot sends twice.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date

from ..core.ports import EmailSender, PushResult, PushSender, TaskRepo
from ..tasks.recurrence import occurs_on
from ..tasks.task_models import DispatchResult, PushSubscription, Task
from . import messages

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _TaskOutcome:
    email_sent: bool = False
    push_sent: bool = False
    errors: list[str] = field(default_factory=list)


def find_due_notifications(repo: TaskRepo, target: date, time_str: str) -> list[Task]:
    """Tasks whose notification fires at (target, time_str)."""
    candidates = repo.list_notification_candidates(time_str)
    exclusions = repo.list_exclusions_for_tasks(t.id for t, _ in candidates)

    due: list[Task] = []
    for task, rule in candidates:
        # The store already filters on time; keep the check so a repo that does not cannot misfire.
        if not task.notification_enabled or task.notification_time != time_str:
            continue
        if occurs_on(task, rule, exclusions.get(task.id), target):
            due.append(task)
    return due


async def _send_email(
    email_sender: EmailSender, to: str, task: Task, time_str: str, outcome: _TaskOutcome
) -> None:
    try:
        result = await email_sender.send_email(
            to=to,
            subject=messages.email_subject(task.title),
            html=messages.email_html(task.title, task.due_date, time_str),
        )
    except Exception as exc:
        logger.exception("Email sender raised to=%s task_id=%s", to, task.id)
        outcome.errors.append(f"Failed to send email to {to} for task {task.id}: {exc}")
        return

    if result.ok:
        outcome.email_sent = True
        logger.info("Email sent to=%s task_id=%s", to, task.id)
        return

    reason = result.error or "unknown error"
    outcome.errors.append(f"Failed to send email to {to} for task {task.id}: {reason}")
    logger.error("Email failed to=%s task_id=%s: %s", to, task.id, reason)


async def _send_one_push(
    repo: TaskRepo, push_sender: PushSender, sub: PushSubscription, payload: str
) -> PushResult:
    try:
        result = await push_sender.send_push(sub, payload)
    except Exception as exc:
        logger.exception("Push sender raised sub_id=%s", sub.id)
        return PushResult(ok=False, error=str(exc) or exc.__class__.__name__)

    if not result.ok and result.permanent:
        logger.info("Subscription %s is invalid (%s), deleting", sub.id, result.status_code)
        try:
            repo.delete_push_subscription(sub.endpoint)
        except Exception:
            logger.exception("Failed to delete invalid subscription %s", sub.id)
    return result


async def _send_push(
    repo: TaskRepo, push_sender: PushSender, task: Task, time_str: str, outcome: _TaskOutcome
) -> None:
    try:
        subs = repo.list_push_subscriptions(task.owner_id)
    except Exception as exc:
        logger.exception("Loading push subscriptions failed user=%s", task.owner_id)
        outcome.errors.append(
            f"Failed to send web push to user {task.owner_id} for task {task.id}: {exc}"
        )
        return

    if not subs:
        outcome.errors.append(
            f"Failed to send web push to user {task.owner_id} for task {task.id}: no subscriptions"
        )
        return

    payload = messages.push_payload(
        owner_id=task.owner_id, title=task.title, due=task.due_date, notification_time=time_str
    )
    results = await asyncio.gather(*(_send_one_push(repo, push_sender, s, payload) for s in subs))

    sent = sum(1 for r in results if r.ok)
    logger.info(
        "Push for task_id=%s user=%s: %d/%d subscriptions ok", task.id, task.owner_id, sent, len(subs)
    )
    if sent:
        outcome.push_sent = True
        return

    reasons = "; ".join(r.error or f"status {r.status_code}" for r in results)
    outcome.errors.append(
        f"Failed to send web push to user {task.owner_id} for task {task.id}: {reasons}"
    )


async def _notify_task(
    repo: TaskRepo,
    email_sender: EmailSender,
    push_sender: PushSender,
    task: Task,
    time_str: str,
) -> _TaskOutcome:
    outcome = _TaskOutcome()

    try:
        setting = repo.get_notification_setting(task.owner_id)
    except Exception as exc:
        logger.exception("Loading notification setting failed user=%s", task.owner_id)
        outcome.errors.append(f"Failed to load notification settings for user {task.owner_id}: {exc}")
        return outcome

    if setting is None:
        logger.debug("No notification setting for user=%s; skipping task_id=%s", task.owner_id, task.id)
        return outcome

    jobs = []
    if setting.email_enabled and setting.email:
        jobs.append(_send_email(email_sender, setting.email, task, time_str, outcome))
    if setting.push_enabled:
        jobs.append(_send_push(repo, push_sender, task, time_str, outcome))

    await asyncio.gather(*jobs)
    return outcome


async def dispatch(
    repo: TaskRepo,
    email_sender: EmailSender,
    push_sender: PushSender,
    target: date,
    time_str: str,
) -> DispatchResult:
    """Send every notification due at (target, time_str) and report what happened."""
    tasks = find_due_notifications(repo, target, time_str)
    logger.info("Dispatch %s %s: %d task(s) to notify", target.isoformat(), time_str, len(tasks))

    outcomes = await asyncio.gather(
        *(_notify_task(repo, email_sender, push_sender, t, time_str) for t in tasks)
    )

    result = DispatchResult()
    for o in outcomes:
        result.email_count += int(o.email_sent)
        result.push_count += int(o.push_sent)
        result.errors.extend(o.errors)

    logger.info(
        "Dispatch %s %s done: email=%d push=%d errors=%d",
        target.isoformat(),
        time_str,
        result.email_count,
        result.push_count,
        len(result.errors),
    )
    return result

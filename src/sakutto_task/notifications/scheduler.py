# src/sakutto_task/notifications/scheduler.py

"""
Periodic trigger for notification dispatch.

A small polling loop standing in for an external cron: every interval it works
out which minute slots ("HH:mm") have started since the previous tick and calls
dispatch() once per slot. Each dispatch call gets a soft timeout; a failed or
timed-out slot is logged and not retried.

Dates and times come from `clock()` as naive local values; no timezone
conversion happens here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta

from ..core.ports import EmailSender, PushSender, TaskRepo
from .dispatch import dispatch

logger = logging.getLogger(__name__)


def slot_for(moment: datetime) -> tuple[date, str]:
    return moment.date(), moment.strftime("%H:%M")


def _floor_minute(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


def pending_slots(last: datetime | None, now: datetime, *, max_catchup: int) -> list[datetime]:
    """
    Minute slots in (last, now], oldest first, at most `max_catchup` of them.

    The first tick (last is None) only covers the current minute.
    """
    current = _floor_minute(now)
    if last is None:
        return [current]
    if current <= last:
        return []

    start = max(last + timedelta(minutes=1), current - timedelta(minutes=max(0, max_catchup - 1)))
    out: list[datetime] = []
    slot = start
    while slot <= current:
        out.append(slot)
        slot += timedelta(minutes=1)
    return out


async def run_dispatch_loop(
        repo: TaskRepo,
        email_sender: EmailSender,
        push_sender: PushSender,
        *,
        interval_seconds: float = 30.0,
        timeout_seconds: float = 240.0,
        max_catchup_minutes: int = 15,
        clock: Callable[[], datetime] = datetime.now,
) -> None:
    """
    Run until cancelled.

    Keep interval_seconds under a minute so every slot is seen on time; slower
    ticks catch up on up to max_catchup_minutes missed slots.
    """
    sleep_s = max(0.5, float(interval_seconds))
    timeout_s = max(1.0, float(timeout_seconds))
    last: datetime | None = None

    while True:
        for slot in pending_slots(last, clock(), max_catchup=max_catchup_minutes):
            target, time_str = slot_for(slot)
            try:
                result = await asyncio.wait_for(
                    dispatch(repo, email_sender, push_sender, target, time_str),
                    timeout=timeout_s,
                )
                if result.errors:
                    logger.warning(
                        "Dispatch %s %s finished with %d error(s)", target, time_str, len(result.errors)
                    )
            except asyncio.TimeoutError:
                logger.error("Dispatch %s %s timed out after %.0fs", target, time_str, timeout_s)
            except Exception:
                logger.exception("Dispatch %s %s failed", target, time_str)
            last = slot

        await asyncio.sleep(sleep_s)

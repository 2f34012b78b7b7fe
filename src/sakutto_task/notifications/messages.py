# src/sakutto_task/notifications/messages.py

"""Fixed notification templates (email subject/body, push payload)."""

from __future__ import annotations

import html
import json
from datetime import date

APP_LABEL = "さくっとタスク"

_WEEKDAY_NAMES = ("月", "火", "水", "木", "金", "土", "日")


def format_due_date(d: date) -> str:
    """2024-03-01 -> '2024年3月1日(金)'"""
    return f"{d.year}年{d.month}月{d.day}日({_WEEKDAY_NAMES[d.weekday()]})"


def email_subject(title: str) -> str:
    return f"【{APP_LABEL}】{title} の通知"


def email_html(title: str, due: date, notification_time: str) -> str:
    safe_title = html.escape(title)
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h2 style="color: #333;">タスクの通知</h2>
    <p>以下のタスクの期日・通知時刻になりました。</p>
    <div style="background-color: #f5f5f5; padding: 20px; border-radius: 5px; margin: 20px 0;">
        <h3 style="margin-top: 0;">{safe_title}</h3>
        <p><strong>期日:</strong> {format_due_date(due)}</p>
        <p><strong>通知時刻:</strong> {html.escape(notification_time)}</p>
    </div>
    <p style="color: #666; font-size: 14px;">
        このメールは、{APP_LABEL}の通知設定により自動送信されました。
    </p>
</div>
""".strip()


def push_payload(*, owner_id: str, title: str, due: date, notification_time: str) -> str:
    return json.dumps(
        {
            "title": f"【{APP_LABEL}】タスクの通知",
            "body": f"{title} - {format_due_date(due)} {notification_time}",
            "icon": "/favicon.ico",
            "badge": "/favicon.ico",
            "tag": f"task-{owner_id}",
            "data": {"url": "/top"},
        },
        ensure_ascii=False,
    )

# src/sakutto_task/notifications/senders.py

"""
Concrete delivery transports.

Both senders are blocking libraries (smtplib, pywebpush) run in a worker thread
so that several deliveries can be in flight at once. Neither raises for a
delivery failure; they return EmailResult / PushResult instead.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from pywebpush import WebPushException, webpush

from ..core.ports import EmailResult, PushResult
from ..tasks.task_models import PushSubscription

logger = logging.getLogger(__name__)

# Push services answer 404 / 410 for subscriptions that will never work again.
PERMANENT_PUSH_STATUSES = frozenset({404, 410})


class SmtpEmailSender:
    def __init__(
        self,
        *,
        host: str | None,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        from_addr: str | None = None,
        starttls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = int(port)
        self._user = user
        self._password = password
        self._from = from_addr or user
        self._starttls = starttls
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._host and self._from)

    def _send_sync(self, to: str, subject: str, html: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self._from
        msg["To"] = to
        msg.set_content(subject)
        msg.add_alternative(html, subtype="html")

        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._starttls:
                server.starttls()
            if self._user and self._password:
                server.login(self._user, self._password)
            server.send_message(msg)

    async def send_email(self, *, to: str, subject: str, html: str) -> EmailResult:
        if not self.configured:
            logger.warning("SMTP host/from missing; email to %s not sent", to)
            return EmailResult(ok=False, error="SMTP is not configured")

        try:
            await asyncio.to_thread(self._send_sync, to, subject, html)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP send failed to=%s: %s", to, exc)
            return EmailResult(ok=False, error=str(exc) or exc.__class__.__name__)

        logger.debug("Email sent to=%s subject=%r", to, subject)
        return EmailResult(ok=True)


class WebPushSender:
    def __init__(
        self,
        *,
        vapid_private_key: str | None,
        vapid_subject: str = "mailto:admin@example.com",
        ttl: int = 60 * 60,
        timeout: float = 10.0,
    ) -> None:
        self._private_key = vapid_private_key
        self._subject = vapid_subject
        self._ttl = int(ttl)
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._private_key)

    def _send_sync(self, subscription: PushSubscription, payload: str) -> None:
        webpush(
            subscription_info={
                "endpoint": subscription.endpoint,
                "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
            },
            data=payload,
            vapid_private_key=self._private_key,
            # webpush() fills in aud/exp on the dict it is given; pass a fresh one each call.
            vapid_claims={"sub": self._subject},
            ttl=self._ttl,
            timeout=self._timeout,
        )

    async def send_push(self, subscription: PushSubscription, payload: str) -> PushResult:
        if not self.configured:
            logger.error("VAPID keys are not configured; push not sent")
            return PushResult(ok=False, error="VAPID keys are not configured")

        try:
            await asyncio.to_thread(self._send_sync, subscription, payload)
        except WebPushException as exc:
            status = exc.response.status_code if exc.response is not None else None
            permanent = status in PERMANENT_PUSH_STATUSES
            logger.warning(
                "Push failed sub_id=%s status=%s permanent=%s: %s",
                subscription.id,
                status,
                permanent,
                exc,
            )
            return PushResult(ok=False, permanent=permanent, status_code=status, error=str(exc))
        except Exception as exc:
            logger.exception("Push send error sub_id=%s", subscription.id)
            return PushResult(ok=False, error=str(exc) or exc.__class__.__name__)

        return PushResult(ok=True)

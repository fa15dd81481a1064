from __future__ import annotations

import logging
from datetime import datetime

from flippin.config import FlippinConfig
from flippin.extensions import db
from flippin.integrations.email import EmailProvider, build_email_provider
from flippin.models import Notification
from flippin.services.email_templates import render

logger = logging.getLogger(__name__)


class Notifier:
    """Post-commit email hand-off.

    ``notify`` is only called after the triggering state change has been
    committed. It never raises: a failure to queue or deliver is logged and
    the outbox row (if any) is marked failed.
    """

    def __init__(self, config: FlippinConfig, email_provider: EmailProvider | None = None):
        self.config = config
        self._email_provider = email_provider

    @property
    def email_provider(self) -> EmailProvider:
        if self._email_provider is None:
            self._email_provider = build_email_provider(self.config)
        return self._email_provider

    def notify(self, kind: str, *, to: str | None, user_id: int | None = None, context: dict | None = None) -> Notification | None:
        mode = self.config.notifications_dispatch
        if mode == "off" or not to:
            return None
        try:
            rendered = render(kind, {"app_url": self.config.app_url, **(context or {})})
            row = Notification(
                user_id=user_id,
                kind=kind[:64],
                recipient=to[:255],
                subject=rendered.subject[:200],
                body=rendered.text,
                status="queued",
                created_at=datetime.utcnow(),
            )
            db.session.add(row)
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception("notification_queue_failed kind=%s to=%s", kind, to)
            return None

        try:
            if mode == "celery":
                from flippin.tasks.notification_tasks import deliver_notification_task

                deliver_notification_task.delay(int(row.id))
            else:
                self.deliver(int(row.id))
        except Exception:
            logger.exception("notification_dispatch_failed id=%s kind=%s", row.id, kind)
        return row

    def deliver(self, notification_id: int) -> bool:
        row = db.session.get(Notification, int(notification_id))
        if row is None:
            logger.warning("notification_missing id=%s", notification_id)
            return False
        if row.status == "sent":
            return True
        row.attempts = int(row.attempts or 0) + 1
        try:
            result = self.email_provider.send(
                to=row.recipient,
                subject=row.subject,
                text=row.body,
                reference=f"notification:{int(row.id)}",
            )
        except Exception as exc:
            logger.exception("notification_send_error id=%s", row.id)
            row.status = "failed"
            row.error = str(exc)[:500]
            db.session.commit()
            return False

        row.provider = getattr(self.email_provider, "name", "")
        if result.ok:
            row.status = "sent"
            row.provider_ref = (result.provider_ref or "")[:120] or None
            row.sent_at = datetime.utcnow()
            row.error = None
        else:
            row.status = "failed"
            row.error = f"{result.code}:{result.message}"[:500]
            logger.warning("notification_send_failed id=%s code=%s", row.id, result.code)
        db.session.commit()
        return bool(result.ok)

from __future__ import annotations

import time

from celery import shared_task

from flippin.services.registry import get_services
from flippin.tasks._common import retry_countdown, task_log


@shared_task(bind=True, name="flippin.tasks.notification_tasks.deliver_notification", max_retries=5)
def deliver_notification_task(self, notification_id: int, trace_id: str = ""):
    started = time.perf_counter()
    sent = get_services().notifier.deliver(int(notification_id))
    if sent:
        task_log("deliver_notification", status="ok", started_at=started, trace_id=trace_id, notification_id=notification_id)
        return {"ok": True, "notification_id": int(notification_id)}
    if int(self.request.retries or 0) < int(self.max_retries or 0):
        countdown = retry_countdown(int(self.request.retries or 0))
        task_log(
            "deliver_notification",
            status="retrying",
            started_at=started,
            trace_id=trace_id,
            notification_id=notification_id,
            countdown=countdown,
        )
        raise self.retry(exc=RuntimeError("notification_send_failed"), countdown=countdown)
    task_log("deliver_notification", status="failed", started_at=started, trace_id=trace_id, notification_id=notification_id)
    return {"ok": False, "notification_id": int(notification_id)}

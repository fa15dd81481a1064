from __future__ import annotations

import time

from celery import shared_task

from flippin.jobs.inspection_runner import run_inspection_release
from flippin.jobs.offer_expiry_runner import run_offer_expiry
from flippin.services.registry import get_services
from flippin.tasks._common import retry_countdown, task_log


@shared_task(bind=True, name="flippin.tasks.settlement_tasks.run_inspection_release", max_retries=3)
def run_inspection_release_task(self, *, trace_id: str = ""):
    started = time.perf_counter()
    services = get_services()
    try:
        result = run_inspection_release(services.lifecycle, limit=services.config.job_batch_limit)
    except Exception as exc:
        if int(self.request.retries or 0) < int(self.max_retries or 0):
            countdown = retry_countdown(int(self.request.retries or 0))
            task_log("run_inspection_release", status="retrying", started_at=started, trace_id=trace_id, detail=str(exc), countdown=countdown)
            raise self.retry(exc=exc, countdown=countdown)
        task_log("run_inspection_release", status="failed", started_at=started, trace_id=trace_id, detail=str(exc))
        raise
    task_log(
        "run_inspection_release",
        status="ok" if result.get("ok") else "failed",
        started_at=started,
        trace_id=trace_id,
        completed=result.get("completed"),
    )
    return result


@shared_task(bind=True, name="flippin.tasks.settlement_tasks.run_offer_expiry", max_retries=3)
def run_offer_expiry_task(self, *, trace_id: str = ""):
    started = time.perf_counter()
    try:
        result = run_offer_expiry()
    except Exception as exc:
        if int(self.request.retries or 0) < int(self.max_retries or 0):
            countdown = retry_countdown(int(self.request.retries or 0))
            task_log("run_offer_expiry", status="retrying", started_at=started, trace_id=trace_id, detail=str(exc), countdown=countdown)
            raise self.retry(exc=exc, countdown=countdown)
        task_log("run_offer_expiry", status="failed", started_at=started, trace_id=trace_id, detail=str(exc))
        raise
    task_log("run_offer_expiry", status="ok", started_at=started, trace_id=trace_id)
    return result

from __future__ import annotations

import json
from datetime import datetime

from celery import Celery
from celery.signals import task_failure, task_retry

from flippin.config import FlippinConfig

_SIGNALS_BOUND = False


def _bind_task_observers(flask_app) -> None:
    global _SIGNALS_BOUND
    if _SIGNALS_BOUND:
        return

    @task_failure.connect(weak=False)
    def _on_task_failure(sender=None, task_id=None, exception=None, args=None, kwargs=None, einfo=None, **extra):
        payload = {
            "event": "celery_task_failure",
            "task_name": getattr(sender, "name", "") if sender is not None else "",
            "task_id": str(task_id or ""),
            "trace_id": str((kwargs or {}).get("trace_id") or ""),
            "exception": str(exception or ""),
            "timestamp": datetime.utcnow().isoformat(),
        }
        if einfo is not None:
            payload["einfo"] = str(einfo)
        flask_app.logger.error(json.dumps(payload))

    @task_retry.connect(weak=False)
    def _on_task_retry(request=None, reason=None, einfo=None, **extra):
        payload = {
            "event": "celery_task_retry",
            "task_name": str(getattr(request, "task", "") or ""),
            "task_id": str(getattr(request, "id", "") or ""),
            "trace_id": str((getattr(request, "kwargs", None) or {}).get("trace_id") or ""),
            "reason": str(reason or ""),
            "retry_count": int(getattr(request, "retries", 0) or 0),
            "timestamp": datetime.utcnow().isoformat(),
        }
        flask_app.logger.warning(json.dumps(payload))

    _SIGNALS_BOUND = True


def create_celery_app(flask_app) -> Celery:
    config: FlippinConfig = flask_app.config["FLIPPIN"]
    broker = config.celery_broker_url
    celery = Celery(flask_app.import_name, broker=broker, backend=config.celery_result_backend or broker)
    celery.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        task_track_started=True,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        broker_connection_retry_on_startup=True,
        timezone="UTC",
        enable_utc=True,
        beat_schedule={
            "inspection-release-runner": {
                "task": "flippin.tasks.settlement_tasks.run_inspection_release",
                "schedule": float(config.inspection_release_interval_seconds),
            },
            "offer-expiry-runner": {
                "task": "flippin.tasks.settlement_tasks.run_offer_expiry",
                "schedule": float(config.offer_expiry_interval_seconds),
            },
        },
    )

    class FlaskContextTask(celery.Task):
        def __call__(self, *args, **kwargs):
            with flask_app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = FlaskContextTask
    celery.set_default()
    # shared_task registrations bind to the default app on import.
    import flippin.tasks.notification_tasks  # noqa: F401
    import flippin.tasks.settlement_tasks  # noqa: F401
    _bind_task_observers(flask_app)
    return celery

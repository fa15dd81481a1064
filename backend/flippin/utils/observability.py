from __future__ import annotations

import json
import os
import time
import uuid
from datetime import datetime

from flask import g, has_request_context, request

# URL parameters naming the settlement object a request acts on.
SUBJECT_ARGS = ("transaction_id", "offer_id", "listing_id")

_SECRET_HEADERS = ("authorization", "x-api-key", "cookie", "set-cookie")
# Checkout bodies carry card tokens; payout metadata carries bank details.
_SECRET_FIELDS = ("card_token", "authorization_code", "account_number")


def get_request_id() -> str:
    if not has_request_context():
        return ""
    return getattr(g, "request_id", "")


def request_subject() -> dict:
    """Settlement ids from the matched route, e.g. ``{"transaction_id": 7}``."""
    if not has_request_context():
        return {}
    args = request.view_args or {}
    return {k: args[k] for k in SUBJECT_ARGS if k in args}


def mark_error(code: str) -> None:
    """Remember the error code the response carries, for the request log."""
    if has_request_context():
        g.error_code = code


def init_sentry(app) -> None:
    dsn = (os.getenv("SENTRY_DSN") or "").strip()
    if not dsn:
        app.logger.info("sentry_disabled_no_dsn")
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
    except ImportError:
        app.logger.warning("sentry_sdk_not_installed")
        return

    try:
        traces_rate = float((os.getenv("SENTRY_TRACES_SAMPLE_RATE") or "0").strip())
    except ValueError:
        traces_rate = 0.0
    sentry_sdk.init(
        dsn=dsn,
        environment=(os.getenv("SENTRY_ENVIRONMENT") or os.getenv("FLIPPIN_ENV") or "dev"),
        release=(os.getenv("GIT_SHA") or "unknown"),
        integrations=[FlaskIntegration()],
        send_default_pii=False,
        traces_sample_rate=max(0.0, min(traces_rate, 1.0)),
        before_send=_before_send_scrub,
    )
    app.logger.info("sentry_enabled")


def _before_send_scrub(event, hint):
    req = event.get("request") or {}
    headers = req.get("headers") or {}
    for key in list(headers.keys()):
        if key.lower() in _SECRET_HEADERS:
            headers[key] = "[REDACTED]"
    req["headers"] = headers
    data = req.get("data")
    if isinstance(data, dict):
        for key in list(data.keys()):
            if str(key).lower() in _SECRET_FIELDS:
                data[key] = "[REDACTED]"
    event["request"] = req

    tags = event.setdefault("tags", {})
    rid = get_request_id()
    if rid:
        tags["request_id"] = rid
    for key, value in request_subject().items():
        tags[key] = str(value)
    return event


def install_request_observers(app) -> None:
    @app.before_request
    def _request_observer_begin():
        rid = (request.headers.get("X-Request-Id") or "").strip() or uuid.uuid4().hex
        g.request_id = rid[:80]
        g.request_started_at = time.perf_counter()

    @app.after_request
    def _request_observer_end(response):
        rid = getattr(g, "request_id", "") or uuid.uuid4().hex
        response.headers["X-Request-Id"] = rid
        started = getattr(g, "request_started_at", None)
        payload = {
            "ts": datetime.utcnow().isoformat(),
            "request_id": rid,
            "method": request.method,
            "path": request.path,
            "status": int(response.status_code),
            "latency_ms": round((time.perf_counter() - started) * 1000.0, 2) if started is not None else None,
            "user_id": getattr(g, "auth_user_id", None),
            **request_subject(),
        }
        code = getattr(g, "error_code", None)
        if code:
            payload["error_code"] = code
        app.logger.info(json.dumps(payload))
        return response

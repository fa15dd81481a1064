from __future__ import annotations

import logging
from datetime import datetime

from flippin.errors import FlippinError
from flippin.extensions import db
from flippin.models import Transaction
from flippin.models.enums import TransactionStatus
from flippin.services.transaction_lifecycle import TransactionLifecycle
from flippin.utils.job_runs import record_job_run

logger = logging.getLogger(__name__)


def _now():
    return datetime.utcnow()


def run_inspection_release(lifecycle: TransactionLifecycle, *, limit: int = 200) -> dict:
    """Complete transactions whose buyer inspection window has lapsed.

    Completion goes through the lifecycle with a system actor, so payout is
    released exactly as if the buyer had confirmed delivery.
    """
    started_at = _now()
    processed = 0
    completed = 0
    skipped = 0
    errors = 0

    rows = (
        Transaction.query
        .filter(
            Transaction.status.in_([TransactionStatus.DELIVERED, TransactionStatus.INSPECTION_PERIOD]),
            Transaction.inspection_ends_at.isnot(None),
            Transaction.inspection_ends_at <= started_at,
        )
        .order_by(Transaction.inspection_ends_at.asc())
        .limit(int(limit))
        .all()
    )
    ids = [int(t.id) for t in rows]

    for txn_id in ids:
        processed += 1
        try:
            lifecycle.confirm_delivery(txn_id, actor=None, reason="inspection_window_elapsed")
            completed += 1
        except FlippinError:
            # Raced with a buyer confirmation or dispute.
            db.session.rollback()
            skipped += 1
        except Exception:
            db.session.rollback()
            logger.exception("inspection_release_failed transaction_id=%s", txn_id)
            errors += 1

    result = {
        "ok": errors == 0,
        "processed": processed,
        "completed": completed,
        "skipped": skipped,
        "errors": errors,
        "ts": _now().isoformat(),
    }
    record_job_run(
        job_name="inspection_release",
        ok=errors == 0,
        started_at=started_at,
        processed=completed,
        error=None if errors == 0 else f"errors={errors}",
    )
    return result

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from flippin.extensions import db
from flippin.models import InstantOffer, Offer
from flippin.models.enums import InstantOfferStatus, OfferStatus
from flippin.utils.job_runs import record_job_run


def run_offer_expiry(*, now: datetime | None = None) -> dict:
    """Move pending offers and instant offers past their expiry to EXPIRED."""
    started_at = datetime.utcnow()
    cutoff = now or started_at
    try:
        offers = (
            Offer.query
            .filter(Offer.status == OfferStatus.PENDING, Offer.expires_at <= cutoff)
            .update({"status": OfferStatus.EXPIRED}, synchronize_session=False)
        )
        instant = (
            InstantOffer.query
            .filter(InstantOffer.status == InstantOfferStatus.PENDING, InstantOffer.expires_at <= cutoff)
            .update({"status": InstantOfferStatus.EXPIRED}, synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        record_job_run(job_name="offer_expiry", ok=False, started_at=started_at, error=str(exc))
        raise

    record_job_run(job_name="offer_expiry", ok=True, started_at=started_at, processed=int(offers) + int(instant))
    return {
        "ok": True,
        "offers_expired": int(offers),
        "instant_offers_expired": int(instant),
        "ts": datetime.utcnow().isoformat(),
    }

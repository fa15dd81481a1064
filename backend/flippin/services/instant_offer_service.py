from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from flippin.config import FlippinConfig
from flippin.extensions import db
from flippin.models import InstantBuyer, InstantOffer, Listing
from flippin.models.enums import InstantOfferStatus
from flippin.services.pricing import calculate_instant_offer, parse_condition_rules
from flippin.utils.events import log_event

logger = logging.getLogger(__name__)


def eligible_buyers(listing: Listing) -> list[InstantBuyer]:
    rows = (
        InstantBuyer.query
        .filter(InstantBuyer.active.is_(True), InstantBuyer.approved.is_(True))
        .order_by(InstantBuyer.id.asc())
        .all()
    )
    if listing.category_id is None:
        return []
    return [b for b in rows if int(listing.category_id) in b.category_ids()]


def generate_instant_offers(listing: Listing, market_price, *, config: FlippinConfig) -> list[InstantOffer]:
    """Quote every matching instant buyer for ``listing``.

    Each buyer's offer is written in its own savepoint; a buyer with broken
    condition rules is skipped without affecting the others.
    """
    now = datetime.utcnow()
    expires_at = now + timedelta(hours=int(config.instant_offer_ttl_hours))
    created: list[InstantOffer] = []
    skipped = 0

    for buyer in eligible_buyers(listing):
        try:
            rules = parse_condition_rules(buyer.condition_rules_json)
            quote = calculate_instant_offer(
                market_price,
                listing.condition,
                buyer.base_offer,
                rules,
                schedule=config.fees,
            )
            offer = InstantOffer(
                listing_id=int(listing.id),
                instant_buyer_id=int(buyer.id),
                seller_receives=quote.seller_receives,
                buyer_pays=quote.buyer_pays,
                platform_fee=quote.platform_fee,
                status=InstantOfferStatus.PENDING,
                expires_at=expires_at,
                created_at=now,
            )
            with db.session.begin_nested():
                db.session.add(offer)
            created.append(offer)
        except (ValueError, SQLAlchemyError) as exc:
            skipped += 1
            logger.warning("instant_offer_skipped listing_id=%s buyer_id=%s err=%s", listing.id, buyer.id, exc)

    log_event(
        "instant_offers_generated",
        subject_type="listing",
        subject_id=int(listing.id),
        metadata={"created": len(created), "skipped": skipped},
    )
    db.session.commit()
    logger.info("instant_offers_generated listing_id=%s created=%s skipped=%s", listing.id, len(created), skipped)
    return sorted(created, key=lambda o: o.seller_receives, reverse=True)

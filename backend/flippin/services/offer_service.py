from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from flippin.config import FlippinConfig
from flippin.errors import ForbiddenError, InvalidTransition, NotFoundError, StateConflictError, ValidationError
from flippin.extensions import db
from flippin.models import Listing, Offer, User
from flippin.models.enums import OfferStatus
from flippin.services.notification_service import Notifier
from flippin.utils.events import log_event
from flippin.utils.money import format_rand, quantize_cents, to_decimal

logger = logging.getLogger(__name__)

ACCEPT = "ACCEPT"
REJECT = "REJECT"


def _now() -> datetime:
    return datetime.utcnow()


def _is_counter(offer: Offer) -> bool:
    return offer.countered_from_id is not None


# A buyer's offer is made by the buyer and answered by the seller; a
# counter-offer keeps the buyer's id but runs the other way.
def _author_id(offer: Offer) -> int:
    return int(offer.listing.seller_id) if _is_counter(offer) else int(offer.buyer_id)


def _responder_id(offer: Offer) -> int:
    return int(offer.buyer_id) if _is_counter(offer) else int(offer.listing.seller_id)


class OfferService:
    """Buyer offers below (or slightly above) asking price.

    Accepting an offer never creates a transaction; the buyer checks out
    against the accepted offer afterwards.
    """

    def __init__(self, config: FlippinConfig, notifier: Notifier):
        self.config = config
        self.notifier = notifier

    def get(self, offer_id: int) -> Offer:
        offer = db.session.get(Offer, int(offer_id))
        if offer is None:
            raise NotFoundError("Offer not found")
        return offer

    def bounds(self, listing: Listing) -> tuple[Decimal, Decimal]:
        asking = to_decimal(listing.asking_price or 0)
        return (
            quantize_cents(asking * self.config.offer_min_ratio),
            quantize_cents(asking * self.config.offer_max_ratio),
        )

    def _check_amount(self, listing: Listing, amount) -> Decimal:
        try:
            value = quantize_cents(to_decimal(amount))
        except ValueError as exc:
            raise ValidationError("Offer amount must be a number") from exc
        low, high = self.bounds(listing)
        if value < low:
            raise ValidationError(
                f"Offer must be at least {format_rand(low)} (50% of asking price)",
                details={"min_amount": str(low)},
            )
        if value > high:
            raise ValidationError(
                f"Offer cannot exceed {format_rand(high)} (110% of asking price)",
                details={"max_amount": str(high)},
            )
        return value

    def _expire(self, offer: Offer) -> None:
        rows = (
            Offer.query
            .filter(Offer.id == int(offer.id), Offer.status == OfferStatus.PENDING)
            .update({"status": OfferStatus.EXPIRED})
        )
        db.session.commit()
        if rows:
            logger.info("offer_expired id=%s", offer.id)

    def _require_pending(self, offer: Offer, target: str) -> None:
        if offer.status != OfferStatus.PENDING:
            raise InvalidTransition(offer.status or "", target, subject="offer")
        if offer.is_expired(_now()):
            self._expire(offer)
            raise StateConflictError("Offer has expired", code="OFFER_EXPIRED", details={"offer_id": int(offer.id)})

    def _cas(self, offer: Offer, target: str) -> None:
        rows = (
            Offer.query
            .filter(Offer.id == int(offer.id), Offer.status == OfferStatus.PENDING)
            .update({"status": target, "responded_at": _now()})
        )
        if rows != 1:
            db.session.rollback()
            db.session.refresh(offer)
            raise InvalidTransition(offer.status or "", target, subject="offer")

    def create_offer(self, listing: Listing, buyer: User, amount, message: str | None = None) -> Offer:
        if listing is None:
            raise NotFoundError("Listing not found")
        if not listing.is_active:
            raise StateConflictError("Listing is not available", details={"listing_id": int(listing.id)})
        if int(listing.seller_id) == int(buyer.id):
            raise ValidationError("You cannot make an offer on your own listing")
        value = self._check_amount(listing, amount)

        now = _now()
        offer = Offer(
            listing_id=int(listing.id),
            buyer_id=int(buyer.id),
            amount=value,
            message=(message or "").strip()[:500] or None,
            status=OfferStatus.PENDING,
            expires_at=now + timedelta(hours=int(self.config.offer_ttl_hours)),
            created_at=now,
        )
        db.session.add(offer)
        db.session.flush()
        log_event(
            "offer_created",
            actor_user_id=int(buyer.id),
            subject_type="offer",
            subject_id=int(offer.id),
            metadata={"listing_id": int(listing.id), "amount": value},
        )
        db.session.commit()
        logger.info("offer_created id=%s listing_id=%s buyer_id=%s amount=%s", offer.id, listing.id, buyer.id, value)

        seller = listing.seller
        self.notifier.notify(
            "offer_received",
            to=seller.email if seller else None,
            user_id=int(listing.seller_id),
            context={
                "listing_id": int(listing.id),
                "listing_title": listing.title,
                "buyer_name": buyer.name or "A buyer",
                "amount": format_rand(value),
            },
        )
        return offer

    def respond_to_offer(self, offer: Offer, action: str, *, actor: User) -> Offer:
        verb = (action or "").strip().upper()
        if verb not in (ACCEPT, REJECT):
            raise ValidationError("Action must be ACCEPT or REJECT")
        listing = offer.listing
        if actor is None or int(actor.id) != _responder_id(offer):
            if _is_counter(offer):
                raise ForbiddenError("Only the buyer can respond to this counter-offer")
            raise ForbiddenError("Only the seller can respond to this offer")
        target = OfferStatus.ACCEPTED if verb == ACCEPT else OfferStatus.REJECTED
        self._require_pending(offer, target)
        if verb == ACCEPT and not listing.is_active:
            raise StateConflictError("Listing is no longer available", details={"listing_id": int(listing.id)})

        self._cas(offer, target)
        log_event(
            "offer_accepted" if verb == ACCEPT else "offer_rejected",
            actor_user_id=int(actor.id),
            subject_type="offer",
            subject_id=int(offer.id),
            idempotency_key=f"offer_{verb.lower()}:{int(offer.id)}",
        )
        db.session.commit()

        author = offer.listing.seller if _is_counter(offer) else offer.buyer
        self.notifier.notify(
            "offer_accepted" if verb == ACCEPT else "offer_rejected",
            to=author.email if author else None,
            user_id=_author_id(offer),
            context={
                "listing_id": int(listing.id),
                "listing_title": listing.title,
                "amount": format_rand(offer.amount),
            },
        )
        return offer

    def counter_offer(self, offer: Offer, amount, message: str | None = None, *, actor: User) -> Offer:
        """Reject ``offer`` and open a new pending offer at the seller's price."""
        listing = offer.listing
        if _is_counter(offer):
            raise ValidationError("A counter-offer can only be accepted or rejected; make a new offer instead")
        if actor is None or int(listing.seller_id) != int(actor.id):
            raise ForbiddenError("Only the seller can counter this offer")
        self._require_pending(offer, OfferStatus.REJECTED)
        if not listing.is_active:
            raise StateConflictError("Listing is no longer available", details={"listing_id": int(listing.id)})
        value = self._check_amount(listing, amount)

        self._cas(offer, OfferStatus.REJECTED)
        now = _now()
        counter = Offer(
            listing_id=int(listing.id),
            buyer_id=int(offer.buyer_id),
            amount=value,
            message=(message or "").strip()[:500] or None,
            status=OfferStatus.PENDING,
            countered_from_id=int(offer.id),
            expires_at=now + timedelta(hours=int(self.config.offer_ttl_hours)),
            created_at=now,
        )
        db.session.add(counter)
        db.session.flush()
        log_event(
            "offer_countered",
            actor_user_id=int(actor.id),
            subject_type="offer",
            subject_id=int(counter.id),
            metadata={"countered_from_id": int(offer.id), "amount": value},
        )
        db.session.commit()

        buyer = offer.buyer
        self.notifier.notify(
            "offer_countered",
            to=buyer.email if buyer else None,
            user_id=int(offer.buyer_id),
            context={
                "listing_id": int(listing.id),
                "listing_title": listing.title,
                "amount": format_rand(value),
            },
        )
        return counter

    def withdraw_offer(self, offer: Offer, *, actor: User) -> Offer:
        if actor is None or int(actor.id) != _author_id(offer):
            raise ForbiddenError("Only the party who made this offer can withdraw it")
        self._require_pending(offer, OfferStatus.WITHDRAWN)
        self._cas(offer, OfferStatus.WITHDRAWN)
        db.session.commit()
        return offer
